# passhub/config.py
"""
Configuration management for the pass economy engine.
Loads from .env, validates critical keys and fails fast on missing values.
"""
import os
import logging
from typing import Any, Dict, List

from dotenv import load_dotenv

from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class ConfigurationError(ValidationError):
    """Configuration error exception."""
    pass


class Config:
    """
    Configuration manager with static and dynamic values.

    Usage:
        # Load from .env
        Config.initialize_from_env()
        Config.validate_critical_keys()

        # Get value
        treasury = Config.get(Config.TREASURY_ADDRESS)

        # Set dynamic value
        Config.set(Config.PLATFORM_FEE_BPS, 250)
    """

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION KEYS
    # ═══════════════════════════════════════════════════════════════════════

    # Database
    DATABASE_URL = "DATABASE_URL"

    # Chain RPC
    RPC_URL = "RPC_URL"
    CHAIN_ID = "CHAIN_ID"
    RPC_TIMEOUT_SECONDS = "RPC_TIMEOUT_SECONDS"
    RECEIPT_POLL_INTERVAL_SECONDS = "RECEIPT_POLL_INTERVAL_SECONDS"

    # Payment & contracts
    TREASURY_ADDRESS = "TREASURY_ADDRESS"
    USDC_CONTRACT_ADDRESS = "USDC_CONTRACT_ADDRESS"
    REGISTRAR_CONTRACT_ADDRESS = "REGISTRAR_CONTRACT_ADDRESS"
    MARKETPLACE_CONTRACT_ADDRESS = "MARKETPLACE_CONTRACT_ADDRESS"
    MEMBERSHIP_CONTRACT_ADDRESS = "MEMBERSHIP_CONTRACT_ADDRESS"

    # Membership pass defaults
    MEMBERSHIP_DURATION_SECONDS = "MEMBERSHIP_DURATION_SECONDS"
    MEMBERSHIP_TRANSFER_COOLDOWN_SECONDS = "MEMBERSHIP_TRANSFER_COOLDOWN_SECONDS"

    # Platform subscription
    SUBSCRIPTION_PRICE_USDC = "SUBSCRIPTION_PRICE_USDC"
    PLATFORM_FEE_BPS = "PLATFORM_FEE_BPS"

    # ═══════════════════════════════════════════════════════════════════════
    # CRITICAL KEYS (must be present)
    # ═══════════════════════════════════════════════════════════════════════

    ADDRESS_KEYS = [
        TREASURY_ADDRESS,
        USDC_CONTRACT_ADDRESS,
        REGISTRAR_CONTRACT_ADDRESS,
        MARKETPLACE_CONTRACT_ADDRESS,
        MEMBERSHIP_CONTRACT_ADDRESS,
    ]

    INTEGER_KEYS = [
        MEMBERSHIP_DURATION_SECONDS,
        MEMBERSHIP_TRANSFER_COOLDOWN_SECONDS,
        PLATFORM_FEE_BPS,
    ]

    CRITICAL_KEYS = ADDRESS_KEYS + INTEGER_KEYS + [
        RPC_URL,
        SUBSCRIPTION_PRICE_USDC,
    ]

    # ═══════════════════════════════════════════════════════════════════════
    # STORAGE
    # ═══════════════════════════════════════════════════════════════════════

    _config: Dict[str, Any] = {}
    _initialized: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # METHODS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def initialize_from_env(cls) -> None:
        """
        Load configuration from .env file and process environment.

        Values that fail to parse are stored as None so that
        validate_critical_keys() reports them together with missing keys.

        Raises:
            ConfigurationError: If parsing fails unexpectedly
        """
        load_dotenv()

        logger.info("Loading configuration from environment...")

        try:
            # Database
            cls._config[cls.DATABASE_URL] = os.getenv(
                "DATABASE_URL",
                "sqlite:///passhub.db"
            )

            # Chain RPC
            cls._config[cls.RPC_URL] = os.getenv("RPC_URL")
            cls._config[cls.CHAIN_ID] = _parse_int(os.getenv("CHAIN_ID", "50312"), "CHAIN_ID")
            cls._config[cls.RPC_TIMEOUT_SECONDS] = _parse_int(
                os.getenv("RPC_TIMEOUT_SECONDS", "120"), "RPC_TIMEOUT_SECONDS"
            )
            cls._config[cls.RECEIPT_POLL_INTERVAL_SECONDS] = _parse_int(
                os.getenv("RECEIPT_POLL_INTERVAL_SECONDS", "2"), "RECEIPT_POLL_INTERVAL_SECONDS"
            )

            # Contract and wallet addresses (lowercase canonical form)
            for key in cls.ADDRESS_KEYS:
                value = os.getenv(key)
                cls._config[key] = value.strip().lower() if value and value.strip() else None

            # Pass defaults and fees
            for key in cls.INTEGER_KEYS:
                cls._config[key] = _parse_int(os.getenv(key), key)

            cls._config[cls.SUBSCRIPTION_PRICE_USDC] = os.getenv("SUBSCRIPTION_PRICE_USDC")

            cls._initialized = True
            logger.info("Configuration loaded from environment successfully")

        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}")

    @classmethod
    def validate_critical_keys(cls) -> None:
        """
        Validate that all critical configuration keys are present and well-formed.

        Raises:
            ConfigurationError: If any critical key is missing or invalid
        """
        from utils.wallet_validator import validate_evm_address

        missing: List[str] = []
        invalid: List[str] = []

        for key in cls.CRITICAL_KEYS:
            if cls.get(key) in (None, ""):
                missing.append(key)

        for key in cls.ADDRESS_KEYS:
            value = cls.get(key)
            if value and not validate_evm_address(value).is_valid:
                invalid.append(f"{key} (not an EVM address)")

        for key in (cls.MEMBERSHIP_DURATION_SECONDS, cls.MEMBERSHIP_TRANSFER_COOLDOWN_SECONDS):
            value = cls.get(key)
            if value is not None and value <= 0:
                invalid.append(f"{key} (must be positive)")

        fee_bps = cls.get(cls.PLATFORM_FEE_BPS)
        if fee_bps is not None and not 0 <= fee_bps <= 10000:
            invalid.append(f"{cls.PLATFORM_FEE_BPS} (must be within 0..10000)")

        price = cls.get(cls.SUBSCRIPTION_PRICE_USDC)
        if price:
            from membership_engine.utils.usdc import parse_usdc
            try:
                if parse_usdc(price) <= 0:
                    invalid.append(f"{cls.SUBSCRIPTION_PRICE_USDC} (must be positive)")
            except ValidationError:
                invalid.append(f"{cls.SUBSCRIPTION_PRICE_USDC} (not a decimal amount)")

        if missing or invalid:
            parts = []
            if missing:
                parts.append(f"missing critical configuration keys: {', '.join(missing)}")
            if invalid:
                parts.append(f"invalid configuration values: {', '.join(invalid)}")
            error_msg = "; ".join(parts)
            error_msg = error_msg[:1].upper() + error_msg[1:]
            logger.critical(error_msg)
            raise ConfigurationError(error_msg)

        logger.info("All critical configuration keys validated ✓")

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = cls._config.get(key)
        return default if value is None else value

    @classmethod
    def require(cls, key: str) -> Any:
        """
        Get a configuration value that must be present.

        Raises:
            ConfigurationError: If the key is missing
        """
        value = cls._config.get(key)
        if value in (None, ""):
            raise ConfigurationError(f"{key} not configured.")
        return value

    @classmethod
    def set(cls, key: str, value: Any, source: str = "runtime") -> None:
        """
        Set configuration value (for dynamic updates).

        Args:
            key: Configuration key
            value: New value
            source: Source of the update (for logging)
        """
        cls._config[key] = value
        logger.debug(f"Config updated: {key} = {value} (source: {source})")

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        """
        Get all configuration values.

        Returns:
            Copy of configuration dictionary
        """
        return cls._config.copy()

    @classmethod
    def reset(cls) -> None:
        """Drop all loaded values (used between test sessions)."""
        cls._config = {}
        cls._initialized = False


def _parse_int(raw: Any, key: str) -> Any:
    """Parse an integer environment value; unparseable values become None."""
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        logger.error(f"Failed to parse {key} as integer: {raw!r}")
        return None
