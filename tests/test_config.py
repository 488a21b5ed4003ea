# tests/test_config.py
"""
Tests for configuration loading and fail-fast validation.

Run:
    pytest tests/test_config.py -v
"""
import pytest

from config import Config, ConfigurationError
from tests.conftest import CONTRACTS


@pytest.fixture
def env(monkeypatch):
    """Complete, valid environment."""
    values = {
        "RPC_URL": "http://rpc.test",
        "TREASURY_ADDRESS": CONTRACTS['treasury'].upper().replace("0X", "0x"),
        "USDC_CONTRACT_ADDRESS": CONTRACTS['usdc'],
        "REGISTRAR_CONTRACT_ADDRESS": CONTRACTS['registrar'],
        "MARKETPLACE_CONTRACT_ADDRESS": CONTRACTS['marketplace'],
        "MEMBERSHIP_CONTRACT_ADDRESS": CONTRACTS['membership'],
        "MEMBERSHIP_DURATION_SECONDS": "2592000",
        "MEMBERSHIP_TRANSFER_COOLDOWN_SECONDS": "604800",
        "SUBSCRIPTION_PRICE_USDC": "99",
        "PLATFORM_FEE_BPS": "250",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setattr("config.load_dotenv", lambda: None)
    Config.reset()
    return monkeypatch


class TestInitializeFromEnv:

    def test_values_parsed(self, env):
        Config.initialize_from_env()

        assert Config.get(Config.MEMBERSHIP_DURATION_SECONDS) == 2592000
        assert Config.get(Config.PLATFORM_FEE_BPS) == 250
        assert Config.get(Config.CHAIN_ID) == 50312
        assert Config.get(Config.TREASURY_ADDRESS) == CONTRACTS['treasury']

    def test_valid_environment_passes(self, env):
        Config.initialize_from_env()

        Config.validate_critical_keys()


class TestValidateCriticalKeys:

    def test_missing_keys_listed(self, env):
        env.delenv("TREASURY_ADDRESS")
        env.delenv("RPC_URL")
        Config.initialize_from_env()

        with pytest.raises(ConfigurationError) as exc:
            Config.validate_critical_keys()

        assert "TREASURY_ADDRESS" in exc.value.message
        assert "RPC_URL" in exc.value.message
        assert exc.value.message.startswith("Missing critical configuration keys:")

    def test_unparseable_integer_reported(self, env):
        env.setenv("MEMBERSHIP_DURATION_SECONDS", "thirty days")
        Config.initialize_from_env()

        with pytest.raises(ConfigurationError) as exc:
            Config.validate_critical_keys()

        assert "MEMBERSHIP_DURATION_SECONDS" in exc.value.message

    def test_invalid_address(self, env):
        env.setenv("USDC_CONTRACT_ADDRESS", "0x1234")
        Config.initialize_from_env()

        with pytest.raises(ConfigurationError) as exc:
            Config.validate_critical_keys()

        assert "not an EVM address" in exc.value.message

    def test_fee_out_of_range(self, env):
        env.setenv("PLATFORM_FEE_BPS", "10001")
        Config.initialize_from_env()

        with pytest.raises(ConfigurationError):
            Config.validate_critical_keys()

    def test_bad_subscription_price(self, env):
        env.setenv("SUBSCRIPTION_PRICE_USDC", "ninety")
        Config.initialize_from_env()

        with pytest.raises(ConfigurationError) as exc:
            Config.validate_critical_keys()

        assert "not a decimal amount" in exc.value.message


class TestAccessors:

    def test_require_missing(self):
        Config.reset()

        with pytest.raises(ConfigurationError):
            Config.require(Config.RPC_URL)

    def test_get_default(self):
        Config.reset()

        assert Config.get(Config.RPC_TIMEOUT_SECONDS, 120) == 120
