# utils/wallet_validator.py
"""
Wallet address validation utilities.
EVM (0x-prefixed, 20-byte hex) addresses, compared in lowercase canonical form.
"""
import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class WalletValidationCode(Enum):
    """Validation result codes for wallet addresses."""
    VALID = "valid"
    INVALID_PREFIX = "invalid_prefix"  # Doesn't start with 0x
    INVALID_LENGTH = "invalid_length"  # Wrong number of characters
    INVALID_CHARS = "invalid_chars"  # Non-hex characters
    EMPTY = "empty"  # Empty or None input


@dataclass
class WalletValidationResult:
    """Result of wallet address validation."""
    code: WalletValidationCode
    details: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """Check if validation passed."""
        return self.code == WalletValidationCode.VALID


# =============================================================================
# EVM VALIDATION
# =============================================================================

# 0x + 40 hex chars = 42 total
EVM_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: Optional[str]) -> str:
    """
    Canonical (case-insensitive) form of a wallet address.

    Args:
        address: Raw address, possibly checksummed or padded with whitespace

    Returns:
        Trimmed lowercase address, or "" for empty input
    """
    if not address:
        return ""
    return address.strip().lower()


def validate_evm_address(address: Optional[str]) -> WalletValidationResult:
    """
    Validate EVM wallet/contract address.

    Rules:
    - Starts with '0x'
    - Exactly 42 characters total
    - Only hex characters after the prefix

    Examples:
        >>> validate_evm_address("0x" + "ab" * 20).is_valid
        True
        >>> validate_evm_address("T123").code
        <WalletValidationCode.INVALID_PREFIX: 'invalid_prefix'>
    """
    if not address or not address.strip():
        return WalletValidationResult(
            WalletValidationCode.EMPTY,
            "Address is empty"
        )

    address = address.strip()

    if not address.lower().startswith('0x'):
        return WalletValidationResult(
            WalletValidationCode.INVALID_PREFIX,
            "EVM address must start with '0x'"
        )

    if len(address) != 42:
        return WalletValidationResult(
            WalletValidationCode.INVALID_LENGTH,
            f"EVM address must be 42 characters, got {len(address)}"
        )

    if not EVM_ADDRESS_PATTERN.match(address):
        return WalletValidationResult(
            WalletValidationCode.INVALID_CHARS,
            "Address contains non-hex characters"
        )

    logger.debug(f"EVM address validated: {address[:8]}...{address[-4:]}")
    return WalletValidationResult(WalletValidationCode.VALID)


__all__ = [
    'WalletValidationCode',
    'WalletValidationResult',
    'ZERO_ADDRESS',
    'normalize_address',
    'validate_evm_address',
]
