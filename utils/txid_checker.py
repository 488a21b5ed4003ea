"""
Transaction hash validation and on-chain payment confirmation.
"""
import re
import logging
from enum import Enum
from dataclasses import dataclass
from typing import Iterable, Optional

from core.exceptions import ChainRpcError
from onchain.client import ChainClient
from utils.wallet_validator import normalize_address

logger = logging.getLogger(__name__)

TX_HASH_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")


class TxidValidationCode(Enum):
    """Transaction hash validation result codes."""
    VALID_TRANSACTION = "valid"
    INVALID_PREFIX = "invalid_prefix"
    INVALID_LENGTH = "invalid_length"
    INVALID_CHARS = "invalid_chars"
    TRANSACTION_NOT_FOUND = "tx_not_found"
    TRANSACTION_FAILED = "tx_failed"
    WRONG_SENDER = "wrong_sender"
    WRONG_RECIPIENT = "wrong_recipient"
    INSUFFICIENT_AMOUNT = "insufficient_amount"
    TXID_ALREADY_USED = "already_used"
    API_ERROR = "api_error"


@dataclass
class ValidationResult:
    """Result of transaction hash validation."""
    code: TxidValidationCode
    details: Optional[str] = None
    block_number: Optional[int] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.code == TxidValidationCode.VALID_TRANSACTION


def normalize_tx_hash(tx_hash: Optional[str]) -> Optional[str]:
    """Lowercase, trimmed hash; None for blank input."""
    if tx_hash is None:
        return None
    cleaned = tx_hash.strip().lower()
    return cleaned or None


def validate_tx_hash(tx_hash: str) -> ValidationResult:
    """
    Validates EVM transaction hash format.

    Args:
        tx_hash: Transaction hash

    Returns:
        ValidationResult with code and optional details
    """
    tx_hash = (tx_hash or "").lower().strip()

    if not tx_hash.startswith("0x"):
        return ValidationResult(TxidValidationCode.INVALID_PREFIX)
    if len(tx_hash) != 66:
        return ValidationResult(TxidValidationCode.INVALID_LENGTH)
    if not TX_HASH_PATTERN.match(tx_hash):
        return ValidationResult(TxidValidationCode.INVALID_CHARS)

    return ValidationResult(TxidValidationCode.VALID_TRANSACTION)


async def verify_transaction(
        client: ChainClient,
        tx_hash: str,
        expected_sender: Optional[str] = None,
        expected_targets: Optional[Iterable[str]] = None,
        expected_payee: Optional[str] = None,
        token: Optional[str] = None,
        min_amount: int = 0
) -> ValidationResult:
    """
    Verifies that a transaction is mined, succeeded and paid who it should.

    A pending (unmined) transaction reports TRANSACTION_NOT_FOUND; callers
    must not treat it as a confirmed payment.

    Args:
        client: Chain RPC client
        tx_hash: Transaction hash
        expected_sender: Wallet that must have signed the transaction
        expected_targets: Contracts the transaction may call
        expected_payee: Recipient of an ERC-20 Transfer emitted by the transaction
        token: Token contract the Transfer must come from
        min_amount: Minimum transferred amount (base units)

    Returns:
        ValidationResult with receipt details
    """
    format_check = validate_tx_hash(tx_hash)
    if not format_check.is_valid:
        return format_check

    tx_hash = normalize_tx_hash(tx_hash)
    logger.info(f"Starting verification for tx: {tx_hash}")

    try:
        receipt = await client.get_receipt(tx_hash)
    except ChainRpcError as e:
        logger.error(f"Error verifying transaction {tx_hash}: {e}", exc_info=True)
        return ValidationResult(TxidValidationCode.API_ERROR, details=str(e))

    if receipt is None:
        return ValidationResult(TxidValidationCode.TRANSACTION_NOT_FOUND)

    from_addr = receipt.fromAddress
    to_addr = receipt.toAddress

    def result(code: TxidValidationCode, details: Optional[str] = None) -> ValidationResult:
        return ValidationResult(
            code,
            details=details,
            block_number=receipt.blockNumber,
            from_address=from_addr,
            to_address=to_addr
        )

    if not receipt.success:
        logger.warning(f"Transaction {tx_hash} reverted")
        return result(TxidValidationCode.TRANSACTION_FAILED, "reverted")

    if expected_sender and from_addr != normalize_address(expected_sender):
        logger.warning(f"Wrong sender! Expected: {expected_sender}, Got: {from_addr}")
        return result(TxidValidationCode.WRONG_SENDER)

    if expected_targets is not None:
        targets = {normalize_address(target) for target in expected_targets}
        if to_addr not in targets:
            logger.warning(f"Wrong recipient! Expected one of: {sorted(targets)}, Got: {to_addr}")
            return result(TxidValidationCode.WRONG_RECIPIENT)

    if expected_payee:
        payee = normalize_address(expected_payee)
        payments = [
            transfer for transfer in receipt.transfers
            if transfer.recipient == payee and (not token or transfer.token == normalize_address(token))
        ]
        if not payments:
            logger.warning(f"Wrong recipient! No transfer to {payee} in {tx_hash}")
            return result(TxidValidationCode.WRONG_RECIPIENT)
        if max(transfer.amount for transfer in payments) < min_amount:
            return result(TxidValidationCode.INSUFFICIENT_AMOUNT)

    return result(TxidValidationCode.VALID_TRANSACTION)
