# passhub/core/exceptions.py
"""
Error taxonomy for the pass economy engine.

All errors carry a human-readable message and are surfaced directly to the
caller. Nothing here is retried by the runtime workflows.
"""
from typing import Optional


class PassEngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ═══════════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════════

class ValidationError(PassEngineError):
    """Malformed input, share overflow or missing required config."""
    pass


class ShareOverflow(ValidationError):
    """Administrator revenue shares exceed 100%."""

    def __init__(self, total_bps: int):
        super().__init__("Administrator revenue shares cannot exceed 100%.")
        self.total_bps = total_bps


# ═══════════════════════════════════════════════════════════════════════════
# AUTHORIZATION
# ═══════════════════════════════════════════════════════════════════════════

class AuthorizationError(PassEngineError):
    """Actor is not allowed to perform the mutation."""
    pass


class Unauthorized(AuthorizationError):
    pass


class OwnerCannotLeave(AuthorizationError):

    def __init__(self):
        super().__init__("Owners cannot leave their group.")


# ═══════════════════════════════════════════════════════════════════════════
# NOT FOUND
# ═══════════════════════════════════════════════════════════════════════════

class NotFoundError(PassEngineError):
    """Group, course, listing or membership is absent."""
    pass


class GroupNotFound(NotFoundError):

    def __init__(self, group_id=None):
        super().__init__("Group not found.")
        self.group_id = group_id


class UserNotFound(NotFoundError):

    def __init__(self, address: Optional[str] = None):
        super().__init__("User not found for wallet address")
        self.address = address


class ListingNotFound(NotFoundError):

    def __init__(self, course_id: int, seller: str):
        super().__init__(f"No active listing for course {course_id} from {seller}.")
        self.course_id = course_id
        self.seller = seller


# ═══════════════════════════════════════════════════════════════════════════
# PAYMENT
# ═══════════════════════════════════════════════════════════════════════════

class PaymentError(PassEngineError):
    """Insufficient balance/allowance or payment not confirmed."""
    pass


class PaymentRequired(PaymentError):

    def __init__(self, rejoin: bool = False):
        action = "rejoining" if rejoin else "joining"
        super().__init__(f"Payment is required before {action} this group.")
        self.rejoin = rejoin


class InsufficientBalance(PaymentError):

    def __init__(self, required: int, available: int, purpose: str = "complete this payment"):
        super().__init__(f"Insufficient USDC balance to {purpose}.")
        self.required = required
        self.available = available


class PaymentNotConfirmed(PaymentError):

    def __init__(self, tx_hash: str, reason: str = "transaction did not succeed"):
        super().__init__(f"Payment {tx_hash} not confirmed: {reason}.")
        self.tx_hash = tx_hash
        self.reason = reason


class PriceExceedsMax(PaymentError):

    def __init__(self, price: int, max_price: int):
        super().__init__(
            f"Current price {price} exceeds the maximum accepted price {max_price}."
        )
        self.price = price
        self.max_price = max_price


# ═══════════════════════════════════════════════════════════════════════════
# ON-CHAIN STATE
# ═══════════════════════════════════════════════════════════════════════════

class OnchainStateError(PassEngineError):
    """Chain reported a state that blocks the operation (not a transport failure)."""
    pass


class CourseNotFound(OnchainStateError):

    def __init__(self, course_id: Optional[int] = None):
        super().__init__(
            "No on-chain course found for this ID. Register it to enable paid memberships."
        )
        self.course_id = course_id


class CooldownActive(OnchainStateError):

    def __init__(self, available_at: int):
        super().__init__(f"Pass transfer cooldown active until {available_at}.")
        self.available_at = available_at


class AlreadyRegistered(OnchainStateError):

    def __init__(self, course_id: Optional[int] = None):
        super().__init__("Course is already registered on-chain; its ID cannot be reset.")
        self.course_id = course_id


class PassNotActive(OnchainStateError):

    def __init__(self, course_id: Optional[int] = None, account: Optional[str] = None):
        super().__init__("No active membership pass found for this account.")
        self.course_id = course_id
        self.account = account


# ═══════════════════════════════════════════════════════════════════════════
# CONCURRENCY / TRANSPORT
# ═══════════════════════════════════════════════════════════════════════════

class ConcurrencyError(PassEngineError):
    """Unexpected state transition, e.g. a double-join race."""
    pass


class ChainRpcError(PassEngineError):
    """Generic RPC or transport failure talking to the chain."""

    def __init__(self, message: str, code: Optional[int] = None, data=None):
        super().__init__(message)
        self.code = code
        self.data = data
