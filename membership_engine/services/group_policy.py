# membership_engine/services/group_policy.py
"""
Visibility and billing cadence resolution for groups.

Every read and write of a group goes through resolve_visibility() and
resolve_billing_cadence(), so the defaults live in one place.
"""
import logging
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class Visibility(Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class BillingCadence(Enum):
    FREE = "free"
    MONTHLY = "monthly"


def parse_price(raw: Any) -> Decimal:
    """
    Monthly price in USD, two decimals.

    Raises:
        ValidationError: Negative or non-numeric price
    """
    if raw is None or raw == "":
        return Decimal("0")
    try:
        price = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValidationError("Price must be a number.")
    if not price.is_finite() or price < 0:
        raise ValidationError("Price must be zero or positive.")
    return price.quantize(Decimal("0.01"))


def resolve_visibility(requested: Optional[Any]) -> Visibility:
    """'public' (any case) is public; anything else, including None, is private."""
    if isinstance(requested, Visibility):
        return requested
    if isinstance(requested, str) and requested.strip().lower() == Visibility.PUBLIC.value:
        return Visibility.PUBLIC
    return Visibility.PRIVATE


def resolve_billing_cadence(requested: Optional[Any], price: Any) -> BillingCadence:
    """
    Cadence is forced by price: monthly iff price > 0.

    The requested value only matters when it agrees with the price.
    """
    try:
        amount = parse_price(price)
    except ValidationError:
        amount = Decimal("0")

    cadence = BillingCadence.MONTHLY if amount > 0 else BillingCadence.FREE
    if requested is not None:
        requested_value = requested.value if isinstance(requested, BillingCadence) else str(requested).lower()
        if requested_value != cadence.value:
            logger.debug(f"Billing cadence {requested_value!r} coerced to {cadence.value!r} for price {amount}")
    return cadence


def enforce_group_invariants(
        visibility: Optional[Any],
        billing_cadence: Optional[Any],
        price: Any
):
    """
    Resolve and validate a group's visibility, cadence and price together.

    Returns:
        (Visibility, BillingCadence, Decimal price)

    Raises:
        ValidationError: Negative price, or public visibility on a monthly group
    """
    amount = parse_price(price)
    cadence = resolve_billing_cadence(billing_cadence, amount)
    resolved = resolve_visibility(visibility)

    if cadence == BillingCadence.MONTHLY and resolved == Visibility.PUBLIC:
        raise ValidationError("Paid groups must be private.")

    return resolved, cadence, amount
