"""
USDC amount helpers. On-chain amounts are integer base units (6 decimals).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from core.exceptions import ValidationError
from membership_engine.config.constants import USDC_UNIT


def parse_usdc(value: Union[str, int, float, Decimal]) -> int:
    """
    Convert a human USDC amount ("99", "12.5", Decimal) to base units.

    Raises:
        ValidationError: If the value is not a finite decimal
    """
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, AttributeError):
        raise ValidationError(f"Invalid USDC amount: {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"Invalid USDC amount: {value!r}")

    return int((amount * USDC_UNIT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_usdc(base_units: int) -> Decimal:
    """Base units back to a 2-decimal USDC amount."""
    return (Decimal(int(base_units)) / USDC_UNIT).quantize(Decimal("0.01"))
