"""
Timestamp unit normalization.

Stored values are canonical epoch milliseconds. Legacy writers and the chain
report seconds, so every read goes through normalize_timestamp().
"""
from typing import Optional, Any

from membership_engine.config.constants import SECONDS_THRESHOLD


def normalize_timestamp(value: Any) -> Optional[int]:
    """
    Normalize a seconds-or-milliseconds epoch value to milliseconds.

    Values below 10^12 are assumed to be seconds. Zero, negative, missing or
    non-numeric input yields None.

    Examples:
        >>> normalize_timestamp(1_700_000_000)
        1700000000000
        >>> normalize_timestamp(1_700_000_000_000)
        1700000000000
        >>> normalize_timestamp(0) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = int(value)
    except (TypeError, ValueError):
        return None
    if numeric <= 0:
        return None
    return numeric * 1000 if numeric < SECONDS_THRESHOLD else numeric


def to_chain_seconds(ms: int) -> int:
    """Milliseconds to whole seconds, as compared against on-chain values."""
    return int(ms) // 1000
