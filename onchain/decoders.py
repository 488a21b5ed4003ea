"""
Typed results for on-chain reads.

Depending on ABI encoding a read returns either a positional tuple or a named
struct. Each read has exactly one decoder that accepts both shapes.
"""
from dataclasses import dataclass
from typing import Any, List, Sequence

from core.exceptions import ChainRpcError
from utils.wallet_validator import normalize_address


@dataclass(frozen=True)
class CourseConfig:
    priceUSDC: int
    splitter: str
    creator: str
    duration: int  # seconds
    transferCooldown: int  # seconds


@dataclass(frozen=True)
class PassState:
    expiresAt: int  # epoch seconds, 0 = never held
    cooldownEndsAt: int


@dataclass(frozen=True)
class TransferCheck:
    eligible: bool
    availableAt: int
    expiresAt: int


@dataclass(frozen=True)
class Listing:
    seller: str
    priceUSDC: int
    listedAt: int
    expiresAt: int  # 0 = no expiry
    active: bool


def decode_uint(raw: Any) -> int:
    """Decode an unsigned integer returned as int, decimal string, hex string or 1-tuple."""
    if isinstance(raw, (list, tuple)):
        if len(raw) != 1:
            raise ChainRpcError(f"Expected a single value, got {raw!r}")
        raw = raw[0]
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        try:
            return int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            pass
    raise ChainRpcError(f"Cannot decode integer from {raw!r}")


def decode_bool(raw: Any) -> bool:
    if isinstance(raw, (list, tuple)) and len(raw) == 1:
        raw = raw[0]
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
        return raw.strip().lower() == "true"
    return decode_uint(raw) != 0


def _fields(raw: Any, names: Sequence[str]) -> List[Any]:
    """Values of a tuple-or-struct result, in declaration order."""
    if isinstance(raw, dict):
        missing = [name for name in names if name not in raw]
        if missing:
            raise ChainRpcError(f"Result is missing fields {missing}: {raw!r}")
        return [raw[name] for name in names]
    if isinstance(raw, (list, tuple)):
        if len(raw) < len(names):
            raise ChainRpcError(f"Expected {len(names)} values, got {len(raw)}: {raw!r}")
        return list(raw[:len(names)])
    raise ChainRpcError(f"Unexpected result shape: {raw!r}")


def decode_course_config(raw: Any) -> CourseConfig:
    price, splitter, creator, duration, cooldown = _fields(
        raw, ("priceUSDC", "splitter", "creator", "duration", "transferCooldown")
    )
    return CourseConfig(
        priceUSDC=decode_uint(price),
        splitter=normalize_address(splitter),
        creator=normalize_address(creator),
        duration=decode_uint(duration),
        transferCooldown=decode_uint(cooldown),
    )


def decode_pass_state(raw: Any) -> PassState:
    expires_at, cooldown_ends_at = _fields(raw, ("expiresAt", "cooldownEndsAt"))
    return PassState(
        expiresAt=decode_uint(expires_at),
        cooldownEndsAt=decode_uint(cooldown_ends_at),
    )


def decode_transfer_check(raw: Any) -> TransferCheck:
    eligible, available_at, expires_at = _fields(raw, ("eligible", "availableAt", "expiresAt"))
    return TransferCheck(
        eligible=decode_bool(eligible),
        availableAt=decode_uint(available_at),
        expiresAt=decode_uint(expires_at),
    )


def decode_listing(raw: Any) -> Listing:
    seller, price, listed_at, expires_at, active = _fields(
        raw, ("seller", "priceUSDC", "listedAt", "expiresAt", "active")
    )
    return Listing(
        seller=normalize_address(seller),
        priceUSDC=decode_uint(price),
        listedAt=decode_uint(listed_at),
        expiresAt=decode_uint(expires_at),
        active=decode_bool(active),
    )


def decode_listings(raw: Any) -> List[Listing]:
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise ChainRpcError(f"Expected a list of listings, got {raw!r}")
    return [decode_listing(entry) for entry in raw]
