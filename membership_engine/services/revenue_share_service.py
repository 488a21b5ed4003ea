# membership_engine/services/revenue_share_service.py
"""
Revenue share allocation among group administrators.

Shares are integer basis points. The owner is never an administrator row;
the owner's share is the residual 10000 - SUM(shares).
"""
import math
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from core.exceptions import ShareOverflow, UserNotFound
from membership_engine.config.constants import BPS_DENOMINATOR
from models.user import User
from utils.wallet_validator import normalize_address

logger = logging.getLogger(__name__)


@dataclass
class ShareAllocation:
    """Deduplicated address -> bps mapping plus the owner's residual."""
    shares: Dict[str, int] = field(default_factory=dict)
    ownerResidualBps: int = BPS_DENOMINATOR

    @property
    def totalBps(self) -> int:
        return sum(self.shares.values())


@dataclass
class ResolvedAdministrator:
    adminID: int
    walletAddress: str
    shareBps: int


def _entry_fields(entry: Any) -> Tuple[Optional[str], Any]:
    if isinstance(entry, Mapping):
        return entry.get("walletAddress"), entry.get("shareBps")
    return getattr(entry, "walletAddress", None), getattr(entry, "shareBps", None)


def _round_bps(raw: Any) -> Optional[int]:
    """Nearest integer bps (halves round up), or None for non-finite/non-numeric input."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return int(math.floor(value + 0.5))


def allocate(owner_address: str, entries: Optional[Iterable[Any]]) -> ShareAllocation:
    """
    Validate and merge administrator revenue shares.

    Rules:
    - Addresses compared in lowercase canonical form
    - Entries for the owner, blank addresses and non-positive/non-finite shares are dropped
    - Each share rounded to the nearest bps and capped at 10000
    - Duplicates merged, running sum capped at 10000

    Args:
        owner_address: Group owner's wallet
        entries: Iterable of {walletAddress, shareBps} mappings or objects

    Returns:
        ShareAllocation

    Raises:
        ShareOverflow: If the merged total exceeds 10000 bps
    """
    owner = normalize_address(owner_address)
    merged: Dict[str, int] = {}

    for entry in entries or []:
        raw_address, raw_share = _entry_fields(entry)
        address = normalize_address(raw_address)
        if not address or address == owner:
            continue

        share = _round_bps(raw_share)
        if share is None or share <= 0:
            continue
        share = min(BPS_DENOMINATOR, share)

        if address in merged:
            merged[address] = min(BPS_DENOMINATOR, merged[address] + share)
        else:
            merged[address] = share

    total = sum(merged.values())
    if total > BPS_DENOMINATOR:
        logger.warning(f"Rejected administrator shares for owner {owner}: total {total} bps")
        raise ShareOverflow(total)

    return ShareAllocation(shares=merged, ownerResidualBps=max(0, BPS_DENOMINATOR - total))


def require_user_by_wallet(session: Session, address: str, create: bool = True) -> User:
    """
    Resolve a wallet to a user identity, creating a guest identity on first sight.

    Raises:
        UserNotFound: If the wallet is unknown and create is False
    """
    wallet = normalize_address(address)
    if not wallet:
        raise UserNotFound(address)

    user = session.query(User).filter_by(walletAddress=wallet).first()
    if user:
        return user

    if not create:
        raise UserNotFound(wallet)

    user = User(walletAddress=wallet)
    session.add(user)
    session.commit()
    logger.info(f"Guest identity created: userID={user.userID}, wallet={wallet}")
    return user


def resolve_administrators(
        session: Session,
        owner: User,
        entries: Optional[Iterable[Any]]
) -> List[ResolvedAdministrator]:
    """
    Allocate shares and resolve every administrator wallet to a user.

    Allocation runs first so an overflow never creates guest identities.
    """
    allocation = allocate(owner.walletAddress, entries)
    resolved = []
    for address, share in allocation.shares.items():
        user = require_user_by_wallet(session, address)
        resolved.append(ResolvedAdministrator(
            adminID=user.userID,
            walletAddress=address,
            shareBps=share
        ))
    return resolved


def registration_split(owner_address: str, allocation: ShareAllocation) -> Tuple[List[str], List[int]]:
    """
    Parallel recipients/shares arrays for on-chain course registration.

    Owner residual comes first and is omitted when zero; the shares always
    sum to exactly 10000.
    """
    recipients: List[str] = []
    shares: List[int] = []

    if allocation.ownerResidualBps > 0:
        recipients.append(normalize_address(owner_address))
        shares.append(allocation.ownerResidualBps)

    for address, share in allocation.shares.items():
        recipients.append(address)
        shares.append(share)

    return recipients, shares
