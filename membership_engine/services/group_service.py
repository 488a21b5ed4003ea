# membership_engine/services/group_service.py
"""
Group API consumed by the UI/session layer.

Wallet addresses come in from the caller; each operation resolves them to
users, builds an EngineContext and delegates to the engine services.
Validation always runs before the first write, so a rejected create or
settings update leaves the store unchanged.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from core.context import EngineContext
from core.exceptions import GroupNotFound, Unauthorized, ValidationError
from membership_engine.config.constants import MAX_DESCRIPTION_LENGTH, MAX_NAME_LENGTH, SUBSCRIPTION_PERIOD_MS
from membership_engine.services.course_registry_service import CourseRegistry, generate_course_id
from membership_engine.services.group_policy import (
    BillingCadence,
    Visibility,
    enforce_group_invariants,
    resolve_billing_cadence,
    resolve_visibility,
)
from membership_engine.services.join_leave_service import JoinLeaveCoordinator, JoinProof
from membership_engine.services.membership_state_service import MembershipStateResolver
from membership_engine.services.revenue_share_service import require_user_by_wallet, resolve_administrators
from membership_engine.services.subscription_service import SubscriptionService
from membership_engine.utils.time_machine import timeMachine
from models.group import Group
from models.group_administrator import GroupAdministrator
from models.membership import Membership, STATUS_ACTIVE
from models.user import User
from utils.wallet_validator import normalize_address

logger = logging.getLogger(__name__)


@dataclass
class GroupSettings:
    """
    Owner-editable group fields. On update, None keeps the stored value;
    administrators=[] removes every administrator.
    """
    name: Optional[str] = None
    description: Optional[str] = None
    shortDescription: Optional[str] = None
    visibility: Optional[str] = None
    billingCadence: Optional[str] = None
    price: Optional[Any] = None
    administrators: Optional[Sequence[Any]] = None


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name is required.")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name cannot be longer than {MAX_NAME_LENGTH} characters.")
    return cleaned


def _clean_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError("Description is too long.")
    return description


class GroupService:
    """Create/update/join/leave/renew/view operations on groups."""

    def __init__(self, session: Session, contracts=None):
        """
        Args:
            session: SQLAlchemy database session
            contracts: Optional ChainContracts for proof and payment verification
        """
        self.session = session
        self.contracts = contracts
        self.resolver = MembershipStateResolver(session)
        self.coordinator = JoinLeaveCoordinator(session, contracts)
        self.subscriptions = SubscriptionService(session, contracts)
        self.registry = CourseRegistry(session, contracts)

    # ═══════════════════════════════════════════════════════════════════════
    # LOOKUPS
    # ═══════════════════════════════════════════════════════════════════════

    def get_group(self, group_id: int) -> Group:
        group = self.session.query(Group).filter_by(groupID=group_id).first()
        if not group:
            raise GroupNotFound(group_id)
        return group

    def _find_user(self, address: Optional[str]) -> Optional[User]:
        wallet = normalize_address(address)
        if not wallet:
            return None
        return self.session.query(User).filter_by(walletAddress=wallet).first()

    def _context(self, group: Group, viewer: Optional[User]) -> EngineContext:
        return EngineContext.build(group, viewer, timeMachine.now_ms)

    def _owner_context(self, group_id: int, owner_address: str, action: str) -> EngineContext:
        group = self.get_group(group_id)
        owner = require_user_by_wallet(self.session, owner_address)
        ctx = self._context(group, owner)
        if not ctx.is_owner:
            raise Unauthorized(f"Only the owner can {action}.")
        return ctx

    # ═══════════════════════════════════════════════════════════════════════
    # CREATE / UPDATE / REMOVE
    # ═══════════════════════════════════════════════════════════════════════

    def create(self, owner_address: str, settings: GroupSettings) -> int:
        """
        Create a group owned by owner_address.

        The owner gets an active membership row, memberNumber starts at 1,
        a course id is generated and the platform subscription runs for one
        period from now.

        Returns:
            New group id

        Raises:
            ValidationError: Bad name/price, public paid group or share overflow
        """
        name = _clean_name(settings.name)
        description = _clean_description(settings.description)
        visibility, cadence, price = enforce_group_invariants(
            settings.visibility, settings.billingCadence, settings.price
        )

        owner = require_user_by_wallet(self.session, owner_address)
        administrators = resolve_administrators(self.session, owner, settings.administrators)
        now = timeMachine.now_ms

        group = Group(
            name=name,
            description=description,
            shortDescription=settings.shortDescription,
            visibility=visibility.value,
            billingCadence=cadence.value,
            price=price,
            ownerID=owner.userID,
            memberNumber=1,
            subscriptionId=generate_course_id(now),
            endsOn=now + SUBSCRIPTION_PERIOD_MS
        )
        self.session.add(group)
        self.session.flush()

        self.session.add(Membership(
            userID=owner.userID,
            groupID=group.groupID,
            status=STATUS_ACTIVE,
            joinedAt=now
        ))
        for admin in administrators:
            self.session.add(GroupAdministrator(
                groupID=group.groupID,
                adminID=admin.adminID,
                shareBps=admin.shareBps
            ))
        self.session.commit()

        logger.info(
            f"Group {group.groupID} created by {owner.walletAddress}: "
            f"{visibility.value}/{cadence.value}, price={price}, admins={len(administrators)}"
        )
        return group.groupID

    def update_settings(self, group_id: int, owner_address: str, settings: GroupSettings) -> Group:
        """
        Owner-only settings update.

        Raises:
            GroupNotFound, Unauthorized
            ValidationError: Checked against the merged settings before any write
        """
        ctx = self._owner_context(group_id, owner_address, "update group settings")
        group = ctx.group

        name = _clean_name(settings.name) if settings.name is not None else group.name
        description = _clean_description(settings.description)
        price = settings.price if settings.price is not None else group.price
        visibility, cadence, price = enforce_group_invariants(
            settings.visibility if settings.visibility is not None else group.visibility,
            settings.billingCadence if settings.billingCadence is not None else group.billingCadence,
            price
        )

        administrators = None
        if settings.administrators is not None:
            administrators = resolve_administrators(self.session, ctx.viewer, settings.administrators)

        group.name = name
        if description is not None:
            group.description = description
        if settings.shortDescription is not None:
            group.shortDescription = settings.shortDescription
        group.visibility = visibility.value
        group.billingCadence = cadence.value
        group.price = price

        if administrators is not None:
            self._sync_administrators(group, administrators)

        self.session.commit()
        logger.info(f"Group {group.groupID} settings updated: {visibility.value}/{cadence.value}, price={price}")
        return group

    def _sync_administrators(self, group: Group, administrators) -> None:
        """Diff stored rows against the resolved list: delete, patch, insert."""
        existing = {
            row.adminID: row
            for row in self.session.query(GroupAdministrator).filter_by(groupID=group.groupID).all()
        }
        wanted = {admin.adminID: admin.shareBps for admin in administrators}

        for admin_id, row in existing.items():
            if admin_id not in wanted:
                self.session.delete(row)
            elif row.shareBps != wanted[admin_id]:
                row.shareBps = wanted[admin_id]

        for admin_id, share in wanted.items():
            if admin_id not in existing:
                self.session.add(GroupAdministrator(groupID=group.groupID, adminID=admin_id, shareBps=share))

    def remove(self, group_id: int, owner_address: str) -> None:
        """Owner-only delete; administrator and membership rows cascade."""
        ctx = self._owner_context(group_id, owner_address, "delete this group")
        self.session.delete(ctx.group)
        self.session.commit()
        logger.info(f"Group {group_id} deleted by {ctx.viewer.walletAddress}")

    # ═══════════════════════════════════════════════════════════════════════
    # MEMBERSHIP
    # ═══════════════════════════════════════════════════════════════════════

    async def join(
            self,
            group_id: int,
            member_address: str,
            tx_hash: Optional[str] = None,
            has_active_pass: bool = False,
            pass_expires_at: Optional[int] = None
    ) -> Dict[str, str]:
        group = self.get_group(group_id)
        member = require_user_by_wallet(self.session, member_address)
        proof = JoinProof(txHash=tx_hash, hasActivePass=has_active_pass, passExpiresAt=pass_expires_at)
        change = await self.coordinator.join(self._context(group, member), proof)
        return {"status": change.status.value}

    async def leave(self, group_id: int, member_address: str, pass_expires_at: Optional[int] = None) -> Dict[str, str]:
        group = self.get_group(group_id)
        member = require_user_by_wallet(self.session, member_address)
        change = await self.coordinator.leave(self._context(group, member), pass_expires_at)
        return {"status": change.status.value}

    # ═══════════════════════════════════════════════════════════════════════
    # SUBSCRIPTION / COURSE ID
    # ═══════════════════════════════════════════════════════════════════════

    async def renew_subscription(
            self,
            group_id: int,
            owner_address: str,
            payment_tx_hash: Optional[str] = None
    ) -> Dict[str, int]:
        ctx = self._owner_context(group_id, owner_address, "renew this subscription")
        ends_on = await self.subscriptions.renew_subscription(ctx, payment_tx_hash)
        return {"endsOn": ends_on}

    async def reset_subscription_id(self, group_id: int, owner_address: str) -> Dict[str, str]:
        ctx = self._owner_context(group_id, owner_address, "reset the subscription ID")
        subscription_id = await self.registry.reset_course_id(ctx)
        return {"subscriptionId": subscription_id}

    # ═══════════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════════

    def viewer(self, group_id: int, viewer_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """
        Combined read-only view: group, owner, access, membership,
        administrators, member count and subscription status.

        Returns None for an unknown group.
        """
        group = self.session.query(Group).filter_by(groupID=group_id).first()
        if not group:
            return None

        viewer = self.session.query(User).filter_by(userID=viewer_id).first() if viewer_id else None
        ctx = self._context(group, viewer)
        access = self.resolver.resolve(ctx)

        administrators = [
            {
                "adminID": row.adminID,
                "walletAddress": row.admin.walletAddress if row.admin else None,
                "shareBps": row.shareBps,
            }
            for row in self.session.query(GroupAdministrator).filter_by(groupID=group.groupID).all()
        ]

        return {
            "group": group,
            "visibility": resolve_visibility(group.visibility),
            "billingCadence": resolve_billing_cadence(group.billingCadence, group.price),
            "owner": group.owner,
            "viewerAccess": access,
            "membership": access.membership,
            "administrators": administrators,
            "memberCount": group.memberNumber or 0,
            "subscription": self.subscriptions.status(ctx),
        }

    def list_for_wallet(self, address: Optional[str]) -> List[Group]:
        """Groups where the wallet holds an active membership."""
        user = self._find_user(address)
        if not user:
            return []

        return (
            self.session.query(Group)
            .join(Membership, Membership.groupID == Group.groupID)
            .filter(Membership.userID == user.userID, Membership.status == STATUS_ACTIVE)
            .order_by(Group.groupID)
            .all()
        )

    def get_members(self, group_id: int, viewer_id: Optional[int] = None) -> List[User]:
        """Active members, or [] when the viewer may not see the member list."""
        group = self.session.query(Group).filter_by(groupID=group_id).first()
        if not group:
            return []

        viewer = self.session.query(User).filter_by(userID=viewer_id).first() if viewer_id else None
        access = self.resolver.resolve(self._context(group, viewer))
        if not access.can_access.members:
            return []

        return (
            self.session.query(User)
            .join(Membership, Membership.userID == User.userID)
            .filter(Membership.groupID == group_id, Membership.status == STATUS_ACTIVE)
            .order_by(Membership.joinedAt)
            .all()
        )

    def directory(self) -> List[Dict[str, Any]]:
        """Every group with its resolved visibility/cadence, owner and member count."""
        results = []
        for group in self.session.query(Group).order_by(Group.groupID).all():
            results.append({
                "group": group,
                "visibility": resolve_visibility(group.visibility),
                "billingCadence": resolve_billing_cadence(group.billingCadence, group.price),
                "owner": group.owner,
                "memberCount": group.memberNumber or 0,
            })
        return results


__all__ = [
    'GroupService',
    'GroupSettings',
    'Visibility',
    'BillingCadence',
    'resolve_visibility',
    'resolve_billing_cadence',
]
