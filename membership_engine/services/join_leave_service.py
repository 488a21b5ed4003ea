# membership_engine/services/join_leave_service.py
"""
Join/leave workflow: reconciles payment or pass-ownership proof with the
membership row of one (group, user) pair.

State machine per (group, user):

    NONE --join--> ACTIVE --leave--> LEFT --join--> ACTIVE

Each transition is two steps: write the membership row, then recount
group.memberNumber from the active rows. The recount also runs on the
no-op branches (already_member / not_member), so a retry after a failure
between the two steps heals the counter instead of double-counting.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.context import EngineContext
from core.exceptions import (
    ChainRpcError,
    ConcurrencyError,
    CourseNotFound,
    OwnerCannotLeave,
    PassNotActive,
    PaymentNotConfirmed,
    PaymentRequired,
    Unauthorized,
)
from membership_engine.services.course_registry_service import parse_course_id
from membership_engine.services.group_policy import parse_price
from membership_engine.services.marketplace_service import MarketplaceBook
from membership_engine.services.membership_state_service import count_active_members, find_membership
from membership_engine.utils.timestamps import normalize_timestamp, to_chain_seconds
from models.membership import Membership, STATUS_ACTIVE, STATUS_LEFT
from utils.txid_checker import TxidValidationCode, normalize_tx_hash, verify_transaction

logger = logging.getLogger(__name__)


class JoinStatus(Enum):
    OWNER = "owner"
    ALREADY_MEMBER = "already_member"
    JOINED = "joined"


class LeaveStatus(Enum):
    OWNER = "owner"
    NOT_MEMBER = "not_member"
    LEFT = "left"


@dataclass
class JoinProof:
    """
    Payment or pass-ownership proof for a paid group.

    Either txHash (confirmed payment) or hasActivePass (attestation of an
    already-active on-chain pass) makes the proof present.
    """
    txHash: Optional[str] = None
    hasActivePass: bool = False
    passExpiresAt: Optional[int] = None

    @property
    def is_present(self) -> bool:
        return bool(normalize_tx_hash(self.txHash)) or bool(self.hasActivePass)


@dataclass
class MembershipChange:
    status: Enum
    memberNumber: int
    membership: Optional[Membership] = None
    txHash: Optional[str] = None


class JoinLeaveCoordinator:
    """Membership transitions for the viewer in an EngineContext."""

    def __init__(self, session: Session, contracts=None):
        """
        Args:
            session: SQLAlchemy database session
            contracts: ChainContracts; when set, join proofs are verified on-chain
        """
        self.session = session
        self.contracts = contracts

    # ═══════════════════════════════════════════════════════════════════════
    # JOIN
    # ═══════════════════════════════════════════════════════════════════════

    async def join(self, ctx: EngineContext, proof: Optional[JoinProof] = None) -> MembershipChange:
        """
        Activate the viewer's membership.

        Free groups need no proof. Paid groups need a present proof, or a
        stored pass expiry that is still in the future on rejoin. With a
        chain client wired, every proof is checked on-chain: a tx hash must
        be an unused, successful call by the viewer to the pass contracts,
        and an attested or stored pass must be active.

        Raises:
            Unauthorized: No viewer
            PaymentRequired: Paid group without proof; nothing is written
            PaymentNotConfirmed: Proof transaction is not mined, reverted,
                sent by someone else, aimed elsewhere or already used
            PassNotActive: Attested pass is not active on-chain
            ConcurrencyError: A concurrent join inserted the row first
        """
        viewer = self._require_viewer(ctx)
        group = ctx.group
        proof = proof or JoinProof()

        if ctx.is_owner:
            return MembershipChange(JoinStatus.OWNER, group.memberNumber or 0)

        membership = find_membership(self.session, group.groupID, viewer.userID)
        if membership is not None and membership.isActive:
            return MembershipChange(JoinStatus.ALREADY_MEMBER, self._recount(group), membership)

        chain_expiry = None
        if parse_price(group.price) > 0:
            chain_expiry = await self._verify_proof(ctx, membership, proof)

        pass_expires_at = chain_expiry if chain_expiry is not None else normalize_timestamp(proof.passExpiresAt)
        tx_hash = normalize_tx_hash(proof.txHash)

        if membership is None:
            membership = Membership(
                userID=viewer.userID,
                groupID=group.groupID,
                status=STATUS_ACTIVE,
                joinedAt=ctx.now,
                passExpiresAt=pass_expires_at,
                paymentTxHash=tx_hash
            )
            self.session.add(membership)
        else:
            membership.status = STATUS_ACTIVE
            membership.joinedAt = ctx.now
            membership.leftAt = None
            if pass_expires_at is not None:
                membership.passExpiresAt = pass_expires_at
            if tx_hash:
                membership.paymentTxHash = tx_hash

        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.warning(f"Concurrent join detected: user={viewer.userID}, group={group.groupID}")
            raise ConcurrencyError("Membership changed while joining. Please retry.")

        member_number = self._recount(group)
        logger.info(f"User {viewer.userID} joined group {group.groupID} (members={member_number})")
        return MembershipChange(JoinStatus.JOINED, member_number, membership, tx_hash)

    async def purchase_and_join(self, ctx: EngineContext) -> MembershipChange:
        """
        Payment path for a paid group.

        Order: existing on-chain pass -> primary purchase (balance, allowance,
        purchase, confirmation, ownership check). Without a chain client only a
        stored pass snapshot can stand in. A failed payment leaves membership
        unchanged.
        """
        viewer = self._require_viewer(ctx)
        group = ctx.group

        if ctx.is_owner or parse_price(group.price) <= 0:
            return await self.join(ctx)

        membership = find_membership(self.session, group.groupID, viewer.userID)
        if membership is not None and membership.isActive:
            return await self.join(ctx)

        if self.contracts is None:
            stored_expiry = normalize_timestamp(membership.passExpiresAt) if membership else None
            if stored_expiry is not None and stored_expiry > ctx.now:
                logger.info(f"Skipping payment for user {viewer.userID}: stored pass valid until {stored_expiry}")
                return await self.join(ctx)
            raise ChainRpcError("Blockchain client unavailable. Please try again.")

        course_id = parse_course_id(group)
        if course_id is None:
            raise CourseNotFound()

        wallet = viewer.walletAddress
        state = await self.contracts.membership.get_pass_state(course_id, wallet)
        if state.expiresAt > to_chain_seconds(ctx.now):
            balance = await self.contracts.membership.balance_of(wallet, course_id)
            if balance > 0:
                return await self.join(ctx, JoinProof(
                    hasActivePass=True,
                    passExpiresAt=normalize_timestamp(state.expiresAt)
                ))

        purchase = await MarketplaceBook(self.contracts).purchase_primary(course_id, wallet)
        return await self.join(ctx, JoinProof(
            txHash=purchase.txHash,
            hasActivePass=True,
            passExpiresAt=normalize_timestamp(purchase.passState.expiresAt)
        ))

    # ═══════════════════════════════════════════════════════════════════════
    # LEAVE
    # ═══════════════════════════════════════════════════════════════════════

    async def leave(self, ctx: EngineContext, pass_expires_at: Optional[int] = None) -> MembershipChange:
        """
        Deactivate the viewer's membership, keeping the pass expiry snapshot.

        With a chain client wired, the snapshot is clamped to the on-chain
        pass expiry; a snapshot the chain cannot back is dropped.

        Raises:
            Unauthorized: No viewer
            OwnerCannotLeave: Viewer owns the group; nothing is written
        """
        viewer = self._require_viewer(ctx)
        group = ctx.group

        if ctx.is_owner:
            raise OwnerCannotLeave()

        membership = find_membership(self.session, group.groupID, viewer.userID)
        if membership is None or not membership.isActive:
            return MembershipChange(LeaveStatus.NOT_MEMBER, self._recount(group), membership)

        snapshot = normalize_timestamp(pass_expires_at)
        if snapshot is not None and self.contracts is not None:
            snapshot = await self._clamp_snapshot(ctx, snapshot)

        membership.status = STATUS_LEFT
        membership.leftAt = ctx.now
        if snapshot is not None:
            membership.passExpiresAt = snapshot
        self.session.commit()

        member_number = self._recount(group)
        logger.info(f"User {viewer.userID} left group {group.groupID} (members={member_number})")
        return MembershipChange(LeaveStatus.LEFT, member_number, membership)

    # ═══════════════════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════════════════

    def _recount(self, group) -> int:
        """memberNumber = COUNT(active memberships); written only when it drifted."""
        count = count_active_members(self.session, group.groupID)
        if group.memberNumber != count:
            if group.memberNumber is not None:
                logger.info(f"Member count for group {group.groupID}: {group.memberNumber} -> {count}")
            group.memberNumber = count
            self.session.commit()
        return count

    async def _verify_proof(
            self,
            ctx: EngineContext,
            membership: Optional[Membership],
            proof: JoinProof
    ) -> Optional[int]:
        """
        Check the payment rule for a paid group.

        Returns:
            Pass expiry read from the chain (epoch ms), or None when no chain
            read was made
        """
        rejoin = membership is not None

        if not proof.is_present:
            stored_expiry = normalize_timestamp(membership.passExpiresAt) if rejoin else None
            if stored_expiry is None or stored_expiry <= ctx.now:
                logger.warning(f"Join refused for user {ctx.viewer_id} in group {ctx.group.groupID}: no payment proof")
                raise PaymentRequired(rejoin=rejoin)
            if self.contracts is None:
                return None

            # The stored snapshot is a hint; the pass must still be live on-chain
            expiry = await self._active_pass_expiry(ctx)
            if expiry is None:
                logger.warning(
                    f"Join refused for user {ctx.viewer_id} in group {ctx.group.groupID}: "
                    f"stored pass expiry {stored_expiry} not active on-chain"
                )
                raise PaymentRequired(rejoin=rejoin)
            return expiry

        tx_hash = normalize_tx_hash(proof.txHash)
        if tx_hash:
            self._require_unused(tx_hash)

        # Without a chain the caller has verified the proof
        if self.contracts is None:
            return None

        if tx_hash:
            result = await verify_transaction(
                self.contracts.client,
                tx_hash,
                expected_sender=ctx.viewer.walletAddress,
                expected_targets=(self.contracts.marketplace.address, self.contracts.membership.address)
            )
            if result.code == TxidValidationCode.API_ERROR:
                raise ChainRpcError(result.details or "Unable to verify payment transaction.")
            if not result.is_valid:
                raise PaymentNotConfirmed(tx_hash, reason=result.code.value)
            course_id = self._course_id(ctx)
            state = await self.contracts.membership.get_pass_state(course_id, ctx.viewer.walletAddress)
            return normalize_timestamp(state.expiresAt)

        expiry = await self._active_pass_expiry(ctx)
        if expiry is None:
            raise PassNotActive(self._course_id(ctx), ctx.viewer.walletAddress)
        return expiry

    def _require_unused(self, tx_hash: str) -> None:
        """A payment hash backs at most one membership."""
        used = self.session.query(Membership).filter_by(paymentTxHash=tx_hash).first()
        if used is not None:
            logger.warning(f"Payment {tx_hash} already used by membership {used.membershipID}")
            raise PaymentNotConfirmed(tx_hash, reason=TxidValidationCode.TXID_ALREADY_USED.value)

    async def _active_pass_expiry(self, ctx: EngineContext) -> Optional[int]:
        """On-chain expiry (epoch ms) of the viewer's pass, or None if it is not active."""
        course_id = self._course_id(ctx)
        wallet = ctx.viewer.walletAddress
        if not await self.contracts.membership.is_pass_active(course_id, wallet):
            return None
        state = await self.contracts.membership.get_pass_state(course_id, wallet)
        return normalize_timestamp(state.expiresAt)

    async def _clamp_snapshot(self, ctx: EngineContext, snapshot: int) -> Optional[int]:
        course_id = parse_course_id(ctx.group)
        if course_id is None:
            return None
        try:
            state = await self.contracts.membership.get_pass_state(course_id, ctx.viewer.walletAddress)
        except ChainRpcError as e:
            logger.warning(f"Dropping pass snapshot for user {ctx.viewer_id}: chain read failed ({e})")
            return None
        chain_expiry = normalize_timestamp(state.expiresAt)
        if chain_expiry is None:
            return None
        return min(snapshot, chain_expiry)

    @staticmethod
    def _course_id(ctx: EngineContext) -> int:
        course_id = parse_course_id(ctx.group)
        if course_id is None:
            raise CourseNotFound()
        return course_id

    @staticmethod
    def _require_viewer(ctx: EngineContext):
        if ctx.viewer is None:
            raise Unauthorized("Connect a wallet to continue.")
        return ctx.viewer
