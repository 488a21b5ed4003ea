# membership_engine/services/course_registry_service.py
"""
Course id lifecycle and on-chain course configuration reads.

Each group's membership offering is one on-chain course, identified by the
numeric string stored in Group.subscriptionId. Ids are generated as
"<ms timestamp><6-digit random>" (string concatenation) so concurrent group
creations do not collide; the owner registers the id on-chain separately.
"""
import logging
import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from config import Config
from core.context import EngineContext
from core.exceptions import (
    AlreadyRegistered,
    ChainRpcError,
    CourseNotFound,
    PaymentNotConfirmed,
    Unauthorized,
    ValidationError,
)
from membership_engine.config.constants import COURSE_ID_RANDOM_DIGITS
from membership_engine.services.revenue_share_service import ShareAllocation, registration_split
from membership_engine.utils.time_machine import timeMachine
from membership_engine.utils.usdc import parse_usdc
from models.group import Group
from onchain.decoders import CourseConfig

logger = logging.getLogger(__name__)

COURSE_ID_PATTERN = re.compile(r"^[0-9]+$")


class RegistrationStatus(Enum):
    REGISTERED = "registered"
    MISSING = "missing"
    ERROR = "error"


@dataclass
class RegistrationState:
    status: RegistrationStatus
    message: Optional[str] = None
    config: Optional[CourseConfig] = None


def generate_course_id(now_ms: Optional[int] = None) -> str:
    """Timestamp followed by a zero-padded random suffix, e.g. '1700000000000004217'."""
    timestamp = now_ms if now_ms is not None else timeMachine.now_ms
    suffix = str(random.randint(0, 10 ** COURSE_ID_RANDOM_DIGITS - 1)).zfill(COURSE_ID_RANDOM_DIGITS)
    return f"{timestamp}{suffix}"


def parse_course_id(group: Group) -> Optional[int]:
    """Numeric course id of the group, or None if missing or malformed."""
    raw = (group.subscriptionId or "").strip()
    if not COURSE_ID_PATTERN.match(raw):
        return None
    return int(raw)


class CourseRegistry:
    """Resolves course ids and reads course configuration from the chain."""

    def __init__(self, session: Session, contracts=None):
        self.session = session
        self.contracts = contracts

    def resolve_or_create_course_id(self, group: Group, now: Optional[int] = None) -> str:
        """
        Return the group's course id, generating and persisting one if absent.
        """
        if group.subscriptionId:
            return group.subscriptionId

        group.subscriptionId = generate_course_id(now)
        self.session.commit()
        logger.info(f"Course id generated for group {group.groupID}: {group.subscriptionId}")
        return group.subscriptionId

    async def get_course_config(self, course_id: int) -> CourseConfig:
        """
        Raises:
            CourseNotFound: Chain reports the course as unregistered
            ChainRpcError: Any other RPC failure
        """
        self._require_chain()
        return await self.contracts.membership.get_course(course_id)

    async def is_registered(self, course_id: int) -> bool:
        try:
            await self.get_course_config(course_id)
        except CourseNotFound:
            return False
        return True

    async def registration_state(self, group: Group) -> RegistrationState:
        """
        Registration view for the settings screen.

        An unregistered course reports MISSING; any other RPC failure reports ERROR.
        """
        course_id = parse_course_id(group)
        if course_id is None:
            return RegistrationState(RegistrationStatus.MISSING, "Course id not assigned yet.")

        try:
            config = await self.get_course_config(course_id)
        except CourseNotFound as e:
            return RegistrationState(RegistrationStatus.MISSING, e.message)
        except ChainRpcError as e:
            logger.error(f"Failed to verify course registration for {course_id}: {e}", exc_info=True)
            return RegistrationState(
                RegistrationStatus.ERROR,
                "Unable to confirm on-chain course. Try again later."
            )

        return RegistrationState(RegistrationStatus.REGISTERED, config=config)

    async def reset_course_id(self, ctx: EngineContext) -> str:
        """
        Replace the group's course id with a fresh one.

        Raises:
            Unauthorized: Viewer is not the owner
            AlreadyRegistered: Current id is confirmed on-chain
            ChainRpcError: Registration could not be checked
        """
        group = ctx.group
        if not ctx.is_owner:
            raise Unauthorized("Only the group owner can reset the course ID.")

        course_id = parse_course_id(group)
        if course_id is not None:
            if await self.is_registered(course_id):
                logger.warning(f"Refused course id reset for group {group.groupID}: {course_id} is registered")
                raise AlreadyRegistered(course_id)

        group.subscriptionId = generate_course_id(ctx.now)
        self.session.commit()

        logger.info(f"Course id reset for group {group.groupID}: {group.subscriptionId}")
        return group.subscriptionId

    async def register_course(self, ctx: EngineContext, allocation: ShareAllocation) -> str:
        """
        Register the group's course on-chain with the configured pass defaults.

        Owner-only, one-time per course. Waits for the receipt.

        Returns:
            Registration tx hash

        Raises:
            Unauthorized: Viewer is not the owner
            ValidationError: Group has no price or course id
            AlreadyRegistered: Course already exists on-chain
            PaymentNotConfirmed: Registration transaction reverted
        """
        self._require_chain()
        group = ctx.group
        if not ctx.is_owner:
            raise Unauthorized("Only the group owner can register the course.")
        if not group.price or group.price <= 0:
            raise ValidationError("Free groups do not need an on-chain course.")

        course_id = parse_course_id(group)
        if course_id is None:
            if group.subscriptionId:
                raise ValidationError(
                    f"Course id {group.subscriptionId!r} is not numeric. Reset the course ID first."
                )
            course_id = int(self.resolve_or_create_course_id(group, ctx.now))

        if await self.is_registered(course_id):
            raise AlreadyRegistered(course_id)

        owner_address = ctx.viewer.walletAddress
        recipients, shares = registration_split(owner_address, allocation)

        tx_hash = await self.contracts.registrar.register_course(
            course_id,
            parse_usdc(group.price),
            recipients,
            shares,
            Config.require(Config.MEMBERSHIP_DURATION_SECONDS),
            Config.require(Config.MEMBERSHIP_TRANSFER_COOLDOWN_SECONDS),
            account=owner_address
        )
        receipt = await self.contracts.client.wait_for_receipt(tx_hash)
        if not receipt.success:
            raise PaymentNotConfirmed(tx_hash, reason="course registration reverted")

        logger.info(f"Course {course_id} registered for group {group.groupID}: {tx_hash}")
        return tx_hash

    def _require_chain(self) -> None:
        if self.contracts is None:
            raise ChainRpcError("Membership contract address is not configured.")
