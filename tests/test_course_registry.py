# tests/test_course_registry.py
"""
Tests for course id lifecycle and on-chain registration.

Run:
    pytest tests/test_course_registry.py -v
"""
from decimal import Decimal

import pytest

from core.exceptions import (
    AlreadyRegistered,
    ChainRpcError,
    CourseNotFound,
    PaymentNotConfirmed,
    Unauthorized,
    ValidationError,
)
from membership_engine.services.course_registry_service import (
    CourseRegistry,
    RegistrationStatus,
    generate_course_id,
    parse_course_id,
)
from membership_engine.services.group_service import GroupSettings
from membership_engine.services.revenue_share_service import allocate
from tests.conftest import CONTRACTS, NOW_MS, WALLETS


# =============================================================================
# TEST CLASS: course ids
# =============================================================================

class TestCourseIds:

    def test_generated_id_is_timestamp_plus_six_digits(self):
        course_id = generate_course_id(NOW_MS)

        assert course_id.startswith(str(NOW_MS))
        assert len(course_id) == len(str(NOW_MS)) + 6
        assert course_id.isdigit()

    def test_parse_rejects_non_numeric(self, free_group):
        free_group.subscriptionId = "abc"
        assert parse_course_id(free_group) is None

        free_group.subscriptionId = None
        assert parse_course_id(free_group) is None

    def test_create_assigns_course_id(self, free_group):
        assert parse_course_id(free_group) is not None

    def test_resolve_or_create_keeps_existing(self, session, free_group):
        existing = free_group.subscriptionId

        assert CourseRegistry(session).resolve_or_create_course_id(free_group) == existing

    def test_resolve_or_create_generates_missing(self, session, free_group):
        free_group.subscriptionId = None
        session.commit()

        course_id = CourseRegistry(session).resolve_or_create_course_id(free_group, NOW_MS)

        assert course_id.startswith(str(NOW_MS))
        assert free_group.subscriptionId == course_id


# =============================================================================
# TEST CLASS: course config reads
# =============================================================================

class TestCourseConfig:

    @pytest.mark.asyncio
    async def test_unregistered_course_is_distinguished(self, session, contracts):
        with pytest.raises(CourseNotFound):
            await CourseRegistry(session, contracts).get_course_config(42)

    @pytest.mark.asyncio
    async def test_other_rpc_failures_pass_through(self, session, chain, contracts):
        chain.read_errors["getCourse"] = ChainRpcError("connection reset")

        with pytest.raises(ChainRpcError) as exc:
            await CourseRegistry(session, contracts).get_course_config(42)

        assert not isinstance(exc.value, CourseNotFound)

    @pytest.mark.asyncio
    async def test_registered_course_decoded(self, session, chain, contracts):
        chain.register(42, price=25_000_000, duration=2_592_000, cooldown=604_800)

        config = await CourseRegistry(session, contracts).get_course_config(42)

        assert config.priceUSDC == 25_000_000
        assert config.duration == 2_592_000
        assert config.transferCooldown == 604_800

    @pytest.mark.asyncio
    async def test_registration_state(self, session, chain, contracts, paid_group):
        registry = CourseRegistry(session, contracts)

        missing = await registry.registration_state(paid_group)
        chain.register(parse_course_id(paid_group), price=25_000_000)
        registered = await registry.registration_state(paid_group)
        chain.read_errors["getCourse"] = ChainRpcError("gateway down")
        errored = await registry.registration_state(paid_group)

        assert missing.status == RegistrationStatus.MISSING
        assert registered.status == RegistrationStatus.REGISTERED
        assert registered.config.priceUSDC == 25_000_000
        assert errored.status == RegistrationStatus.ERROR


# =============================================================================
# TEST CLASS: reset
# =============================================================================

class TestResetCourseId:

    @pytest.mark.asyncio
    async def test_reset_blocked_after_registration(self, session, chain, contracts, paid_group, owner, make_ctx):
        """TEST: getCourse succeeds -> reset fails with AlreadyRegistered."""
        course_id = parse_course_id(paid_group)
        chain.register(course_id, price=25_000_000)
        registry = CourseRegistry(session, contracts)
        await registry.get_course_config(course_id)

        with pytest.raises(AlreadyRegistered):
            await registry.reset_course_id(make_ctx(paid_group, owner))

        assert parse_course_id(paid_group) == course_id

    @pytest.mark.asyncio
    async def test_reset_unregistered_generates_new_id(self, session, contracts, paid_group, owner, make_ctx):
        old_id = paid_group.subscriptionId

        new_id = await CourseRegistry(session, contracts).reset_course_id(make_ctx(paid_group, owner, now=NOW_MS + 1))

        assert new_id != old_id
        assert new_id.startswith(str(NOW_MS + 1))
        assert paid_group.subscriptionId == new_id

    @pytest.mark.asyncio
    async def test_reset_requires_owner(self, session, contracts, paid_group, member, make_ctx):
        with pytest.raises(Unauthorized):
            await CourseRegistry(session, contracts).reset_course_id(make_ctx(paid_group, member))

    @pytest.mark.asyncio
    async def test_reset_without_chain_refuses(self, session, paid_group, owner, make_ctx):
        """TEST: Registration cannot be ruled out without a chain lookup."""
        with pytest.raises(ChainRpcError):
            await CourseRegistry(session).reset_course_id(make_ctx(paid_group, owner))


# =============================================================================
# TEST CLASS: registration
# =============================================================================

class TestRegisterCourse:

    @pytest.mark.asyncio
    async def test_register_submits_split_and_defaults(self, session, chain, contracts, paid_group, owner, make_ctx):
        allocation = allocate(owner.walletAddress, [{"walletAddress": WALLETS['admin'], "shareBps": 1500}])

        await CourseRegistry(session, contracts).register_course(make_ctx(paid_group, owner), allocation)

        contract, function, args, account = chain.writes[-1]
        assert contract == CONTRACTS['registrar']
        assert function == "registerCourse"
        assert args == [
            parse_course_id(paid_group),
            25_000_000,
            [owner.walletAddress, WALLETS['admin']],
            [8500, 1500],
            30 * 24 * 3600,
            7 * 24 * 3600,
        ]
        assert account == owner.walletAddress

    @pytest.mark.asyncio
    async def test_register_twice_rejected(self, session, chain, contracts, paid_group, owner, make_ctx):
        chain.register(parse_course_id(paid_group), price=25_000_000)

        with pytest.raises(AlreadyRegistered):
            await CourseRegistry(session, contracts).register_course(
                make_ctx(paid_group, owner), allocate(owner.walletAddress, [])
            )

    @pytest.mark.asyncio
    async def test_reverted_registration(self, session, chain, contracts, paid_group, owner, make_ctx):
        chain.revert_functions.add("registerCourse")

        with pytest.raises(PaymentNotConfirmed):
            await CourseRegistry(session, contracts).register_course(
                make_ctx(paid_group, owner), allocate(owner.walletAddress, [])
            )

    @pytest.mark.asyncio
    async def test_free_group_has_nothing_to_register(self, session, contracts, free_group, owner, make_ctx):
        with pytest.raises(ValidationError):
            await CourseRegistry(session, contracts).register_course(
                make_ctx(free_group, owner), allocate(owner.walletAddress, [])
            )

    @pytest.mark.asyncio
    async def test_non_numeric_course_id_rejected(self, session, chain, contracts, paid_group, owner, make_ctx):
        """TEST: A malformed stored id is a ValidationError, nothing is submitted."""
        paid_group.subscriptionId = "course:abc"
        session.commit()

        with pytest.raises(ValidationError):
            await CourseRegistry(session, contracts).register_course(
                make_ctx(paid_group, owner), allocate(owner.walletAddress, [])
            )

        assert chain.writes == []
        assert paid_group.subscriptionId == "course:abc"

    @pytest.mark.asyncio
    async def test_paid_price_converted_to_base_units(self, session, chain, contracts, group_service, owner, make_ctx):
        group_id = group_service.create(owner.walletAddress, GroupSettings(name="Cents", price=Decimal("12.50")))
        group = group_service.get_group(group_id)

        await CourseRegistry(session, contracts).register_course(
            make_ctx(group, owner), allocate(owner.walletAddress, [])
        )

        assert chain.writes[-1][2][1] == 12_500_000
