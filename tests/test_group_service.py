# tests/test_group_service.py
"""
Tests for the group API: create, settings, join/leave, renewal, views.

Run:
    pytest tests/test_group_service.py -v
"""
from decimal import Decimal

import pytest

from core.exceptions import (
    AlreadyRegistered,
    GroupNotFound,
    ShareOverflow,
    Unauthorized,
    ValidationError,
)
from membership_engine.config.constants import SUBSCRIPTION_PERIOD_MS
from membership_engine.services.course_registry_service import parse_course_id
from membership_engine.services.group_policy import (
    BillingCadence,
    Visibility,
    enforce_group_invariants,
    resolve_billing_cadence,
    resolve_visibility,
)
from membership_engine.services.group_service import GroupService, GroupSettings
from models.group import Group
from models.group_administrator import GroupAdministrator
from models.membership import Membership
from tests.conftest import NOW_MS, WALLETS


# =============================================================================
# TEST CLASS: policy resolution
# =============================================================================

class TestPolicy:

    @pytest.mark.parametrize("requested, expected", [
        ("public", Visibility.PUBLIC),
        ("PUBLIC", Visibility.PUBLIC),
        ("private", Visibility.PRIVATE),
        (None, Visibility.PRIVATE),
        ("", Visibility.PRIVATE),
        ("friends-only", Visibility.PRIVATE),
    ])
    def test_resolve_visibility(self, requested, expected):
        assert resolve_visibility(requested) == expected

    @pytest.mark.parametrize("requested, price, expected", [
        ("monthly", 0, BillingCadence.FREE),
        (None, Decimal("10"), BillingCadence.MONTHLY),
        ("free", "9.99", BillingCadence.MONTHLY),
        (None, None, BillingCadence.FREE),
    ])
    def test_cadence_follows_price(self, requested, price, expected):
        assert resolve_billing_cadence(requested, price) == expected

    def test_public_paid_rejected(self):
        with pytest.raises(ValidationError):
            enforce_group_invariants("public", "monthly", 10)

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            enforce_group_invariants("private", None, -1)


# =============================================================================
# TEST CLASS: create
# =============================================================================

class TestCreate:

    def test_create_initial_state(self, session, group_service, owner):
        """TEST: Owner membership, memberNumber 1, course id, endsOn = now + 30d."""
        group_id = group_service.create(
            owner.walletAddress,
            GroupSettings(
                name="  Builders  ",
                price="25",
                administrators=[{"walletAddress": WALLETS['admin'], "shareBps": 2000}]
            )
        )
        group = group_service.get_group(group_id)

        assert group.name == "Builders"
        assert group.memberNumber == 1
        assert group.visibility == "private"
        assert group.billingCadence == "monthly"
        assert group.endsOn == NOW_MS + SUBSCRIPTION_PERIOD_MS
        assert parse_course_id(group) is not None
        assert session.query(Membership).filter_by(groupID=group_id, userID=owner.userID).one().status == 'active'
        assert [row.shareBps for row in group.administrators] == [2000]

    def test_public_paid_group_rejected(self, session, group_service, owner):
        with pytest.raises(ValidationError):
            group_service.create(owner.walletAddress, GroupSettings(name="X", price=10, visibility="public"))

        assert session.query(Group).count() == 0

    def test_name_required(self, group_service, owner):
        with pytest.raises(ValidationError):
            group_service.create(owner.walletAddress, GroupSettings(name="   "))

    def test_name_length_limit(self, group_service, owner):
        with pytest.raises(ValidationError):
            group_service.create(owner.walletAddress, GroupSettings(name="x" * 61))

    def test_share_overflow_creates_nothing(self, session, group_service, owner):
        with pytest.raises(ShareOverflow):
            group_service.create(owner.walletAddress, GroupSettings(
                name="Split",
                administrators=[
                    {"walletAddress": WALLETS['admin'], "shareBps": 6000},
                    {"walletAddress": WALLETS['buyer'], "shareBps": 6000},
                ]
            ))

        assert session.query(Group).count() == 0


# =============================================================================
# TEST CLASS: update settings
# =============================================================================

class TestUpdateSettings:

    def test_public_update_on_paid_group_rejected(self, session, group_service, paid_group, owner):
        """TEST: private monthly group (price 10) rejects visibility=public before persistence."""
        group_service.update_settings(paid_group.groupID, owner.walletAddress, GroupSettings(price=Decimal("10")))

        with pytest.raises(ValidationError):
            group_service.update_settings(paid_group.groupID, owner.walletAddress, GroupSettings(visibility="public"))

        session.expire_all()
        stored = session.query(Group).filter_by(groupID=paid_group.groupID).one()
        assert stored.visibility == "private"
        assert stored.billingCadence == "monthly"
        assert stored.price == Decimal("10.00")

    def test_dropping_price_allows_public(self, group_service, paid_group, owner):
        group = group_service.update_settings(
            paid_group.groupID, owner.walletAddress, GroupSettings(price=0, visibility="public")
        )

        assert group.visibility == "public"
        assert group.billingCadence == "free"

    def test_non_owner_rejected(self, group_service, paid_group, member):
        with pytest.raises(Unauthorized):
            group_service.update_settings(paid_group.groupID, member.walletAddress, GroupSettings(name="Mine"))

    def test_unknown_group(self, group_service, owner):
        with pytest.raises(GroupNotFound):
            group_service.update_settings(999, owner.walletAddress, GroupSettings(name="Nope"))

    def test_administrator_rows_diffed(self, session, group_service, owner, admin):
        group_id = group_service.create(owner.walletAddress, GroupSettings(
            name="Team",
            administrators=[
                {"walletAddress": WALLETS['admin'], "shareBps": 1000},
                {"walletAddress": WALLETS['buyer'], "shareBps": 500},
            ]
        ))
        admin_row = session.query(GroupAdministrator).filter_by(groupID=group_id, adminID=admin.userID).one()

        group_service.update_settings(group_id, owner.walletAddress, GroupSettings(administrators=[
            {"walletAddress": WALLETS['admin'], "shareBps": 3000},
            {"walletAddress": WALLETS['member'], "shareBps": 200},
        ]))

        rows = {
            row.admin.walletAddress: row
            for row in session.query(GroupAdministrator).filter_by(groupID=group_id).all()
        }
        assert set(rows) == {WALLETS['admin'], WALLETS['member']}
        assert rows[WALLETS['admin']].shareBps == 3000
        assert rows[WALLETS['admin']].id == admin_row.id
        assert rows[WALLETS['member']].shareBps == 200

    def test_overflow_leaves_group_unchanged(self, session, group_service, paid_group, owner):
        with pytest.raises(ShareOverflow):
            group_service.update_settings(paid_group.groupID, owner.walletAddress, GroupSettings(
                name="Renamed",
                administrators=[{"walletAddress": WALLETS['admin'], "shareBps": 10001.0},
                                {"walletAddress": WALLETS['buyer'], "shareBps": 1}]
            ))

        session.expire_all()
        assert session.query(Group).filter_by(groupID=paid_group.groupID).one().name == "Pro Circle"


# =============================================================================
# TEST CLASS: membership API
# =============================================================================

class TestMembershipApi:

    @pytest.mark.asyncio
    async def test_join_and_leave_statuses(self, group_service, free_group, owner):
        member_wallet = WALLETS['member']

        assert await group_service.join(free_group.groupID, owner.walletAddress) == {"status": "owner"}
        assert await group_service.join(free_group.groupID, member_wallet) == {"status": "joined"}
        assert await group_service.join(free_group.groupID, member_wallet) == {"status": "already_member"}
        assert await group_service.leave(free_group.groupID, member_wallet) == {"status": "left"}
        assert await group_service.leave(free_group.groupID, member_wallet) == {"status": "not_member"}

    @pytest.mark.asyncio
    async def test_paid_join_with_pass_flag(self, group_service, paid_group):
        result = await group_service.join(paid_group.groupID, WALLETS['member'], has_active_pass=True)

        assert result == {"status": "joined"}

    @pytest.mark.asyncio
    async def test_renew_subscription(self, group_service, free_group, owner):
        ends_before = free_group.endsOn

        result = await group_service.renew_subscription(free_group.groupID, owner.walletAddress)

        assert result == {"endsOn": ends_before + SUBSCRIPTION_PERIOD_MS}

    @pytest.mark.asyncio
    async def test_reset_subscription_id_blocked(self, session, chain, contracts, paid_group, owner):
        chain.register(parse_course_id(paid_group), price=25_000_000)

        with pytest.raises(AlreadyRegistered):
            await GroupService(session, contracts).reset_subscription_id(paid_group.groupID, owner.walletAddress)

    @pytest.mark.asyncio
    async def test_reset_subscription_id(self, session, contracts, paid_group, owner):
        result = await GroupService(session, contracts).reset_subscription_id(paid_group.groupID, owner.walletAddress)

        assert result["subscriptionId"] == paid_group.subscriptionId


# =============================================================================
# TEST CLASS: reads
# =============================================================================

class TestReads:

    def test_viewer_composes_access_and_subscription(self, session, group_service, paid_group, owner):
        view = group_service.viewer(paid_group.groupID, owner.userID)

        assert view["group"].groupID == paid_group.groupID
        assert view["visibility"] == Visibility.PRIVATE
        assert view["billingCadence"] == BillingCadence.MONTHLY
        assert view["viewerAccess"].is_owner is True
        assert view["memberCount"] == 1
        assert view["subscription"].daysRemaining == 30
        assert view["subscription"].isRenewalDue is False

    def test_viewer_unknown_group(self, group_service):
        assert group_service.viewer(999) is None

    @pytest.mark.asyncio
    async def test_list_for_wallet(self, group_service, free_group, paid_group):
        await group_service.join(free_group.groupID, WALLETS['member'])

        assert [g.groupID for g in group_service.list_for_wallet(WALLETS['member'])] == [free_group.groupID]
        assert group_service.list_for_wallet(WALLETS['buyer']) == []
        assert group_service.list_for_wallet(None) == []

    @pytest.mark.asyncio
    async def test_members_gated_by_visibility(self, group_service, paid_group, owner, member):
        assert group_service.get_members(paid_group.groupID) == []

        members = group_service.get_members(paid_group.groupID, owner.userID)

        assert [user.userID for user in members] == [owner.userID]

    def test_directory(self, group_service, free_group, paid_group):
        entries = group_service.directory()

        assert [entry["group"].groupID for entry in entries] == [free_group.groupID, paid_group.groupID]
        assert entries[1]["billingCadence"] == BillingCadence.MONTHLY
        assert entries[0]["memberCount"] == 1

    def test_remove_cascades(self, session, group_service, paid_group, owner):
        group_id = paid_group.groupID

        group_service.remove(group_id, owner.walletAddress)

        assert session.query(Group).filter_by(groupID=group_id).count() == 0
        assert session.query(Membership).filter_by(groupID=group_id).count() == 0

    def test_remove_requires_owner(self, group_service, paid_group, member):
        with pytest.raises(Unauthorized):
            group_service.remove(paid_group.groupID, member.walletAddress)
