# tests/test_membership_state.py
"""
Tests for viewer access resolution.

    about      always visible
    feed, classroom, members visible iff public OR active member OR owner

Run:
    pytest tests/test_membership_state.py -v
"""
import pytest

from membership_engine.services.group_service import GroupSettings
from membership_engine.services.join_leave_service import JoinLeaveCoordinator
from membership_engine.services.membership_state_service import MembershipStateResolver
from models.group_administrator import GroupAdministrator
from models.membership import Membership


class TestResolveAccess:

    def test_guest_on_private_group(self, session, paid_group, make_ctx):
        """TEST: No viewer -> only about is visible."""
        access = MembershipStateResolver(session).resolve(make_ctx(paid_group))

        assert access.is_owner is False
        assert access.is_member is False
        assert access.can_access.about is True
        assert access.can_access.feed is False
        assert access.can_access.classroom is False
        assert access.can_access.members is False
        assert access.membership is None

    def test_public_group_open_to_guests(self, session, group_service, owner, make_ctx):
        group_id = group_service.create(owner.walletAddress, GroupSettings(name="Town Hall", visibility="public"))
        access = MembershipStateResolver(session).resolve(make_ctx(group_service.get_group(group_id)))

        assert access.can_access.feed is True
        assert access.can_access.members is True
        assert access.is_member is False

    def test_owner_sees_everything(self, session, paid_group, owner, make_ctx):
        access = MembershipStateResolver(session).resolve(make_ctx(paid_group, owner))

        assert access.is_owner is True
        assert access.is_member is True
        assert access.can_access.classroom is True

    def test_active_member(self, session, paid_group, member, make_ctx):
        session.add(Membership(userID=member.userID, groupID=paid_group.groupID, status='active'))
        session.commit()

        access = MembershipStateResolver(session).resolve(make_ctx(paid_group, member))

        assert access.is_member is True
        assert access.can_access.feed is True

    def test_left_member_loses_access(self, session, free_group, member, make_ctx):
        session.add(Membership(userID=member.userID, groupID=free_group.groupID, status='left'))
        session.commit()

        access = MembershipStateResolver(session).resolve(make_ctx(free_group, member))

        assert access.is_member is False
        assert access.can_access.feed is False
        assert access.membership.status == 'left'

    def test_administrator_flag(self, session, paid_group, admin, make_ctx):
        session.add(GroupAdministrator(groupID=paid_group.groupID, adminID=admin.userID, shareBps=1000))
        session.commit()

        access = MembershipStateResolver(session).resolve(make_ctx(paid_group, admin))

        assert access.is_administrator is True
        assert access.is_member is False
        assert access.can_access.feed is False

    @pytest.mark.asyncio
    async def test_resolve_is_read_only(self, session, free_group, member, make_ctx):
        """TEST: Resolving access never creates membership rows."""
        MembershipStateResolver(session).resolve(make_ctx(free_group, member))

        assert session.query(Membership).filter_by(userID=member.userID).count() == 0

        await JoinLeaveCoordinator(session).join(make_ctx(free_group, member))
        access = MembershipStateResolver(session).resolve(make_ctx(free_group, member))

        assert access.is_member is True
