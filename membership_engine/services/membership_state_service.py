# membership_engine/services/membership_state_service.py
"""
Viewer access rights for a group.

Pure read: combines visibility, ownership, administrator rows and the
viewer's membership row. Never mutates membership state.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from core.context import EngineContext
from membership_engine.services.group_policy import Visibility, resolve_visibility
from models.group import Group
from models.group_administrator import GroupAdministrator
from models.membership import Membership, STATUS_ACTIVE

logger = logging.getLogger(__name__)


@dataclass
class AccessRights:
    about: bool = True
    feed: bool = False
    classroom: bool = False
    members: bool = False


@dataclass
class ViewerAccess:
    is_owner: bool = False
    is_administrator: bool = False
    is_member: bool = False
    can_access: AccessRights = field(default_factory=AccessRights)
    membership: Optional[Membership] = None


def find_membership(session: Session, group_id: int, user_id: Optional[int]) -> Optional[Membership]:
    if user_id is None:
        return None
    return session.query(Membership).filter_by(groupID=group_id, userID=user_id).first()


def count_active_members(session: Session, group_id: int) -> int:
    return session.query(Membership).filter_by(groupID=group_id, status=STATUS_ACTIVE).count()


class MembershipStateResolver:
    """Computes owner/administrator/member/guest rights for a (group, viewer) pair."""

    def __init__(self, session: Session):
        self.session = session

    def is_administrator(self, group: Group, user_id: Optional[int]) -> bool:
        if user_id is None:
            return False
        row = self.session.query(GroupAdministrator).filter_by(
            groupID=group.groupID,
            adminID=user_id
        ).first()
        return row is not None

    def resolve(self, ctx: EngineContext) -> ViewerAccess:
        """
        Compute access for ctx.viewer on ctx.group.

        about is always visible; feed, classroom and members are visible when
        the group is public, or the viewer is an active member or the owner.
        """
        group = ctx.group
        viewer_id = ctx.viewer_id

        membership = find_membership(self.session, group.groupID, viewer_id)
        is_owner = ctx.is_owner
        is_member = membership is not None and membership.status == STATUS_ACTIVE
        is_public = resolve_visibility(group.visibility) == Visibility.PUBLIC

        can_view = is_public or is_member or is_owner
        return ViewerAccess(
            is_owner=is_owner,
            is_administrator=self.is_administrator(group, viewer_id),
            is_member=is_member,
            can_access=AccessRights(
                about=True,
                feed=can_view,
                classroom=can_view,
                members=can_view
            ),
            membership=membership
        )
