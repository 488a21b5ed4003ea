# membership_engine/__init__.py
"""
Pass economy engine - subscriptions, course passes, revenue shares and
the membership join/leave workflow.
"""

# Services
from membership_engine.services.group_service import GroupService, GroupSettings
from membership_engine.services.join_leave_service import (
    JoinLeaveCoordinator, JoinProof, JoinStatus, LeaveStatus,
)
from membership_engine.services.membership_state_service import MembershipStateResolver, ViewerAccess
from membership_engine.services.marketplace_service import MarketplaceBook
from membership_engine.services.course_registry_service import CourseRegistry
from membership_engine.services.subscription_service import SubscriptionLedger, SubscriptionService
from membership_engine.services.revenue_share_service import ShareAllocation, allocate

# Policy
from membership_engine.services.group_policy import (
    BillingCadence, Visibility, resolve_billing_cadence, resolve_visibility,
)

# Utilities
from membership_engine.utils.time_machine import timeMachine
from membership_engine.utils.retry import with_retries

__all__ = [
    # Services
    'GroupService',
    'GroupSettings',
    'JoinLeaveCoordinator',
    'JoinProof',
    'JoinStatus',
    'LeaveStatus',
    'MembershipStateResolver',
    'ViewerAccess',
    'MarketplaceBook',
    'CourseRegistry',
    'SubscriptionLedger',
    'SubscriptionService',
    'ShareAllocation',
    'allocate',

    # Policy
    'BillingCadence',
    'Visibility',
    'resolve_billing_cadence',
    'resolve_visibility',

    # Utils
    'timeMachine',
    'with_retries',
]
