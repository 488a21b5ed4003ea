"""
Database models for the pass economy engine.
Import all models here for easy access and mapper registration.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Core models
from models.user import User
from models.group import Group
from models.group_administrator import GroupAdministrator
from models.membership import Membership, STATUS_ACTIVE, STATUS_LEFT
from models.subscription_payment import SubscriptionPayment

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Core
    'User',
    'Group',
    'GroupAdministrator',
    'Membership',
    'STATUS_ACTIVE',
    'STATUS_LEFT',
    'SubscriptionPayment',
]
