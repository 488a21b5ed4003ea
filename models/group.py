"""
Group model - community with a platform subscription and a membership course.

Invariants (enforced by GroupService on every write):
    billingCadence == 'monthly'  <=>  price > 0
    billingCadence == 'monthly'  =>   visibility == 'private'
"""
from sqlalchemy import Column, Integer, String, Text, DECIMAL, BigInteger, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class Group(Base, AuditMixin):
    __tablename__ = 'groups'

    groupID = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    shortDescription = Column(String, nullable=True)

    # 'public' | 'private' - read through resolve_visibility()
    visibility = Column(String, nullable=True)
    # 'free' | 'monthly' - read through resolve_billing_cadence()
    billingCadence = Column(String, nullable=True)

    ownerID = Column(Integer, ForeignKey('users.userID'), nullable=False, index=True)

    price = Column(DECIMAL(12, 2), nullable=False, default=0)  # USD per month
    memberNumber = Column(Integer, nullable=False, default=0)  # COUNT(active memberships)

    # Numeric-string course id (timestamp || 6-digit random)
    subscriptionId = Column(String, nullable=True, unique=True, index=True)

    # Platform subscription ledger, epoch ms
    endsOn = Column(BigInteger, nullable=True)
    lastSubscriptionPaidAt = Column(BigInteger, nullable=True)
    lastSubscriptionTxHash = Column(String, nullable=True)

    # Relationships
    owner = relationship('User', foreign_keys=[ownerID])
    administrators = relationship(
        'GroupAdministrator',
        back_populates='group',
        cascade='all, delete-orphan'
    )
    memberships = relationship(
        'Membership',
        back_populates='group',
        cascade='all, delete-orphan'
    )
    subscriptionPayments = relationship(
        'SubscriptionPayment',
        back_populates='group',
        cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f"<Group(groupID={self.groupID}, name={self.name}, price={self.price})>"
