"""
Membership model - one row per (user, group).
Status toggles between 'active' and 'left'; rows are only removed by
the group cascade delete.
"""
from sqlalchemy import Column, Integer, String, BigInteger, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin

STATUS_ACTIVE = 'active'
STATUS_LEFT = 'left'


class Membership(Base, AuditMixin):
    __tablename__ = 'memberships'

    membershipID = Column(Integer, primary_key=True, autoincrement=True)

    userID = Column(Integer, ForeignKey('users.userID'), nullable=False, index=True)
    groupID = Column(Integer, ForeignKey('groups.groupID'), nullable=False, index=True)

    status = Column(String, nullable=False, default=STATUS_ACTIVE)  # active, left

    # Epoch ms
    joinedAt = Column(BigInteger, nullable=True)
    leftAt = Column(BigInteger, nullable=True)
    passExpiresAt = Column(BigInteger, nullable=True)  # last known on-chain pass expiry
    paymentTxHash = Column(String, nullable=True, index=True)  # payment that backs this membership

    user = relationship('User')
    group = relationship('Group', back_populates='memberships')

    __table_args__ = (
        UniqueConstraint('userID', 'groupID', name='_user_group_uc'),
        Index('ix_membership_group_status', 'groupID', 'status'),
    )

    @property
    def isActive(self) -> bool:
        return (self.status or STATUS_ACTIVE) == STATUS_ACTIVE

    def __repr__(self):
        return f"<Membership(user={self.userID}, group={self.groupID}, status={self.status})>"
