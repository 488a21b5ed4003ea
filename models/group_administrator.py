"""
GroupAdministrator model - revenue-share holders of a group.
The owner is never stored here; owner share = 10000 - SUM(shareBps).
"""
from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from models.base import Base


class GroupAdministrator(Base):
    __tablename__ = 'group_administrators'

    id = Column(Integer, primary_key=True, autoincrement=True)

    groupID = Column(Integer, ForeignKey('groups.groupID'), nullable=False, index=True)
    adminID = Column(Integer, ForeignKey('users.userID'), nullable=False, index=True)

    shareBps = Column(Integer, nullable=False)

    group = relationship('Group', back_populates='administrators')
    admin = relationship('User')

    __table_args__ = (
        UniqueConstraint('groupID', 'adminID', name='_group_admin_uc'),
    )

    def __repr__(self):
        return f"<GroupAdministrator(group={self.groupID}, admin={self.adminID}, bps={self.shareBps})>"
