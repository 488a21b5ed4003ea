"""
User model - a wallet identity.
Guest identities are created on first sight of a wallet address.
"""
from sqlalchemy import Column, Integer, String, Text
from models.base import Base, AuditMixin


class User(Base, AuditMixin):
    __tablename__ = 'users'

    userID = Column(Integer, primary_key=True, autoincrement=True)

    # Always stored lowercase (see utils.wallet_validator.normalize_address)
    walletAddress = Column(String, nullable=False, unique=True, index=True)

    # Profile
    displayName = Column(String, nullable=True)
    handle = Column(String, nullable=True)
    avatarUrl = Column(String, nullable=True)
    about = Column(Text, nullable=True)

    def __repr__(self):
        return f"<User(userID={self.userID}, wallet={self.walletAddress})>"
