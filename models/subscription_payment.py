"""
SubscriptionPayment model - one row per platform subscription payment.
A payment hash renews exactly one period, enforced by the unique txid.
"""
from sqlalchemy import Column, Integer, String, BigInteger, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class SubscriptionPayment(Base, AuditMixin):
    __tablename__ = 'subscription_payments'

    paymentID = Column(Integer, primary_key=True, autoincrement=True)

    groupID = Column(Integer, ForeignKey('groups.groupID'), nullable=False, index=True)

    # Transaction info
    txid = Column(String, nullable=False, unique=True, index=True)
    fromWallet = Column(String, nullable=True)

    # Epoch ms
    paidAt = Column(BigInteger, nullable=False)
    endsOn = Column(BigInteger, nullable=False)  # ledger end date after this payment

    group = relationship('Group', back_populates='subscriptionPayments')

    def __repr__(self):
        return f"<SubscriptionPayment(group={self.groupID}, txid={self.txid})>"
