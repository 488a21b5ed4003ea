# membership_engine/services/subscription_service.py
"""
Platform subscription billing cycle.

A group owner pays the platform every 30 days. Renewal extends from the later
of the current end date and now, so early renewals never lose paid time.
Renewal is applied only after the payment transfer has a successful receipt.
"""
import math
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import Config
from core.context import EngineContext
from core.exceptions import (
    ChainRpcError,
    GroupNotFound,
    InsufficientBalance,
    PaymentNotConfirmed,
    PaymentRequired,
    Unauthorized,
)
from membership_engine.config.constants import DAY_MS, RENEWAL_WARNING_MS, SUBSCRIPTION_PERIOD_MS
from membership_engine.utils.timestamps import normalize_timestamp
from membership_engine.utils.usdc import parse_usdc
from models.group import Group
from models.subscription_payment import SubscriptionPayment
from utils.txid_checker import TxidValidationCode, normalize_tx_hash, verify_transaction

logger = logging.getLogger(__name__)


@dataclass
class SubscriptionStatus:
    """Derived view over the group's subscription fields."""
    endsOn: Optional[int]
    lastPaidAt: Optional[int]
    lastPaymentTxHash: Optional[str]
    isExpired: bool
    isRenewalDue: bool
    daysRemaining: Optional[int]


@dataclass
class SubscriptionLedger:
    """30-day billing cycle; all values epoch ms."""
    endsOn: Optional[int] = None
    lastPaidAt: Optional[int] = None

    @classmethod
    def from_group(cls, group: Group) -> "SubscriptionLedger":
        return cls(
            endsOn=normalize_timestamp(group.endsOn),
            lastPaidAt=normalize_timestamp(group.lastSubscriptionPaidAt)
        )

    def renew(self, now: int) -> int:
        """
        Extend by one period from max(endsOn, now).

        Only call after the payment transfer is confirmed.

        Returns:
            New endsOn
        """
        baseline = max(self.endsOn or 0, now)
        self.endsOn = baseline + SUBSCRIPTION_PERIOD_MS
        self.lastPaidAt = now
        return self.endsOn

    def compute_status(self, now: int, last_tx_hash: Optional[str] = None) -> SubscriptionStatus:
        if self.endsOn is None:
            return SubscriptionStatus(
                endsOn=None,
                lastPaidAt=self.lastPaidAt,
                lastPaymentTxHash=last_tx_hash,
                isExpired=False,
                isRenewalDue=False,
                daysRemaining=None
            )

        remaining = self.endsOn - now
        is_expired = self.endsOn < now
        return SubscriptionStatus(
            endsOn=self.endsOn,
            lastPaidAt=self.lastPaidAt,
            lastPaymentTxHash=last_tx_hash,
            isExpired=is_expired,
            isRenewalDue=is_expired or remaining <= RENEWAL_WARNING_MS,
            daysRemaining=max(0, math.ceil(remaining / DAY_MS))
        )


class SubscriptionService:
    """Owner-facing renewal workflow over the ledger."""

    def __init__(self, session: Session, contracts=None):
        """
        Args:
            session: SQLAlchemy database session
            contracts: ChainContracts; when set, payment proofs are verified on-chain
        """
        self.session = session
        self.contracts = contracts

    def status(self, ctx: EngineContext) -> SubscriptionStatus:
        ledger = SubscriptionLedger.from_group(ctx.group)
        return ledger.compute_status(ctx.now, ctx.group.lastSubscriptionTxHash)

    async def renew_subscription(
            self,
            ctx: EngineContext,
            payment_tx_hash: Optional[str] = None
    ) -> int:
        """
        Apply one renewal period for a confirmed payment.

        Args:
            ctx: Context with the group and the acting owner
            payment_tx_hash: Hash of the subscription payment transfer

        Returns:
            New endsOn (epoch ms)

        Raises:
            Unauthorized: Viewer is not the owner
            PaymentRequired: Chain verification is wired and no tx hash was given
            PaymentNotConfirmed: The payment is already used, not mined, reverted,
                or not a full-price USDC transfer from the owner to the treasury
        """
        if not ctx.is_owner:
            raise Unauthorized("Only the group owner can renew this subscription.")

        tx_hash = normalize_tx_hash(payment_tx_hash)
        if tx_hash:
            self._require_unused(tx_hash)
        if self.contracts is not None:
            if not tx_hash:
                raise PaymentRequired()
            await self._require_confirmed(tx_hash, ctx.viewer.walletAddress)

        return self._apply_renewal(ctx, tx_hash)

    def _apply_renewal(self, ctx: EngineContext, tx_hash: Optional[str]) -> int:
        group = ctx.group
        ledger = SubscriptionLedger.from_group(group)
        ends_on = ledger.renew(ctx.now)

        group.endsOn = ledger.endsOn
        group.lastSubscriptionPaidAt = ledger.lastPaidAt
        if tx_hash:
            group.lastSubscriptionTxHash = tx_hash
            self.session.add(SubscriptionPayment(
                groupID=group.groupID,
                txid=tx_hash,
                fromWallet=ctx.viewer.walletAddress,
                paidAt=ctx.now,
                endsOn=ends_on
            ))

        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.warning(f"Concurrent renewal with payment {tx_hash} for group {group.groupID}")
            raise PaymentNotConfirmed(tx_hash, reason=TxidValidationCode.TXID_ALREADY_USED.value)

        logger.info(f"Subscription renewed: group={group.groupID}, endsOn={ends_on}, tx={tx_hash}")
        return ends_on

    async def pay_and_renew(self, ctx: EngineContext) -> dict:
        """
        Pay the platform subscription in USDC and renew.

        Flow: balance check -> transfer to treasury -> wait for receipt ->
        renew. A failed or unconfirmed transfer leaves the ledger untouched.

        Returns:
            {"endsOn": int, "txHash": str}
        """
        if not ctx.is_owner:
            raise Unauthorized("Only the group owner can renew this subscription.")
        if self.contracts is None:
            raise ChainRpcError("Blockchain client unavailable. Please try again.")

        owner_address = ctx.viewer.walletAddress
        treasury = Config.require(Config.TREASURY_ADDRESS)
        amount = parse_usdc(Config.require(Config.SUBSCRIPTION_PRICE_USDC))

        balance = await self.contracts.usdc.balance_of(owner_address)
        if balance < amount:
            raise InsufficientBalance(amount, balance, purpose="renew the subscription")

        tx_hash = await self.contracts.usdc.transfer(treasury, amount, account=owner_address)
        receipt = await self.contracts.client.wait_for_receipt(tx_hash)
        if not receipt.success:
            raise PaymentNotConfirmed(tx_hash)

        ends_on = self._apply_renewal(ctx, tx_hash)
        return {"endsOn": ends_on, "txHash": tx_hash}

    def sync_subscription_end(self, subscription_id: str, ends_on: int) -> int:
        """
        Store an externally reported end date for the group owning subscription_id.

        Raises:
            GroupNotFound: No group carries this subscription id
        """
        group = self.session.query(Group).filter_by(subscriptionId=subscription_id).first()
        if not group:
            raise GroupNotFound(subscription_id)

        group.endsOn = normalize_timestamp(ends_on)
        self.session.commit()
        logger.info(f"Subscription end synced: group={group.groupID}, endsOn={group.endsOn}")
        return group.endsOn

    def _require_unused(self, tx_hash: str) -> None:
        """One payment renews one period."""
        used = self.session.query(SubscriptionPayment).filter_by(txid=tx_hash).first()
        if used is not None:
            logger.warning(f"Subscription payment {tx_hash} already applied to group {used.groupID}")
            raise PaymentNotConfirmed(tx_hash, reason=TxidValidationCode.TXID_ALREADY_USED.value)

    async def _require_confirmed(self, tx_hash: str, owner_address: str) -> None:
        usdc = self.contracts.usdc.address
        result = await verify_transaction(
            self.contracts.client,
            tx_hash,
            expected_sender=owner_address,
            expected_targets=(usdc,),
            expected_payee=Config.require(Config.TREASURY_ADDRESS),
            token=usdc,
            min_amount=parse_usdc(Config.require(Config.SUBSCRIPTION_PRICE_USDC))
        )
        if result.code == TxidValidationCode.API_ERROR:
            raise ChainRpcError(result.details or "Unable to verify payment transaction.")
        if not result.is_valid:
            raise PaymentNotConfirmed(tx_hash, reason=result.code.value)
