# membership_engine/services/marketplace_service.py
"""
Secondary market for membership passes.

Listings live on-chain; this book reads them, computes the floor price and
drives the listing/buy/renew transactions. Every dependent step waits for the
previous transaction's receipt: token approval confirms before a purchase is
submitted, and a purchase confirms before pass ownership is asserted.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from config import Config
from core.exceptions import (
    CooldownActive,
    InsufficientBalance,
    ListingNotFound,
    PassNotActive,
    PaymentNotConfirmed,
    PriceExceedsMax,
    ValidationError,
)
from membership_engine.config.constants import BPS_DENOMINATOR
from membership_engine.utils.timestamps import to_chain_seconds
from onchain.decoders import CourseConfig, Listing, PassState
from utils.wallet_validator import normalize_address

logger = logging.getLogger(__name__)


@dataclass
class PurchaseResult:
    txHash: str
    passState: PassState


@dataclass
class HolderState:
    hasPass: bool
    canTransfer: bool
    transferAvailableAt: int
    expiresAt: int


@dataclass
class CourseOverview:
    courseId: int
    config: CourseConfig
    listings: List[Listing]
    floorPrice: Optional[int]
    platformFeeBps: int = 0
    holder: Optional[HolderState] = None

    @property
    def listingCount(self) -> int:
        return len(self.listings)


@dataclass
class SaleQuote:
    """Split of one listing price between the platform and the seller (USDC base units)."""
    price: int
    platformFee: int
    sellerProceeds: int


def quote_sale(price: int, fee_bps: int) -> SaleQuote:
    fee = price * fee_bps // BPS_DENOMINATOR
    return SaleQuote(price=price, platformFee=fee, sellerProceeds=price - fee)


def floor_price(listings: Iterable[Listing]) -> Optional[int]:
    """Lowest price among active listings; first encountered wins ties."""
    lowest: Optional[Listing] = None
    for listing in listings:
        if not listing.active:
            continue
        if lowest is None or listing.priceUSDC < lowest.priceUSDC:
            lowest = listing
    return lowest.priceUSDC if lowest else None


class MarketplaceBook:
    """Listing book and pass purchase flows for one chain deployment."""

    def __init__(self, contracts):
        """
        Args:
            contracts: ChainContracts bundle
        """
        self.contracts = contracts

    @property
    def _operator(self) -> str:
        return self.contracts.marketplace.address

    @staticmethod
    def platform_fee_bps() -> int:
        return Config.require(Config.PLATFORM_FEE_BPS)

    # ═══════════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════════

    async def get_floor_price(self, course_id: int) -> Optional[int]:
        listings = await self.contracts.marketplace.get_active_listings(course_id)
        return floor_price(listings)

    async def holder_state(self, course_id: int, account: str) -> HolderState:
        membership = self.contracts.membership
        balance = await membership.balance_of(account, course_id)
        transfer = await membership.can_transfer(course_id, account)
        state = await membership.get_pass_state(course_id, account)
        return HolderState(
            hasPass=balance > 0,
            canTransfer=transfer.eligible,
            transferAvailableAt=transfer.availableAt,
            expiresAt=state.expiresAt
        )

    async def course_overview(self, course_id: int, account: Optional[str] = None) -> CourseOverview:
        """Config, active listings, floor and (optionally) the viewer's holder state."""
        config = await self.contracts.membership.get_course(course_id)
        listings = await self.contracts.marketplace.get_active_listings(course_id)
        holder = await self.holder_state(course_id, normalize_address(account)) if account else None
        return CourseOverview(
            courseId=course_id,
            config=config,
            listings=listings,
            floorPrice=floor_price(listings),
            platformFeeBps=self.platform_fee_bps(),
            holder=holder
        )

    # ═══════════════════════════════════════════════════════════════════════
    # LISTINGS
    # ═══════════════════════════════════════════════════════════════════════

    async def create_listing(
            self,
            course_id: int,
            seller: str,
            price: int,
            duration: int,
            now: int
    ) -> str:
        """
        List the seller's pass.

        Args:
            course_id: Course id
            seller: Seller wallet
            price: Asking price in USDC base units
            duration: Listing lifetime in seconds
            now: Epoch ms

        Raises:
            ValidationError: Non-positive price or duration above the marketplace maximum
            PassNotActive: Seller holds no unexpired pass
            CooldownActive: Transfer cooldown has not elapsed
            PaymentNotConfirmed: A transaction reverted
        """
        seller = normalize_address(seller)
        if price <= 0:
            raise ValidationError("Listing price must be positive.")
        if duration <= 0:
            raise ValidationError("Listing duration must be positive.")

        max_duration = await self.contracts.marketplace.max_listing_duration()
        if duration > max_duration:
            raise ValidationError(f"Listing duration cannot exceed {max_duration} seconds.")

        state = await self.contracts.membership.get_pass_state(course_id, seller)
        if state.expiresAt <= to_chain_seconds(now):
            raise PassNotActive(course_id, seller)

        transfer = await self.contracts.membership.can_transfer(course_id, seller)
        if not transfer.eligible:
            logger.warning(f"Listing refused for {seller} on course {course_id}: cooldown until {transfer.availableAt}")
            raise CooldownActive(transfer.availableAt)

        if not await self.contracts.membership.is_approved_for_all(seller, self._operator):
            approval_hash = await self.contracts.membership.set_approval_for_all(
                self._operator, True, account=seller
            )
            await self._confirm(approval_hash)

        tx_hash = await self.contracts.marketplace.create_listing(course_id, price, duration, account=seller)
        await self._confirm(tx_hash)

        quote = quote_sale(price, self.platform_fee_bps())
        logger.info(
            f"Listing created: course={course_id}, seller={seller}, price={price}, "
            f"proceeds={quote.sellerProceeds}, duration={duration}s"
        )
        return tx_hash

    async def cancel_listing(self, course_id: int, seller: str) -> str:
        seller = normalize_address(seller)
        tx_hash = await self.contracts.marketplace.cancel_listing(course_id, account=seller)
        await self._confirm(tx_hash)
        logger.info(f"Listing cancelled: course={course_id}, seller={seller}")
        return tx_hash

    async def buy_listing(self, course_id: int, seller: str, max_price: int, buyer: str) -> PurchaseResult:
        """
        Buy a listed pass. max_price protects against a price change between
        display and submission.

        Raises:
            ListingNotFound: Seller has no active listing
            PriceExceedsMax: Listing price is above max_price
            InsufficientBalance: Buyer cannot cover the price
        """
        seller = normalize_address(seller)
        buyer = normalize_address(buyer)

        listings = await self.contracts.marketplace.get_active_listings(course_id)
        listing = next((entry for entry in listings if entry.seller == seller and entry.active), None)
        if listing is None:
            raise ListingNotFound(course_id, seller)
        if max_price < listing.priceUSDC:
            raise PriceExceedsMax(listing.priceUSDC, max_price)

        await self._ensure_payment(buyer, listing.priceUSDC, purpose="buy this pass")

        tx_hash = await self.contracts.marketplace.buy_listing(course_id, seller, max_price, account=buyer)
        await self._confirm(tx_hash)

        state = await self.contracts.membership.get_pass_state(course_id, buyer)
        logger.info(f"Listing bought: course={course_id}, seller={seller}, buyer={buyer}, price={listing.priceUSDC}")
        return PurchaseResult(txHash=tx_hash, passState=state)

    # ═══════════════════════════════════════════════════════════════════════
    # PRIMARY SALES
    # ═══════════════════════════════════════════════════════════════════════

    async def renew(self, course_id: int, max_price: int, account: str) -> PurchaseResult:
        """Extend the account's own pass at the primary price."""
        account = normalize_address(account)
        config = await self.contracts.membership.get_course(course_id)
        if max_price < config.priceUSDC:
            raise PriceExceedsMax(config.priceUSDC, max_price)

        await self._ensure_payment(account, config.priceUSDC, purpose="renew this pass")

        tx_hash = await self.contracts.marketplace.renew(course_id, max_price, account=account)
        await self._confirm(tx_hash)

        state = await self.contracts.membership.get_pass_state(course_id, account)
        logger.info(f"Pass renewed: course={course_id}, account={account}, expiresAt={state.expiresAt}")
        return PurchaseResult(txHash=tx_hash, passState=state)

    async def purchase_primary(self, course_id: int, buyer: str, max_price: Optional[int] = None) -> PurchaseResult:
        """
        Mint a pass at the primary price.

        Raises:
            CourseNotFound: Course is not registered
            PriceExceedsMax: Primary price is above max_price
            InsufficientBalance: Buyer cannot cover the price
            PaymentNotConfirmed: A transaction reverted
            PassNotActive: Purchase confirmed but no pass is held afterwards
        """
        buyer = normalize_address(buyer)
        config = await self.contracts.membership.get_course(course_id)
        price = config.priceUSDC
        if max_price is not None and max_price < price:
            raise PriceExceedsMax(price, max_price)

        await self._ensure_payment(buyer, price, purpose="join this group")

        tx_hash = await self.contracts.marketplace.purchase_primary(course_id, price, account=buyer)
        await self._confirm(tx_hash)

        state = await self.contracts.membership.get_pass_state(course_id, buyer)
        balance = await self.contracts.membership.balance_of(buyer, course_id)
        if balance <= 0:
            logger.error(f"Pass not detected after purchase {tx_hash} for {buyer}")
            raise PassNotActive(course_id, buyer)

        logger.info(f"Primary purchase: course={course_id}, buyer={buyer}, expiresAt={state.expiresAt}")
        return PurchaseResult(txHash=tx_hash, passState=state)

    # ═══════════════════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════════════════

    async def _ensure_payment(self, account: str, amount: int, purpose: str) -> None:
        """Balance check, then approve the marketplace and wait if the allowance is short."""
        usdc = self.contracts.usdc

        balance = await usdc.balance_of(account)
        if balance < amount:
            raise InsufficientBalance(amount, balance, purpose=purpose)

        allowance = await usdc.allowance(account, self._operator)
        if allowance < amount:
            approval_hash = await usdc.approve(self._operator, account=account)
            await self._confirm(approval_hash)

    async def _confirm(self, tx_hash: str) -> None:
        receipt = await self.contracts.client.wait_for_receipt(tx_hash)
        if not receipt.success:
            raise PaymentNotConfirmed(tx_hash)
