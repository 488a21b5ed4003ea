"""
Marketplace contract wrapper: primary sales, renewals and the secondary listing book.
"""
from typing import List, Optional

from core.exceptions import ChainRpcError
from onchain.base import OnchainService
from onchain.decoders import Listing, decode_listing, decode_listings, decode_uint
from onchain.errors import raise_for_revert
from utils.wallet_validator import normalize_address


class MarketplaceContract(OnchainService):

    async def purchase_primary(self, course_id: int, max_price: int, account: Optional[str] = None) -> str:
        try:
            return await self._write("purchasePrimary", [course_id, max_price], account)
        except ChainRpcError as e:
            raise_for_revert(e, course_id=course_id)

    async def renew(self, course_id: int, max_price: int, account: Optional[str] = None) -> str:
        try:
            return await self._write("renew", [course_id, max_price], account)
        except ChainRpcError as e:
            raise_for_revert(e, course_id=course_id)

    async def create_listing(
            self,
            course_id: int,
            price_usdc: int,
            duration_seconds: int,
            account: Optional[str] = None
    ) -> str:
        try:
            return await self._write("createListing", [course_id, price_usdc, duration_seconds], account)
        except ChainRpcError as e:
            raise_for_revert(e, course_id=course_id)

    async def cancel_listing(self, course_id: int, account: Optional[str] = None) -> str:
        return await self._write("cancelListing", [course_id], account)

    async def buy_listing(self, course_id: int, seller: str, max_price: int, account: Optional[str] = None) -> str:
        try:
            return await self._write("buyListing", [course_id, normalize_address(seller), max_price], account)
        except ChainRpcError as e:
            raise_for_revert(e, course_id=course_id)

    async def get_listing(self, course_id: int, seller: str) -> Listing:
        return decode_listing(await self._read("getListing", course_id, normalize_address(seller)))

    async def get_active_listings(self, course_id: int) -> List[Listing]:
        return decode_listings(await self._read("getActiveListings", course_id))

    async def platform_fee_bps(self) -> int:
        return decode_uint(await self._read("platformFeeBps"))

    async def treasury(self) -> str:
        return normalize_address(await self._read("treasury"))

    async def max_listing_duration(self) -> int:
        return decode_uint(await self._read("maxListingDuration"))
