"""
Registrar contract wrapper: one-time course registration by the owner.
"""
from typing import List, Optional

from onchain.base import OnchainService


class RegistrarContract(OnchainService):

    async def register_course(
            self,
            course_id: int,
            price_usdc: int,
            recipients: List[str],
            shares_bps: List[int],
            duration_seconds: int,
            transfer_cooldown_seconds: int,
            account: Optional[str] = None
    ) -> str:
        return await self._write(
            "registerCourse",
            [course_id, price_usdc, recipients, shares_bps, duration_seconds, transfer_cooldown_seconds],
            account
        )
