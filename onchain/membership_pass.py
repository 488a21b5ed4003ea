"""
MembershipPass (ERC-1155) contract wrapper: course config and per-holder pass state.
"""
from typing import Optional

from core.exceptions import ChainRpcError
from onchain.base import OnchainService
from onchain.decoders import (
    CourseConfig, PassState, TransferCheck,
    decode_bool, decode_course_config, decode_pass_state, decode_transfer_check, decode_uint,
)
from onchain.errors import raise_for_revert


class MembershipPassContract(OnchainService):

    async def get_course(self, course_id: int) -> CourseConfig:
        """
        Raises:
            CourseNotFound: Course id is not registered
            ChainRpcError: Any other RPC failure
        """
        try:
            raw = await self._read("getCourse", course_id)
        except ChainRpcError as e:
            raise_for_revert(e, course_id=course_id)
        return decode_course_config(raw)

    async def has_pass(self, account: str, course_id: int) -> bool:
        return decode_bool(await self._read("hasPass", account, course_id))

    async def is_pass_active(self, course_id: int, account: str) -> bool:
        return decode_bool(await self._read("isPassActive", course_id, account))

    async def get_pass_state(self, course_id: int, account: str) -> PassState:
        return decode_pass_state(await self._read("getPassState", course_id, account))

    async def can_transfer(self, course_id: int, account: str) -> TransferCheck:
        return decode_transfer_check(await self._read("canTransfer", course_id, account))

    async def balance_of(self, account: str, course_id: int) -> int:
        return decode_uint(await self._read("balanceOf", account, course_id))

    async def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return decode_bool(await self._read("isApprovedForAll", owner, operator))

    async def set_approval_for_all(self, operator: str, approved: bool, account: Optional[str] = None) -> str:
        return await self._write("setApprovalForAll", [operator, approved], account)

    async def set_price(self, course_id: int, new_price: int, account: Optional[str] = None) -> str:
        return await self._write("setPrice", [course_id, new_price], account)

    async def set_course_config(
            self,
            course_id: int,
            duration: int,
            transfer_cooldown: int,
            account: Optional[str] = None
    ) -> str:
        return await self._write("setCourseConfig", [course_id, duration, transfer_cooldown], account)
