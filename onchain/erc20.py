"""
ERC-20 payment token wrapper (USDC).
"""
from typing import Optional

from onchain.base import OnchainService
from onchain.decoders import decode_uint

MAX_UINT256 = 2 ** 256 - 1


class Erc20Token(OnchainService):

    async def balance_of(self, account: str) -> int:
        return decode_uint(await self._read("balanceOf", account))

    async def allowance(self, owner: str, spender: str) -> int:
        return decode_uint(await self._read("allowance", owner, spender))

    async def approve(self, spender: str, amount: int = MAX_UINT256, account: Optional[str] = None) -> str:
        return await self._write("approve", [spender, amount], account)

    async def transfer(self, recipient: str, amount: int, account: Optional[str] = None) -> str:
        return await self._write("transfer", [recipient, amount], account)
