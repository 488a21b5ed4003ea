"""
Base class for contract wrappers.
"""
from typing import Optional

from core.exceptions import ValidationError
from onchain.client import ChainClient
from utils.wallet_validator import normalize_address


class OnchainService:
    """Binds a chain client to one contract address and an optional default account."""

    def __init__(self, client: ChainClient, address: str, account: Optional[str] = None):
        self.client = client
        self.address = normalize_address(address)
        self.account = normalize_address(account) if account else None

    def resolve_account(self, account: Optional[str] = None) -> str:
        resolved = normalize_address(account) if account else self.account
        if not resolved:
            raise ValidationError("Account required for this operation")
        return resolved

    async def _read(self, function: str, *args):
        return await self.client.read(self.address, function, args)

    async def _write(self, function: str, args, account: Optional[str] = None) -> str:
        return await self.client.write(self.address, function, list(args), self.resolve_account(account))
