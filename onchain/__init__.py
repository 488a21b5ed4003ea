"""
On-chain collaborator: RPC client, typed decoders and contract wrappers.
"""
from dataclasses import dataclass

from onchain.client import ChainClient, TokenTransfer, TxReceipt
from onchain.erc20 import Erc20Token, MAX_UINT256
from onchain.marketplace import MarketplaceContract
from onchain.membership_pass import MembershipPassContract
from onchain.registrar import RegistrarContract


@dataclass
class ChainContracts:
    """All contracts the engine talks to, bound to one client."""
    client: ChainClient
    membership: MembershipPassContract
    marketplace: MarketplaceContract
    registrar: RegistrarContract
    usdc: Erc20Token

    @classmethod
    def from_config(cls, client: ChainClient = None) -> "ChainContracts":
        from config import Config

        client = client or ChainClient.from_config()
        return cls(
            client=client,
            membership=MembershipPassContract(client, Config.require(Config.MEMBERSHIP_CONTRACT_ADDRESS)),
            marketplace=MarketplaceContract(client, Config.require(Config.MARKETPLACE_CONTRACT_ADDRESS)),
            registrar=RegistrarContract(client, Config.require(Config.REGISTRAR_CONTRACT_ADDRESS)),
            usdc=Erc20Token(client, Config.require(Config.USDC_CONTRACT_ADDRESS)),
        )


__all__ = [
    'ChainClient',
    'TokenTransfer',
    'TxReceipt',
    'ChainContracts',
    'Erc20Token',
    'MAX_UINT256',
    'MarketplaceContract',
    'MembershipPassContract',
    'RegistrarContract',
]
