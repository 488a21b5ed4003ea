"""
Chain RPC client.

Talks JSON-RPC 2.0 over HTTP to the configured contract gateway:
    contract_read              synchronous state read
    contract_write             transaction submission, returns a tx hash
    eth_getTransactionReceipt  receipt lookup

ABI encoding and signing belong to the gateway/wallet side; this client only
moves typed arguments and results. Timeouts are enforced here and never retried.
"""
import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import aiohttp

from config import Config
from core.exceptions import ChainRpcError

logger = logging.getLogger(__name__)

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


@dataclass(frozen=True)
class TokenTransfer:
    """ERC-20 Transfer event emitted by a transaction."""
    token: str
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class TxReceipt:
    """Mined transaction receipt."""
    txHash: str
    success: bool
    blockNumber: Optional[int] = None
    fromAddress: Optional[str] = None
    toAddress: Optional[str] = None
    transfers: Tuple[TokenTransfer, ...] = ()


def _encode_arg(value: Any) -> Any:
    """Integers travel as decimal strings (course ids exceed 2^53)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_encode_arg(item) for item in value]
    return value


def _parse_receipt(tx_hash: str, raw: Any) -> Optional[TxReceipt]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise ChainRpcError(f"Unexpected receipt shape for {tx_hash}: {raw!r}")

    status = raw.get("status")
    if isinstance(status, str):
        success = int(status, 16) == 1 if status.startswith("0x") else status.lower() in ("1", "success")
    else:
        success = bool(status)

    block = raw.get("blockNumber")
    if isinstance(block, str):
        block = int(block, 16) if block.startswith("0x") else int(block)

    return TxReceipt(
        txHash=tx_hash,
        success=success,
        blockNumber=block,
        fromAddress=_lower(raw.get("from")),
        toAddress=_lower(raw.get("to")),
        transfers=_parse_transfers(raw.get("logs"))
    )


def _lower(value: Any) -> Optional[str]:
    return value.strip().lower() if isinstance(value, str) and value.strip() else None


def _parse_transfers(logs: Any) -> Tuple[TokenTransfer, ...]:
    """
    ERC-20 Transfer events from receipt logs.

    topics[1]/topics[2] hold the 32-byte padded sender/recipient; the last 40
    hex chars are the address. Logs with a fourth topic are ERC-721 transfers
    and are skipped.
    """
    transfers = []
    for log in logs or []:
        if not isinstance(log, dict):
            continue
        topics = [str(topic).lower() for topic in log.get("topics") or []]
        if len(topics) != 3 or topics[0] != TRANSFER_TOPIC:
            continue
        data = log.get("data") or "0x"
        transfers.append(TokenTransfer(
            token=_lower(log.get("address")) or "",
            sender="0x" + topics[1][-40:],
            recipient="0x" + topics[2][-40:],
            amount=int(data, 16) if data not in ("0x", "0X") else 0
        ))
    return tuple(transfers)


class ChainClient:
    """
    JSON-RPC client for the blockchain collaborator.

    Usage:
        client = ChainClient.from_config()
        raw = await client.read(address, "getCourse", [course_id])
        tx_hash = await client.write(address, "renew", [course_id, max_price], account)
        receipt = await client.wait_for_receipt(tx_hash)
    """

    def __init__(
            self,
            rpc_url: str,
            timeout_seconds: float = 120,
            poll_interval_seconds: float = 2,
            chain_id: Optional[int] = None
    ):
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._ids = itertools.count(1)

    @classmethod
    def from_config(cls) -> "ChainClient":
        return cls(
            rpc_url=Config.require(Config.RPC_URL),
            timeout_seconds=Config.get(Config.RPC_TIMEOUT_SECONDS, 120),
            poll_interval_seconds=Config.get(Config.RECEIPT_POLL_INTERVAL_SECONDS, 2),
            chain_id=Config.get(Config.CHAIN_ID),
        )

    # ═══════════════════════════════════════════════════════════════════════
    # TRANSPORT
    # ═══════════════════════════════════════════════════════════════════════

    async def _request(self, method: str, params: Any) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.rpc_url, json=payload) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise ChainRpcError(f"RPC HTTP {response.status}: {text[:200]}")
                    data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            raise ChainRpcError(f"RPC request {method} timed out after {self.timeout_seconds}s")
        except aiohttp.ClientError as e:
            raise ChainRpcError(f"RPC transport error on {method}: {e}")

        if not isinstance(data, dict):
            raise ChainRpcError(f"Malformed RPC response to {method}: {data!r}")

        error = data.get("error")
        if error:
            message = error.get("message", "RPC error") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            details = error.get("data") if isinstance(error, dict) else None
            logger.debug(f"RPC {method} failed: {message} ({details})")
            raise ChainRpcError(message, code=code, data=details)

        return data.get("result")

    # ═══════════════════════════════════════════════════════════════════════
    # CONTRACT CALLS
    # ═══════════════════════════════════════════════════════════════════════

    async def read(self, contract: str, function: str, args: Sequence[Any] = ()) -> Any:
        """Synchronous state read; returns the raw (tuple or struct) result."""
        return await self._request("contract_read", {
            "address": contract,
            "function": function,
            "args": _encode_arg(list(args)),
        })

    async def write(self, contract: str, function: str, args: Sequence[Any], account: str) -> str:
        """Submit a transaction; returns the pending tx hash."""
        params = {
            "address": contract,
            "function": function,
            "args": _encode_arg(list(args)),
            "from": account,
        }
        if self.chain_id is not None:
            params["chainId"] = self.chain_id
        result = await self._request("contract_write", params)
        if not isinstance(result, str) or not result:
            raise ChainRpcError(f"Gateway returned no tx hash for {function}: {result!r}")
        logger.info(f"Submitted {function} on {contract[:10]}... from {account[:10]}...: {result}")
        return result

    async def get_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        """Receipt if the transaction is mined, otherwise None."""
        raw = await self._request("eth_getTransactionReceipt", [tx_hash])
        return _parse_receipt(tx_hash, raw)

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        """
        Block until the transaction is mined.

        Raises:
            ChainRpcError: If no receipt appears within the client timeout
        """
        deadline = time.monotonic() + self.timeout_seconds

        while True:
            receipt = await self.get_receipt(tx_hash)
            if receipt is not None:
                logger.info(f"Receipt for {tx_hash}: success={receipt.success}")
                return receipt
            if time.monotonic() >= deadline:
                raise ChainRpcError(f"Timed out waiting for receipt of {tx_hash}")
            await asyncio.sleep(self.poll_interval_seconds)


__all__ = ['ChainClient', 'TokenTransfer', 'TxReceipt', 'TRANSFER_TOPIC']
