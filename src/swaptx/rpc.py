"""JSON-RPC client for EVM networks.

Thin async wrapper over ``eth_*`` methods using httpx. Transport failures
raise UnreachableNetworkError, JSON-RPC error objects raise RpcError, and
gas estimation / broadcast failures are wrapped in the provider markers the
classifier understands.
"""

import asyncio
import itertools
import logging
from typing import Any, Optional, Union

import httpx

from swaptx.config import Settings, get_settings
from swaptx.errors import (
    EstimateGasExecutionError,
    InsufficientFundsError,
    RpcError,
    UnreachableNetworkError,
)

logger = logging.getLogger(__name__)

INSUFFICIENT_FUNDS_MESSAGES = (
    "insufficient funds",
    "insufficient balance",
)


def to_hex(value: int) -> str:
    """Encode an integer as a JSON-RPC quantity."""
    return hex(value)


def from_hex(value: Optional[str]) -> int:
    """Decode a JSON-RPC quantity (None and '0x' decode to 0)."""
    if not value or value == "0x":
        return 0
    return int(value, 16)


def data_to_hex(data: Union[bytes, str]) -> str:
    """Encode call-data as 0x-prefixed hex."""
    if isinstance(data, (bytes, bytearray)):
        return "0x" + bytes(data).hex()
    return data if data.startswith("0x") else f"0x{data}"


def _is_insufficient_funds(error: RpcError) -> bool:
    message = (error.message or "").lower()
    return any(marker in message for marker in INSUFFICIENT_FUNDS_MESSAGES)


class RpcClient:
    """Async JSON-RPC 2.0 client bound to one network."""

    def __init__(
        self,
        rpc_url: str,
        network: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.network = network
        self.timeout = timeout
        self._transport = transport
        self._ids = itertools.count(1)

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """Send one JSON-RPC request and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"RPC {method} on {self.network or self.rpc_url} failed: {e}")
            raise UnreachableNetworkError(
                f"Could not reach {self.network or self.rpc_url}: {e}", cause=e
            ) from e

        if response.status_code != 200:
            raise UnreachableNetworkError(
                f"RPC {method} returned HTTP {response.status_code}",
                code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UnreachableNetworkError(f"RPC {method} returned invalid JSON", cause=e) from e

        if not isinstance(data, dict):
            raise UnreachableNetworkError(
                f"RPC {method} returned a {type(data).__name__} instead of a JSON-RPC response"
            )

        error = data.get("error")
        if error:
            raise RpcError(
                error.get("message", ""),
                code=error.get("code"),
                data=error.get("data"),
            )

        return data.get("result")

    # ======================
    # Reads
    # ======================

    async def chain_id(self) -> int:
        return from_hex(await self.request("eth_chainId"))

    async def get_balance(self, address: str, block: str = "latest") -> int:
        """Native balance in wei."""
        return from_hex(await self.request("eth_getBalance", [address, block]))

    async def call(self, to: str, data: Union[bytes, str], block: str = "latest") -> bytes:
        """Execute a read-only call and return the raw return data."""
        result = await self.request(
            "eth_call", [{"to": to, "data": data_to_hex(data)}, block]
        )
        if not result or result == "0x":
            return b""
        return bytes.fromhex(result[2:])

    async def gas_price(self) -> int:
        return from_hex(await self.request("eth_gasPrice"))

    async def max_priority_fee_per_gas(self) -> int:
        return from_hex(await self.request("eth_maxPriorityFeePerGas"))

    async def get_block(self, tag: str = "latest") -> Optional[dict]:
        return await self.request("eth_getBlockByNumber", [tag, False])

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return from_hex(await self.request("eth_getTransactionCount", [address, block]))

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        return await self.request("eth_getTransactionReceipt", [tx_hash])

    # ======================
    # Simulation / writes
    # ======================

    async def estimate_gas(
        self,
        sender: str,
        to: str,
        data: Union[bytes, str] = b"",
        value: int = 0,
    ) -> int:
        """Simulate a transaction and return its gas unit limit.

        Raises:
            EstimateGasExecutionError: the node refused to execute the call
            UnreachableNetworkError: transport failure
        """
        tx = {"from": sender, "to": to, "value": to_hex(value)}
        if data:
            tx["data"] = data_to_hex(data)

        try:
            return from_hex(await self.request("eth_estimateGas", [tx]))
        except RpcError as e:
            cause: Exception = e
            if _is_insufficient_funds(e):
                cause = InsufficientFundsError(e.message, code=e.code, data=e.data, cause=e)
            raise EstimateGasExecutionError(
                f"Gas estimation failed: {e.message}",
                code=e.code,
                data=e.data,
                cause=cause,
            ) from e

    async def send_raw_transaction(self, raw_tx: Union[bytes, str]) -> str:
        """Broadcast a signed transaction and return its hash."""
        try:
            return await self.request("eth_sendRawTransaction", [data_to_hex(raw_tx)])
        except RpcError as e:
            if _is_insufficient_funds(e):
                raise InsufficientFundsError(
                    e.message, code=e.code, data=e.data, cause=e
                ) from e
            raise

    async def wait_for_receipt(
        self,
        tx_hash: str,
        timeout: float = 180.0,
        poll_interval: float = 4.0,
    ) -> Optional[dict]:
        """Poll for a receipt until it appears or ``timeout`` elapses.

        Returns None on timeout. Transient transport errors are retried until
        the deadline.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            try:
                receipt = await self.get_transaction_receipt(tx_hash)
                if receipt is not None:
                    return receipt
            except UnreachableNetworkError as e:
                logger.warning(f"Receipt poll for {tx_hash} failed, retrying: {e}")

            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(poll_interval, remaining))


class RpcPool:
    """Lazily creates and caches one RpcClient per network."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._clients: dict[str, RpcClient] = {}

    def get_client(self, network: str) -> RpcClient:
        """Get the client for a network.

        Raises:
            UnreachableNetworkError: if no RPC URL is configured
        """
        key = network.upper()
        if key in self._clients:
            return self._clients[key]

        rpc_url = self.settings.get_rpc_url(key)
        if not rpc_url:
            raise UnreachableNetworkError(f"No RPC endpoint configured for {network}")

        client = RpcClient(
            rpc_url,
            network=key,
            timeout=self.settings.rpc_timeout,
            transport=self._transport,
        )
        self._clients[key] = client
        return client

    def clear(self) -> None:
        """Drop cached clients (useful for testing)."""
        self._clients.clear()
