"""Wallet balance reads.

Token balances are read with one Multicall3 ``aggregate3`` call on networks
that support it, or with one ``balanceOf`` call per token otherwise. A
failing token never fails the others. The native balance is a separate
``eth_getBalance`` read.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address
from pydantic import BaseModel, Field

from swaptx.encoding import encode_erc20_balance_of
from swaptx.errors import SwapTxError, UnreachableNetworkError
from swaptx.networks import Asset, Network
from swaptx.rpc import RpcPool

logger = logging.getLogger(__name__)

# Multicall3 is deployed at the same address on every supported chain
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"
# aggregate3((address,bool,bytes)[])
AGGREGATE3_SELECTOR = bytes.fromhex("82ad56cb")


class Balance(BaseModel):
    """Balance of a single asset at resolution time."""

    network: str = Field(..., description="Network internal name")
    token: str = Field(..., description="Asset symbol")
    amount: Decimal = Field(..., description="Balance in human-readable units")
    amount_raw: int = Field(..., description="Balance in base units")
    decimals: int = Field(..., description="Asset decimals")
    is_native_currency: bool = Field(default=False)
    request_time: datetime = Field(..., description="When the balance was resolved (UTC)")


class BalanceFailure(BaseModel):
    """A token whose balance could not be read."""

    token: str
    error: str


class BalanceReport(BaseModel):
    """Token balances for one address on one network."""

    network: str
    address: str
    balances: list[Balance] = Field(default_factory=list)
    failures: list[BalanceFailure] = Field(default_factory=list)


def format_amount(raw: Optional[int], decimals: int) -> Decimal:
    """Scale a base-unit amount down by ``decimals``."""
    return Decimal(int(raw or 0)).scaleb(-decimals)


def _balance(network: Network, asset: Asset, raw: int) -> Balance:
    return Balance(
        network=network.internal_name,
        token=asset.symbol,
        amount=format_amount(raw, asset.decimals),
        amount_raw=raw,
        decimals=asset.decimals,
        is_native_currency=asset.is_native,
        request_time=datetime.now(timezone.utc),
    )


def encode_aggregate3(calls: Sequence[tuple[str, bytes]]) -> bytes:
    """ABI-encode a Multicall3 ``aggregate3`` call allowing per-call failure."""
    return AGGREGATE3_SELECTOR + encode(
        ["(address,bool,bytes)[]"],
        [[(to_checksum_address(target), True, data) for target, data in calls]],
    )


def decode_aggregate3(result: bytes) -> list[tuple[bool, bytes]]:
    """Decode ``aggregate3`` return data into (success, returnData) pairs."""
    return [(bool(ok), bytes(data)) for ok, data in decode(["(bool,bytes)[]"], result)[0]]


class BalanceResolver:
    """Resolves native and token balances through the RPC pool."""

    def __init__(self, rpc_pool: RpcPool):
        self.rpc_pool = rpc_pool

    async def get_balances(
        self,
        address: str,
        network: Network,
        assets: Optional[Sequence[Asset]] = None,
    ) -> BalanceReport:
        """Read token balances for every active, contract-backed asset.

        Raises:
            UnreachableNetworkError: the batched read could not be issued
        """
        assets = [a for a in (network.assets if assets is None else assets)
                  if a.contract_address and a.is_active]
        report = BalanceReport(network=network.internal_name, address=address)
        if not assets:
            return report

        logger.info(
            f"Fetching {len(assets)} token balances for {address} on {network.internal_name}"
        )

        if network.has_multicall:
            await self._read_batched(address, network, assets, report)
        else:
            await self._read_sequential(address, network, assets, report)

        if report.failures:
            logger.warning(
                f"{len(report.failures)} of {len(assets)} balance reads failed "
                f"on {network.internal_name}"
            )
        return report

    async def _read_batched(
        self,
        address: str,
        network: Network,
        assets: list[Asset],
        report: BalanceReport,
    ) -> None:
        client = self.rpc_pool.get_client(network.internal_name)
        call_data = encode_erc20_balance_of(address)
        calls = [(asset.contract_address, call_data) for asset in assets]

        try:
            result = await client.call(MULTICALL3_ADDRESS, encode_aggregate3(calls))
            results = decode_aggregate3(result)
        except UnreachableNetworkError:
            raise
        except (SwapTxError, DecodingError) as e:
            logger.error(f"Multicall balance read failed on {network.internal_name}: {e}")
            raise UnreachableNetworkError(
                f"Batched balance read failed on {network.internal_name}: {e}", cause=e
            ) from e

        for asset, (success, return_data) in zip(assets, results):
            if not success or len(return_data) < 32:
                report.failures.append(
                    BalanceFailure(token=asset.symbol, error="balanceOf call failed")
                )
                continue
            (raw,) = decode(["uint256"], return_data)
            report.balances.append(_balance(network, asset, raw))

        for asset in assets[len(results):]:
            report.failures.append(
                BalanceFailure(token=asset.symbol, error="missing from multicall result")
            )

    async def _read_sequential(
        self,
        address: str,
        network: Network,
        assets: list[Asset],
        report: BalanceReport,
    ) -> None:
        client = self.rpc_pool.get_client(network.internal_name)
        call_data = encode_erc20_balance_of(address)

        for asset in assets:
            try:
                result = await client.call(asset.contract_address, call_data)
                (raw,) = decode(["uint256"], result)
            except Exception as e:
                logger.warning(f"Failed to get {asset.symbol} balance on {network.internal_name}: {e}")
                report.failures.append(BalanceFailure(token=asset.symbol, error=str(e)))
                continue
            report.balances.append(_balance(network, asset, raw))

    async def get_native_balance(self, address: str, network: Network) -> Optional[Balance]:
        """Read the native currency balance, or None if the read fails."""
        native = network.native_asset()
        if native is None:
            logger.warning(f"No native asset configured for {network.internal_name}")
            return None

        try:
            client = self.rpc_pool.get_client(network.internal_name)
            raw = await client.get_balance(address)
        except SwapTxError as e:
            logger.error(f"Failed to get native balance on {network.internal_name}: {e}")
            return None

        return _balance(network, native, raw)
