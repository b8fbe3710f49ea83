"""Network fee estimation for transfers.

The dispatcher looks up the network's fee strategy in a static map and
delegates to one of two strategies:

- StandardGasStrategy: simulate the exact payload (tag included) and price
  it with ``maxFeePerGas`` or ``gasPrice``.
- RollupL1FeeGasStrategy: OP-stack chains, where the fee is the L2
  execution cost plus the L1 data fee quoted by the GasPriceOracle.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

import rlp
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_bytes, to_checksum_address

from swaptx.balances import format_amount
from swaptx.encoding import (
    EncodedPayload,
    correlation_tag,
    encode_erc20_transfer,
    encode_transfer,
)
from swaptx.errors import (
    EstimateGasExecutionError,
    FeeUnavailableError,
    GasEstimationRevertedError,
    InsufficientFundsError,
    RpcError,
)
from swaptx.fees import FeeDataResolver, wei_to_gwei
from swaptx.networks import FEE_STRATEGIES, Asset, FeeStrategy, Network, get_fee_strategy
from swaptx.rpc import RpcClient, RpcPool

logger = logging.getLogger(__name__)

# Used for fee previews before the swap's sequence number is known
REPRESENTATIVE_SEQUENCE_NUMBER = 99999999

# OP-stack GasPriceOracle predeploy
GAS_PRICE_ORACLE_ADDRESS = "0x420000000000000000000000000000000000000F"
GET_L1_FEE_SELECTOR = function_signature_to_4byte_selector("getL1Fee(bytes)")

# Representative transfer priced by the roll-up strategy
DUMMY_ADDRESS = "0x3535353535353535353535353535353535353535"
DUMMY_AMOUNT = 1_000_000_000

SIMULATION_ERRORS = (EstimateGasExecutionError, InsufficientFundsError, RpcError)


@dataclass(frozen=True)
class GasDetails:
    """Breakdown of a standard fee estimate. Prices are in gwei."""
    gas_limit: int
    gas_price: Decimal
    max_fee_per_gas: Optional[Decimal] = None
    max_priority_fee_per_gas: Optional[Decimal] = None


@dataclass(frozen=True)
class FeeEstimate:
    """Normalized network fee for one transfer."""
    fee: Decimal                      # in native currency units
    token: str                        # native currency symbol
    strategy: FeeStrategy = FeeStrategy.STANDARD
    details: Optional[GasDetails] = None


async def simulate_gas(client: RpcClient, account: str, payload: EncodedPayload) -> int:
    """Estimate the gas limit of ``payload`` sent from ``account``.

    Raises:
        GasEstimationRevertedError: the simulated call reverted
    """
    try:
        return await client.estimate_gas(
            sender=account,
            to=payload.to,
            data=payload.data,
            value=payload.value,
        )
    except SIMULATION_ERRORS as e:
        logger.warning(f"Gas simulation reverted on {client.network}: {e}")
        raise GasEstimationRevertedError(
            f"Transfer simulation reverted: {e}", code=e.code, data=e.data, cause=e
        ) from e


class GasStrategy(ABC):
    """Computes the network fee for an encoded payload."""

    strategy: FeeStrategy

    @abstractmethod
    async def estimate(
        self,
        client: RpcClient,
        network: Network,
        native: Asset,
        account: str,
        payload: EncodedPayload,
    ) -> FeeEstimate:
        pass


class StandardGasStrategy(GasStrategy):
    """gas limit x (maxFeePerGas or gasPrice)."""

    strategy = FeeStrategy.STANDARD

    def __init__(self, fee_resolver: FeeDataResolver):
        self.fee_resolver = fee_resolver

    async def estimate(
        self,
        client: RpcClient,
        network: Network,
        native: Asset,
        account: str,
        payload: EncodedPayload,
    ) -> FeeEstimate:
        fee_data = await self.fee_resolver.get_fee_data(network.internal_name)
        if fee_data is None:
            raise FeeUnavailableError(f"Fee data unavailable for {network.display_name}")

        gas_limit = await simulate_gas(client, account, payload)
        total_wei = fee_data.effective_price * gas_limit

        return FeeEstimate(
            fee=format_amount(total_wei, native.decimals),
            token=native.symbol,
            strategy=self.strategy,
            details=GasDetails(
                gas_limit=gas_limit,
                gas_price=wei_to_gwei(fee_data.gas_price),
                max_fee_per_gas=wei_to_gwei(fee_data.max_fee_per_gas),
                max_priority_fee_per_gas=wei_to_gwei(fee_data.max_priority_fee_per_gas),
            ),
        )


def serialize_unsigned_eip1559(
    chain_id: int,
    nonce: int,
    max_priority_fee_per_gas: int,
    max_fee_per_gas: int,
    gas: int,
    to: str,
    value: int,
    data: bytes,
) -> bytes:
    """RLP-serialize an unsigned type-2 transaction."""
    return b"\x02" + rlp.encode([
        chain_id,
        nonce,
        max_priority_fee_per_gas,
        max_fee_per_gas,
        gas,
        to_bytes(hexstr=to),
        value,
        data,
        [],
    ])


class RollupL1FeeGasStrategy(GasStrategy):
    """L2 execution fee plus the L1 data publishing fee."""

    strategy = FeeStrategy.ROLLUP_L1_FEE

    async def estimate(
        self,
        client: RpcClient,
        network: Network,
        native: Asset,
        account: str,
        payload: EncodedPayload,
    ) -> FeeEstimate:
        data = encode_erc20_transfer(DUMMY_ADDRESS, DUMMY_AMOUNT)
        if payload.tagged:
            data += bytes.fromhex(correlation_tag(REPRESENTATIVE_SEQUENCE_NUMBER))
        sample = EncodedPayload(to=to_checksum_address(DUMMY_ADDRESS), data=data)

        gas_limit = await simulate_gas(client, account, sample)

        try:
            gas_price = await client.gas_price()
            nonce = await client.get_transaction_count(account)
            serialized = serialize_unsigned_eip1559(
                chain_id=network.chain_id,
                nonce=nonce,
                max_priority_fee_per_gas=gas_price,
                max_fee_per_gas=gas_price,
                gas=gas_limit,
                to=sample.to,
                value=0,
                data=sample.data,
            )
            result = await client.call(
                GAS_PRICE_ORACLE_ADDRESS,
                GET_L1_FEE_SELECTOR + encode(["bytes"], [serialized]),
            )
            (l1_fee,) = decode(["uint256"], result)
        except (RpcError, DecodingError) as e:
            logger.warning(f"L1 fee unavailable for {network.internal_name}: {e}")
            raise FeeUnavailableError(
                f"L1 fee unavailable for {network.display_name}", cause=e
            ) from e

        total_wei = gas_limit * gas_price + l1_fee
        return FeeEstimate(
            fee=format_amount(total_wei, native.decimals),
            token=native.symbol,
            strategy=self.strategy,
        )


class GasDispatcher:
    """Selects the fee strategy for a network and returns its estimate."""

    def __init__(
        self,
        rpc_pool: RpcPool,
        fee_resolver: Optional[FeeDataResolver] = None,
        fee_strategies: Optional[dict[str, FeeStrategy]] = None,
    ):
        self.rpc_pool = rpc_pool
        self.fee_strategies = FEE_STRATEGIES if fee_strategies is None else fee_strategies
        fee_resolver = fee_resolver or FeeDataResolver(rpc_pool)
        self._strategies: dict[FeeStrategy, GasStrategy] = {
            FeeStrategy.STANDARD: StandardGasStrategy(fee_resolver),
            FeeStrategy.ROLLUP_L1_FEE: RollupL1FeeGasStrategy(),
        }

    def strategy_for(self, network: Network) -> GasStrategy:
        return self._strategies[get_fee_strategy(network.internal_name, self.fee_strategies)]

    async def resolve_gas(
        self,
        network: Network,
        asset: Asset,
        account: str,
        destination: str,
        ultimate_owner: Optional[str],
        amount: Union[Decimal, str, int] = 0,
        sequence_number: int = REPRESENTATIVE_SEQUENCE_NUMBER,
    ) -> FeeEstimate:
        """Encode the transfer (tag included) and estimate its fee.

        Raises:
            InvalidAmountError: amount cannot be scaled to the asset precision
            FeeUnavailableError: fee parameters could not be read
            GasEstimationRevertedError: the transfer simulation reverted
        """
        payload = encode_transfer(
            asset, amount, destination, account, ultimate_owner, sequence_number
        )
        return await self.estimate_payload(network, account, payload)

    async def estimate_payload(
        self,
        network: Network,
        account: str,
        payload: EncodedPayload,
    ) -> FeeEstimate:
        """Estimate the fee of an already encoded payload."""
        native = network.native_asset()
        if native is None:
            raise FeeUnavailableError(f"No native asset configured for {network.internal_name}")

        strategy = self.strategy_for(network)
        client = self.rpc_pool.get_client(network.internal_name)
        estimate = await strategy.estimate(client, network, native, account, payload)

        logger.info(
            f"Estimated {strategy.strategy.value} fee on {network.internal_name}: "
            f"{estimate.fee} {estimate.token}"
        )
        return estimate
