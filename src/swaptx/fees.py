"""Network fee parameter reads.

Fee display is advisory: any read failure degrades to ``None`` instead of
raising, and the caller decides whether a fee is strictly required.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from swaptx.errors import SwapTxError
from swaptx.rpc import RpcPool, from_hex

logger = logging.getLogger(__name__)

GWEI = Decimal(10**9)


@dataclass(frozen=True)
class FeeData:
    """Current fee parameters in wei.

    The EIP-1559 fields are None on chains without a base fee.
    """
    gas_price: int
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None

    @property
    def supports_eip1559(self) -> bool:
        return self.max_fee_per_gas is not None

    @property
    def effective_price(self) -> int:
        """Per-gas price used for the fee total."""
        return self.max_fee_per_gas if self.max_fee_per_gas is not None else self.gas_price


def wei_to_gwei(value: Optional[int]) -> Optional[Decimal]:
    """Scale a per-gas wei price to gwei."""
    if value is None:
        return None
    return Decimal(value) / GWEI


class FeeDataResolver:
    """Reads legacy and EIP-1559 fee parameters for a network."""

    def __init__(self, rpc_pool: RpcPool, base_fee_multiplier: Optional[float] = None):
        self.rpc_pool = rpc_pool
        if base_fee_multiplier is None:
            base_fee_multiplier = rpc_pool.settings.base_fee_multiplier
        self.base_fee_multiplier = Decimal(str(base_fee_multiplier))

    async def get_fee_data(self, network: str) -> Optional[FeeData]:
        """Read fee parameters, or None if any read fails."""
        try:
            client = self.rpc_pool.get_client(network)
            gas_price = await client.gas_price()

            block = await client.get_block("latest")
            base_fee = (block or {}).get("baseFeePerGas")
            if base_fee is None:
                return FeeData(gas_price=gas_price)

            max_priority_fee = await client.max_priority_fee_per_gas()
            max_fee = int(Decimal(from_hex(base_fee)) * self.base_fee_multiplier) + max_priority_fee

            return FeeData(
                gas_price=gas_price,
                max_fee_per_gas=max_fee,
                max_priority_fee_per_gas=max_priority_fee,
            )

        except (SwapTxError, ValueError) as e:
            logger.warning(f"Fee data unavailable for {network}: {e}")
            return None
