"""Network and asset registry.

Static configuration for every network a transfer can originate from:
native currency, EVM chain id, the fee-calculation strategy used by the
gas dispatcher, multicall support and the list of transferable assets.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class FeeStrategy(str, Enum):
    """How the network fee for a transfer is calculated."""

    STANDARD = "standard"              # gas limit x (maxFeePerGas or gasPrice)
    ROLLUP_L1_FEE = "rollup_l1_fee"    # L2 execution + L1 data publishing fee


@dataclass(frozen=True)
class Asset:
    """Fungible token or native currency on a network."""

    symbol: str
    decimals: int
    contract_address: Optional[str] = None  # None for native currency
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.decimals < 0:
            raise ValueError(f"Asset {self.symbol} has negative decimals: {self.decimals}")

    @property
    def is_native(self) -> bool:
        return self.contract_address is None


@dataclass
class Network:
    """Configuration for a source network."""

    internal_name: str
    display_name: str
    native_currency: str
    chain_id: int
    fee_strategy: FeeStrategy = FeeStrategy.STANDARD
    has_multicall: bool = False
    assets: list[Asset] = field(default_factory=list)

    def __post_init__(self) -> None:
        for asset in self.assets:
            is_native_symbol = asset.symbol == self.native_currency
            if is_native_symbol != asset.is_native:
                raise ValueError(
                    f"{self.internal_name}: asset {asset.symbol} must "
                    f"{'not ' if is_native_symbol else ''}have a contract address"
                )

    def native_asset(self) -> Optional[Asset]:
        """Get the native currency asset, if configured."""
        return self.get_asset(self.native_currency)

    def get_asset(self, symbol: str) -> Optional[Asset]:
        """Get asset by symbol (case-insensitive)."""
        symbol = symbol.upper()
        for asset in self.assets:
            if asset.symbol.upper() == symbol:
                return asset
        return None

    def token_assets(self) -> list[Asset]:
        """Active, contract-backed assets in configuration order."""
        return [a for a in self.assets if a.contract_address and a.is_active]


# ======================
# Network Configurations
# ======================

NETWORKS: dict[str, Network] = {
    "ETHEREUM_MAINNET": Network(
        internal_name="ETHEREUM_MAINNET",
        display_name="Ethereum",
        native_currency="ETH",
        chain_id=1,
        has_multicall=True,
        assets=[
            Asset("ETH", 18),
            Asset("USDC", 6, "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"),
            Asset("USDT", 6, "0xdAC17F958D2ee523a2206206994597C13D831ec7"),
            Asset("DAI", 18, "0x6B175474E89094C44Da98b954EedeAC495271d0F"),
        ],
    ),

    # OP stack roll-ups charge an extra L1 data fee
    "OPTIMISM_MAINNET": Network(
        internal_name="OPTIMISM_MAINNET",
        display_name="Optimism",
        native_currency="ETH",
        chain_id=10,
        fee_strategy=FeeStrategy.ROLLUP_L1_FEE,
        has_multicall=True,
        assets=[
            Asset("ETH", 18),
            Asset("USDC", 6, "0x0b2C639c533813f4Aa9D7837cAf62653d097Ff85"),
            Asset("USDT", 6, "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58"),
        ],
    ),
    "BASE_MAINNET": Network(
        internal_name="BASE_MAINNET",
        display_name="Base",
        native_currency="ETH",
        chain_id=8453,
        fee_strategy=FeeStrategy.ROLLUP_L1_FEE,
        has_multicall=True,
        assets=[
            Asset("ETH", 18),
            Asset("USDC", 6, "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"),
        ],
    ),

    "ARBITRUM_MAINNET": Network(
        internal_name="ARBITRUM_MAINNET",
        display_name="Arbitrum One",
        native_currency="ETH",
        chain_id=42161,
        has_multicall=True,
        assets=[
            Asset("ETH", 18),
            Asset("USDC", 6, "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"),
            Asset("USDT", 6, "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9"),
        ],
    ),
    "POLYGON_MAINNET": Network(
        internal_name="POLYGON_MAINNET",
        display_name="Polygon",
        native_currency="MATIC",
        chain_id=137,
        has_multicall=True,
        assets=[
            Asset("MATIC", 18),
            Asset("USDC", 6, "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359"),
            Asset("USDT", 6, "0xc2132D05D31c914a87C6611C10748AEb04B58e8F"),
        ],
    ),

    # BSC has no EIP-1559 fee market, fees come from eth_gasPrice only
    "BSC_MAINNET": Network(
        internal_name="BSC_MAINNET",
        display_name="BNB Smart Chain",
        native_currency="BNB",
        chain_id=56,
        has_multicall=True,
        assets=[
            Asset("BNB", 18),
            Asset("USDT", 18, "0x55d398326f99059fF775485246999027B3197955"),
            Asset("USDC", 18, "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d"),
        ],
    ),

    "ETHEREUM_SEPOLIA": Network(
        internal_name="ETHEREUM_SEPOLIA",
        display_name="Ethereum Sepolia",
        native_currency="ETH",
        chain_id=11155111,
        has_multicall=False,
        assets=[
            Asset("ETH", 18),
            Asset("USDC", 6, "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"),
        ],
    ),
}

# Static lookup used by the gas dispatcher
FEE_STRATEGIES: dict[str, FeeStrategy] = {
    name: network.fee_strategy for name, network in NETWORKS.items()
}


# ======================
# Helper Functions
# ======================

def get_network(internal_name: str) -> Optional[Network]:
    """Get network configuration by internal name."""
    return NETWORKS.get(internal_name.upper())


def get_all_networks() -> list[Network]:
    """Get all network configurations."""
    return list(NETWORKS.values())


def get_fee_strategy(
    internal_name: str,
    strategies: Optional[dict[str, FeeStrategy]] = None,
) -> FeeStrategy:
    """Look up the fee strategy for a network. Unknown networks are standard."""
    strategies = FEE_STRATEGIES if strategies is None else strategies
    return strategies.get(internal_name.upper(), FeeStrategy.STANDARD)
