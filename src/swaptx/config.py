"""Application configuration using pydantic-settings.

RPC endpoints, timeouts and the attempt cache location are read from the
environment (or a local .env file).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Root log level")

    # ======================
    # Chain RPC Endpoints
    # ======================
    ethereum_rpc_url: str = Field(
        default="https://eth.llamarpc.com", description="Ethereum RPC URL"
    )
    optimism_rpc_url: str = Field(
        default="https://mainnet.optimism.io", description="Optimism RPC URL"
    )
    arbitrum_rpc_url: str = Field(
        default="https://arb1.arbitrum.io/rpc", description="Arbitrum One RPC URL"
    )
    base_rpc_url: str = Field(
        default="https://mainnet.base.org", description="Base RPC URL"
    )
    polygon_rpc_url: str = Field(
        default="https://polygon-rpc.com", description="Polygon RPC URL"
    )
    bsc_rpc_url: str = Field(
        default="https://bsc-dataseed.binance.org", description="BSC RPC URL"
    )
    sepolia_rpc_url: str = Field(
        default="https://rpc.sepolia.org", description="Sepolia testnet RPC URL"
    )

    # ======================
    # RPC / Confirmation
    # ======================
    rpc_timeout: float = Field(default=30.0, description="JSON-RPC request timeout in seconds")
    confirmation_timeout: float = Field(
        default=180.0, description="Maximum seconds to wait for a receipt per wait call"
    )
    confirmation_poll_interval: float = Field(
        default=4.0, description="Seconds between receipt polls"
    )

    # ======================
    # Fees
    # ======================
    base_fee_multiplier: float = Field(
        default=1.2, description="Multiplier applied to the block base fee for maxFeePerGas"
    )

    # ======================
    # Attempt cache
    # ======================
    attempt_cache_path: Optional[str] = Field(
        default=None, description="JSON file storing broadcast hashes per swap (None = memory only)"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_rpc_url(self, network: str) -> str:
        """Get RPC URL for a network identifier."""
        rpc_map = {
            "ETHEREUM_MAINNET": self.ethereum_rpc_url,
            "OPTIMISM_MAINNET": self.optimism_rpc_url,
            "ARBITRUM_MAINNET": self.arbitrum_rpc_url,
            "BASE_MAINNET": self.base_rpc_url,
            "POLYGON_MAINNET": self.polygon_rpc_url,
            "BSC_MAINNET": self.bsc_rpc_url,
            "ETHEREUM_SEPOLIA": self.sepolia_rpc_url,
        }
        return rpc_map.get(network.upper(), "")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
