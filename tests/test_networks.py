"""Tests for the network registry and settings."""

import pytest

from swaptx.config import Settings
from swaptx.networks import (
    FEE_STRATEGIES,
    NETWORKS,
    Asset,
    FeeStrategy,
    Network,
    get_all_networks,
    get_fee_strategy,
    get_network,
)


class TestAsset:
    """Tests for asset configuration."""

    def test_native(self):
        """Test that an asset without contract is native."""
        assert Asset("ETH", 18).is_native
        assert not Asset("USDC", 6, "0x" + "1" * 40).is_native

    def test_negative_decimals(self):
        """Test that negative decimals are refused."""
        with pytest.raises(ValueError):
            Asset("BAD", -1, "0x" + "1" * 40)


class TestNetwork:
    """Tests for network configuration."""

    def test_native_symbol_must_not_have_contract(self):
        """Test the native currency invariant."""
        with pytest.raises(ValueError):
            Network("X", "X", "ETH", 1, assets=[Asset("ETH", 18, "0x" + "1" * 40)])

    def test_token_must_have_contract(self):
        """Test that a non-native symbol needs a contract."""
        with pytest.raises(ValueError):
            Network("X", "X", "ETH", 1, assets=[Asset("USDC", 6)])

    def test_get_asset_case_insensitive(self):
        """Test asset lookup."""
        network = get_network("ethereum_mainnet")

        assert network.get_asset("usdc").symbol == "USDC"
        assert network.get_asset("WBTC") is None
        assert network.native_asset().symbol == "ETH"
        assert [a.symbol for a in network.token_assets()] == ["USDC", "USDT", "DAI"]

    def test_registry_is_consistent(self):
        """Test every configured network."""
        for name, network in NETWORKS.items():
            assert network.internal_name == name
            assert network.native_asset() is not None
            assert network.native_asset().is_native

        assert len(get_all_networks()) == len(NETWORKS)
        assert get_network("UNKNOWN") is None


class TestFeeStrategies:
    """Tests for the static fee strategy map."""

    def test_rollups(self):
        """Test that OP-stack networks use the roll-up strategy."""
        assert get_fee_strategy("OPTIMISM_MAINNET") == FeeStrategy.ROLLUP_L1_FEE
        assert get_fee_strategy("BASE_MAINNET") == FeeStrategy.ROLLUP_L1_FEE
        assert get_fee_strategy("ETHEREUM_MAINNET") == FeeStrategy.STANDARD

    def test_unknown_defaults_to_standard(self):
        """Test the default for unmapped networks."""
        assert get_fee_strategy("LOCAL_DEVNET") == FeeStrategy.STANDARD
        assert get_fee_strategy("ETHEREUM_MAINNET", {}) == FeeStrategy.STANDARD

    def test_map_matches_registry(self):
        """Test that the map is derived from network configuration."""
        assert FEE_STRATEGIES == {n.internal_name: n.fee_strategy for n in get_all_networks()}


class TestSettings:
    """Tests for configuration."""

    def test_defaults(self):
        """Test default values."""
        settings = Settings(_env_file=None)

        assert settings.confirmation_timeout == 180
        assert settings.base_fee_multiplier == 1.2
        assert settings.attempt_cache_path is None

    def test_rpc_urls(self):
        """Test the network to endpoint mapping."""
        settings = Settings(_env_file=None, optimism_rpc_url="http://op.test")

        assert settings.get_rpc_url("optimism_mainnet") == "http://op.test"
        assert settings.get_rpc_url("UNKNOWN") == ""
        for name in NETWORKS:
            assert settings.get_rpc_url(name)

    def test_environment_variables(self, monkeypatch):
        """Test that values come from the environment."""
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("CONFIRMATION_POLL_INTERVAL", "0.5")

        settings = Settings(_env_file=None)

        assert settings.is_production
        assert settings.confirmation_poll_interval == 0.5
