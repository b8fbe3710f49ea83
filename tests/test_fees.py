"""Tests for fee parameter reads."""

from decimal import Decimal

import pytest

from conftest import RpcFault
from swaptx.fees import FeeData, FeeDataResolver, wei_to_gwei

GWEI = 10**9


class TestFeeData:
    """Tests for the fee data model."""

    def test_effective_price_prefers_max_fee(self):
        """Test that maxFeePerGas wins over gasPrice."""
        data = FeeData(gas_price=11 * GWEI, max_fee_per_gas=13 * GWEI, max_priority_fee_per_gas=GWEI)

        assert data.supports_eip1559
        assert data.effective_price == 13 * GWEI

    def test_legacy(self):
        """Test gasPrice-only fee data."""
        data = FeeData(gas_price=3 * GWEI)

        assert not data.supports_eip1559
        assert data.effective_price == 3 * GWEI

    def test_wei_to_gwei(self):
        """Test gwei scaling."""
        assert wei_to_gwei(1_500_000_000) == Decimal("1.5")
        assert wei_to_gwei(None) is None


class TestFeeDataResolver:
    """Tests for reading fee parameters from a node."""

    @pytest.mark.asyncio
    async def test_eip1559(self, rpc_pool, node):
        """Test maxFee = baseFee x 1.2 + priority fee."""
        node.on("eth_gasPrice", hex(11 * GWEI))
        node.on("eth_getBlockByNumber", {"number": "0x10", "baseFeePerGas": hex(10 * GWEI)})
        node.on("eth_maxPriorityFeePerGas", hex(GWEI))

        data = await FeeDataResolver(rpc_pool).get_fee_data("ETHEREUM_MAINNET")

        assert data == FeeData(
            gas_price=11 * GWEI,
            max_fee_per_gas=13 * GWEI,
            max_priority_fee_per_gas=GWEI,
        )
        assert ("eth_getBlockByNumber", ["latest", False]) in node.calls

    @pytest.mark.asyncio
    async def test_custom_multiplier(self, rpc_pool, node):
        """Test an explicit base fee multiplier."""
        node.on("eth_gasPrice", hex(GWEI))
        node.on("eth_getBlockByNumber", {"baseFeePerGas": hex(10 * GWEI)})
        node.on("eth_maxPriorityFeePerGas", "0x0")

        data = await FeeDataResolver(rpc_pool, base_fee_multiplier=2).get_fee_data("BASE_MAINNET")

        assert data.max_fee_per_gas == 20 * GWEI
        assert data.max_priority_fee_per_gas == 0

    @pytest.mark.asyncio
    async def test_legacy_chain(self, rpc_pool, node):
        """Test that a block without base fee yields gasPrice only."""
        node.on("eth_gasPrice", hex(3 * GWEI))
        node.on("eth_getBlockByNumber", {"number": "0x10"})

        data = await FeeDataResolver(rpc_pool).get_fee_data("BSC_MAINNET")

        assert data == FeeData(gas_price=3 * GWEI)
        assert "eth_maxPriorityFeePerGas" not in node.methods()

    @pytest.mark.asyncio
    async def test_read_failure_returns_none(self, rpc_pool, node):
        """Test that any failed read degrades to None."""
        node.on("eth_gasPrice", hex(GWEI))
        node.on("eth_getBlockByNumber", {"baseFeePerGas": hex(GWEI)})
        node.on("eth_maxPriorityFeePerGas", RpcFault(-32601, "method not supported"))

        assert await FeeDataResolver(rpc_pool).get_fee_data("ETHEREUM_MAINNET") is None

    @pytest.mark.asyncio
    async def test_unreachable_returns_none(self, unreachable_pool):
        """Test that a transport failure degrades to None."""
        assert await FeeDataResolver(unreachable_pool).get_fee_data("ETHEREUM_MAINNET") is None
