"""Tests for transfer payload encoding."""

from decimal import Decimal

import pytest
from eth_abi import decode

from conftest import DEPOSIT, OWNER, SIGNER
from swaptx.encoding import (
    ERC20_BALANCE_OF_SELECTOR,
    ERC20_TRANSFER_SELECTOR,
    correlation_tag,
    encode_erc20_balance_of,
    encode_transfer,
    is_same_address,
    scale_amount,
)
from swaptx.errors import InvalidAmountError
from swaptx.networks import Asset

USDC = Asset("USDC", 6, "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238")
ETH = Asset("ETH", 18)


class TestCorrelationTag:
    """Tests for sequence number tags."""

    @pytest.mark.parametrize("sequence_number,expected", [
        (0, "00"),
        (10, "0a"),
        (255, "ff"),
        (256, "0100"),
        (4095, "0fff"),
        (99999999, "05f5e0ff"),
    ])
    def test_known_values(self, sequence_number, expected):
        """Test tags for known sequence numbers."""
        assert correlation_tag(sequence_number) == expected

    def test_even_length_and_reversible(self):
        """Test that every tag is whole bytes and decodes back."""
        for n in list(range(0, 5000)) + [2**32 - 1, 2**64 + 3]:
            tag = correlation_tag(n)
            assert len(tag) % 2 == 0
            assert int(tag, 16) == n

    def test_negative_rejected(self):
        """Test that negative sequence numbers are refused."""
        with pytest.raises(ValueError):
            correlation_tag(-1)


class TestScaleAmount:
    """Tests for user amount to base unit conversion."""

    def test_fractional_amount(self):
        """Test 1.5 at 6 decimals."""
        assert scale_amount(Decimal("1.5"), 6) == 1_500_000

    def test_string_and_int_amounts(self):
        """Test that strings and ints are accepted."""
        assert scale_amount("0.000001", 6) == 1
        assert scale_amount(3, 18) == 3 * 10**18

    def test_large_amount_keeps_precision(self):
        """Test that large 18-decimal amounts are exact."""
        assert scale_amount("123456789012345.123456789012345678", 18) == (
            123456789012345123456789012345678
        )

    @pytest.mark.parametrize("amount", ["-1", "abc", "NaN", "Infinity", "1.0000001"])
    def test_invalid_amounts(self, amount):
        """Test that unusable amounts raise InvalidAmountError."""
        with pytest.raises(InvalidAmountError):
            scale_amount(amount, 6)


class TestIsSameAddress:
    """Tests for address comparison."""

    def test_case_insensitive(self):
        """Test checksum casing is ignored."""
        assert is_same_address(
            "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
            "0x1c7d4b196cb0c7b01d743fbc6116a902379c7238",
        )

    def test_missing_address(self):
        """Test that a missing side never matches."""
        assert not is_same_address(SIGNER, None)
        assert not is_same_address("", "")


class TestEncodeTransfer:
    """Tests for transfer payload construction."""

    def test_token_transfer_without_tag(self):
        """Test token payload when the signer owns the swap destination."""
        payload = encode_transfer(USDC, Decimal("1.5"), DEPOSIT, SIGNER, SIGNER, 10)

        assert payload.to == USDC.contract_address
        assert payload.value == 0
        assert not payload.tagged
        assert len(payload.data) == 68
        assert payload.data[:4] == ERC20_TRANSFER_SELECTOR

        to, amount = decode(["address", "uint256"], payload.data[4:])
        assert to.lower() == DEPOSIT.lower()
        assert amount == 1_500_000

    def test_token_transfer_with_tag(self):
        """Test that a different owner appends the tag bytes."""
        untagged = encode_transfer(USDC, "1.5", DEPOSIT, SIGNER, SIGNER, 10)
        tagged = encode_transfer(USDC, "1.5", DEPOSIT, SIGNER, OWNER, 10)

        assert tagged.tagged
        assert tagged.data == untagged.data + bytes.fromhex("0a")
        assert tagged.data_hex.endswith("0a")

    def test_owner_comparison_ignores_case(self):
        """Test that a checksummed owner matching the signer adds no tag."""
        signer = "0x1c7d4b196cb0c7b01d743fbc6116a902379c7238"
        owner = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"

        payload = encode_transfer(USDC, "1", DEPOSIT, signer, owner, 256)

        assert not payload.tagged
        assert len(payload.data) == 68

    def test_missing_owner_is_tagged(self):
        """Test that an unknown owner counts as different from the signer."""
        payload = encode_transfer(USDC, "1", DEPOSIT, SIGNER, None, 256)

        assert payload.tagged
        assert payload.data.endswith(bytes.fromhex("0100"))

    def test_native_transfer(self):
        """Test native payload carries value and no call-data."""
        payload = encode_transfer(ETH, "0.25", DEPOSIT, SIGNER, SIGNER, 10)

        assert payload.to == DEPOSIT
        assert payload.value == 25 * 10**16
        assert payload.data == b""

    def test_native_transfer_tag_is_the_only_data(self):
        """Test native payload data is exactly the tag when tagged."""
        payload = encode_transfer(ETH, "0.25", DEPOSIT, SIGNER, OWNER, 256)

        assert payload.data == bytes.fromhex("0100")
        assert payload.value == 25 * 10**16

    def test_invalid_amount_propagates(self):
        """Test that an over-precise amount fails before encoding."""
        with pytest.raises(InvalidAmountError):
            encode_transfer(USDC, "0.0000001", DEPOSIT, SIGNER, SIGNER, 1)


def test_balance_of_encoding():
    """Test balanceOf call-data layout."""
    data = encode_erc20_balance_of(SIGNER)

    assert data[:4] == ERC20_BALANCE_OF_SELECTOR
    assert len(data) == 36
    assert data[-20:] == bytes.fromhex(SIGNER[2:])
