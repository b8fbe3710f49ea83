"""Transfer payload encoding.

Builds the call-data for native and ERC-20 transfers and appends the swap
correlation tag when the signer is not the swap's destination owner.
No network I/O happens here.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Optional, Union

from eth_abi import encode
from eth_utils import to_checksum_address

from swaptx.errors import InvalidAmountError
from swaptx.networks import Asset

logger = logging.getLogger(__name__)

# transfer(address,uint256)
ERC20_TRANSFER_SELECTOR = bytes.fromhex("a9059cbb")
# balanceOf(address)
ERC20_BALANCE_OF_SELECTOR = bytes.fromhex("70a08231")


@dataclass(frozen=True)
class EncodedPayload:
    """Call-data ready for simulation and signing."""

    to: str
    data: bytes
    value: int = 0          # native value in base units
    tagged: bool = False

    @property
    def data_hex(self) -> str:
        return "0x" + self.data.hex()


def correlation_tag(sequence_number: int) -> str:
    """Render a sequence number as an even-length hex byte string.

    >>> correlation_tag(10)
    '0a'
    >>> correlation_tag(256)
    '0100'
    """
    if sequence_number < 0:
        raise ValueError(f"Sequence number must be non-negative: {sequence_number}")
    hexed = format(sequence_number, "x")
    return f"0{hexed}" if len(hexed) % 2 else hexed


def is_same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two addresses ignoring checksum casing."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


def scale_amount(amount: Union[Decimal, str, int, float], decimals: int) -> int:
    """Convert a user-facing amount to integer base units.

    Raises:
        InvalidAmountError: amount is negative, not a number, or more precise
            than the asset allows
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(f"Invalid amount: {amount!r}", cause=e) from e

    if not value.is_finite() or value < 0:
        raise InvalidAmountError(f"Amount must be a non-negative number: {amount}")

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise InvalidAmountError(
                f"Amount {amount} has more than {decimals} decimal places"
            )
        return int(scaled)


def encode_erc20_transfer(to: str, amount: int) -> bytes:
    """ABI-encode ``transfer(to, amount)``."""
    return ERC20_TRANSFER_SELECTOR + encode(
        ["address", "uint256"], [to_checksum_address(to), amount]
    )


def encode_erc20_balance_of(owner: str) -> bytes:
    """ABI-encode ``balanceOf(owner)``."""
    return ERC20_BALANCE_OF_SELECTOR + encode(["address"], [to_checksum_address(owner)])


def encode_transfer(
    asset: Asset,
    amount: Union[Decimal, str, int, float],
    destination: str,
    signer: str,
    ultimate_owner: Optional[str],
    sequence_number: int,
) -> EncodedPayload:
    """Build the transfer payload for an asset.

    Native transfers carry no call-data except the tag; token transfers
    call ``transfer(destination, amount)`` on the token contract. The tag is
    appended only when ``signer`` differs from ``ultimate_owner``.
    """
    base_units = scale_amount(amount, asset.decimals)
    tagged = not is_same_address(signer, ultimate_owner)
    tag = bytes.fromhex(correlation_tag(sequence_number)) if tagged else b""

    if asset.is_native:
        payload = EncodedPayload(
            to=to_checksum_address(destination),
            data=tag,
            value=base_units,
            tagged=tagged,
        )
    else:
        payload = EncodedPayload(
            to=to_checksum_address(asset.contract_address),
            data=encode_erc20_transfer(destination, base_units) + tag,
            value=0,
            tagged=tagged,
        )

    logger.debug(
        f"Encoded {asset.symbol} transfer of {amount} to {destination} "
        f"({len(payload.data)} bytes, tagged={tagged})"
    )
    return payload
