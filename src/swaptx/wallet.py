"""Wallet signing interface.

Signing and broadcasting is a single user-gated action: the wallet either
returns the broadcast transaction hash or raises (UserRejectedRequestError
when the owner declines).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from eth_account import Account
from eth_utils import to_checksum_address

from swaptx.errors import UserRejectedRequestError
from swaptx.rpc import RpcPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionRequest:
    """Unsigned transfer handed to the wallet.

    Attributes:
        network: Network internal name
        chain_id: EVM chain ID
        sender: Signer address
        to: Recipient or token contract
        data: Call-data (tag included)
        value: Native value in wei
        gas: Gas limit from simulation (None lets the wallet estimate)
        max_fee_per_gas: EIP-1559 max fee in wei (None for legacy pricing)
        max_priority_fee_per_gas: EIP-1559 tip in wei
        gas_price: Legacy gas price in wei
    """
    network: str
    chain_id: int
    sender: str
    to: str
    data: bytes = b""
    value: int = 0
    gas: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    gas_price: Optional[int] = None


class WalletSigner(ABC):
    """Signs and broadcasts a transaction on the owner's behalf."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Address transactions are signed from."""

    @abstractmethod
    async def send_transaction(self, request: TransactionRequest) -> str:
        """Request a signature, broadcast, and return the transaction hash.

        Raises:
            UserRejectedRequestError: the owner declined
        """


ApprovalCallback = Callable[[TransactionRequest], Awaitable[bool]]


class LocalWalletSigner(WalletSigner):
    """Signs with an in-memory private key and broadcasts over JSON-RPC.

    An optional ``approve`` callback stands in for the wallet prompt; when
    it returns False the request is rejected with code 4001.
    """

    def __init__(
        self,
        private_key: str,
        rpc_pool: RpcPool,
        approve: Optional[ApprovalCallback] = None,
    ):
        self._account = Account.from_key(private_key)
        self.rpc_pool = rpc_pool
        self.approve = approve

    @property
    def address(self) -> str:
        return self._account.address

    async def send_transaction(self, request: TransactionRequest) -> str:
        if self.approve is not None and not await self.approve(request):
            logger.info(f"Signature request on {request.network} declined")
            raise UserRejectedRequestError()

        client = self.rpc_pool.get_client(request.network)
        nonce = await client.get_transaction_count(self.address, "pending")

        gas = request.gas
        if gas is None:
            gas = await client.estimate_gas(
                sender=self.address, to=request.to, data=request.data, value=request.value
            )

        tx = {
            "chainId": request.chain_id,
            "nonce": nonce,
            "to": to_checksum_address(request.to),
            "value": request.value,
            "data": request.data,
            "gas": gas,
        }
        if request.max_fee_per_gas is not None:
            tx["maxFeePerGas"] = request.max_fee_per_gas
            tx["maxPriorityFeePerGas"] = request.max_priority_fee_per_gas or 0
        else:
            tx["gasPrice"] = request.gas_price if request.gas_price is not None else await client.gas_price()

        signed = self._account.sign_transaction(tx)
        tx_hash = await client.send_raw_transaction(signed.raw_transaction)

        logger.info(f"Broadcast {tx_hash} on {request.network} from {self.address}")
        return tx_hash
