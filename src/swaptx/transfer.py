"""Transfer submission and status tracking.

Transfer flow:
1. Caller forms a TransferIntent and calls prepare()
2. Payload is encoded (tag included), then the fee is estimated
3. User explicitly calls submit(); the wallet signs and broadcasts
4. The hash is reported as pending and cached before confirmation starts
5. The receipt completes or fails the attempt

Every failure is classified and reported; none is raised to the caller.
A persisted hash lets resume() go straight to confirmation after a reload.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from swaptx.classifier import ClassifiedError, FailureReason, classify
from swaptx.config import Settings, get_settings
from swaptx.encoding import EncodedPayload, encode_transfer
from swaptx.errors import (
    FeeUnavailableError,
    TransactionRevertedError,
    TransferInProgressError,
    TransferStateError,
)
from swaptx.fees import GWEI
from swaptx.gas import FeeEstimate, GasDispatcher
from swaptx.networks import Asset, Network
from swaptx.rpc import RpcPool, from_hex
from swaptx.tracking import AttemptCache, PublishedTxStatus, SwapTracker
from swaptx.wallet import TransactionRequest, WalletSigner

logger = logging.getLogger(__name__)


class TransferPhase(str, Enum):
    """Phase of a transfer attempt."""

    IDLE = "idle"
    PREPARING = "preparing"
    READY_TO_SIGN = "ready_to_sign"
    AWAITING_SIGNATURE = "awaiting_signature"
    BROADCASTING = "broadcasting"
    CONFIRMING = "confirming"
    COMPLETED = "completed"
    FAILED = "failed"


IN_FLIGHT_PHASES = frozenset({
    TransferPhase.AWAITING_SIGNATURE,
    TransferPhase.BROADCASTING,
    TransferPhase.CONFIRMING,
})


@dataclass(frozen=True)
class TransferIntent:
    """What the user asked to send for a swap."""
    swap_id: str
    network: Network
    asset: Asset
    amount: Decimal
    signer: str
    destination: str
    ultimate_owner: str
    sequence_number: int


@dataclass
class TransactionAttempt:
    """Observable state of the current transfer attempt for a swap."""
    swap_id: str
    phase: TransferPhase = TransferPhase.IDLE
    tx_hash: Optional[str] = None
    error: Optional[ClassifiedError] = None
    payload: Optional[EncodedPayload] = None
    fee: Optional[FeeEstimate] = None
    request: Optional[TransactionRequest] = None
    receipt: Optional[dict] = None
    still_pending: bool = False


@dataclass(frozen=True)
class StatusMessage:
    """User-facing wording for an attempt."""
    header: str
    details: str = ""
    kind: str = "pending"    # pending / error / success


# Global lock registry: swap_id -> asyncio.Lock
_swap_locks: dict[str, asyncio.Lock] = {}


def get_swap_lock(swap_id: str) -> asyncio.Lock:
    """Get or create the in-flight lock for a swap."""
    if swap_id not in _swap_locks:
        _swap_locks[swap_id] = asyncio.Lock()
    return _swap_locks[swap_id]


def release_swap_lock(swap_id: str) -> None:
    """Forget the lock of a swap whose transfer is final."""
    _swap_locks.pop(swap_id, None)


def clear_swap_locks() -> None:
    """Clear all swap locks (useful for testing)."""
    _swap_locks.clear()


def _gwei_to_wei(value: Optional[Decimal]) -> Optional[int]:
    return int(value * GWEI) if value is not None else None


def build_transaction_request(
    network: Network,
    signer: str,
    payload: EncodedPayload,
    fee: Optional[FeeEstimate],
) -> TransactionRequest:
    """Combine the payload and the standard fee breakdown into a wallet request.

    Without a breakdown (roll-up fee or fee unavailable) the wallet prices
    the transaction itself.
    """
    details = fee.details if fee else None
    return TransactionRequest(
        network=network.internal_name,
        chain_id=network.chain_id,
        sender=signer,
        to=payload.to,
        data=payload.data,
        value=payload.value,
        gas=details.gas_limit if details else None,
        max_fee_per_gas=_gwei_to_wei(details.max_fee_per_gas) if details else None,
        max_priority_fee_per_gas=_gwei_to_wei(details.max_priority_fee_per_gas) if details else None,
        gas_price=_gwei_to_wei(details.gas_price) if details else None,
    )


AttemptListener = Callable[[TransactionAttempt], None]


class TransferTracker:
    """Drives one swap's transfer from intent to confirmed receipt."""

    def __init__(
        self,
        swap_id: str,
        network: Network,
        *,
        wallet: WalletSigner,
        swap_tracker: SwapTracker,
        attempt_cache: AttemptCache,
        gas_dispatcher: GasDispatcher,
        rpc_pool: RpcPool,
        settings: Optional[Settings] = None,
        require_fee: bool = False,
    ):
        """Initialize the tracker.

        Args:
            swap_id: Swap the transfer belongs to
            network: Source network
            wallet: Signer used on submit()
            swap_tracker: Receives pending/completed/error updates
            attempt_cache: Persisted hash store, read once here
            gas_dispatcher: Fee estimation
            rpc_pool: Used for receipt polling
            settings: Confirmation timeout and poll interval
            require_fee: Fail prepare() when the fee cannot be read
        """
        self.swap_id = swap_id
        self.network = network
        self.wallet = wallet
        self.swap_tracker = swap_tracker
        self.attempt_cache = attempt_cache
        self.gas_dispatcher = gas_dispatcher
        self.rpc_pool = rpc_pool
        self.settings = settings or get_settings()
        self.require_fee = require_fee

        self.attempt = TransactionAttempt(
            swap_id=swap_id,
            tx_hash=attempt_cache.get(swap_id),
        )
        self._intent: Optional[TransferIntent] = None
        self._listeners: list[AttemptListener] = []

    # ======================
    # Observers
    # ======================

    def add_listener(self, listener: AttemptListener) -> None:
        """Call ``listener`` with the attempt on every phase change."""
        self._listeners.append(listener)

    def _set_phase(self, phase: TransferPhase) -> None:
        logger.info(f"Swap {self.swap_id}: {self.attempt.phase.value} -> {phase.value}")
        self.attempt.phase = phase
        self._notify()

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener(self.attempt)
            except Exception as e:
                logger.error(f"Attempt listener failed for swap {self.swap_id}: {e}")

    async def _publish(self, status: PublishedTxStatus, tx_hash: str) -> None:
        try:
            await self.swap_tracker.publish(self.swap_id, status, tx_hash)
        except Exception as e:
            logger.error(f"Failed to publish {status.value} for swap {self.swap_id}: {e}")

    def _persist(self, tx_hash: str, status: PublishedTxStatus) -> None:
        try:
            self.attempt_cache.set(self.swap_id, tx_hash, status)
        except Exception as e:
            logger.error(f"Failed to cache hash for swap {self.swap_id}: {e}")

    async def _fail(self, error: BaseException) -> None:
        classified = classify(error)
        self.attempt.error = classified

        if classified.reason == FailureReason.UNEXPECTED:
            logger.error(f"Swap {self.swap_id} transfer failed: {classified.message}", exc_info=error)
        else:
            logger.warning(f"Swap {self.swap_id} transfer failed: {classified.reason.value}")

        self._set_phase(TransferPhase.FAILED)
        await self._publish(PublishedTxStatus.ERROR, "")

    def _check_not_in_flight(self) -> None:
        lock = _swap_locks.get(self.swap_id)
        if self.attempt.phase in IN_FLIGHT_PHASES or (lock is not None and lock.locked()):
            raise TransferInProgressError(
                f"Transfer for swap {self.swap_id} is already {self.attempt.phase.value}"
            )

    # ======================
    # Transitions
    # ======================

    async def prepare(self, intent: TransferIntent) -> TransactionAttempt:
        """Encode the payload and estimate the fee for ``intent``.

        Re-run whenever amount, destination or signer change.

        Raises:
            TransferInProgressError: a transfer is being signed or confirmed,
                or a persisted hash has not been resumed yet
            TransferStateError: the swap's transfer already completed, or the
                intent belongs to another swap/network
        """
        self._check_not_in_flight()
        if self.attempt.phase == TransferPhase.IDLE and self.attempt.tx_hash:
            raise TransferInProgressError(
                f"Swap {self.swap_id} was already broadcast as {self.attempt.tx_hash}, resume it instead"
            )
        if self.attempt.phase == TransferPhase.COMPLETED:
            raise TransferStateError(f"Transfer for swap {self.swap_id} already completed")
        if intent.swap_id != self.swap_id or intent.network.internal_name != self.network.internal_name:
            raise TransferStateError("Intent does not belong to this swap")

        self._intent = intent
        self.attempt.error = None
        self.attempt.payload = None
        self.attempt.fee = None
        self.attempt.request = None
        self._set_phase(TransferPhase.PREPARING)

        try:
            payload = encode_transfer(
                intent.asset,
                intent.amount,
                intent.destination,
                intent.signer,
                intent.ultimate_owner,
                intent.sequence_number,
            )
            self.attempt.payload = payload

            try:
                fee = await self.gas_dispatcher.estimate_payload(self.network, intent.signer, payload)
            except FeeUnavailableError as e:
                if self.require_fee:
                    raise
                logger.warning(f"Preparing swap {self.swap_id} without a fee estimate: {e}")
                fee = None

            self.attempt.fee = fee
            self.attempt.request = build_transaction_request(
                self.network, intent.signer, payload, fee
            )
        except Exception as e:
            await self._fail(e)
            return self.attempt

        self._set_phase(TransferPhase.READY_TO_SIGN)
        return self.attempt

    async def retry(self, intent: Optional[TransferIntent] = None) -> TransactionAttempt:
        """Re-enter preparation after a failure ("Try again")."""
        if self.attempt.phase != TransferPhase.FAILED:
            raise TransferStateError(
                f"Cannot retry swap {self.swap_id} in phase {self.attempt.phase.value}"
            )
        intent = intent or self._intent
        if intent is None:
            raise TransferStateError(f"No transfer intent to retry for swap {self.swap_id}")
        return await self.prepare(intent)

    async def submit(self) -> TransactionAttempt:
        """Ask the wallet to sign and broadcast, then wait for confirmation.

        Only ever called on explicit user action; nothing resubmits
        automatically.

        Raises:
            TransferInProgressError: a transfer is already in flight
            TransferStateError: the attempt is not ready to sign
        """
        self._check_not_in_flight()
        if self.attempt.phase != TransferPhase.READY_TO_SIGN or self.attempt.request is None:
            raise TransferStateError(
                f"Swap {self.swap_id} is not ready to sign ({self.attempt.phase.value})"
            )

        async with get_swap_lock(self.swap_id):
            self._set_phase(TransferPhase.AWAITING_SIGNATURE)
            try:
                tx_hash = await self.wallet.send_transaction(self.attempt.request)
            except Exception as e:
                await self._fail(e)
                return self.attempt

            self.attempt.tx_hash = tx_hash
            self._set_phase(TransferPhase.BROADCASTING)

            # Must be recorded before waiting so a reload can resume from it
            self._persist(tx_hash, PublishedTxStatus.PENDING)
            await self._publish(PublishedTxStatus.PENDING, tx_hash)

            self._set_phase(TransferPhase.CONFIRMING)
            await self._confirm()

        return self.attempt

    async def resume(self) -> TransactionAttempt:
        """Continue confirming a hash persisted by an earlier session.

        Does nothing when no hash was cached for the swap.
        """
        if not self.attempt.tx_hash or self.attempt.phase != TransferPhase.IDLE:
            return self.attempt

        self._check_not_in_flight()
        async with get_swap_lock(self.swap_id):
            logger.info(f"Resuming swap {self.swap_id} from persisted hash {self.attempt.tx_hash}")
            self._set_phase(TransferPhase.CONFIRMING)
            await self._confirm()

        return self.attempt

    async def wait_for_confirmation(self) -> TransactionAttempt:
        """Wait again after a previous wait timed out (still pending)."""
        if self.attempt.phase != TransferPhase.CONFIRMING:
            raise TransferStateError(
                f"Swap {self.swap_id} is not confirming ({self.attempt.phase.value})"
            )
        lock = get_swap_lock(self.swap_id)
        if lock.locked():
            raise TransferInProgressError(f"Swap {self.swap_id} is already being confirmed")

        async with lock:
            await self._confirm()
        return self.attempt

    async def _confirm(self) -> None:
        tx_hash = self.attempt.tx_hash
        self.attempt.still_pending = False

        try:
            client = self.rpc_pool.get_client(self.network.internal_name)
            receipt = await client.wait_for_receipt(
                tx_hash,
                timeout=self.settings.confirmation_timeout,
                poll_interval=self.settings.confirmation_poll_interval,
            )
        except Exception as e:
            await self._fail(e)
            return

        if receipt is None:
            logger.warning(f"Swap {self.swap_id}: {tx_hash} still pending")
            self.attempt.still_pending = True
            self._notify()
            return

        self.attempt.receipt = receipt
        confirmed_hash = receipt.get("transactionHash") or tx_hash

        if from_hex(receipt.get("status")) != 1:
            await self._fail(TransactionRevertedError(f"Transaction {confirmed_hash} reverted"))
            return

        self.attempt.tx_hash = confirmed_hash
        self._persist(confirmed_hash, PublishedTxStatus.COMPLETED)
        self._set_phase(TransferPhase.COMPLETED)
        await self._publish(PublishedTxStatus.COMPLETED, confirmed_hash)
        release_swap_lock(self.swap_id)


# ======================
# User-facing wording
# ======================

def describe(attempt: TransactionAttempt) -> Optional[StatusMessage]:
    """Wording the UI shows for an attempt, or None when nothing is shown."""
    phase = attempt.phase

    if phase == TransferPhase.PREPARING:
        return StatusMessage("Preparing the transaction", "Will be ready to sign in a couple of seconds")
    if phase == TransferPhase.AWAITING_SIGNATURE:
        return StatusMessage("Confirm in wallet", "Please confirm the transaction in your wallet")
    if phase in (TransferPhase.BROADCASTING, TransferPhase.CONFIRMING):
        if attempt.still_pending:
            return StatusMessage(
                "Transaction still pending",
                "It is taking longer than usual, we will keep tracking it",
            )
        return StatusMessage("Transaction in progress", "Waiting for your transaction to be published")
    if phase == TransferPhase.COMPLETED:
        return StatusMessage("Transaction completed", attempt.tx_hash or "", kind="success")

    if phase == TransferPhase.FAILED and attempt.error:
        reason = attempt.error.reason
        if reason == FailureReason.INSUFFICIENT_FUNDS:
            return StatusMessage(
                "Insufficient funds", "The balance of the connected wallet is not enough", kind="error"
            )
        if reason == FailureReason.TRANSACTION_REJECTED:
            return StatusMessage(
                "Transaction rejected",
                "You've rejected the transaction in your wallet. "
                "Click \"Try again\" to open the prompt again.",
                kind="error",
            )
        return StatusMessage("Unexpected error", attempt.error.message, kind="error")

    return None


def action_label(attempt: TransactionAttempt) -> str:
    """Label of the submit button."""
    return "Try again" if attempt.phase == TransferPhase.FAILED else "Send from wallet"
