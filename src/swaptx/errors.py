"""Exception hierarchy for transfer preparation and submission.

Every error can carry the provider's numeric/string ``code``, the raw
``data`` payload and an explicit ``cause``. Wrapping layers pass the lower
error as ``cause`` so the classifier can walk the chain.
"""

from typing import Any, Optional


class SwapTxError(Exception):
    """Base class for all engine errors."""

    def __init__(
        self,
        message: str = "",
        *,
        code: Any = None,
        data: Any = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data
        self.cause = cause

    @property
    def name(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return self.message


# ======================
# Local validation
# ======================

class InvalidAmountError(SwapTxError):
    """Amount cannot be scaled to a non-negative integer at asset precision."""


# ======================
# Provider / transport
# ======================

class UnreachableNetworkError(SwapTxError):
    """The RPC node could not be reached or returned a non-JSON-RPC response."""


class RpcError(SwapTxError):
    """JSON-RPC error object returned by a node."""


class InsufficientFundsError(SwapTxError):
    """Node reported the sender cannot pay for value plus gas."""


class EstimateGasExecutionError(SwapTxError):
    """Gas estimation failed because the simulated call did not execute."""


class UserRejectedRequestError(SwapTxError):
    """The wallet owner declined the signature request."""

    def __init__(self, message: str = "User rejected the request.", **kwargs):
        kwargs.setdefault("code", 4001)
        super().__init__(message, **kwargs)


# ======================
# Engine
# ======================

class FeeUnavailableError(SwapTxError):
    """Fee parameters could not be read from the network."""


class GasEstimationRevertedError(SwapTxError):
    """The transfer simulation used for gas estimation reverted."""


class TransactionRevertedError(SwapTxError):
    """The broadcast transaction was mined with a failed status."""


class TransferStateError(SwapTxError):
    """Operation is not allowed in the attempt's current phase."""


class TransferInProgressError(TransferStateError):
    """A transfer for this swap is already being signed, broadcast or confirmed."""
