"""swaptx - fee estimation, payload encoding and status tracking for swap deposits."""

from swaptx.classifier import ClassifiedError, FailureReason, classify
from swaptx.encoding import EncodedPayload, correlation_tag, encode_transfer
from swaptx.gas import FeeEstimate, GasDispatcher
from swaptx.transfer import TransferIntent, TransferPhase, TransferTracker

__version__ = "0.1.0"

__all__ = [
    "ClassifiedError",
    "EncodedPayload",
    "FailureReason",
    "FeeEstimate",
    "GasDispatcher",
    "TransferIntent",
    "TransferPhase",
    "TransferTracker",
    "classify",
    "correlation_tag",
    "encode_transfer",
]
