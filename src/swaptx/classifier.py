"""Failure classification.

Maps any failure raised while preparing, signing, broadcasting or
confirming a transfer to one of three user-actionable reasons. Works on
engine exceptions (walking their ``cause`` chain) and on plain dict error
objects decoded from wallet/provider JSON.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from swaptx.errors import (
    EstimateGasExecutionError,
    InsufficientFundsError,
    UserRejectedRequestError,
)

MAX_CAUSE_DEPTH = 16

INSUFFICIENT_FUNDS_CODES = frozenset({
    "INSUFFICIENT_FUNDS",
    "UNPREDICTABLE_GAS_LIMIT",
    "EstimateGasExecutionError",
})
# Marker names carried by plain dict errors decoded from JSON
INSUFFICIENT_FUNDS_NAMES = frozenset({
    InsufficientFundsError.__name__,
    EstimateGasExecutionError.__name__,
})
USER_REJECTED_NAME = UserRejectedRequestError.__name__
INTERNAL_JSON_RPC_ERROR = -32603
EXECUTION_REVERTED = 3
SERVER_ERROR = -32000
USER_REJECTED_CODE = 4001


class FailureReason(str, Enum):
    """Why a transfer attempt failed."""

    INSUFFICIENT_FUNDS = "insufficient_funds"
    TRANSACTION_REJECTED = "transaction_rejected"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ClassifiedError:
    reason: FailureReason
    message: str


def _get(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def walk_causes(error: Any, max_depth: int = MAX_CAUSE_DEPTH) -> Iterator[Any]:
    """Yield ``error`` and its causes, outermost first.

    Follows ``cause`` and falls back to ``__cause__``. Stops after
    ``max_depth`` links or when a cycle is found.
    """
    seen: set[int] = set()
    current = error
    depth = 0

    while current is not None and depth < max_depth and id(current) not in seen:
        seen.add(id(current))
        yield current

        next_error = _get(current, "cause")
        if next_error is None and isinstance(current, BaseException):
            next_error = current.__cause__
        current = next_error
        depth += 1


def _mentions_amount_exceeds(error: Any) -> bool:
    args = _get(_get(error, "data"), "args")
    if not isinstance(args, (list, tuple)):
        return False
    return any(isinstance(arg, str) and "amount exceeds" in arg for arg in args)


def _is_insufficient_funds(error: Any) -> bool:
    return (
        isinstance(error, (InsufficientFundsError, EstimateGasExecutionError))
        or _get(error, "name") in INSUFFICIENT_FUNDS_NAMES
        or _mentions_amount_exceeds(error)
    )


def _is_user_rejection(error: Any) -> bool:
    return (
        isinstance(error, UserRejectedRequestError)
        or _get(error, "name") == USER_REJECTED_NAME
    )


def _inner_code(error: Any) -> Any:
    return (
        _get(_get(error, "data"), "code")
        or _get(_get(error, "cause"), "code")
        or _get(_get(_get(_get(error, "cause"), "cause"), "cause"), "code")
    )


def error_message(error: Any) -> str:
    """Human-readable message, preferring the provider's ``data.message``."""
    data_message = _get(_get(error, "data"), "message")
    if isinstance(data_message, str) and data_message:
        return data_message

    message = _get(error, "message")
    if isinstance(message, str) and message:
        return message
    return str(error) if error is not None else "Unknown error"


def classify(error: Any) -> ClassifiedError:
    """Resolve a failure to a FailureReason.

    Insufficient-funds signals anywhere in the cause chain win over a user
    rejection. Flat codes/names on the outer error are the fallback.
    """
    message = error_message(error)
    chain = list(walk_causes(error))

    if any(_is_insufficient_funds(e) for e in chain):
        return ClassifiedError(FailureReason.INSUFFICIENT_FUNDS, message)

    if any(_is_user_rejection(e) for e in chain):
        return ClassifiedError(FailureReason.TRANSACTION_REJECTED, message)

    code_name = _get(error, "code") or _get(error, "name")
    inner_code = _inner_code(error)

    if (
        code_name in INSUFFICIENT_FUNDS_CODES
        or (code_name == INTERNAL_JSON_RPC_ERROR and inner_code == EXECUTION_REVERTED)
        or inner_code == SERVER_ERROR
    ):
        return ClassifiedError(FailureReason.INSUFFICIENT_FUNDS, message)

    if code_name == USER_REJECTED_CODE:
        return ClassifiedError(FailureReason.TRANSACTION_REJECTED, message)

    return ClassifiedError(FailureReason.UNEXPECTED, message)
