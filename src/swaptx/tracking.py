"""Collaborators that record transfer progress.

- SwapTracker: the system of record for a swap's published transaction
  (pending / completed / error).
- AttemptCache: local key-value store of the last broadcast hash per swap,
  read when a tracker starts so a reload can resume confirmation.
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from swaptx.config import Settings, get_settings

logger = logging.getLogger(__name__)


class PublishedTxStatus(str, Enum):
    """Status reported to the swap tracker."""

    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


class SwapTracker(ABC):
    """Receives published transaction updates for a swap."""

    @abstractmethod
    async def publish(self, swap_id: str, status: PublishedTxStatus, tx_hash: str) -> None:
        """Record the swap's transaction status."""


class InMemorySwapTracker(SwapTracker):
    """Keeps every update in order. Used by the CLI and tests."""

    def __init__(self):
        self.updates: list[tuple[str, PublishedTxStatus, str]] = []

    async def publish(self, swap_id: str, status: PublishedTxStatus, tx_hash: str) -> None:
        logger.info(f"Swap {swap_id}: {status.value} {tx_hash}")
        self.updates.append((swap_id, status, tx_hash))

    def latest(self, swap_id: str) -> Optional[tuple[str, PublishedTxStatus, str]]:
        for update in reversed(self.updates):
            if update[0] == swap_id:
                return update
        return None


class PublishedSwapTransaction(BaseModel):
    """Cached broadcast hash for one swap."""

    hash: str
    status: PublishedTxStatus = PublishedTxStatus.PENDING
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


_CACHE_ADAPTER = TypeAdapter(dict[str, PublishedSwapTransaction])


class AttemptCache(ABC):
    """Stores the last broadcast hash per swap."""

    @abstractmethod
    def get(self, swap_id: str) -> Optional[str]:
        """Get the persisted hash for a swap, if any."""

    @abstractmethod
    def set(
        self,
        swap_id: str,
        tx_hash: str,
        status: PublishedTxStatus = PublishedTxStatus.PENDING,
    ) -> None:
        """Persist the hash for a swap."""


class InMemoryAttemptCache(AttemptCache):
    """Process-local cache."""

    def __init__(self):
        self._entries: dict[str, PublishedSwapTransaction] = {}

    def get(self, swap_id: str) -> Optional[str]:
        entry = self._entries.get(swap_id)
        return entry.hash if entry else None

    def set(
        self,
        swap_id: str,
        tx_hash: str,
        status: PublishedTxStatus = PublishedTxStatus.PENDING,
    ) -> None:
        self._entries[swap_id] = PublishedSwapTransaction(hash=tx_hash, status=status)


class JsonFileAttemptCache(AttemptCache):
    """Cache persisted as ``{swap_id: {"hash": ..., "status": ...}}`` in a JSON file.

    An unreadable or malformed file is logged and treated as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> dict[str, PublishedSwapTransaction]:
        if not self.path.exists():
            return {}
        try:
            return _CACHE_ADAPTER.validate_json(self.path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.error(f"Ignoring unreadable attempt cache {self.path}: {e}")
            return {}

    def get(self, swap_id: str) -> Optional[str]:
        entry = self._load().get(swap_id)
        return entry.hash if entry else None

    def set(
        self,
        swap_id: str,
        tx_hash: str,
        status: PublishedTxStatus = PublishedTxStatus.PENDING,
    ) -> None:
        entries = self._load()
        entries[swap_id] = PublishedSwapTransaction(hash=tx_hash, status=status)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = _CACHE_ADAPTER.dump_json(entries, indent=2)

        # Temp file + rename so a crash never leaves a truncated cache
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


def get_attempt_cache(settings: Optional[Settings] = None) -> AttemptCache:
    """File-backed cache when ``attempt_cache_path`` is set, memory otherwise."""
    settings = settings or get_settings()
    if settings.attempt_cache_path:
        return JsonFileAttemptCache(settings.attempt_cache_path)
    return InMemoryAttemptCache()
