"""Tests for swap tracker and attempt cache collaborators."""

import json

import pytest

from conftest import TX_HASH
from swaptx.config import Settings
from swaptx.tracking import (
    InMemoryAttemptCache,
    InMemorySwapTracker,
    JsonFileAttemptCache,
    PublishedTxStatus,
    get_attempt_cache,
)


class TestInMemorySwapTracker:
    """Tests for the in-memory tracker."""

    @pytest.mark.asyncio
    async def test_updates_in_order(self):
        """Test that updates are recorded in publish order."""
        tracker = InMemorySwapTracker()

        await tracker.publish("swap-1", PublishedTxStatus.PENDING, TX_HASH)
        await tracker.publish("swap-2", PublishedTxStatus.ERROR, "")
        await tracker.publish("swap-1", PublishedTxStatus.COMPLETED, TX_HASH)

        assert [u[1] for u in tracker.updates] == [
            PublishedTxStatus.PENDING,
            PublishedTxStatus.ERROR,
            PublishedTxStatus.COMPLETED,
        ]
        assert tracker.latest("swap-1") == ("swap-1", PublishedTxStatus.COMPLETED, TX_HASH)
        assert tracker.latest("swap-3") is None


class TestAttemptCaches:
    """Tests for persisted hashes."""

    def test_in_memory(self):
        """Test get/set on the memory cache."""
        cache = InMemoryAttemptCache()

        assert cache.get("swap-1") is None
        cache.set("swap-1", TX_HASH)
        assert cache.get("swap-1") == TX_HASH

    def test_json_file_survives_new_instance(self, tmp_path):
        """Test that a second cache on the same file sees the hash."""
        path = tmp_path / "attempts.json"
        JsonFileAttemptCache(path).set("swap-1", TX_HASH)

        assert JsonFileAttemptCache(path).get("swap-1") == TX_HASH
        assert JsonFileAttemptCache(path).get("swap-2") is None

    def test_json_file_format(self, tmp_path):
        """Test the stored document shape."""
        path = tmp_path / "nested" / "attempts.json"
        cache = JsonFileAttemptCache(path)

        cache.set("swap-1", TX_HASH)
        cache.set("swap-1", TX_HASH, PublishedTxStatus.COMPLETED)
        cache.set("swap-2", "0x01")

        stored = json.loads(path.read_text())
        assert set(stored) == {"swap-1", "swap-2"}
        assert stored["swap-1"]["hash"] == TX_HASH
        assert stored["swap-1"]["status"] == "completed"
        assert "updated_at" in stored["swap-1"]
        assert list(tmp_path.joinpath("nested").glob("*.tmp")) == []

    def test_corrupt_file_treated_as_empty(self, tmp_path):
        """Test that a malformed file does not break reads or writes."""
        path = tmp_path / "attempts.json"
        path.write_text("{not json")
        cache = JsonFileAttemptCache(path)

        assert cache.get("swap-1") is None
        cache.set("swap-1", TX_HASH)
        assert cache.get("swap-1") == TX_HASH

    def test_factory(self, tmp_path):
        """Test cache selection from settings."""
        path = tmp_path / "attempts.json"

        file_cache = get_attempt_cache(Settings(_env_file=None, attempt_cache_path=str(path)))
        memory_cache = get_attempt_cache(Settings(_env_file=None, attempt_cache_path=None))

        assert isinstance(file_cache, JsonFileAttemptCache)
        assert file_cache.path == path
        assert isinstance(memory_cache, InMemoryAttemptCache)
