"""
Tests for the namespaced TTL cache and its storage backends.
"""

import json
import sqlite3
from pathlib import Path

import pytest

from hydropad.core.cache import MemoryStorage, SqliteStorage, TableCache


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class BrokenStorage:
    """Storage whose every call fails."""

    def read(self, namespace: str) -> str | None:
        raise OSError("disk unavailable")

    def write(self, namespace: str, payload: str) -> None:
        raise OSError("disk unavailable")


class TestTableCache:
    """Tests for TTL and size limits."""

    def test_set_and_get(self) -> None:
        """Stored values are returned until they expire."""
        cache = TableCache("ns", max_entries=4, ttl_seconds=60)
        cache.set("a", {"x": 1})

        assert cache.get("a") == {"x": 1}
        assert "a" in cache
        assert len(cache) == 1

    def test_missing_key(self) -> None:
        """Unknown keys return None."""
        assert TableCache("ns", max_entries=4, ttl_seconds=60).get("nope") is None

    def test_expired_entries_are_dropped(self) -> None:
        """Reading an expired entry removes it and persists the removal."""
        clock = FakeClock()
        storage = MemoryStorage()
        cache = TableCache("ns", max_entries=4, ttl_seconds=60, storage=storage, clock=clock)
        cache.set("a", 1)

        clock.now += 60

        assert cache.get("a") is None
        assert "a" not in cache
        assert json.loads(storage.data["ns"]) == {}

    def test_entry_valid_just_before_expiry(self) -> None:
        """An entry is served until its expiry instant."""
        clock = FakeClock()
        cache = TableCache("ns", max_entries=4, ttl_seconds=60, clock=clock)
        cache.set("a", 1)

        clock.now += 59.9

        assert cache.get("a") == 1

    def test_oldest_entries_are_evicted(self) -> None:
        """Beyond max_entries the least recently written entries go first."""
        clock = FakeClock()
        cache = TableCache("ns", max_entries=2, ttl_seconds=60, clock=clock)
        cache.set("a", 1)
        clock.now += 1
        cache.set("b", 2)
        clock.now += 1
        cache.set("a", 10)
        clock.now += 1
        cache.set("c", 3)

        assert cache.keys() == ["a", "c"]
        assert cache.get("b") is None
        assert cache.get("a") == 10

    def test_delete_and_clear(self) -> None:
        """Entries can be removed individually or all at once."""
        cache = TableCache("ns", max_entries=4, ttl_seconds=60)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.clear()
        assert len(cache) == 0

    @pytest.mark.parametrize(("max_entries", "ttl"), [(0, 60), (4, 0)])
    def test_invalid_limits(self, max_entries: int, ttl: float) -> None:
        """Non-positive limits are rejected."""
        with pytest.raises(ValueError):
            TableCache("ns", max_entries=max_entries, ttl_seconds=ttl)


class TestPersistence:
    """Tests for storage round trips."""

    def test_layout_and_hydration(self) -> None:
        """The namespace is stored as key -> {value, expiresAt} and reloaded in order."""
        clock = FakeClock()
        storage = MemoryStorage()
        cache = TableCache("rainfall-cache", max_entries=4, ttl_seconds=60, storage=storage, clock=clock)
        cache.set("b", [1, 2])
        clock.now += 1
        cache.set("a", "x")

        persisted = json.loads(storage.data["rainfall-cache"])
        assert persisted["b"] == {"value": [1, 2], "expiresAt": 1060.0}

        reloaded = TableCache("rainfall-cache", max_entries=4, ttl_seconds=60, storage=storage, clock=clock)
        assert reloaded.keys() == ["b", "a"]
        assert reloaded.get("a") == "x"

    def test_namespaces_are_independent(self) -> None:
        """Two namespaces in one storage do not see each other's keys."""
        storage = MemoryStorage()
        TableCache("one", max_entries=4, ttl_seconds=60, storage=storage).set("k", 1)

        assert TableCache("two", max_entries=4, ttl_seconds=60, storage=storage).get("k") is None

    def test_corrupt_payload_is_discarded(self) -> None:
        """Unparseable or malformed payloads hydrate to an empty cache."""
        storage = MemoryStorage()
        storage.data["ns"] = "{not json"
        assert len(TableCache("ns", max_entries=4, ttl_seconds=60, storage=storage)) == 0

        storage.data["ns"] = json.dumps({"good": {"value": 1, "expiresAt": 5e9}, "bad": {"value": 2}, "worse": 3})
        cache = TableCache("ns", max_entries=4, ttl_seconds=60, storage=storage)
        assert cache.keys() == ["good"]

    def test_storage_failures_are_not_fatal(self) -> None:
        """A failing backend leaves the cache working in memory."""
        cache = TableCache("ns", max_entries=4, ttl_seconds=60, storage=BrokenStorage())
        cache.set("a", 1)

        assert cache.get("a") == 1

    def test_sqlite_round_trip(self, tmp_path: Path) -> None:
        """Entries survive a new SqliteStorage on the same file."""
        db_path = tmp_path / "nested" / "cache.db"
        TableCache("ns", max_entries=4, ttl_seconds=60, storage=SqliteStorage(db_path)).set("a", {"aris": ["2"]})

        reloaded = TableCache("ns", max_entries=4, ttl_seconds=60, storage=SqliteStorage(db_path))

        assert reloaded.get("a") == {"aris": ["2"]}
        with sqlite3.connect(db_path) as conn:
            rows = conn.execute("SELECT namespace FROM namespace_cache").fetchall()
        assert rows == [("ns",)]
