"""
Namespaced, size-bounded, TTL-expiring key-value cache.

A TableCache holds one namespace in memory and mirrors it to a storage
backend after every mutation. The persisted layout is one storage key per
namespace holding a JSON object that maps cache key -> ``{value, expiresAt}``
(``expiresAt`` in epoch seconds).

Storage backends:
- SqliteStorage: one row per namespace in a SQLite database
- MemoryStorage: a dict, for tests and ephemeral processes
"""

import json
import logging
import sqlite3
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class CacheStorage(Protocol):
    """Read/write hooks for persisting a namespace as a JSON string."""

    def read(self, namespace: str) -> str | None: ...

    def write(self, namespace: str, payload: str) -> None: ...


class MemoryStorage:
    """In-memory storage backend."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def read(self, namespace: str) -> str | None:
        return self.data.get(namespace)

    def write(self, namespace: str, payload: str) -> None:
        self.data[namespace] = payload


class SqliteStorage:
    """SQLite storage backend, one row per namespace."""

    def __init__(self, db_path: Path | str) -> None:
        """
        Initialize the storage.

        Args:
            db_path: Path to SQLite database file; parent directories are created
        """
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS namespace_cache (
                    namespace TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def read(self, namespace: str) -> str | None:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute("SELECT payload FROM namespace_cache WHERE namespace = ?", (namespace,)).fetchone()
        return row[0] if row else None

    def write(self, namespace: str, payload: str) -> None:
        updated_at = datetime.now(UTC).isoformat()
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO namespace_cache (namespace, payload, updated_at)
                VALUES (?, ?, ?)
                """,
                (namespace, payload, updated_at),
            )
            conn.commit()


class TableCache:
    """
    Namespaced cache with a maximum entry count and a time-to-live.

    Entries are ordered by last write; once the namespace exceeds
    ``max_entries`` the oldest are evicted. Expired entries are dropped
    silently when read.

    Example:
        >>> cache = TableCache("rainfall-cache", max_entries=32, ttl_seconds=86400, storage=MemoryStorage())
        >>> cache.set("40.4400,-79.9900", {"aris": ["2"], "rows": []})
        >>> cache.get("40.4400,-79.9900")["aris"]
        ['2']
    """

    def __init__(
        self,
        namespace: str,
        max_entries: int,
        ttl_seconds: float,
        storage: CacheStorage | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.namespace = namespace
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.storage = storage if storage is not None else MemoryStorage()
        self._clock = clock
        self._entries: dict[str, dict[str, Any]] = self._hydrate()

    def _hydrate(self) -> dict[str, dict[str, Any]]:
        try:
            raw = self.storage.read(self.namespace)
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"Could not read cache namespace '{self.namespace}': {e}")
            return {}
        if not raw:
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding corrupt cache namespace '{self.namespace}': {e}")
            return {}
        if not isinstance(data, dict):
            return {}

        entries = {}
        for key, entry in data.items():
            if isinstance(entry, dict) and "value" in entry and isinstance(entry.get("expiresAt"), (int, float)):
                entries[key] = {"value": entry["value"], "expiresAt": float(entry["expiresAt"])}
        entries = dict(sorted(entries.items(), key=lambda item: item[1]["expiresAt"]))
        return entries

    def _persist(self) -> None:
        try:
            self.storage.write(self.namespace, json.dumps(self._entries))
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"Could not persist cache namespace '{self.namespace}': {e}")

    def get(self, key: str) -> Any | None:
        """Return the value for key, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry["expiresAt"] <= self._clock():
            del self._entries[key]
            self._persist()
            return None
        return entry["value"]

    def set(self, key: str, value: Any) -> None:
        """Store or refresh a value, evicting the oldest entries beyond the cap."""
        self._entries.pop(key, None)
        self._entries[key] = {"value": value, "expiresAt": self._clock() + self.ttl_seconds}
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug(f"Evicted '{oldest}' from cache namespace '{self.namespace}'")
        self._persist()

    def delete(self, key: str) -> bool:
        if key not in self._entries:
            return False
        del self._entries[key]
        self._persist()
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._persist()

    def keys(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
