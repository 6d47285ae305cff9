"""Storage media for the persistent tier.

Each medium is a synchronous key -> string store with a finite capacity.
Capacity is accounted as the UTF-8 length of every stored key plus value;
a write that would exceed it raises StorageQuotaExceededError and leaves
the medium unchanged.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

from .errors import StorageQuotaExceededError
from .types import StorageBackend


def _item_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class MemoryStorage(StorageBackend):
    """Dict-backed medium. Share one instance between caches to simulate a reload."""

    def __init__(self, *, capacity_bytes: int = 5 * 1024 * 1024) -> None:
        if capacity_bytes <= 0:
            raise ValueError("capacity_bytes must be > 0")
        self._capacity_bytes = capacity_bytes
        self._items: dict[str, str] = {}
        self._used_bytes = 0

    @property
    def used_bytes(self) -> int:
        return self._used_bytes

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        existing = self._items.get(key)
        freed = _item_size(key, existing) if existing is not None else 0
        needed = self._used_bytes - freed + _item_size(key, value)
        if needed > self._capacity_bytes:
            raise StorageQuotaExceededError(
                needed_bytes=needed, capacity_bytes=self._capacity_bytes
            )
        self._items[key] = value
        self._used_bytes = needed

    def remove_item(self, key: str) -> None:
        existing = self._items.pop(key, None)
        if existing is not None:
            self._used_bytes -= _item_size(key, existing)

    def keys(self) -> list[str]:
        return list(self._items.keys())


class SQLiteStorage(StorageBackend):
    """SQLite-backed medium; survives process restarts."""

    def __init__(self, path: str | Path, *, capacity_bytes: int = 5 * 1024 * 1024) -> None:
        if capacity_bytes <= 0:
            raise ValueError("capacity_bytes must be > 0")
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._capacity_bytes = capacity_bytes
        self._local = threading.local()
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create thread-local connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(str(self._path), timeout=10.0)
        return self._local.connection

    def _init_schema(self) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS storage_items (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                size_bytes INTEGER NOT NULL
            )
            """
        )
        conn.commit()

    def get_item(self, key: str) -> str | None:
        row = (
            self._get_connection()
            .execute("SELECT value FROM storage_items WHERE key = ?", (key,))
            .fetchone()
        )
        return None if row is None else row[0]

    def set_item(self, key: str, value: str) -> None:
        conn = self._get_connection()
        size = _item_size(key, value)
        (used_elsewhere,) = conn.execute(
            "SELECT COALESCE(SUM(size_bytes), 0) FROM storage_items WHERE key != ?",
            (key,),
        ).fetchone()
        needed = used_elsewhere + size
        if needed > self._capacity_bytes:
            raise StorageQuotaExceededError(
                needed_bytes=needed, capacity_bytes=self._capacity_bytes
            )
        conn.execute(
            "INSERT OR REPLACE INTO storage_items (key, value, size_bytes) VALUES (?, ?, ?)",
            (key, value, size),
        )
        conn.commit()

    def remove_item(self, key: str) -> None:
        conn = self._get_connection()
        conn.execute("DELETE FROM storage_items WHERE key = ?", (key,))
        conn.commit()

    def keys(self) -> list[str]:
        rows = self._get_connection().execute("SELECT key FROM storage_items").fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            self._local.connection = None


class NoOpStorage(StorageBackend):
    def get_item(self, key: str) -> str | None:
        return None

    def set_item(self, key: str, value: str) -> None:
        pass

    def remove_item(self, key: str) -> None:
        pass

    def keys(self) -> list[str]:
        return []
