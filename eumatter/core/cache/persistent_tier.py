from __future__ import annotations

import json
import sqlite3
import time
from collections.abc import Callable
from typing import Any

from .errors import StorageQuotaExceededError
from .keys import canonical_json
from .logging import log_cache_event
from .types import CacheEntry, Clock, StorageBackend

# Failures the storage medium may raise. They never leave this tier.
_STORAGE_ERRORS = (OSError, sqlite3.Error)

_NAMESPACE = "persistent"


def _serialize(entry: CacheEntry) -> str:
    return canonical_json(
        {"data": entry.data, "cachedAt": entry.cached_at, "expiresAt": entry.expires_at}
    )


def _deserialize(raw: str) -> CacheEntry:
    decoded = json.loads(raw)
    if not isinstance(decoded, dict):
        raise ValueError("stored entry is not an object")
    return CacheEntry(
        data=decoded["data"],
        cached_at=float(decoded["cachedAt"]),
        expires_at=float(decoded["expiresAt"]),
    )


class PersistentTier:
    """Durable tier over a StorageBackend.

    Persistence is an optimization: every failure here degrades to
    "memory only for this entry" and is logged, never raised.
    """

    def __init__(
        self,
        storage: StorageBackend,
        *,
        namespace_prefix: str,
        clock: Clock = time.time,
        max_entry_bytes: int = 2 * 1024 * 1024,
        retry_max_entry_bytes: int = 1 * 1024 * 1024,
        stale_after_seconds: float = 24 * 60 * 60,
    ) -> None:
        self._storage = storage
        self._prefix = namespace_prefix
        self._clock = clock
        self._max_entry_bytes = max_entry_bytes
        self._retry_max_entry_bytes = retry_max_entry_bytes
        self._stale_after_seconds = stale_after_seconds

    def get(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return None if entry is None else entry.data

    def get_entry(self, key: str) -> CacheEntry | None:
        try:
            raw = self._storage.get_item(key)
        except _STORAGE_ERRORS:
            log_cache_event(namespace=_NAMESPACE, cache_event="read_error")
            return None
        if raw is None:
            return None

        try:
            entry = _deserialize(raw)
        except (ValueError, TypeError, KeyError):
            log_cache_event(namespace=_NAMESPACE, cache_event="corrupt")
            self.delete(key)
            return None

        if entry.is_expired(self._clock()):
            self.delete(key)
            return None
        return entry

    def set(self, key: str, data: Any, *, ttl_seconds: float) -> bool:
        """Persist an entry. Returns False when the write degraded to memory only."""
        now = self._clock()
        entry = CacheEntry(data=data, cached_at=now, expires_at=now + ttl_seconds)
        try:
            payload = _serialize(entry)
        except (TypeError, ValueError):
            return self._degrade(key, "persist_skip", "reason=unserializable")

        size = len(payload.encode("utf-8"))
        if size > self._max_entry_bytes:
            return self._degrade(key, "persist_skip", f"reason=oversized bytes={size}")

        try:
            self._storage.set_item(key, payload)
            return True
        except StorageQuotaExceededError:
            removed = self.evict_stale()
            if size > self._retry_max_entry_bytes:
                return self._degrade(
                    key, "persist_drop", f"reason=quota evicted={removed} bytes={size}"
                )
            try:
                self._storage.set_item(key, payload)
            except _STORAGE_ERRORS:
                return self._degrade(key, "persist_drop", f"reason=quota evicted={removed}")
            log_cache_event(
                namespace=_NAMESPACE,
                cache_event="persist_retry",
                detail=f"evicted={removed}",
            )
            return True
        except _STORAGE_ERRORS:
            return self._degrade(key, "persist_drop", "reason=storage_error")

    def delete(self, key: str) -> None:
        try:
            self._storage.remove_item(key)
        except _STORAGE_ERRORS:
            log_cache_event(namespace=_NAMESPACE, cache_event="delete_error")

    def delete_where(self, predicate: Callable[[str], bool]) -> int:
        doomed = [k for k in self.keys() if predicate(k)]
        for k in doomed:
            self.delete(k)
        return len(doomed)

    def keys(self) -> list[str]:
        """Keys under this cache's namespace only."""
        try:
            return [k for k in self._storage.keys() if k.startswith(self._prefix)]
        except _STORAGE_ERRORS:
            log_cache_event(namespace=_NAMESPACE, cache_event="read_error")
            return []

    def size_bytes(self) -> int:
        total = 0
        for key in self.keys():
            try:
                raw = self._storage.get_item(key)
            except _STORAGE_ERRORS:
                continue
            if raw is not None:
                total += len(raw.encode("utf-8"))
        return total

    def evict_stale(self) -> int:
        """Remove expired, corrupt or stale-beyond-threshold entries. Returns count removed."""
        now = self._clock()
        removed = 0
        for key in self.keys():
            try:
                raw = self._storage.get_item(key)
            except _STORAGE_ERRORS:
                continue
            if raw is None:
                continue
            try:
                entry = _deserialize(raw)
            except (ValueError, TypeError, KeyError):
                entry = None
            if (
                entry is None
                or entry.is_expired(now)
                or now - entry.cached_at > self._stale_after_seconds
            ):
                self.delete(key)
                removed += 1

        if removed:
            log_cache_event(
                namespace=_NAMESPACE,
                cache_event="evict",
                detail=f"reason=stale count={removed}",
            )
        return removed

    def _degrade(self, key: str, cache_event: str, detail: str) -> bool:
        # An older persisted copy would outlive the newer memory-only value.
        self.delete(key)
        log_cache_event(namespace=_NAMESPACE, cache_event=cache_event, detail=detail)
        return False
