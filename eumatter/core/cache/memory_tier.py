from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from threading import Lock
from typing import Any

from .logging import log_cache_event
from .types import CacheEntry, Clock


class MemoryTier:
    """Process-lifetime key -> CacheEntry map. Empty on construction."""

    def __init__(self, *, clock: Clock = time.time, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self._clock = clock
        self._max_entries = max_entries
        self._lock = Lock()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return None if entry is None else entry.data

    def get_entry(self, key: str) -> CacheEntry | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                self._entries.pop(key, None)
                return None
            self._entries.move_to_end(key, last=True)
            return entry

    def set(self, key: str, data: Any, *, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            # Non-positive TTL means the value would already be expired.
            self.delete(key)
            return

        now = self._clock()
        entry = CacheEntry(data=data, cached_at=now, expires_at=now + ttl_seconds)
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key, last=True)
            self._evict_lru_locked()

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_where(self, predicate: Callable[[str], bool]) -> int:
        with self._lock:
            doomed = [k for k in self._entries if predicate(k)]
            for k in doomed:
                self._entries.pop(k, None)
        return len(doomed)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries.keys())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_lru_locked(self) -> None:
        if self._max_entries is None:
            return
        evicted = 0
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
            evicted += 1

        if evicted:
            log_cache_event(
                namespace="memory",
                cache_event="evict",
                detail=f"reason=lru count={evicted}",
            )
