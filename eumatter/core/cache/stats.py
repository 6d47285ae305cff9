from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from threading import Lock


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Read-only diagnostic snapshot. Not for driving business logic."""

    memory_entries: int
    storage_entries: int
    storage_bytes: int
    events: dict[str, dict[str, int]] = field(default_factory=dict)

    @property
    def storage_kib(self) -> float:
        return round(self.storage_bytes / 1024, 2)

    def events_since(self, earlier: CacheStats) -> dict[str, dict[str, int]]:
        """Event counts recorded after ``earlier`` was taken; zero deltas omitted."""
        delta: dict[str, dict[str, int]] = {}
        for namespace in sorted(self.events.keys() | earlier.events.keys()):
            now = self.events.get(namespace, {})
            then = earlier.events.get(namespace, {})
            changed = {
                name: now.get(name, 0) - then.get(name, 0)
                for name in sorted(now.keys() | then.keys())
                if now.get(name, 0) != then.get(name, 0)
            }
            if changed:
                delta[namespace] = changed
        return delta


class CacheCounters:
    """In-memory event counters. Structure: {type: {event: count}}."""

    def __init__(self) -> None:
        self._counts: dict[str, dict[str, int]] = {}
        self._lock = Lock()

    def increment(self, *, namespace: str, cache_event: str) -> None:
        """Increment a cache event counter."""
        with self._lock:
            ns = self._counts.setdefault(namespace, {})
            ns[cache_event] = ns.get(cache_event, 0) + 1

    def snapshot(self) -> dict[str, dict[str, int]]:
        """Return a deep copy snapshot of current counters."""
        with self._lock:
            return deepcopy(self._counts)

    def reset(self) -> None:
        """Reset all counters (test helper)."""
        with self._lock:
            self._counts.clear()
