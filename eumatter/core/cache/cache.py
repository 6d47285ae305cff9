from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from .keys import CacheKey, build_key, parse_key
from .logging import CacheTimer, log_cache_event
from .memory_tier import MemoryTier
from .persistent_tier import PersistentTier
from .policies import TypePolicyTable
from .stats import CacheCounters, CacheStats
from .types import CacheType, Clock


class CacheFacade:
    """Two-tier cache: MemoryTier first, PersistentTier for persistent types.

    Construct one per process (empty on construction) and tear it down with
    ``clear_all``. No operation raises: storage faults degrade to memory only.
    Cached values are treated as immutable; replace them, never edit them.
    """

    def __init__(
        self,
        *,
        memory: MemoryTier,
        persistent: PersistentTier,
        policies: TypePolicyTable,
        prefix: str,
        version: str,
        clock: Clock = time.time,
        counters: CacheCounters | None = None,
    ) -> None:
        self._memory = memory
        self._persistent = persistent
        self._policies = policies
        self._prefix = prefix
        self._version = version
        self._clock = clock
        self._counters = counters or CacheCounters()

    @property
    def policies(self) -> TypePolicyTable:
        return self._policies

    def render(self, key: CacheKey) -> str:
        return build_key(self._prefix, self._version, key)

    # -- keyword API ---------------------------------------------------------

    def get(self, type_: CacheType, *, identifier: str = "", scope: str = "") -> Any | None:
        return self.get_key(CacheKey(type_, identifier, scope))

    def set(
        self,
        type_: CacheType,
        data: Any,
        *,
        identifier: str = "",
        scope: str = "",
        ttl_seconds: float | None = None,
        persistent: bool | None = None,
    ) -> None:
        self.set_key(
            CacheKey(type_, identifier, scope),
            data,
            ttl_seconds=ttl_seconds,
            persistent=persistent,
        )

    def invalidate(self, type_: CacheType, *, identifier: str = "", scope: str = "") -> None:
        self.invalidate_key(CacheKey(type_, identifier, scope))

    # -- CacheKey API --------------------------------------------------------

    def get_key(self, key: CacheKey) -> Any | None:
        timer = CacheTimer()
        raw = self.render(key)

        data = self._memory.get(raw)
        if data is not None:
            self._record(key.type, "hit", timer, detail="tier=memory")
            return data

        if self._policies.resolve(key.type).persistent:
            entry = self._persistent.get_entry(raw)
            if entry is not None:
                # Back-fill with the remaining TTL, not a fresh one.
                self._memory.set(
                    raw, entry.data, ttl_seconds=entry.remaining_ttl(self._clock())
                )
                self._record(key.type, "hit", timer, detail="tier=persistent")
                return entry.data

        self._record(key.type, "miss", timer)
        return None

    def set_key(
        self,
        key: CacheKey,
        data: Any,
        *,
        ttl_seconds: float | None = None,
        persistent: bool | None = None,
    ) -> None:
        if data is None:
            # None means "absent"; storing it would be indistinguishable from a miss.
            self.invalidate_key(key)
            return

        policy = self._policies.resolve(key.type)
        ttl = policy.ttl_seconds if ttl_seconds is None else ttl_seconds
        persist = policy.persistent if persistent is None else persistent
        raw = self.render(key)

        timer = CacheTimer()
        self._memory.set(raw, data, ttl_seconds=ttl)
        if persist:
            self._persistent.set(raw, data, ttl_seconds=ttl)
        else:
            # A memory-only write supersedes any older persisted copy.
            self._persistent.delete(raw)
        self._record(key.type, "set", timer, detail=f"persistent={persist}")

    def invalidate_key(self, key: CacheKey) -> None:
        timer = CacheTimer()
        raw = self.render(key)
        self._memory.delete(raw)
        self._persistent.delete(raw)
        self._record(key.type, "delete", timer)

    # -- bulk invalidation ---------------------------------------------------

    def invalidate_type(self, type_: CacheType, scope: str | None = None) -> int:
        """Drop every key of ``type_`` (optionally only within ``scope``) from both tiers."""

        def matches(raw: str) -> bool:
            parsed = parse_key(self._prefix, self._version, raw)
            if parsed is None or parsed.type != type_:
                return False
            return scope is None or parsed.scope == scope

        return self._delete_where(type_, "invalidate_type", matches)

    def clear_scope(self, scope: str) -> int:
        """Drop every key written for ``scope`` (an actor or role), whatever its type."""

        def matches(raw: str) -> bool:
            parsed = parse_key(self._prefix, self._version, raw)
            return parsed is not None and parsed.scope == scope

        return self._delete_where("*", "clear_scope", matches)

    def clear_all(self) -> int:
        """Drop every key under this cache's namespace, any type, any version."""
        return self._delete_where("*", "clear", lambda raw: True)

    def evict_stale(self) -> int:
        return self._persistent.evict_stale()

    def stats(self) -> CacheStats:
        return CacheStats(
            memory_entries=len(self._memory),
            storage_entries=len(self._persistent.keys()),
            storage_bytes=self._persistent.size_bytes(),
            events=self._counters.snapshot(),
        )

    def _delete_where(
        self, namespace: str, cache_event: str, predicate: Callable[[str], bool]
    ) -> int:
        timer = CacheTimer()
        removed = self._memory.delete_where(predicate)
        removed += self._persistent.delete_where(predicate)
        self._record(namespace, cache_event, timer, detail=f"count={removed}")
        return removed

    def _record(
        self,
        namespace: str,
        cache_event: str,
        timer: CacheTimer,
        *,
        detail: str | None = None,
    ) -> None:
        self._counters.increment(namespace=namespace, cache_event=cache_event)
        log_cache_event(
            namespace=namespace,
            cache_event=cache_event,
            duration_ms=timer.elapsed_ms(),
            detail=detail,
        )
