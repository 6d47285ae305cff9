"""Optimistic mutations over the cache.

Every mutation walks IDLE -> SNAPSHOTTING -> OPTIMISTIC_APPLIED and settles
in COMMITTED or ROLLED_BACK. The optimistic value is installed before the
first await, so any read made while the remote call is in flight sees it.

Rollback is compare-and-restore: the snapshot goes back only while the cache
still holds the value this mutation installed. A newer write wins over a
slow failing mutation.

Two mutations of one key may interleave. Each computes its optimistic value
from whatever is cached at that moment, which is safe for toggles and other
commutative updates. Callers with non-commutative updates must serialize
them themselves.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeAlias

from .cache import CacheFacade
from .keys import CacheKey
from .logging import log_cache_event

ComputeFn: TypeAlias = Callable[[Any | None], Any]
RemoteFn: TypeAlias = Callable[[], Awaitable[Any]]
ReconcileFn: TypeAlias = Callable[[Any, Any], Any]


class MutationState(str, Enum):
    IDLE = "idle"
    SNAPSHOTTING = "snapshotting"
    OPTIMISTIC_APPLIED = "optimistic_applied"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True, slots=True)
class MutationSnapshot:
    key: CacheKey
    previous_value: Any | None


@dataclass(slots=True, eq=False)
class Mutation:
    key: CacheKey
    state: MutationState = MutationState.IDLE
    snapshot: MutationSnapshot | None = None
    optimistic_value: Any | None = None
    ttl_seconds: float | None = None

    @property
    def settled(self) -> bool:
        return self.state in (MutationState.COMMITTED, MutationState.ROLLED_BACK)


class OptimisticMutationCoordinator:
    def __init__(self, cache: CacheFacade) -> None:
        self._cache = cache
        self._in_flight: list[Mutation] = []

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def mutate(
        self,
        key: CacheKey,
        compute: ComputeFn,
        remote: RemoteFn,
        reconcile: ReconcileFn | None = None,
        *,
        ttl_seconds: float | None = None,
    ) -> Any:
        """Apply ``compute`` optimistically, call ``remote``, then commit or roll back.

        Args:
            key: Cache address being mutated.
            compute: Builds the optimistic value from the currently cached
                value (None when nothing is cached). Receives a copy.
            remote: The server call. Its exception is re-raised unchanged
                after the rollback.
            reconcile: Maps (server result, visible optimistic value) to the
                authoritative value. Defaults to keeping the optimistic value.
            ttl_seconds: Optional TTL override for every write this makes.

        Returns:
            The committed value.
        """
        mutation = self.apply(key, compute, ttl_seconds=ttl_seconds)
        try:
            result = await remote()
            return self.commit(mutation, result, reconcile)
        except (Exception, asyncio.CancelledError):
            self.rollback(mutation)
            raise

    def apply(
        self,
        key: CacheKey,
        compute: ComputeFn,
        *,
        ttl_seconds: float | None = None,
    ) -> Mutation:
        mutation = Mutation(key=key, ttl_seconds=ttl_seconds)
        mutation.state = MutationState.SNAPSHOTTING
        current = self._cache.get_key(key)
        mutation.snapshot = MutationSnapshot(key=key, previous_value=deepcopy(current))

        optimistic = compute(deepcopy(current))
        self._cache.set_key(key, optimistic, ttl_seconds=ttl_seconds)
        mutation.optimistic_value = optimistic
        mutation.state = MutationState.OPTIMISTIC_APPLIED
        self._in_flight.append(mutation)
        log_cache_event(namespace=key.type, cache_event="mutation_apply")
        return mutation

    def commit(
        self,
        mutation: Mutation,
        server_result: Any,
        reconcile: ReconcileFn | None = None,
    ) -> Any:
        self._require_applied(mutation)
        visible = self._cache.get_key(mutation.key)
        basis = visible if visible is not None else mutation.optimistic_value
        value = reconcile(server_result, basis) if reconcile is not None else basis

        self._cache.set_key(mutation.key, value, ttl_seconds=mutation.ttl_seconds)
        self._settle(mutation, MutationState.COMMITTED)
        log_cache_event(namespace=mutation.key.type, cache_event="mutation_commit")
        return value

    def rollback(self, mutation: Mutation) -> bool:
        """Restore the snapshot if nothing newer replaced the optimistic value.

        Returns True when the snapshot was restored.
        """
        self._require_applied(mutation)
        previous = mutation.snapshot.previous_value if mutation.snapshot else None

        current = self._cache.get_key(mutation.key)
        if current != mutation.optimistic_value:
            self._settle(mutation, MutationState.ROLLED_BACK)
            log_cache_event(
                namespace=mutation.key.type, cache_event="mutation_rollback_skipped"
            )
            return False

        if previous is None:
            # Restore absence, not an empty placeholder.
            self._cache.invalidate_key(mutation.key)
        else:
            self._cache.set_key(mutation.key, previous, ttl_seconds=mutation.ttl_seconds)
        self._settle(mutation, MutationState.ROLLED_BACK)
        log_cache_event(namespace=mutation.key.type, cache_event="mutation_rollback")
        return True

    def _require_applied(self, mutation: Mutation) -> None:
        if mutation.state is not MutationState.OPTIMISTIC_APPLIED:
            raise RuntimeError(f"mutation is {mutation.state.value}, expected optimistic_applied")

    def _settle(self, mutation: Mutation, state: MutationState) -> None:
        mutation.state = state
        mutation.snapshot = None
        self._in_flight = [m for m in self._in_flight if m is not mutation]
