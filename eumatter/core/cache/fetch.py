from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, TypeAlias

from .cache import CacheFacade
from .keys import CacheKey
from .logging import CacheTimer, log_cache_event
from .results import MISS, Failed, FetchOutcome, Hit, Miss
from .singleflight import SingleFlight
from .types import CacheType, FetchFn

Normalizer: TypeAlias = Callable[[Any], Any]
FetchStrategy: TypeAlias = Callable[[], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class FetchQuery:
    type: CacheType
    fetch_fn: FetchFn
    identifier: str = ""
    scope: str = ""
    force_refresh: bool = False
    ttl_seconds: float | None = None
    normalize: Normalizer | None = None


class FetchCoordinator:
    """Read-through access to the remote API behind a CacheFacade.

    A failed fetch never touches the cache: a still-valid cached value stays
    servable. Concurrent fetches of one key share a single network call when
    ``coalesce`` is on; the resulting cache state and data are the same
    either way.
    """

    def __init__(self, cache: CacheFacade, *, coalesce: bool = True) -> None:
        self._cache = cache
        self._coalesce = coalesce
        self._singleflight = SingleFlight()

    async def cached_get(
        self,
        type_: CacheType,
        fetch_fn: FetchFn,
        *,
        identifier: str = "",
        scope: str = "",
        force_refresh: bool = False,
        ttl_seconds: float | None = None,
        normalize: Normalizer | None = None,
    ) -> Any:
        key = CacheKey(type_, identifier, scope)
        if not force_refresh:
            cached = self._cache.get_key(key)
            if cached is not None:
                return cached

        if not self._coalesce:
            return await self._fetch_and_store(key, fetch_fn, ttl_seconds, normalize)

        async with self._singleflight.hold(self._cache.render(key)):
            if not force_refresh:
                # Double-check after waiting.
                cached = self._cache.get_key(key)
                if cached is not None:
                    return cached
            return await self._fetch_and_store(key, fetch_fn, ttl_seconds, normalize)

    async def prefetch(
        self,
        type_: CacheType,
        fetch_fn: FetchFn,
        *,
        identifier: str = "",
        scope: str = "",
        ttl_seconds: float | None = None,
        normalize: Normalizer | None = None,
    ) -> Any:
        """Warm the cache unconditionally. Errors propagate."""
        return await self.cached_get(
            type_,
            fetch_fn,
            identifier=identifier,
            scope=scope,
            force_refresh=True,
            ttl_seconds=ttl_seconds,
            normalize=normalize,
        )

    async def cached_get_many(self, queries: Mapping[str, FetchQuery]) -> dict[str, Any]:
        names = list(queries)
        values = await asyncio.gather(
            *(
                self.cached_get(
                    q.type,
                    q.fetch_fn,
                    identifier=q.identifier,
                    scope=q.scope,
                    force_refresh=q.force_refresh,
                    ttl_seconds=q.ttl_seconds,
                    normalize=q.normalize,
                )
                for q in (queries[name] for name in names)
            )
        )
        return dict(zip(names, values, strict=True))

    async def mutate_and_invalidate(
        self,
        remote: FetchFn,
        invalidate_types: Sequence[CacheType],
        *,
        scope: str | None = None,
    ) -> Any:
        """Run a server write, then drop every cached key of the affected types.

        The non-optimistic write path. A failing ``remote`` propagates and
        leaves the cache as it was.
        """
        timer = CacheTimer()
        try:
            result = await remote()
        except Exception as exc:
            log_cache_event(
                namespace="*",
                cache_event="mutation_error",
                duration_ms=timer.elapsed_ms(),
                detail=f"error={type(exc).__name__}",
            )
            raise

        for type_ in invalidate_types:
            self._cache.invalidate_type(type_, scope)
        return result

    async def resolve(
        self,
        type_: CacheType,
        strategies: Sequence[FetchStrategy],
        *,
        identifier: str = "",
        scope: str = "",
        force_refresh: bool = False,
        ttl_seconds: float | None = None,
        normalize: Normalizer | None = None,
    ) -> FetchOutcome:
        """Cache first, then each strategy in order. Never raises.

        A strategy returns a value, returns ``MISS`` when it has nothing to
        offer, or raises. The first value wins and is stored; an exception
        moves on to the next strategy and is reported only if every strategy
        came up empty.
        """
        key = CacheKey(type_, identifier, scope)
        if not force_refresh:
            cached = self._cache.get_key(key)
            if cached is not None:
                return Hit(value=cached, source="cache")

        last_error: Exception | None = None
        for index, strategy in enumerate(strategies):
            timer = CacheTimer()
            try:
                raw = await strategy()
                if raw is MISS or raw is None:
                    continue
                value = normalize(raw) if normalize is not None else raw
            except Exception as exc:
                last_error = exc
                log_cache_event(
                    namespace=type_,
                    cache_event="fetch_error",
                    duration_ms=timer.elapsed_ms(),
                    detail=f"strategy={index} error={type(exc).__name__}",
                )
                continue

            self._cache.set_key(key, value, ttl_seconds=ttl_seconds)
            log_cache_event(
                namespace=type_,
                cache_event="fetch",
                duration_ms=timer.elapsed_ms(),
                detail=f"strategy={index}",
            )
            return Hit(value=value, source="remote")

        if last_error is not None:
            return Failed(error=last_error)
        return Miss(reason="no strategy produced a value")

    async def _fetch_and_store(
        self,
        key: CacheKey,
        fetch_fn: FetchFn,
        ttl_seconds: float | None,
        normalize: Normalizer | None,
    ) -> Any:
        timer = CacheTimer()
        try:
            raw = await fetch_fn()
            value = normalize(raw) if normalize is not None else raw
        except Exception as exc:
            log_cache_event(
                namespace=key.type,
                cache_event="fetch_error",
                duration_ms=timer.elapsed_ms(),
                detail=f"error={type(exc).__name__}",
            )
            raise

        self._cache.set_key(key, value, ttl_seconds=ttl_seconds)
        log_cache_event(
            namespace=key.type,
            cache_event="fetch",
            duration_ms=timer.elapsed_ms(),
        )
        return value
