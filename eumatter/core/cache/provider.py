from __future__ import annotations

import time

from eumatter.config import Settings, settings as default_settings

from .cache import CacheFacade
from .fetch import FetchCoordinator
from .keys import namespace_prefix
from .memory_tier import MemoryTier
from .mutation import OptimisticMutationCoordinator
from .persistent_tier import PersistentTier
from .policies import TypePolicyTable
from .storage import MemoryStorage, NoOpStorage, SQLiteStorage
from .types import Clock, StorageBackend


def create_storage(settings: Settings) -> StorageBackend:
    if not settings.cache_persistent_enabled:
        return NoOpStorage()
    if settings.cache_storage_path:
        return SQLiteStorage(
            settings.cache_storage_path,
            capacity_bytes=settings.cache_storage_capacity_bytes,
        )
    return MemoryStorage(capacity_bytes=settings.cache_storage_capacity_bytes)


def create_cache(
    settings: Settings | None = None,
    *,
    storage: StorageBackend | None = None,
    policies: TypePolicyTable | None = None,
    clock: Clock = time.time,
) -> CacheFacade:
    """Build an empty cache from settings.

    Callers own the instance for the process lifetime and pass it to whatever
    needs it; there is no module-level cache.
    """
    settings = settings or default_settings
    persistent = PersistentTier(
        storage if storage is not None else create_storage(settings),
        namespace_prefix=namespace_prefix(settings.cache_prefix),
        clock=clock,
        max_entry_bytes=settings.cache_max_entry_bytes,
        retry_max_entry_bytes=settings.cache_retry_max_entry_bytes,
        stale_after_seconds=settings.cache_stale_after_seconds,
    )
    return CacheFacade(
        memory=MemoryTier(clock=clock),
        persistent=persistent,
        policies=policies or TypePolicyTable.from_settings(settings),
        prefix=settings.cache_prefix,
        version=settings.cache_version,
        clock=clock,
    )


def create_fetch_coordinator(
    cache: CacheFacade, settings: Settings | None = None
) -> FetchCoordinator:
    settings = settings or default_settings
    return FetchCoordinator(cache, coalesce=settings.cache_coalesce_fetches)


def create_mutation_coordinator(cache: CacheFacade) -> OptimisticMutationCoordinator:
    return OptimisticMutationCoordinator(cache)
