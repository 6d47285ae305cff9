from .cache import CacheFacade
from .errors import StorageQuotaExceededError
from .fetch import FetchCoordinator, FetchQuery
from .keys import CacheKey, build_key, canonical_json, parse_key
from .memory_tier import MemoryTier
from .mutation import Mutation, MutationSnapshot, MutationState, OptimisticMutationCoordinator
from .persistent_tier import PersistentTier
from .policies import DEFAULT_POLICIES, DEFAULT_POLICY, TypePolicyTable
from .provider import create_cache, create_fetch_coordinator, create_mutation_coordinator
from .results import MISS, Failed, FetchOutcome, Hit, Miss
from .stats import CacheStats
from .storage import MemoryStorage, NoOpStorage, SQLiteStorage
from .types import CacheEntry, StorageBackend, TypePolicy

__all__ = [
    "DEFAULT_POLICIES",
    "DEFAULT_POLICY",
    "MISS",
    "CacheEntry",
    "CacheFacade",
    "CacheKey",
    "CacheStats",
    "Failed",
    "FetchCoordinator",
    "FetchOutcome",
    "FetchQuery",
    "Hit",
    "MemoryStorage",
    "MemoryTier",
    "Miss",
    "Mutation",
    "MutationSnapshot",
    "MutationState",
    "NoOpStorage",
    "OptimisticMutationCoordinator",
    "PersistentTier",
    "SQLiteStorage",
    "StorageBackend",
    "StorageQuotaExceededError",
    "TypePolicy",
    "TypePolicyTable",
    "build_key",
    "canonical_json",
    "create_cache",
    "create_fetch_coordinator",
    "create_mutation_coordinator",
    "parse_key",
]
