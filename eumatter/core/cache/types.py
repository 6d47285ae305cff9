from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias

CacheType: TypeAlias = str
Clock: TypeAlias = Callable[[], float]
FetchFn: TypeAlias = Callable[[], Awaitable[Any]]


class StorageBackend(Protocol):
    """Synchronous key -> string medium with finite capacity."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


@dataclass(frozen=True, slots=True)
class CacheEntry:
    data: Any
    cached_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def remaining_ttl(self, now: float) -> float:
        return max(0.0, self.expires_at - now)


@dataclass(frozen=True, slots=True)
class TypePolicy:
    ttl_seconds: float
    persistent: bool

    def __post_init__(self) -> None:
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
