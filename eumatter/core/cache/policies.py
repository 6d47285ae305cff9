from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from .types import CacheType, TypePolicy

if TYPE_CHECKING:
    from eumatter.config import Settings

MINUTE = 60.0

DEFAULT_POLICY = TypePolicy(ttl_seconds=5 * MINUTE, persistent=True)

# Large, volatile or per-viewer collections stay out of persistent storage.
DEFAULT_POLICIES: Mapping[CacheType, TypePolicy] = MappingProxyType(
    {
        "user": TypePolicy(ttl_seconds=10 * MINUTE, persistent=True),
        "events": TypePolicy(ttl_seconds=2 * MINUTE, persistent=False),
        "event": TypePolicy(ttl_seconds=2 * MINUTE, persistent=False),
        "donations": TypePolicy(ttl_seconds=3 * MINUTE, persistent=True),
        "donation": TypePolicy(ttl_seconds=3 * MINUTE, persistent=True),
        "inKindDonations": TypePolicy(ttl_seconds=3 * MINUTE, persistent=True),
        "volunteers": TypePolicy(ttl_seconds=2 * MINUTE, persistent=True),
        "dashboardStats": TypePolicy(ttl_seconds=1 * MINUTE, persistent=False),
        "reports": TypePolicy(ttl_seconds=5 * MINUTE, persistent=True),
        "systemSettings": TypePolicy(ttl_seconds=15 * MINUTE, persistent=True),
        "users": TypePolicy(ttl_seconds=5 * MINUTE, persistent=True),
        "notifications": TypePolicy(ttl_seconds=1 * MINUTE, persistent=False),
        "reactions": TypePolicy(ttl_seconds=30.0, persistent=False),
        "comments": TypePolicy(ttl_seconds=2 * MINUTE, persistent=False),
        "expenditures": TypePolicy(ttl_seconds=3 * MINUTE, persistent=True),
    }
)


class TypePolicyTable:
    """Read-only ``type -> TypePolicy`` mapping with a default for unknown types."""

    __slots__ = ("_default", "_policies")

    def __init__(
        self,
        policies: Mapping[CacheType, TypePolicy] = DEFAULT_POLICIES,
        *,
        default: TypePolicy = DEFAULT_POLICY,
    ) -> None:
        self._policies = MappingProxyType(dict(policies))
        self._default = default

    @classmethod
    def from_settings(cls, settings: Settings) -> TypePolicyTable:
        policies = dict(DEFAULT_POLICIES)
        for type_, ttl in settings.cache_ttl_overrides.items():
            base = policies.get(type_, DEFAULT_POLICY)
            policies[type_] = TypePolicy(ttl_seconds=float(ttl), persistent=base.persistent)
        default = TypePolicy(
            ttl_seconds=float(settings.cache_default_ttl_seconds),
            persistent=DEFAULT_POLICY.persistent,
        )
        return cls(policies, default=default)

    @property
    def default(self) -> TypePolicy:
        return self._default

    def resolve(self, type_: CacheType) -> TypePolicy:
        return self._policies.get(type_, self._default)

    def __contains__(self, type_: object) -> bool:
        return type_ in self._policies

    def __repr__(self) -> str:
        return f"TypePolicyTable(types={sorted(self._policies)}, default={self._default})"
