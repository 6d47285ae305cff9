"""Map the server's varying response shapes onto one canonical shape.

Runs at the fetch boundary; only canonical values ever reach the cache.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

DEFAULT_COLLECTION_KEYS = ("items", "data", "results")


def as_list(payload: Any, *keys: str) -> list[Any]:
    """Accept ``[...]``, ``{key: [...]}`` for any of ``keys`` or None."""
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in keys or DEFAULT_COLLECTION_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    raise ValueError(f"unsupported collection shape: {type(payload).__name__}")


def strip_keys(mapping: Mapping[str, Any], *keys: str) -> dict[str, Any]:
    return {k: v for k, v in mapping.items() if k not in keys}
