from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, unquote

KEY_SEPARATOR = ":"


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Logical address of a cached value: (type, identifier, scope)."""

    type: str
    identifier: str = ""
    scope: str = ""


def build_key(prefix: str, version: str, key: CacheKey) -> str:
    """Render a key as ``prefix:version:type:identifier:scope``.

    Every segment is percent-encoded so a separator inside a segment can
    never make two distinct triples render to the same string. Empty
    segments are kept, which keeps the segment positions fixed.
    """
    segments = (prefix, version, key.type, key.identifier, key.scope)
    return KEY_SEPARATOR.join(quote(str(s), safe="") for s in segments)


def parse_key(prefix: str, version: str, raw: str) -> CacheKey | None:
    """Inverse of build_key. Returns None for keys outside the namespace."""
    parts = raw.split(KEY_SEPARATOR)
    if len(parts) != 5:
        return None
    raw_prefix, raw_version, type_, identifier, scope = (unquote(p) for p in parts)
    if raw_prefix != prefix or raw_version != version:
        return None
    return CacheKey(type=type_, identifier=identifier, scope=scope)


def namespace_prefix(prefix: str) -> str:
    return quote(prefix, safe="") + KEY_SEPARATOR


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
