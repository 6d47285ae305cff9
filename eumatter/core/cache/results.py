"""Explicit outcomes for the fetch boundary.

``resolve`` returns one of these instead of raising, so "not configured" or
"no data here" paths are values rather than caught exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, TypeAlias


@dataclass(frozen=True, slots=True)
class Hit:
    value: Any
    source: Literal["cache", "remote"]


@dataclass(frozen=True, slots=True)
class Miss:
    reason: str = ""


@dataclass(frozen=True, slots=True)
class Failed:
    error: Exception


FetchOutcome: TypeAlias = Hit | Miss | Failed


class _MissSentinel:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISS"


# Returned by a fetch strategy that has nothing to offer.
MISS = _MissSentinel()
