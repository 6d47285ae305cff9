from __future__ import annotations

import time

from eumatter.logger import get_logger

logger = get_logger(__name__)

# Degradations worth seeing without DEBUG; everything else is routine traffic.
_WARNING_EVENTS = frozenset(
    {"corrupt", "delete_error", "fetch_error", "mutation_error", "persist_drop", "read_error"}
)


class CacheTimer:
    """Wall time of one cache operation, in milliseconds."""

    __slots__ = ("_started",)

    def __init__(self) -> None:
        self._started = time.perf_counter()

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000.0


def log_cache_event(
    *,
    namespace: str,
    cache_event: str,
    duration_ms: float | None = None,
    detail: str | None = None,
) -> None:
    # Keys can embed user ids; log the type namespace only.
    # structlog reserves `event` for the message, hence `cache_event`.
    fields: dict[str, object] = {"namespace": namespace, "cache_event": cache_event}
    if duration_ms is not None:
        fields["duration_ms"] = round(duration_ms, 3)
    if detail:
        fields["detail"] = detail
    if cache_event in _WARNING_EVENTS:
        logger.warning("cache", **fields)
    else:
        logger.debug("cache", **fields)
