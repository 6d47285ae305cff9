"""Facebook-style reactions on feed events.

One reaction per viewer per event: clicking the current reaction removes it,
clicking another one switches, clicking with none set adds it. The cached
state is per viewer because it carries the viewer's own reaction.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from eumatter.api_client import ApiClient
from eumatter.core.cache import (
    MISS,
    CacheFacade,
    CacheKey,
    FetchCoordinator,
    Hit,
    OptimisticMutationCoordinator,
)
from eumatter.logger import get_logger
from eumatter.normalize import strip_keys

logger = get_logger(__name__)

CACHE_TYPE = "reactions"
REACTION_TYPES = ("like", "love", "haha", "wow", "sad", "angry")


def empty_counts() -> dict[str, int]:
    return dict.fromkeys(REACTION_TYPES, 0)


def empty_state() -> dict[str, Any]:
    return {"counts": empty_counts(), "user_reaction": None}


def _counts_from(raw: Mapping[str, Any]) -> dict[str, int]:
    counts = empty_counts()
    for name, value in strip_keys(raw, "total", "userReaction").items():
        counts[name] = int(value or 0)
    return counts


def normalize_reactions(payload: Any) -> dict[str, Any]:
    """Canonical state from either the reactions endpoint or an event payload."""
    if not isinstance(payload, Mapping):
        raise ValueError(f"unsupported reactions shape: {type(payload).__name__}")
    raw = payload.get("reactions")
    if not isinstance(raw, Mapping):
        # Legacy events store reactions as a list of documents; counts are unknown.
        return {"counts": empty_counts(), "user_reaction": payload.get("userReaction") or None}
    user_reaction = raw.get("userReaction") or payload.get("userReaction")
    return {"counts": _counts_from(raw), "user_reaction": user_reaction or None}


def apply_toggle(state: Mapping[str, Any] | None, reaction_type: str) -> dict[str, Any]:
    basis = state if state is not None else empty_state()
    counts = {**empty_counts(), **basis.get("counts", {})}
    current = basis.get("user_reaction")

    if current == reaction_type:
        counts[reaction_type] = max(0, counts[reaction_type] - 1)
        return {"counts": counts, "user_reaction": None}

    if current:
        counts[current] = max(0, counts.get(current, 0) - 1)
    counts[reaction_type] = counts.get(reaction_type, 0) + 1
    return {"counts": counts, "user_reaction": reaction_type}


class ReactionService:
    def __init__(
        self,
        *,
        cache: CacheFacade,
        fetcher: FetchCoordinator,
        mutations: OptimisticMutationCoordinator,
        api: ApiClient,
        user_id: str,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._mutations = mutations
        self._api = api
        self._user_id = user_id

    def _key(self, event_id: str) -> CacheKey:
        return CacheKey(CACHE_TYPE, event_id, self._user_id)

    def seed(self, event_id: str, event: Mapping[str, Any]) -> None:
        """Populate the cache from an already-loaded event payload."""
        if "reactions" in event:
            self._cache.set_key(self._key(event_id), normalize_reactions(event))

    async def get(self, event_id: str, *, force_refresh: bool = False) -> dict[str, Any]:
        async def from_reactions_endpoint() -> Any:
            payload = await self._api.get_json(f"/api/events/{event_id}/reactions")
            return payload if isinstance(payload, Mapping) and payload.get("reactions") else MISS

        async def from_event() -> Any:
            payload = await self._api.get_json(f"/api/events/{event_id}")
            return payload if isinstance(payload, Mapping) and payload.get("reactions") else MISS

        outcome = await self._fetcher.resolve(
            CACHE_TYPE,
            [from_reactions_endpoint, from_event],
            identifier=event_id,
            scope=self._user_id,
            force_refresh=force_refresh,
            normalize=normalize_reactions,
        )
        if isinstance(outcome, Hit):
            return outcome.value
        # Shown as zero but not cached: "unknown" must stay distinguishable from "known zero".
        logger.info("reactions_unavailable", outcome=type(outcome).__name__)
        return empty_state()

    async def toggle(self, event_id: str, reaction_type: str) -> dict[str, Any]:
        if reaction_type not in REACTION_TYPES:
            raise ValueError(f"unknown reaction type: {reaction_type!r}")

        removing = False

        def compute(current: dict[str, Any] | None) -> dict[str, Any]:
            nonlocal removing
            removing = current is not None and current.get("user_reaction") == reaction_type
            return apply_toggle(current, reaction_type)

        async def remote() -> Any:
            if removing:
                return await self._api.delete_json(f"/api/events/{event_id}/react")
            return await self._api.post_json(
                f"/api/events/{event_id}/react", {"reactionType": reaction_type}
            )

        def reconcile(server: Any, optimistic: dict[str, Any]) -> dict[str, Any]:
            raw = server.get("reactions") if isinstance(server, Mapping) else None
            if not isinstance(raw, Mapping):
                return optimistic
            if removing:
                user_reaction = None
            elif "userReaction" in raw:
                user_reaction = raw["userReaction"]
            else:
                user_reaction = reaction_type
            return {"counts": _counts_from(raw), "user_reaction": user_reaction}

        return await self._mutations.mutate(self._key(event_id), compute, remote, reconcile)
