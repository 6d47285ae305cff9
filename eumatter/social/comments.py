from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from eumatter.api_client import ApiClient
from eumatter.core.cache import CacheKey, FetchCoordinator, OptimisticMutationCoordinator
from eumatter.normalize import as_list

CACHE_TYPE = "comments"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clean_text(text: str) -> str:
    trimmed = (text or "").strip()
    if not trimmed:
        raise ValueError("comment text cannot be empty")
    return trimmed


class CommentService:
    """Event comments with optimistic add, edit and delete.

    Comment lists are cached per event, newest first. When a list is not
    cached the optimistic step leaves it uncached rather than inventing a
    partial list.
    """

    def __init__(
        self,
        *,
        fetcher: FetchCoordinator,
        mutations: OptimisticMutationCoordinator,
        api: ApiClient,
        author: Mapping[str, Any],
    ) -> None:
        self._fetcher = fetcher
        self._mutations = mutations
        self._api = api
        self._author = dict(author)

    async def list(self, event_id: str, *, force_refresh: bool = False) -> list[dict[str, Any]]:
        return await self._fetcher.cached_get(
            CACHE_TYPE,
            lambda: self._api.get_json(f"/api/events/{event_id}/comments"),
            identifier=event_id,
            force_refresh=force_refresh,
            normalize=lambda payload: as_list(payload, "comments", "items"),
        )

    async def add(self, event_id: str, text: str) -> list[dict[str, Any]] | None:
        text = _clean_text(text)
        temp_id = f"temp-{uuid4().hex}"
        optimistic_comment = {
            "_id": temp_id,
            "text": text,
            "user": dict(self._author),
            "createdAt": _utc_now_iso(),
            "is_optimistic": True,
        }

        def compute(comments: list[dict[str, Any]] | None) -> list[dict[str, Any]] | None:
            if comments is None:
                return None
            return [optimistic_comment, *comments]

        def reconcile(
            server: Any, comments: list[dict[str, Any]] | None
        ) -> list[dict[str, Any]] | None:
            if not isinstance(server, Mapping) or not server.get("_id"):
                # Keep the optimistic entry; the next refresh brings the real one.
                return comments
            confirmed = self._server_comment(server, text)
            if comments is None:
                return None
            if any(c.get("_id") == confirmed["_id"] for c in comments):
                # A refresh during the request already brought the real comment.
                return [c for c in comments if c.get("_id") != temp_id]
            updated = list(comments)
            for index, comment in enumerate(updated):
                if comment.get("_id") == temp_id:
                    updated[index] = confirmed
                    break
            else:
                updated.insert(0, confirmed)
            return updated

        return await self._mutations.mutate(
            CacheKey(CACHE_TYPE, event_id),
            compute,
            lambda: self._api.post_json(f"/api/events/{event_id}/comments", {"text": text}),
            reconcile,
        )

    async def edit(self, event_id: str, comment_id: str, text: str) -> list[dict[str, Any]] | None:
        text = _clean_text(text)

        def compute(comments: list[dict[str, Any]] | None) -> list[dict[str, Any]] | None:
            if comments is None:
                return None
            edited_at = _utc_now_iso()
            return [
                {**c, "text": text, "updatedAt": edited_at} if c.get("_id") == comment_id else c
                for c in comments
            ]

        def reconcile(
            server: Any, comments: list[dict[str, Any]] | None
        ) -> list[dict[str, Any]] | None:
            if comments is None or not isinstance(server, Mapping):
                return comments
            merged = []
            for c in comments:
                if c.get("_id") == comment_id:
                    user = server.get("user")
                    c = {**c, **server, "user": user if isinstance(user, Mapping) else c.get("user")}
                merged.append(c)
            return merged

        return await self._mutations.mutate(
            CacheKey(CACHE_TYPE, event_id),
            compute,
            lambda: self._api.put_json(
                f"/api/events/{event_id}/comments/{comment_id}", {"text": text}
            ),
            reconcile,
        )

    async def delete(self, event_id: str, comment_id: str) -> list[dict[str, Any]] | None:
        def compute(comments: list[dict[str, Any]] | None) -> list[dict[str, Any]] | None:
            if comments is None:
                return None
            return [c for c in comments if c.get("_id") != comment_id]

        return await self._mutations.mutate(
            CacheKey(CACHE_TYPE, event_id),
            compute,
            lambda: self._api.delete_json(f"/api/events/{event_id}/comments/{comment_id}"),
        )

    def _server_comment(self, server: Mapping[str, Any], text: str) -> dict[str, Any]:
        user = server.get("user")
        comment = {
            "_id": server["_id"],
            "text": server.get("text") or text,
            "createdAt": server.get("createdAt") or _utc_now_iso(),
            "user": dict(user) if isinstance(user, Mapping) else dict(self._author),
        }
        if server.get("updatedAt"):
            comment["updatedAt"] = server["updatedAt"]
        return comment
