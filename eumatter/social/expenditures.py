from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from eumatter.api_client import ApiClient
from eumatter.core.cache import CacheKey, FetchCoordinator, OptimisticMutationCoordinator
from eumatter.normalize import as_list

CACHE_TYPE = "expenditures"


class ExpenditureService:
    """Expenditure approval workflow (pending -> approved | rejected -> paid).

    ``scope`` separates lists fetched by different roles, since departments
    only ever see their own expenditures.
    """

    def __init__(
        self,
        *,
        fetcher: FetchCoordinator,
        mutations: OptimisticMutationCoordinator,
        api: ApiClient,
        scope: str = "",
    ) -> None:
        self._fetcher = fetcher
        self._mutations = mutations
        self._api = api
        self._key = CacheKey(CACHE_TYPE, "", scope)

    async def list(self, *, force_refresh: bool = False) -> list[dict[str, Any]]:
        return await self._fetcher.cached_get(
            CACHE_TYPE,
            lambda: self._api.get_json("/api/expenditures"),
            scope=self._key.scope,
            force_refresh=force_refresh,
            normalize=lambda payload: as_list(payload, "expenditures", "items"),
        )

    async def approve(self, expenditure_id: str) -> list[dict[str, Any]] | None:
        return await self._transition(expenditure_id, "approved", "approve")

    async def reject(self, expenditure_id: str, reason: str = "") -> list[dict[str, Any]] | None:
        return await self._transition(
            expenditure_id,
            "rejected",
            "reject",
            payload={"rejectionReason": reason},
            changes={"rejectionReason": reason},
        )

    async def mark_paid(self, expenditure_id: str) -> list[dict[str, Any]] | None:
        return await self._transition(expenditure_id, "paid", "mark-paid")

    async def _transition(
        self,
        expenditure_id: str,
        status: str,
        action: str,
        *,
        payload: dict[str, Any] | None = None,
        changes: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]] | None:
        def compute(records: list[dict[str, Any]] | None) -> list[dict[str, Any]] | None:
            if records is None:
                return None
            return [
                {**r, **(changes or {}), "status": status} if r.get("_id") == expenditure_id else r
                for r in records
            ]

        def reconcile(
            server: Any, records: list[dict[str, Any]] | None
        ) -> list[dict[str, Any]] | None:
            confirmed = server.get("expenditure") if isinstance(server, Mapping) else None
            if records is None or not isinstance(confirmed, Mapping):
                return records
            return [
                dict(confirmed) if r.get("_id") == expenditure_id else r for r in records
            ]

        return await self._mutations.mutate(
            self._key,
            compute,
            lambda: self._api.post_json(f"/api/expenditures/{expenditure_id}/{action}", payload),
            reconcile,
        )
