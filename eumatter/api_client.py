"""
Remote API client.

A thin httpx.AsyncClient wrapper. The cache layer only sees the coroutines
this produces; transport errors surface as httpx exceptions.
"""

from __future__ import annotations

from typing import Any

import httpx

from eumatter.config import settings
from eumatter.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=30.0,
)


class ApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url if base_url is not None else settings.api_base_url,
            timeout=httpx.Timeout(
                timeout if timeout is not None else settings.http_request_timeout_seconds
            ),
            headers=headers or {},
            limits=DEFAULT_LIMITS,
            transport=transport,
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()
            logger.info("api_client_closed")

    async def get_json(self, url: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", url, params=params)

    async def post_json(self, url: str, payload: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", url, json=payload)

    async def put_json(self, url: str, payload: dict[str, Any] | None = None) -> Any:
        return await self._request("PUT", url, json=payload)

    async def delete_json(self, url: str) -> Any:
        return await self._request("DELETE", url)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self._client.request(method, url, **kwargs)
        if response.is_error:
            logger.warning(
                "api_request_failed",
                method=method,
                path=response.request.url.path,
                status=response.status_code,
            )
        response.raise_for_status()
        if not response.content:
            return None
        content_type = response.headers.get("Content-Type", "")
        if "json" in content_type:
            return response.json()
        return {"raw_text": response.text}
