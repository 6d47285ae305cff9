import httpx
import pytest


@pytest.mark.asyncio
async def test_json_response(fake_api, api) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True})

    fake_api.route("GET", "/api/ping", handler)

    assert await api.get_json("/api/ping") == {"ok": True}


@pytest.mark.asyncio
async def test_empty_body_is_none(fake_api, api) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    fake_api.route("DELETE", "/api/things/1", handler)

    assert await api.delete_json("/api/things/1") is None


@pytest.mark.asyncio
async def test_non_json_body_is_wrapped(fake_api, api) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="pong")

    fake_api.route("GET", "/api/ping", handler)

    assert await api.get_json("/api/ping") == {"raw_text": "pong"}


@pytest.mark.asyncio
async def test_error_status_raises(fake_api, api) -> None:
    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        await api.get_json("/api/missing")

    assert exc_info.value.response.status_code == 404
