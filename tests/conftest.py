"""Test fixtures and configuration."""

from collections.abc import AsyncIterator, Callable

import httpx
import pytest
import pytest_asyncio

from eumatter.api_client import ApiClient
from eumatter.config import Settings
from eumatter.core.cache import (
    CacheFacade,
    FetchCoordinator,
    MemoryStorage,
    OptimisticMutationCoordinator,
    create_cache,
)
from eumatter.logger import setup_logging


@pytest.fixture(scope="session", autouse=True)
def _configure_logging() -> None:
    setup_logging()


class FakeClock:
    """Wall clock the tests advance by hand."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, cache_persistent_enabled=True, cache_storage_path="")


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage(capacity_bytes=5 * 1024 * 1024)


@pytest.fixture
def cache(test_settings: Settings, storage: MemoryStorage, clock: FakeClock) -> CacheFacade:
    return create_cache(test_settings, storage=storage, clock=clock)


@pytest.fixture
def reload_cache(
    test_settings: Settings, storage: MemoryStorage, clock: FakeClock
) -> Callable[[], CacheFacade]:
    """Build a fresh cache over the same storage, i.e. simulate a page reload."""

    def _reload() -> CacheFacade:
        return create_cache(test_settings, storage=storage, clock=clock)

    return _reload


@pytest.fixture
def fetcher(cache: CacheFacade) -> FetchCoordinator:
    return FetchCoordinator(cache)


@pytest.fixture
def mutations(cache: CacheFacade) -> OptimisticMutationCoordinator:
    return OptimisticMutationCoordinator(cache)


class FakeApi:
    """Routes requests to per-(method, path) handlers and records them."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, handler: Callable) -> None:
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Not found"})
        return await handler(request)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest_asyncio.fixture
async def api(fake_api: FakeApi) -> AsyncIterator[ApiClient]:
    client = ApiClient("https://api.test", transport=httpx.MockTransport(fake_api.handle))
    yield client
    await client.aclose()
