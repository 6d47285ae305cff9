import asyncio

import pytest

from eumatter.core.cache import MISS, Failed, FetchCoordinator, FetchQuery, Hit, Miss


class _Counter:
    def __init__(self, value=None, *, error: Exception | None = None, delay: float = 0.0):
        self.calls = 0
        self._value = value
        self._error = error
        self._delay = delay

    async def __call__(self):
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self._value


@pytest.mark.asyncio
async def test_hit_skips_network(cache, fetcher) -> None:
    cache.set("donations", [1])
    fetch = _Counter([2])

    assert await fetcher.cached_get("donations", fetch) == [1]
    assert fetch.calls == 0


@pytest.mark.asyncio
async def test_miss_fetches_and_stores(cache, fetcher) -> None:
    fetch = _Counter([{"_id": "v1"}])

    assert await fetcher.cached_get("volunteers", fetch, identifier="e1") == [{"_id": "v1"}]
    assert await fetcher.cached_get("volunteers", fetch, identifier="e1") == [{"_id": "v1"}]
    assert fetch.calls == 1
    assert cache.get("volunteers", identifier="e1") == [{"_id": "v1"}]


@pytest.mark.asyncio
async def test_force_refresh_fetches_again(cache, fetcher) -> None:
    cache.set("donations", [1])
    fetch = _Counter([2])

    assert await fetcher.cached_get("donations", fetch, force_refresh=True) == [2]
    assert cache.get("donations") == [2]


@pytest.mark.asyncio
async def test_failed_refresh_keeps_cached_value(cache, fetcher) -> None:
    cache.set("donations", [1])
    fetch = _Counter(error=ConnectionError("offline"))

    with pytest.raises(ConnectionError):
        await fetcher.cached_get("donations", fetch, force_refresh=True)

    assert cache.get("donations") == [1]


@pytest.mark.asyncio
async def test_normalize_runs_before_store(cache, fetcher) -> None:
    fetch = _Counter({"items": [1, 2]})

    value = await fetcher.cached_get("users", fetch, normalize=lambda p: p["items"])

    assert value == [1, 2]
    assert cache.get("users") == [1, 2]


@pytest.mark.asyncio
async def test_normalize_failure_is_not_cached(cache, fetcher) -> None:
    def reject(payload):
        raise ValueError("unexpected shape")

    with pytest.raises(ValueError):
        await fetcher.cached_get("users", _Counter("oops"), normalize=reject)
    assert cache.get("users") is None


@pytest.mark.asyncio
async def test_concurrent_fetches_are_coalesced(fetcher) -> None:
    fetch = _Counter(["value"], delay=0.05)

    results = await asyncio.gather(*[fetcher.cached_get("events", fetch) for _ in range(5)])

    assert results == [["value"]] * 5
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_coalescing_can_be_disabled(cache) -> None:
    fetcher = FetchCoordinator(cache, coalesce=False)
    fetch = _Counter(["value"], delay=0.05)

    results = await asyncio.gather(*[fetcher.cached_get("events", fetch) for _ in range(3)])

    assert results == [["value"]] * 3
    assert fetch.calls == 3
    assert cache.get("events") == ["value"]


@pytest.mark.asyncio
async def test_prefetch_always_fetches(cache, fetcher) -> None:
    cache.set("systemSettings", {"v": 1})
    assert await fetcher.prefetch("systemSettings", _Counter({"v": 2})) == {"v": 2}
    assert cache.get("systemSettings") == {"v": 2}


@pytest.mark.asyncio
async def test_cached_get_many(fetcher) -> None:
    results = await fetcher.cached_get_many(
        {
            "stats": FetchQuery("dashboardStats", _Counter({"total": 5})),
            "board": FetchQuery("reports", _Counter([1]), identifier="leaderboard"),
        }
    )
    assert results == {"stats": {"total": 5}, "board": [1]}


@pytest.mark.asyncio
async def test_resolve_hit_from_cache(cache, fetcher) -> None:
    cache.set("reactions", {"counts": {}}, identifier="e1")
    strategy = _Counter({"other": True})

    outcome = await fetcher.resolve("reactions", [strategy], identifier="e1")

    assert outcome == Hit(value={"counts": {}}, source="cache")
    assert strategy.calls == 0


@pytest.mark.asyncio
async def test_resolve_falls_back_to_next_strategy(cache, fetcher) -> None:
    primary = _Counter(error=LookupError("no endpoint"))
    secondary = _Counter({"n": 1})

    outcome = await fetcher.resolve("reactions", [primary, secondary], identifier="e1")

    assert outcome == Hit(value={"n": 1}, source="remote")
    assert cache.get("reactions", identifier="e1") == {"n": 1}


@pytest.mark.asyncio
async def test_resolve_miss_when_nothing_offered(cache, fetcher) -> None:
    outcome = await fetcher.resolve("reactions", [_Counter(MISS), _Counter(None)])

    assert isinstance(outcome, Miss)
    assert cache.get("reactions") is None


@pytest.mark.asyncio
async def test_resolve_failed_reports_last_error(cache, fetcher) -> None:
    error = RuntimeError("500")
    outcome = await fetcher.resolve("reactions", [_Counter(MISS), _Counter(error=error)])

    assert outcome == Failed(error=error)
    assert cache.get("reactions") is None


@pytest.mark.asyncio
async def test_mutate_and_invalidate_drops_listed_types(cache, fetcher) -> None:
    cache.set("events", ["e1"], scope="staff")
    cache.set("events", ["e1"], identifier="upcoming", scope="staff")
    cache.set("events", ["e9"], scope="student")
    cache.set("dashboardStats", {"total": 1}, scope="staff")
    cache.set("donations", [1], scope="staff")
    write = _Counter({"_id": "e2"})

    result = await fetcher.mutate_and_invalidate(
        write, ["events", "dashboardStats"], scope="staff"
    )

    assert result == {"_id": "e2"}
    assert write.calls == 1
    assert cache.get("events", scope="staff") is None
    assert cache.get("events", identifier="upcoming", scope="staff") is None
    assert cache.get("dashboardStats", scope="staff") is None
    assert cache.get("events", scope="student") == ["e9"]
    assert cache.get("donations", scope="staff") == [1]


@pytest.mark.asyncio
async def test_mutate_and_invalidate_without_scope_drops_every_scope(cache, fetcher) -> None:
    cache.set("events", ["e1"], scope="staff")
    cache.set("events", ["e9"], scope="student")

    await fetcher.mutate_and_invalidate(_Counter(None), ["events"])

    assert cache.get("events", scope="staff") is None
    assert cache.get("events", scope="student") is None


@pytest.mark.asyncio
async def test_failed_mutate_and_invalidate_leaves_cache(cache, fetcher) -> None:
    cache.set("events", ["e1"], scope="staff")

    with pytest.raises(ConnectionError):
        await fetcher.mutate_and_invalidate(
            _Counter(error=ConnectionError("offline")), ["events"], scope="staff"
        )

    assert cache.get("events", scope="staff") == ["e1"]
