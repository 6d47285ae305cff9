import json

import httpx
import pytest

from eumatter.core.cache import CacheKey
from eumatter.social.reactions import ReactionService, apply_toggle, empty_counts, empty_state

KEY = CacheKey("reactions", "e1", "u1")


def _counts(**overrides: int) -> dict[str, int]:
    return {**empty_counts(), **overrides}


@pytest.fixture
def service(cache, fetcher, mutations, api) -> ReactionService:
    return ReactionService(cache=cache, fetcher=fetcher, mutations=mutations, api=api, user_id="u1")


def test_apply_toggle_insert_switch_remove() -> None:
    inserted = apply_toggle(empty_state(), "like")
    assert inserted == {"counts": _counts(like=1), "user_reaction": "like"}

    switched = apply_toggle(inserted, "love")
    assert switched == {"counts": _counts(love=1), "user_reaction": "love"}

    removed = apply_toggle(switched, "love")
    assert removed == {"counts": _counts(), "user_reaction": None}


def test_apply_toggle_never_goes_negative() -> None:
    state = {"counts": _counts(), "user_reaction": "sad"}
    assert apply_toggle(state, "sad")["counts"]["sad"] == 0


@pytest.mark.asyncio
async def test_toggle_commits_server_counts(cache, fake_api, service) -> None:
    cache.set_key(KEY, empty_state())
    seen_during_flight = []

    async def react(request: httpx.Request) -> httpx.Response:
        seen_during_flight.append(cache.get_key(KEY))
        assert json.loads(request.content) == {"reactionType": "like"}
        return httpx.Response(
            200,
            json={"message": "ok", "reactions": {**_counts(like=1), "total": 1}},
        )

    fake_api.route("POST", "/api/events/e1/react", react)

    state = await service.toggle("e1", "like")

    assert seen_during_flight == [{"counts": _counts(like=1), "user_reaction": "like"}]
    assert state == {"counts": _counts(like=1), "user_reaction": "like"}
    assert cache.get_key(KEY) == state


@pytest.mark.asyncio
async def test_toggle_takes_concurrent_counts_from_server(cache, fake_api, service) -> None:
    cache.set_key(KEY, empty_state())

    async def react(request: httpx.Request) -> httpx.Response:
        reactions = {**_counts(like=4, wow=2), "userReaction": "like"}
        return httpx.Response(200, json={"reactions": reactions})

    fake_api.route("POST", "/api/events/e1/react", react)

    state = await service.toggle("e1", "like")

    assert state == {"counts": _counts(like=4, wow=2), "user_reaction": "like"}


@pytest.mark.asyncio
async def test_toggle_failure_rolls_back(cache, fake_api, service) -> None:
    cache.set_key(KEY, empty_state())

    async def react(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "Server error"})

    fake_api.route("POST", "/api/events/e1/react", react)

    with pytest.raises(httpx.HTTPStatusError):
        await service.toggle("e1", "like")

    assert cache.get_key(KEY) == empty_state()


@pytest.mark.asyncio
async def test_toggle_same_reaction_deletes(cache, fake_api, service) -> None:
    cache.set_key(KEY, {"counts": _counts(like=2), "user_reaction": "like"})

    async def unreact(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": "removed", "reactions": _counts(like=1)})

    fake_api.route("DELETE", "/api/events/e1/react", unreact)

    state = await service.toggle("e1", "like")

    assert state == {"counts": _counts(like=1), "user_reaction": None}
    assert fake_api.calls("DELETE", "/api/events/e1/react") == 1
    assert fake_api.calls("POST", "/api/events/e1/react") == 0


@pytest.mark.asyncio
async def test_first_reaction_failure_restores_absence(cache, fake_api, service) -> None:
    async def react(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    fake_api.route("POST", "/api/events/e1/react", react)

    with pytest.raises(httpx.ConnectError):
        await service.toggle("e1", "wow")

    assert cache.get_key(KEY) is None


@pytest.mark.asyncio
async def test_unknown_reaction_type_is_rejected(cache, service) -> None:
    cache.set_key(KEY, empty_state())
    with pytest.raises(ValueError):
        await service.toggle("e1", "meh")
    assert cache.get_key(KEY) == empty_state()


@pytest.mark.asyncio
async def test_get_falls_back_to_event_payload(cache, fake_api, service) -> None:
    async def event(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"_id": "e1", "reactions": _counts(like=2), "userReaction": "love"},
        )

    fake_api.route("GET", "/api/events/e1", event)

    first = await service.get("e1")
    second = await service.get("e1")

    assert first == {"counts": _counts(like=2), "user_reaction": "love"}
    assert second == first
    assert fake_api.calls("GET", "/api/events/e1/reactions") == 1
    assert fake_api.calls("GET", "/api/events/e1") == 1


@pytest.mark.asyncio
async def test_get_strips_totals_from_reactions_endpoint(fake_api, service) -> None:
    async def reactions(request: httpx.Request) -> httpx.Response:
        payload = {**_counts(haha=3), "total": 3, "userReaction": "haha"}
        return httpx.Response(200, json={"reactions": payload})

    fake_api.route("GET", "/api/events/e1/reactions", reactions)

    assert await service.get("e1") == {"counts": _counts(haha=3), "user_reaction": "haha"}


@pytest.mark.asyncio
async def test_unavailable_reactions_are_not_cached(cache, fake_api, service) -> None:
    async def down(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "down"})

    fake_api.route("GET", "/api/events/e1/reactions", down)
    fake_api.route("GET", "/api/events/e1", down)

    assert await service.get("e1") == empty_state()
    assert cache.get_key(KEY) is None


@pytest.mark.asyncio
async def test_seed_from_event_payload(cache, service) -> None:
    service.seed("e1", {"_id": "e1", "reactions": _counts(sad=1)})
    assert cache.get_key(KEY) == {"counts": _counts(sad=1), "user_reaction": None}


@pytest.mark.asyncio
async def test_reactions_are_per_viewer(cache, fetcher, mutations, api, service) -> None:
    service.seed("e1", {"reactions": _counts(like=1), "userReaction": "like"})
    other = ReactionService(
        cache=cache, fetcher=fetcher, mutations=mutations, api=api, user_id="u2"
    )
    other.seed("e1", {"reactions": _counts(like=1)})

    assert cache.get_key(KEY)["user_reaction"] == "like"
    assert cache.get_key(CacheKey("reactions", "e1", "u2"))["user_reaction"] is None
