"""Trending ranking tests."""

from __future__ import annotations

from datetime import timedelta
from uuid import UUID

import pytest
from httpx import AsyncClient

from picks_api.common.time import utc_now
from picks_api.core.rbac import UserRole
from picks_api.features.picks.models import Pick
from picks_api.features.picks.schemas import PickStats
from picks_api.features.trending.cache import TrendingCache
from picks_api.features.trending.service import (
    TrendingAlgorithm,
    engagement_score,
    rank_score,
)


def test_engagement_score_weights() -> None:
    stats = PickStats(upvotes=2, comments=1, bookmarks=1)

    assert engagement_score(stats, views=30) == 2 * 5 + 10 + 7 + 3.0


def test_rank_score_by_algorithm() -> None:
    assert rank_score(TrendingAlgorithm.TOP, 40.0, 10.0) == 40.0
    assert rank_score(TrendingAlgorithm.HOT, 16.0, 2.0) == pytest.approx(2.0)
    assert rank_score(TrendingAlgorithm.RISING, 30.0, 3.0) == 10.0
    assert rank_score(TrendingAlgorithm.RISING, 30.0, 0.0) == 30.0
    assert rank_score(TrendingAlgorithm.NEW, 99.0, 1.0) == 0.0


def test_hot_prefers_fresh_engagement() -> None:
    fresh = rank_score(TrendingAlgorithm.HOT, 20.0, 1.0)
    stale = rank_score(TrendingAlgorithm.HOT, 20.0, 48.0)

    assert fresh > stale


class _Clock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_cache_entries_expire() -> None:
    clock = _Clock(100.0)
    cache = TrendingCache(ttl_seconds=10, timer=clock)
    cache.set("key", "value")

    clock.now = 105.0
    assert cache.get("key") == "value"
    clock.now = 111.0
    assert cache.get("key") is None
    assert len(cache) == 0


def test_cache_drops_expired_viewers_without_lookups() -> None:
    clock = _Clock()
    cache = TrendingCache(ttl_seconds=1, timer=clock)
    for viewer in range(500):
        cache.set(("hot", "ALL", "week", 20, f"viewer-{viewer}"), [])

    clock.now = 10_000.0
    cache.set(("hot", "ALL", "week", 20, "latest"), [])

    assert len(cache) == 1


def test_cache_is_capped_by_entry_count() -> None:
    cache = TrendingCache(ttl_seconds=600, max_entries=3, timer=_Clock())
    for key in ("a", "b", "c", "d"):
        cache.set(key, key.upper())

    assert len(cache) == 3
    assert cache.get("a") is None
    assert cache.get("d") == "D"


@pytest.mark.asyncio
async def test_trending_route_is_not_treated_as_a_pick_id(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    author = await make_user()
    fan = await make_user()
    quiet = await create_pick(author, matchup="Jets @ Dolphins", sport="NFL")
    popular = await create_pick(author, matchup="Chiefs @ Bills", sport="NFL")
    await async_client.post(
        f"/api/picks/{popular['id']}/vote", json={"vote_type": "UPVOTE"}, headers=fan.headers
    )
    await async_client.post(
        f"/api/picks/{popular['id']}/comments",
        json={"content": "Bills at home in January"},
        headers=fan.headers,
    )

    response = await async_client.get(
        "/api/picks/trending", params={"algorithm": "top", "sport": "nfl"}
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["algorithm"] == "top"
    assert body["sport"] == "NFL"
    assert [item["id"] for item in body["picks"]] == [popular["id"], quiet["id"]]
    assert body["picks"][0]["engagement"] == 15.0
    assert body["picks"][0]["author_win_rate"] == 0


@pytest.mark.asyncio
async def test_trending_rejects_unknown_sport(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/picks/trending", params={"sport": "curling"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_new_algorithm_orders_by_recency(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    author = await make_user()
    first = await create_pick(author)
    second = await create_pick(author, matchup="Knicks vs Heat")

    response = await async_client.get("/api/picks/trending", params={"algorithm": "new"})

    assert [item["id"] for item in response.json()["picks"]] == [second["id"], first["id"]]


async def _age(session_factory, pick_id: str, *, hours: float, views: int = 0) -> None:
    """Backdate a pick's creation time and set its view counter."""

    async with session_factory() as session:
        pick = await session.get(Pick, UUID(pick_id))
        pick.created_at = utc_now() - timedelta(hours=hours)
        pick.view_count = views
        await session.commit()


async def _engage(
    client: AsyncClient,
    pick_id: str,
    fans: list,
    *,
    upvotes: int = 0,
    comments: int = 0,
    bookmarks: int = 0,
) -> None:
    for fan in fans[:upvotes]:
        response = await client.post(
            f"/api/picks/{pick_id}/vote", json={"vote_type": "UPVOTE"}, headers=fan.headers
        )
        assert response.is_success, response.text
    for fan in fans[:comments]:
        response = await client.post(
            f"/api/picks/{pick_id}/comments",
            json={"content": "Tailing this one"},
            headers=fan.headers,
        )
        assert response.is_success, response.text
    for fan in fans[:bookmarks]:
        response = await client.post(f"/api/picks/{pick_id}/bookmark", headers=fan.headers)
        assert response.is_success, response.text


async def _trending_ids(client: AsyncClient, **params) -> list[str]:
    response = await client.get("/api/picks/trending", params=params)
    assert response.status_code == 200, response.text
    return [item["id"] for item in response.json()["picks"]]


@pytest.mark.asyncio
async def test_hot_rising_and_top_rank_the_same_picks_differently(
    async_client: AsyncClient, make_user, create_pick, session_factory
) -> None:
    author = await make_user()
    fans = [await make_user() for _ in range(3)]
    fresh = await create_pick(author, matchup="Suns vs Nuggets")
    steady = await create_pick(author, matchup="Bucks vs Heat")
    veteran = await create_pick(author, matchup="Knicks vs Nets")
    await _engage(async_client, fresh["id"], fans, upvotes=1)
    await _engage(async_client, steady["id"], fans, upvotes=3, comments=1)
    await _engage(async_client, veteran["id"], fans, comments=2, bookmarks=2)
    await _age(session_factory, fresh["id"], hours=1)
    await _age(session_factory, steady["id"], hours=40, views=50)
    await _age(session_factory, veteran["id"], hours=72)

    top = await async_client.get("/api/picks/trending", params={"algorithm": "top"})
    hot = await _trending_ids(async_client, algorithm="hot")
    rising = await _trending_ids(async_client, algorithm="rising", period="all")

    assert [item["id"] for item in top.json()["picks"]] == [
        veteran["id"],
        steady["id"],
        fresh["id"],
    ]
    assert [item["engagement"] for item in top.json()["picks"]] == [34.0, 30.0, 5.0]
    assert hot == [fresh["id"], steady["id"], veteran["id"]]
    assert rising == [fresh["id"], steady["id"]]


@pytest.mark.asyncio
async def test_period_narrows_only_top_and_rising(
    async_client: AsyncClient, make_user, create_pick, session_factory
) -> None:
    author = await make_user()
    recent = await create_pick(author, matchup="Rangers vs Devils")
    older = await create_pick(author, matchup="Kings vs Ducks")
    await _age(session_factory, recent["id"], hours=2)
    await _age(session_factory, older["id"], hours=72)

    assert await _trending_ids(async_client, algorithm="top", period="today") == [recent["id"]]
    assert await _trending_ids(async_client, algorithm="rising", period="today") == [
        recent["id"]
    ]
    assert await _trending_ids(async_client, algorithm="new", period="today") == [
        recent["id"],
        older["id"],
    ]
    assert set(await _trending_ids(async_client, algorithm="hot", period="today")) == {
        recent["id"],
        older["id"],
    }
    assert set(await _trending_ids(async_client, algorithm="top", period="week")) == {
        recent["id"],
        older["id"],
    }


@pytest.mark.asyncio
async def test_cached_results_are_kept_per_viewer(
    async_client: AsyncClient, make_user, purchased_pick
) -> None:
    """A buyer's unlocked copy must not be served to anyone else."""

    stranger = await make_user()
    params = {"algorithm": "new"}

    bought = await async_client.get(
        "/api/picks/trending", params=params, headers=purchased_pick["buyer"].headers
    )
    other = await async_client.get("/api/picks/trending", params=params, headers=stranger.headers)
    anonymous = await async_client.get("/api/picks/trending", params=params)

    [unlocked] = bought.json()["picks"]
    assert unlocked["is_premium_locked"] is False
    assert unlocked["details"] == purchased_pick["pick"]["details"]
    for response in (other, anonymous):
        [locked] = response.json()["picks"]
        assert locked["is_premium_locked"] is True
        assert locked["details"] == ""


@pytest.mark.asyncio
async def test_items_carry_the_author_win_rate(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    creator = await make_user()
    newcomer = await make_user()
    for result in ("WON", "WON", "LOST"):
        pick = await create_pick(creator)
        graded = await async_client.patch(
            f"/api/admin/picks/{pick['id']}",
            json={"verify_result": result},
            headers=admin.headers,
        )
        assert graded.status_code == 200, graded.text
    await create_pick(newcomer, matchup="Cubs vs Cardinals")

    response = await async_client.get("/api/picks/trending", params={"algorithm": "new"})

    rates = {item["author"]["id"]: item["author_win_rate"] for item in response.json()["picks"]}
    assert rates == {str(creator.id): 67, str(newcomer.id): 0}
