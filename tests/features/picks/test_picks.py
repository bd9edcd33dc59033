"""Pick lifecycle and presentation tests."""

from __future__ import annotations

from datetime import timedelta
from uuid import UUID

import pytest
from httpx import AsyncClient

from picks_api.common.time import utc_now
from picks_api.core.rbac import UserRole
from picks_api.features.picks.models import Pick
from picks_api.features.picks.service import LOCK_WINDOW, win_rate

PREMIUM_DETAILS = (
    "Celtics are 9-1 against the spread after a loss and Lakers are on a back to back."
)


async def _lock(session_factory, pick_id: str) -> None:
    """Move a pick's lock time into the past, as if its game were about to start."""

    async with session_factory() as session:
        pick = await session.get(Pick, UUID(pick_id))
        pick.locked_at = utc_now() - timedelta(minutes=1)
        await session.commit()


def test_win_rate_rounds_and_ignores_ungraded() -> None:
    assert win_rate(0, 0) == 0
    assert win_rate(2, 1) == 67
    assert win_rate(1, 2) == 33


@pytest.mark.asyncio
async def test_create_pick_sets_lock_time_before_the_game(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    author = await make_user()

    pick = await create_pick(author)

    assert pick["status"] == "PENDING"
    assert pick["moderation_status"] == "APPROVED"
    assert pick["author"]["id"] == str(author.id)
    assert pick["is_locked"] is False
    game_date = pick["game_date"]
    locked_at = pick["locked_at"]
    assert locked_at < game_date


@pytest.mark.asyncio
async def test_create_pick_rejects_games_inside_the_lock_window(
    async_client: AsyncClient, make_user
) -> None:
    author = await make_user()
    soon = utc_now() + LOCK_WINDOW - timedelta(minutes=1)

    response = await async_client.post(
        "/api/picks",
        json={
            "sport": "NFL",
            "matchup": "Chiefs @ Bills",
            "game_date": soon.isoformat(),
            "confidence": 4,
        },
        headers=author.headers,
    )

    assert response.status_code == 400
    assert "already started" in response.json()["detail"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"matchup": "Lakers <script> Celtics"},
        {"confidence": 6},
        {"sport": "CRICKET"},
        {"is_premium": True},
        {"is_premium": True, "price": "0.25"},
        {"odds": "even money"},
    ],
)
async def test_create_pick_validates_payload(
    async_client: AsyncClient, make_user, overrides: dict
) -> None:
    author = await make_user()
    payload = {
        "sport": "NBA",
        "matchup": "Lakers vs Celtics",
        "game_date": (utc_now() + timedelta(days=1)).isoformat(),
        "confidence": 3,
        **overrides,
    }

    response = await async_client.post("/api/picks", json=payload, headers=author.headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_suspended_author_cannot_post(async_client: AsyncClient, make_user) -> None:
    author = await make_user(suspended_until=utc_now() + timedelta(days=3))

    response = await async_client.post(
        "/api/picks",
        json={
            "sport": "NHL",
            "matchup": "Bruins vs Rangers",
            "game_date": (utc_now() + timedelta(days=1)).isoformat(),
            "confidence": 2,
        },
        headers=author.headers,
    )

    assert response.status_code == 403
    assert "suspended" in response.json()["detail"]


@pytest.mark.asyncio
async def test_banned_author_cannot_post(async_client: AsyncClient, make_user) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    author = await make_user()
    flagged = await async_client.patch(
        f"/api/admin/users/{author.id}", json={"account_status": "BANNED"}, headers=admin.headers
    )
    assert flagged.status_code == 200, flagged.text

    response = await async_client.post(
        "/api/picks",
        json={
            "sport": "MLB",
            "matchup": "Yankees vs Red Sox",
            "game_date": (utc_now() + timedelta(days=1)).isoformat(),
            "confidence": 2,
        },
        headers=author.headers,
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "Your account has been banned: No reason provided"


@pytest.mark.asyncio
async def test_premium_pick_is_masked_for_other_viewers(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    """Listings blank premium details; the detail view keeps a short preview."""

    author = await make_user()
    viewer = await make_user()
    pick = await create_pick(author, is_premium=True, price="9.99", details=PREMIUM_DETAILS)
    assert pick["details"] == PREMIUM_DETAILS

    listing = await async_client.get("/api/picks", headers=viewer.headers)
    assert listing.status_code == 200
    [listed] = listing.json()["picks"]
    assert listed["is_premium_locked"] is True
    assert listed["details"] == ""
    assert listed["price"] == 9.99

    detail = await async_client.get(f"/api/picks/{pick['id']}")
    body = detail.json()
    assert body["is_premium_locked"] is True
    assert body["details"] == PREMIUM_DETAILS[:50] + "..."
    assert body["odds"] is None

    own = await async_client.get(f"/api/picks/{pick['id']}", headers=author.headers)
    assert own.json()["details"] == PREMIUM_DETAILS
    assert own.json()["is_premium_locked"] is False


@pytest.mark.asyncio
async def test_listing_filters_by_sport_and_premium(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    author = await make_user()
    await create_pick(author, sport="NBA")
    await create_pick(author, sport="NFL", matchup="Chiefs @ Bills")
    await create_pick(author, sport="NFL", matchup="Eagles @ Cowboys", is_premium=True, price="5")

    nfl = await async_client.get("/api/picks", params={"sport": "NFL"})
    premium = await async_client.get("/api/picks", params={"premium_only": "true"})
    paged = await async_client.get("/api/picks", params={"limit": 2, "page": 2})

    assert {item["matchup"] for item in nfl.json()["picks"]} == {
        "Chiefs @ Bills",
        "Eagles @ Cowboys",
    }
    assert [item["matchup"] for item in premium.json()["picks"]] == ["Eagles @ Cowboys"]
    assert paged.json()["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}
    assert len(paged.json()["picks"]) == 1


@pytest.mark.asyncio
async def test_only_the_owner_can_edit_before_lock(
    async_client: AsyncClient, make_user, create_pick, session_factory
) -> None:
    author = await make_user()
    other = await make_user()
    pick = await create_pick(author)

    forbidden = await async_client.patch(
        f"/api/picks/{pick['id']}", json={"confidence": 5}, headers=other.headers
    )
    assert forbidden.status_code == 403

    updated = await async_client.patch(
        f"/api/picks/{pick['id']}", json={"confidence": 5}, headers=author.headers
    )
    assert updated.status_code == 200
    assert updated.json()["confidence"] == 5

    await _lock(session_factory, pick["id"])

    locked_edit = await async_client.patch(
        f"/api/picks/{pick['id']}", json={"confidence": 1}, headers=author.headers
    )
    locked_delete = await async_client.delete(f"/api/picks/{pick['id']}", headers=author.headers)
    assert locked_edit.status_code == 403
    assert "after the event has started" in locked_edit.json()["detail"]
    assert locked_delete.status_code == 403


@pytest.mark.asyncio
async def test_update_cannot_make_premium_without_price(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    author = await make_user()
    pick = await create_pick(author)

    response = await async_client.patch(
        f"/api/picks/{pick['id']}", json={"is_premium": True}, headers=author.headers
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_pick(async_client: AsyncClient, make_user, create_pick) -> None:
    author = await make_user()
    pick = await create_pick(author)

    deleted = await async_client.delete(f"/api/picks/{pick['id']}", headers=author.headers)
    missing = await async_client.get(f"/api/picks/{pick['id']}")

    assert deleted.status_code == 204
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_votes_comments_and_bookmarks_feed_stats(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    author = await make_user()
    fan = await make_user()
    pick = await create_pick(author)
    pick_url = f"/api/picks/{pick['id']}"

    vote = await async_client.post(
        f"{pick_url}/vote", json={"vote_type": "UPVOTE"}, headers=fan.headers
    )
    assert vote.json() == {"upvotes": 1, "downvotes": 0, "score": 1, "user_vote_type": "UPVOTE"}

    switched = await async_client.post(
        f"{pick_url}/vote", json={"vote_type": "DOWNVOTE"}, headers=fan.headers
    )
    assert switched.json()["score"] == -1

    comment = await async_client.post(
        f"{pick_url}/comments", json={"content": "Love this angle"}, headers=fan.headers
    )
    assert comment.status_code == 201

    bookmarked = await async_client.post(f"{pick_url}/bookmark", headers=fan.headers)
    duplicate = await async_client.post(f"{pick_url}/bookmark", headers=fan.headers)
    assert bookmarked.status_code == 201
    assert duplicate.status_code == 409

    detail = await async_client.get(pick_url, headers=fan.headers)
    body = detail.json()
    assert body["stats"]["downvotes"] == 1
    assert body["stats"]["comments"] == 1
    assert body["stats"]["bookmarks"] == 1
    assert body["is_bookmarked"] is True
    assert body["user_vote_type"] == "DOWNVOTE"


@pytest.mark.asyncio
async def test_comment_deletion_is_limited_to_author_and_staff(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    author = await make_user()
    commenter = await make_user()
    stranger = await make_user()
    pick = await create_pick(author)
    comment = await async_client.post(
        f"/api/picks/{pick['id']}/comments",
        json={"content": "Hammer the over"},
        headers=commenter.headers,
    )
    comment_url = f"/api/picks/{pick['id']}/comments/{comment.json()['id']}"

    forbidden = await async_client.delete(comment_url, headers=stranger.headers)
    allowed = await async_client.delete(comment_url, headers=commenter.headers)

    assert forbidden.status_code == 403
    assert allowed.status_code == 204
