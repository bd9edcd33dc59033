"""Report filing and moderation queue tests."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from picks_api.core.rbac import UserRole

MISSING_ID = "00000000-0000-0000-0000-000000000000"


async def _report(
    client: AsyncClient, reporter: Any, target_type: str, target_id: str, **extra: Any
) -> dict[str, Any]:
    response = await client.post(
        "/api/reports",
        json={"target_type": target_type, "target_id": target_id, "reason": "spam", **extra},
        headers=reporter.headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
@pytest.mark.parametrize("target_type", ["PICK", "COMMENT", "USER"])
async def test_reports_need_an_existing_target(
    async_client: AsyncClient, make_user, target_type: str
) -> None:
    reporter = await make_user()

    response = await async_client.post(
        "/api/reports",
        json={"target_type": target_type, "target_id": MISSING_ID, "reason": "spam"},
        headers=reporter.headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_report_defaults_to_medium_priority(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    reporter = await make_user()
    author = await make_user()
    pick = await create_pick(author)

    report = await _report(async_client, reporter, "PICK", pick["id"])

    assert report["status"] == "PENDING"
    assert report["priority"] == "MEDIUM"
    assert report["reporter_id"] == str(reporter.id)


@pytest.mark.asyncio
async def test_queue_orders_pending_and_urgent_first(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    reporter = await make_user()
    author = await make_user()
    pick = await create_pick(author)

    low = await _report(async_client, reporter, "PICK", pick["id"], priority="LOW")
    triaged = await _report(async_client, reporter, "USER", str(author.id), priority="URGENT")
    urgent = await _report(async_client, reporter, "PICK", pick["id"], priority="URGENT")
    medium = await _report(async_client, reporter, "USER", str(author.id))
    await async_client.patch(
        f"/api/admin/reports/{triaged['id']}",
        json={"status": "REVIEWING"},
        headers=moderator.headers,
    )

    response = await async_client.get("/api/admin/reports", headers=moderator.headers)

    assert response.status_code == 200, response.text
    body = response.json()
    assert [item["id"] for item in body["reports"]] == [
        urgent["id"],
        medium["id"],
        low["id"],
        triaged["id"],
    ]
    assert body["stats"]["by_status"] == {"PENDING": 3, "REVIEWING": 1}
    assert body["stats"]["pending_by_priority"] == {"URGENT": 1, "MEDIUM": 1, "LOW": 1}


@pytest.mark.asyncio
async def test_report_detail_describes_the_target(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    reporter = await make_user()
    author = await make_user()
    pick = await create_pick(author)
    report = await _report(async_client, reporter, "PICK", pick["id"])

    detail = await async_client.get(
        f"/api/admin/reports/{report['id']}", headers=moderator.headers
    )
    empty_update = await async_client.patch(
        f"/api/admin/reports/{report['id']}", json={}, headers=moderator.headers
    )

    assert detail.json()["target"]["matchup"] == "Lakers vs Celtics"
    assert detail.json()["target"]["user_id"] == str(author.id)
    assert empty_update.status_code == 400


@pytest.mark.asyncio
async def test_resolving_with_a_warning_sanctions_the_author(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    reporter = await make_user()
    author = await make_user()
    pick = await create_pick(author)
    report = await _report(async_client, reporter, "PICK", pick["id"])
    url = f"/api/admin/reports/{report['id']}/resolve"

    resolved = await async_client.post(
        url,
        json={"resolution": "Confirmed tout spam in pick", "action": "warn_user"},
        headers=moderator.headers,
    )

    assert resolved.status_code == 200, resolved.text
    body = resolved.json()
    assert body["report"]["status"] == "RESOLVED"
    assert body["report"]["action_taken"] == "warn_user"
    assert body["target_user_id"] == str(author.id)
    [sanction] = body["sanctions"]
    assert sanction["action"] == "WARN_USER"
    assert sanction["old_trust_score"] == 100
    assert sanction["new_trust_score"] == 90

    again = await async_client.post(
        url,
        json={"resolution": "Confirmed tout spam in pick", "action": "none"},
        headers=moderator.headers,
    )
    assert again.status_code == 400
    assert again.json()["detail"] == "Report already resolved"


@pytest.mark.asyncio
async def test_remove_content_hides_a_comment(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    author = await make_user()
    troll = await make_user()
    pick = await create_pick(author)
    comment = await async_client.post(
        f"/api/picks/{pick['id']}/comments",
        json={"content": "Buy my picks at a shady site"},
        headers=troll.headers,
    )
    report = await _report(async_client, author, "COMMENT", comment.json()["id"])

    resolved = await async_client.post(
        f"/api/admin/reports/{report['id']}/resolve",
        json={"resolution": "Comment advertises a scam", "action": "remove_content"},
        headers=moderator.headers,
    )

    assert resolved.status_code == 200, resolved.text
    comments = await async_client.get(f"/api/picks/{pick['id']}/comments")
    assert comments.json()["comments"] == []


@pytest.mark.asyncio
async def test_only_admins_resolve_with_a_ban(
    async_client: AsyncClient, make_user
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    admin = await make_user(role=UserRole.ADMIN)
    reporter = await make_user()
    author = await make_user()
    report = await _report(async_client, reporter, "USER", str(author.id))
    url = f"/api/admin/reports/{report['id']}/resolve"
    body = {"resolution": "Account exists only to scam", "action": "ban_user"}

    forbidden = await async_client.post(url, json=body, headers=moderator.headers)
    assert forbidden.status_code == 403

    banned = await async_client.post(url, json=body, headers=admin.headers)
    assert banned.status_code == 200, banned.text
    assert banned.json()["sanctions"] == [{"action": "BAN_USER", "user_id": str(author.id)}]

    me = await async_client.get("/api/auth/me", headers=author.headers)
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_resolution_requires_an_explanation(
    async_client: AsyncClient, make_user
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    reporter = await make_user()
    author = await make_user()
    report = await _report(async_client, reporter, "USER", str(author.id))

    response = await async_client.post(
        f"/api/admin/reports/{report['id']}/resolve",
        json={"resolution": "ok"},
        headers=moderator.headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_dismissing_a_report(async_client: AsyncClient, make_user) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    reporter = await make_user()
    target = await make_user()
    report = await _report(async_client, reporter, "USER", str(target.id))

    response = await async_client.post(
        f"/api/admin/reports/{report['id']}/resolve",
        json={"resolution": "No violation found here", "action": "dismiss"},
        headers=moderator.headers,
    )

    assert response.json()["report"]["status"] == "DISMISSED"
    assert response.json()["sanctions"] == []
