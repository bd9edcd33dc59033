"""Admin access control, user management and sanction tests."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from picks_api.core.rbac import UserRole


async def _audit(client: AsyncClient, admin: Any, **params: Any) -> list[dict[str, Any]]:
    response = await client.get("/api/admin/audit-logs", params=params, headers=admin.headers)
    assert response.status_code == 200, response.text
    return response.json()["logs"]


@pytest.mark.asyncio
async def test_admin_routes_require_staff_and_audit_denials(
    async_client: AsyncClient, make_user
) -> None:
    """Anonymous callers get 401, members 403, and both denials are logged."""

    member = await make_user()
    admin = await make_user(role=UserRole.ADMIN)

    anonymous = await async_client.get("/api/admin/users")
    forbidden = await async_client.get("/api/admin/users", headers=member.headers)
    assert anonymous.status_code == 401
    assert forbidden.status_code == 403

    denials = await _audit(async_client, admin, action="admin_access_denied")
    assert len(denials) == 2
    assert all(entry["success"] is False for entry in denials)
    member_denial = next(entry for entry in denials if entry["user_id"] == str(member.id))
    assert member_denial["details"]["required"] == "ADMIN or MODERATOR"
    assert member_denial["details"]["role"] == "USER"


@pytest.mark.asyncio
async def test_cookie_admin_writes_without_csrf_header_are_forbidden(
    async_client: AsyncClient, make_user
) -> None:
    """A missing CSRF header is a 403 on admin routes too, and the denial is audited."""

    admin = await make_user(role=UserRole.ADMIN)
    member = await make_user()
    login = await async_client.post(
        "/api/auth/login", json={"email": admin.email, "password": admin.password}
    )
    assert login.status_code == 200, login.text
    csrf_token = login.json()["csrf_token"]
    url = f"/api/admin/users/{member.id}/warn"
    body = {"reason": "Posting the same pick in every thread", "severity": "low"}

    missing = await async_client.post(url, json=body)
    accepted = await async_client.post(url, json=body, headers={"X-CSRF-Token": csrf_token})

    assert missing.status_code == 403
    assert missing.json()["detail"] == "CSRF token missing"
    assert accepted.status_code == 200, accepted.text
    denials = await _audit(async_client, admin, action="admin_access_denied")
    assert [entry["details"]["reason"] for entry in denials] == ["CSRF token missing"]


@pytest.mark.asyncio
async def test_moderator_cannot_use_admin_only_routes(
    async_client: AsyncClient, make_user
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)

    staff_route = await async_client.get("/api/admin/users", headers=moderator.headers)
    admin_route = await async_client.get("/api/admin/payments/config", headers=moderator.headers)

    assert staff_route.status_code == 200
    assert admin_route.status_code == 403


@pytest.mark.asyncio
async def test_list_and_inspect_users(async_client: AsyncClient, make_user, create_pick) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    creator = await make_user(username="sharpshooter")
    await create_pick(creator)

    listing = await async_client.get(
        "/api/admin/users", params={"search": "sharp"}, headers=admin.headers
    )
    assert listing.status_code == 200
    assert [user["username"] for user in listing.json()["users"]] == ["sharpshooter"]

    detail = await async_client.get(f"/api/admin/users/{creator.id}", headers=admin.headers)
    assert detail.status_code == 200
    body = detail.json()
    assert body["user"]["id"] == str(creator.id)
    assert len(body["recent_picks"]) == 1
    assert body["revenue"]["total_sales"] == 0

    missing = await async_client.get(
        "/api/admin/users/00000000-0000-0000-0000-000000000000", headers=admin.headers
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_update_user_rules(async_client: AsyncClient, make_user) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    moderator = await make_user(role=UserRole.MODERATOR)
    member = await make_user()
    url = f"/api/admin/users/{member.id}"

    empty = await async_client.patch(url, json={}, headers=admin.headers)
    assert empty.status_code == 400

    promoted_by_moderator = await async_client.patch(
        url, json={"role": "MODERATOR"}, headers=moderator.headers
    )
    assert promoted_by_moderator.status_code == 403

    verified = await async_client.patch(
        url, json={"is_verified": True, "trust_score": 80}, headers=moderator.headers
    )
    assert verified.status_code == 200
    assert verified.json()["is_verified"] is True
    assert verified.json()["trust_score"] == 80

    promoted = await async_client.patch(url, json={"role": "MODERATOR"}, headers=admin.headers)
    assert promoted.json()["role"] == "MODERATOR"

    [entry] = await _audit(
        async_client, admin, action="UPDATE_USER", user_id=str(admin.id), limit=1
    )
    assert entry["details"]["before"] == {"role": "USER"}
    assert entry["details"]["after"]["role"] == "MODERATOR"


@pytest.mark.asyncio
async def test_ban_ends_sessions_and_hides_picks(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    member = await make_user()
    pick = await create_pick(member)

    banned = await async_client.post(
        f"/api/admin/users/{member.id}/ban",
        json={"reason": "Repeated scam promotions", "delete_picks": True},
        headers=admin.headers,
    )
    assert banned.status_code == 200, banned.text
    assert banned.json()["message"] == "User banned successfully"
    assert banned.json()["user"]["account_status"] == "BANNED"

    me = await async_client.get("/api/auth/me", headers=member.headers)
    assert me.status_code == 401

    hidden = await async_client.get(f"/api/picks/{pick['id']}")
    assert hidden.status_code == 404

    unbanned = await async_client.delete(
        f"/api/admin/users/{member.id}/ban", headers=admin.headers
    )
    assert unbanned.json()["user"]["account_status"] == "ACTIVE"
    again = await async_client.delete(f"/api/admin/users/{member.id}/ban", headers=admin.headers)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_ban_guards(async_client: AsyncClient, make_user) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    other_admin = await make_user(role=UserRole.ADMIN)
    moderator = await make_user(role=UserRole.MODERATOR)
    member = await make_user()
    body = {"reason": "Violating community rules"}

    own = await async_client.post(
        f"/api/admin/users/{admin.id}/ban", json=body, headers=admin.headers
    )
    peer = await async_client.post(
        f"/api/admin/users/{other_admin.id}/ban", json=body, headers=admin.headers
    )
    by_moderator = await async_client.post(
        f"/api/admin/users/{member.id}/ban", json=body, headers=moderator.headers
    )
    short_reason = await async_client.post(
        f"/api/admin/users/{member.id}/ban", json={"reason": "spam"}, headers=admin.headers
    )

    assert own.status_code == 400
    assert peer.status_code == 403
    assert by_moderator.status_code == 403
    assert short_reason.status_code == 422


@pytest.mark.asyncio
async def test_suspension_hides_and_restores_picks(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    member = await make_user()
    pick = await create_pick(member)

    suspended = await async_client.post(
        f"/api/admin/users/{member.id}/suspend",
        json={"reason": "Harassing other members", "duration": 3, "hide_picks": True},
        headers=moderator.headers,
    )
    assert suspended.status_code == 200, suspended.text
    assert suspended.json()["user"]["account_status"] == "SUSPENDED"
    assert suspended.json()["user"]["suspended_until"] is not None

    listing = await async_client.get("/api/picks")
    assert listing.json()["picks"] == []

    lifted = await async_client.delete(
        f"/api/admin/users/{member.id}/suspend", headers=moderator.headers
    )
    assert lifted.json()["message"] == "User suspension lifted successfully"

    restored = await async_client.get("/api/picks")
    assert [item["id"] for item in restored.json()["picks"]] == [pick["id"]]


@pytest.mark.asyncio
async def test_warnings_lower_trust_and_auto_flag(async_client: AsyncClient, make_user) -> None:
    """The fifth warning moves an active account under review."""

    moderator = await make_user(role=UserRole.MODERATOR)
    member = await make_user()
    url = f"/api/admin/users/{member.id}/warn"

    first = await async_client.post(
        url, json={"reason": "Spamming the comments", "severity": "high"}, headers=moderator.headers
    )
    assert first.status_code == 200, first.text
    assert first.json()["previous_trust_score"] == 100
    assert first.json()["user"]["trust_score"] == 80
    assert first.json()["auto_action"] is None

    for _ in range(3):
        await async_client.post(url, json={"reason": "Spamming the comments"}, headers=moderator.headers)
    fifth = await async_client.post(
        url, json={"reason": "Spamming the comments", "severity": "low"}, headers=moderator.headers
    )

    body = fifth.json()
    assert body["user"]["warning_count"] == 5
    assert body["user"]["trust_score"] == 80 - 3 * 10 - 5
    assert body["user"]["account_status"] == "UNDER_REVIEW"
    assert body["auto_action"] == "Account flagged for review due to excessive warnings"

    history = await async_client.get(url, headers=moderator.headers)
    assert history.json()["warning_count"] == 5
    assert len(history.json()["warnings"]) == 5
    assert history.json()["warnings"][0]["severity"] == "low"


@pytest.mark.asyncio
async def test_admins_cannot_be_warned(async_client: AsyncClient, make_user) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    admin = await make_user(role=UserRole.ADMIN)

    response = await async_client.post(
        f"/api/admin/users/{admin.id}/warn",
        json={"reason": "Testing the guard rails"},
        headers=moderator.headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_moderate_and_delete_picks(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)
    author = await make_user()
    pick = await create_pick(author)

    removed = await async_client.patch(
        f"/api/admin/picks/{pick['id']}",
        json={"moderation_status": "REMOVED", "notes": "Duplicate post"},
        headers=moderator.headers,
    )
    assert removed.status_code == 200
    assert removed.json()["moderation_status"] == "REMOVED"

    listing = await async_client.get(
        "/api/admin/picks", params={"moderation_status": "REMOVED"}, headers=moderator.headers
    )
    assert [item["id"] for item in listing.json()["picks"]] == [pick["id"]]

    deleted = await async_client.delete(
        f"/api/admin/picks/{pick['id']}", headers=moderator.headers
    )
    assert deleted.json()["deleted_pick"]["matchup"] == "Lakers vs Celtics"
    gone = await async_client.delete(f"/api/admin/picks/{pick['id']}", headers=moderator.headers)
    assert gone.status_code == 404
