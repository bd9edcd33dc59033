"""Profile, follow graph and creator settings tests."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from picks_api.core.rbac import UserRole
from picks_api.features.users.models import AccountStatus


@pytest.mark.asyncio
async def test_profile_update_and_username_conflict(
    async_client: AsyncClient, make_user
) -> None:
    member = await make_user()
    await make_user(username="taken_name")

    updated = await async_client.patch(
        "/api/profile", json={"bio": "Totals and props only"}, headers=member.headers
    )
    conflict = await async_client.patch(
        "/api/profile", json={"username": "taken_name"}, headers=member.headers
    )
    invalid = await async_client.patch(
        "/api/profile", json={"username": "no spaces allowed"}, headers=member.headers
    )

    assert updated.status_code == 200
    assert updated.json()["bio"] == "Totals and props only"
    assert conflict.status_code == 400
    assert conflict.json()["detail"] == "Username already taken"
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_follow_graph_and_public_profile(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    creator = await make_user()
    fan = await make_user()
    await create_pick(creator)

    followed = await async_client.post(
        "/api/follow", json={"user_id": str(creator.id)}, headers=fan.headers
    )
    again = await async_client.post(
        "/api/follow", json={"user_id": str(creator.id)}, headers=fan.headers
    )
    self_follow = await async_client.post(
        "/api/follow", json={"user_id": str(fan.id)}, headers=fan.headers
    )
    assert followed.json() == {"following": True}
    assert again.status_code == 200
    assert self_follow.status_code == 400

    profile = await async_client.get(f"/api/users/{creator.id}", headers=fan.headers)
    body = profile.json()
    assert body["is_following"] is True
    assert body["stats"]["picks"] == 1
    assert body["stats"]["followers"] == 1

    followers = await async_client.get(f"/api/users/{creator.id}/followers")
    following = await async_client.get(f"/api/users/{fan.id}/following")
    assert followers.json()["total"] == 1
    assert [user["id"] for user in following.json()["users"]] == [str(creator.id)]

    unfollowed = await async_client.delete(f"/api/follow/{creator.id}", headers=fan.headers)
    assert unfollowed.json() == {"following": False}
    anonymous = await async_client.get(f"/api/users/{creator.id}")
    assert anonymous.json()["stats"]["followers"] == 0
    assert anonymous.json()["is_following"] is False


@pytest.mark.asyncio
async def test_search_hides_banned_accounts(async_client: AsyncClient, make_user) -> None:
    await make_user(username="sharp_active")
    await make_user(username="sharp_banned", account_status=AccountStatus.BANNED)

    response = await async_client.get("/api/users/search", params={"q": "sharp"})

    assert [user["username"] for user in response.json()["users"]] == ["sharp_active"]


@pytest.mark.asyncio
async def test_top_creators_need_graded_picks(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    creator = await make_user()
    results = ["WON", "WON", "LOST"]
    for result in results:
        pick = await create_pick(creator)
        await async_client.patch(
            f"/api/admin/picks/{pick['id']}",
            json={"verify_result": result},
            headers=admin.headers,
        )

    response = await async_client.get("/api/users/top-creators")

    [top] = response.json()["creators"]
    assert top["id"] == str(creator.id)
    assert top["win_rate"] == 67
    assert top["graded_picks"] == 3


@pytest.mark.asyncio
async def test_password_change_ends_existing_sessions(
    async_client: AsyncClient, make_user
) -> None:
    member = await make_user()

    wrong = await async_client.put(
        "/api/settings/password",
        json={"current_password": "not-my-password", "new_password": "brand-new-secret"},
        headers=member.headers,
    )
    assert wrong.status_code == 400

    changed = await async_client.put(
        "/api/settings/password",
        json={"current_password": member.password, "new_password": "brand-new-secret"},
        headers=member.headers,
    )
    assert changed.status_code == 200

    stale = await async_client.get("/api/profile", headers=member.headers)
    assert stale.status_code == 401
    login = await async_client.post(
        "/api/auth/login", json={"email": member.email, "password": "brand-new-secret"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_bank_payout_settings_are_stored_encrypted(
    async_client: AsyncClient, make_user
) -> None:
    member = await make_user()

    response = await async_client.put(
        "/api/settings/payout",
        json={
            "payout_method": "BANK",
            "bank_account_number": "000123456789",
            "bank_routing_number": "021000021",
            "bank_account_name": "Casey Sharp",
            "min_payout": 2500,
        },
        headers=member.headers,
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["has_bank_account"] is True
    assert body["bank_account_last4"] == "6789"
    assert body["min_payout"] == 2500
    assert "000123456789" not in response.text


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"payout_method": "CRYPTO"},
        {"payout_method": "CRYPTO", "crypto_wallet_address": "not-a-wallet"},
        {"payout_method": "BANK", "bank_account_number": "1234"},
        {"payout_method": "PAYPAL", "min_payout": 100},
    ],
)
async def test_payout_settings_validation(
    async_client: AsyncClient, make_user, payload: dict
) -> None:
    member = await make_user()

    response = await async_client.put(
        "/api/settings/payout", json=payload, headers=member.headers
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_subscription_pricing(async_client: AsyncClient, make_user) -> None:
    creator = await make_user()

    updated = await async_client.patch(
        "/api/settings/subscription-pricing",
        json={"subscription_enabled": True, "subscription_price": "14.99"},
        headers=creator.headers,
    )
    public = await async_client.get(f"/api/users/{creator.id}")

    assert updated.json() == {"subscription_enabled": True, "subscription_price": 14.99}
    assert public.json()["subscription_enabled"] is True
    assert public.json()["subscription_price"] == 14.99
