"""Authentication endpoint tests."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from picks_api.features.auth.models import PasswordReset
from picks_api.features.users.models import AccountStatus

CSRF_COOKIE = "picks_csrf"


async def _login(client: AsyncClient, email: str, password: str) -> dict[str, Any]:
    response = await client.post(
        "/api/auth/login",
        json={"email": email, "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.asyncio
async def test_signup_then_login_and_me(async_client: AsyncClient) -> None:
    """New accounts should be able to log in and read their profile."""

    response = await async_client.post(
        "/api/auth/signup",
        json={
            "name": "Sam Sharp",
            "email": "Sam@Example.com",
            "password": "long-enough-password",
            "username": "samsharp",
        },
    )
    assert response.status_code == 201, response.text
    profile = response.json()
    assert profile["email"] == "sam@example.com"
    assert profile["role"] == "USER"
    assert profile["account_status"] == "ACTIVE"
    assert profile["trust_score"] == 100

    session = await _login(async_client, "sam@example.com", "long-enough-password")
    assert session["token_type"] == "bearer"
    assert session["user"]["username"] == "samsharp"

    me = await async_client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {session['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["id"] == profile["id"]


@pytest.mark.asyncio
async def test_signup_rejects_duplicate_email(async_client: AsyncClient, make_user) -> None:
    existing = await make_user()

    response = await async_client.post(
        "/api/auth/signup",
        json={"name": "Copy", "email": existing.email, "password": "long-enough-password"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already in use"


@pytest.mark.asyncio
async def test_signup_rejects_short_password(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/api/auth/signup",
        json={"name": "Short", "email": "short@example.com", "password": "short"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_failures_do_not_reveal_which_part_was_wrong(
    async_client: AsyncClient, make_user
) -> None:
    user = await make_user()

    wrong_password = await async_client.post(
        "/api/auth/login", json={"email": user.email, "password": "not-the-password"}
    )
    unknown_email = await async_client.post(
        "/api/auth/login", json={"email": "nobody@example.com", "password": "whatever-pass"}
    )

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json()["detail"] == unknown_email.json()["detail"]


@pytest.mark.asyncio
async def test_me_requires_authentication(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/auth/me")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_cookie_session_requires_csrf_token_for_writes(
    async_client: AsyncClient, make_user
) -> None:
    """Cookie-authenticated writes need the CSRF header; bearer tokens do not."""

    user = await make_user()
    payload = await _login(async_client, user.email, user.password)
    assert async_client.cookies.get(CSRF_COOKIE) == payload["csrf_token"]

    me = await async_client.get("/api/auth/me")
    assert me.status_code == 200

    missing = await async_client.patch("/api/profile", json={"bio": "Sharp money only."})
    assert missing.status_code == 403

    accepted = await async_client.patch(
        "/api/profile",
        json={"bio": "Sharp money only."},
        headers={"X-CSRF-Token": payload["csrf_token"]},
    )
    assert accepted.status_code == 200, accepted.text
    assert accepted.json()["bio"] == "Sharp money only."


@pytest.mark.asyncio
async def test_banned_user_cannot_log_in(async_client: AsyncClient, make_user) -> None:
    user = await make_user(account_status=AccountStatus.BANNED, ban_reason="Selling stolen picks")

    response = await async_client.post(
        "/api/auth/login", json={"email": user.email, "password": user.password}
    )

    assert response.status_code == 403
    assert "Selling stolen picks" in response.json()["detail"]


@pytest.mark.asyncio
async def test_password_reset_ends_existing_sessions(
    async_client: AsyncClient, make_user, session_factory
) -> None:
    """Resetting a password bumps the session version, invalidating old tokens."""

    user = await make_user()
    requested = await async_client.post(
        "/api/auth/forgot-password", json={"email": user.email}
    )
    assert requested.status_code == 200

    async with session_factory() as session:
        result = await session.execute(
            select(PasswordReset.token).where(PasswordReset.user_id == user.id)
        )
        token = result.scalar_one()

    reset = await async_client.post(
        "/api/auth/reset-password", json={"token": token, "password": "brand-new-password"}
    )
    assert reset.status_code == 200, reset.text

    stale = await async_client.get("/api/auth/me", headers=user.headers)
    assert stale.status_code == 401

    await _login(async_client, user.email, "brand-new-password")

    reused = await async_client.post(
        "/api/auth/reset-password", json={"token": token, "password": "another-password"}
    )
    assert reused.status_code == 400
