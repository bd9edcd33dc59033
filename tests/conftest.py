"""Shared pytest fixtures for picks API tests."""

from __future__ import annotations

import itertools
import json
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any
from uuid import UUID

import httpx
import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

os.environ.setdefault("PICKS_TEST_FAST_HASH", "1")

from picks_api.common.time import utc_now  # noqa: E402
from picks_api.core.rbac import UserRole  # noqa: E402
from picks_api.core.security import hash_password  # noqa: E402
from picks_api.db.engine import get_engine, reset_database_state  # noqa: E402
from picks_api.db.session import get_sessionmaker  # noqa: E402
from picks_api.features.auth.service import AuthService  # noqa: E402
from picks_api.features.payments.whop import WhopClient, compute_webhook_signature  # noqa: E402
from picks_api.features.users.models import User  # noqa: E402
from picks_api.main import create_app  # noqa: E402
from picks_api.settings import Settings  # noqa: E402

WEBHOOK_SECRET = "whsec_test"
DEFAULT_PASSWORD = "correct-horse-battery"


class FakeWhop:
    """In-memory stand-in for the provider REST API behind ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, dict[str, Any]]] = []
        self._failures: list[tuple[str, str]] = []
        self._ids = itertools.count(1)

    def fail(self, method: str, path_prefix: str) -> None:
        """Make the next matching call answer with a provider error."""

        self._failures.append((method.upper(), path_prefix))

    def calls(self, method: str, path_prefix: str) -> list[dict[str, Any]]:
        return [
            body
            for seen_method, path, body in self.requests
            if seen_method == method.upper() and path.startswith(path_prefix)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method.upper()
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        self.requests.append((method, path, body))

        for failure in self._failures:
            if failure[0] == method and path.startswith(failure[1]):
                self._failures.remove(failure)
                return httpx.Response(
                    500, json={"code": "WHOP_DOWN", "message": "Provider unavailable"}
                )

        number = next(self._ids)
        segments = [segment for segment in path.split("/") if segment]
        if method == "POST" and segments == ["payments"]:
            return httpx.Response(200, json={"id": f"pay_{number}"})
        if method == "POST" and len(segments) == 3 and segments[0] == "payments":
            return httpx.Response(200, json={"id": f"refund_{number}", "payment": segments[1]})
        if method == "POST" and segments == ["subscriptions"]:
            return httpx.Response(200, json={"id": f"sub_{number}", "status": "pending"})
        if method == "DELETE" and segments[:1] == ["subscriptions"]:
            return httpx.Response(200, json={"id": segments[1], "status": "canceled"})
        if method == "POST" and segments == ["transfers"]:
            return httpx.Response(200, json={"id": f"tr_{number}", "status": "pending"})
        return httpx.Response(404, json={"code": "NOT_FOUND", "message": "Unknown endpoint"})


@dataclass(slots=True)
class Identity:
    id: UUID
    email: str
    password: str
    role: UserRole
    token: str
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a per-test SQLite file and a fake provider."""

    return Settings(
        database_dsn=f"sqlite+aiosqlite:///{tmp_path / 'picks.sqlite'}",
        jwt_secret="test-secret",
        whop_api_url="https://whop.test",
        whop_api_key="test-key",
        whop_webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture()
def whop() -> FakeWhop:
    return FakeWhop()


@pytest_asyncio.fixture()
async def app(settings: Settings, whop: FakeWhop) -> AsyncIterator[FastAPI]:
    """Return an application wired to the fake provider."""

    application = create_app(settings)
    application.state.whop_client = WhopClient(
        settings, transport=httpx.MockTransport(whop.handler)
    )
    yield application
    await get_engine(settings).dispose()
    reset_database_state()


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an HTTPX async client bound to the running application."""

    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest_asyncio.fixture()
async def session_factory(
    async_client: AsyncClient, settings: Settings
) -> async_sessionmaker[AsyncSession]:
    return get_sessionmaker(settings)


@pytest_asyncio.fixture()
async def make_user(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings
) -> Callable[..., Awaitable[Identity]]:
    """Return a factory that stores a user and mints a bearer token for it."""

    counter = itertools.count(1)

    async def _make(
        *,
        role: UserRole = UserRole.USER,
        password: str = DEFAULT_PASSWORD,
        **fields: Any,
    ) -> Identity:
        number = next(counter)
        prefix = role.value.lower()
        fields.setdefault("email", f"{prefix}{number}@example.com")
        fields.setdefault("username", f"{prefix}{number}")
        fields.setdefault("name", f"{prefix.title()} {number}")
        async with session_factory() as session:
            user = User(role=role, password_hash=hash_password(password), **fields)
            session.add(user)
            await session.commit()
            tokens = AuthService(session=session, settings=settings).start_session(user)
        return Identity(
            id=user.id,
            email=user.email,
            password=password,
            role=role,
            token=tokens.access_token,
        )

    return _make


@pytest_asyncio.fixture()
async def create_pick(
    async_client: AsyncClient,
) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Return a helper that publishes a pick through the API."""

    async def _create(author: Identity, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sport": "NBA",
            "matchup": "Lakers vs Celtics",
            "details": "Lakers cover the spread behind a rested starting five tonight.",
            "odds": "-110",
            "game_date": (utc_now() + timedelta(days=2)).isoformat(),
            "confidence": 3,
            "is_premium": False,
        }
        payload.update(overrides)
        response = await async_client.post("/api/picks", json=payload, headers=author.headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest_asyncio.fixture()
async def send_webhook(
    async_client: AsyncClient,
) -> Callable[..., Awaitable[httpx.Response]]:
    """Return a helper that posts a provider event signed with the test secret."""

    async def _send(
        event_type: str, data: dict[str, Any], *, signature: str | None = None
    ) -> httpx.Response:
        raw = json.dumps({"type": event_type, "data": data}).encode("utf-8")
        header = signature if signature is not None else compute_webhook_signature(
            raw, WEBHOOK_SECRET
        )
        return await async_client.post(
            "/api/webhooks/whop",
            content=raw,
            headers={"whop-signature": header, "Content-Type": "application/json"},
        )

    return _send


@pytest_asyncio.fixture()
async def purchased_pick(
    create_pick: Callable[..., Awaitable[dict[str, Any]]],
    make_user: Callable[..., Awaitable[Identity]],
    async_client: AsyncClient,
    send_webhook: Callable[..., Awaitable[httpx.Response]],
) -> dict[str, Any]:
    """A premium pick bought by a second user with the payment confirmed."""

    seller = await make_user()
    buyer = await make_user()
    pick = await create_pick(seller, is_premium=True, price="10.00")
    response = await async_client.post(
        f"/api/picks/{pick['id']}/purchase", headers=buyer.headers
    )
    assert response.status_code == 200, response.text
    purchase = response.json()
    payment_id = purchase["checkout_url"].rsplit("/", 1)[-1]
    confirmed = await send_webhook("payment.succeeded", {"id": payment_id})
    assert confirmed.json() == {"received": True}
    return {
        "seller": seller,
        "buyer": buyer,
        "pick": pick,
        "purchase_id": purchase["purchase_id"],
        "payment_id": payment_id,
    }
