"""Creator subscription tests."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from httpx import AsyncClient

from picks_api.features.subscriptions.service import add_month


def _creator_fields(**overrides) -> dict:
    fields = {
        "subscription_enabled": True,
        "subscription_price": Decimal("9.99"),
        "whop_user_id": "biz_creator",
    }
    fields.update(overrides)
    return fields


@pytest.mark.parametrize(
    ("start", "expected"),
    [
        (datetime(2024, 1, 31, tzinfo=UTC), datetime(2024, 2, 29, tzinfo=UTC)),
        (datetime(2024, 12, 15, tzinfo=UTC), datetime(2025, 1, 15, tzinfo=UTC)),
        (datetime(2023, 3, 31, tzinfo=UTC), datetime(2023, 4, 30, tzinfo=UTC)),
    ],
)
def test_add_month_clamps_to_month_end(start: datetime, expected: datetime) -> None:
    assert add_month(start) == expected


@pytest.mark.asyncio
async def test_subscription_lifecycle(
    async_client: AsyncClient, make_user, send_webhook, whop
) -> None:
    """Pending until the provider confirms, then active, then cancelled."""

    creator = await make_user(**_creator_fields())
    fan = await make_user()

    created = await async_client.post(
        "/api/subscriptions", json={"creator_id": str(creator.id)}, headers=fan.headers
    )
    assert created.status_code == 201, created.text
    subscription = created.json()["subscription"]
    assert subscription["status"] == "PENDING"
    assert subscription["amount"] == 9.99
    assert subscription["platform_fee"] == 1.5
    assert subscription["creator_earnings"] == 8.49

    [request] = whop.calls("POST", "/subscriptions")
    assert request["plan_id"] == "biz_creator"
    assert request["metadata"]["creator_id"] == str(creator.id)

    pending = await async_client.get(f"/api/subscriptions/{creator.id}", headers=fan.headers)
    assert pending.json()["subscribed"] is False

    await send_webhook("membership.went_valid", {"id": "sub_1"})

    active = await async_client.get(f"/api/subscriptions/{creator.id}", headers=fan.headers)
    assert active.json()["subscribed"] is True

    duplicate = await async_client.post(
        "/api/subscriptions", json={"creator_id": str(creator.id)}, headers=fan.headers
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Already subscribed to this creator"

    subscribers = await async_client.get("/api/creator/subscribers", headers=creator.headers)
    assert [item["subscriber"]["id"] for item in subscribers.json()["subscribers"]] == [
        str(fan.id)
    ]
    assert subscribers.json()["stats"]["mrr"] == 9.99
    assert subscribers.json()["stats"]["active_subscribers"] == 1

    stats = await async_client.get("/api/creator/stats", headers=creator.headers)
    assert stats.json()["available_balance"] == 8.49

    cancelled = await async_client.post(
        "/api/subscriptions/cancel",
        json={"subscription_id": subscription["id"]},
        headers=fan.headers,
    )
    assert cancelled.status_code == 200, cancelled.text
    assert cancelled.json()["status"] == "ACTIVE"
    assert cancelled.json()["cancel_at_period_end"] is True
    assert whop.calls("DELETE", "/subscriptions/sub_1") == [{"cancel_at_period_end": True}]

    await send_webhook("membership.went_invalid", {"id": "sub_1"})

    [ended] = (await async_client.get("/api/subscriptions", headers=fan.headers)).json()[
        "subscriptions"
    ]
    assert ended["status"] == "CANCELED"


@pytest.mark.asyncio
async def test_renewal_moves_the_period_and_books_revenue(
    async_client: AsyncClient, make_user, send_webhook
) -> None:
    creator = await make_user(**_creator_fields())
    fan = await make_user()
    created = await async_client.post(
        "/api/subscriptions", json={"creator_id": str(creator.id)}, headers=fan.headers
    )
    original = created.json()["subscription"]
    await send_webhook("membership.went_valid", {"id": "sub_1"})

    await send_webhook("membership.renewed", {"id": "sub_1"})

    [renewed] = (await async_client.get("/api/subscriptions", headers=fan.headers)).json()[
        "subscriptions"
    ]
    assert renewed["current_period_start"] == original["current_period_end"]
    ledger = await async_client.get(
        "/api/transactions", params={"type": "SUBSCRIPTION"}, headers=fan.headers
    )
    assert ledger.json()["summary"]["total_spent"] == pytest.approx(19.98)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("fields", "status_code", "detail"),
    [
        ({"subscription_enabled": False}, 400, "Creator does not offer subscriptions"),
        ({"whop_user_id": None}, 400, "Creator has not set up payment account"),
    ],
)
async def test_subscribe_requires_an_offering_creator(
    async_client: AsyncClient, make_user, fields: dict, status_code: int, detail: str
) -> None:
    creator = await make_user(**_creator_fields(**fields))
    fan = await make_user()

    response = await async_client.post(
        "/api/subscriptions", json={"creator_id": str(creator.id)}, headers=fan.headers
    )

    assert response.status_code == status_code
    assert response.json()["detail"] == detail


@pytest.mark.asyncio
async def test_subscribe_rejects_self_and_unknown_creators(
    async_client: AsyncClient, make_user
) -> None:
    creator = await make_user(**_creator_fields())

    own = await async_client.post(
        "/api/subscriptions", json={"creator_id": str(creator.id)}, headers=creator.headers
    )
    unknown = await async_client.post(
        "/api/subscriptions",
        json={"creator_id": "00000000-0000-0000-0000-000000000000"},
        headers=creator.headers,
    )

    assert own.status_code == 400
    assert unknown.status_code == 404
