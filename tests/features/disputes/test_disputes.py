"""Pick dispute tests."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from picks_api.core.rbac import UserRole

REASON = "The final score was 102-99, so this pick actually won."


async def _grade(client: AsyncClient, admin: Any, pick_id: str, result: str) -> None:
    response = await client.patch(
        f"/api/admin/picks/{pick_id}", json={"verify_result": result}, headers=admin.headers
    )
    assert response.status_code == 200, response.text


@pytest.mark.asyncio
async def test_only_graded_picks_of_others_can_be_disputed(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    author = await make_user()
    fan = await make_user()
    pick = await create_pick(author)
    url = f"/api/picks/{pick['id']}/disputes"

    pending = await async_client.post(url, json={"reason": REASON}, headers=fan.headers)
    assert pending.status_code == 400
    assert pending.json()["detail"] == "Only graded picks can be disputed"

    await _grade(async_client, admin, pick["id"], "LOST")

    own = await async_client.post(url, json={"reason": REASON}, headers=author.headers)
    short = await async_client.post(url, json={"reason": "wrong"}, headers=fan.headers)
    created = await async_client.post(url, json={"reason": REASON}, headers=fan.headers)
    duplicate = await async_client.post(url, json={"reason": REASON}, headers=fan.headers)

    assert own.status_code == 400
    assert short.status_code == 422
    assert created.status_code == 201, created.text
    assert created.json()["status"] == "OPEN"
    assert created.json()["pick"]["status"] == "LOST"
    assert duplicate.status_code == 409

    mine = await async_client.get("/api/disputes", headers=fan.headers)
    assert [item["id"] for item in mine.json()["disputes"]] == [created.json()["id"]]


@pytest.mark.asyncio
async def test_dispute_on_unknown_pick(async_client: AsyncClient, make_user) -> None:
    fan = await make_user()

    response = await async_client.post(
        "/api/picks/00000000-0000-0000-0000-000000000000/disputes",
        json={"reason": REASON},
        headers=fan.headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_resolution_corrects_result_and_refunds_buyers(
    async_client: AsyncClient, make_user, purchased_pick, whop
) -> None:
    """Resolving with a refund reverses every completed purchase of the pick."""

    admin = await make_user(role=UserRole.ADMIN)
    buyer = purchased_pick["buyer"]
    pick_id = purchased_pick["pick"]["id"]
    await _grade(async_client, admin, pick_id, "LOST")
    dispute = await async_client.post(
        f"/api/picks/{pick_id}/disputes", json={"reason": REASON}, headers=buyer.headers
    )

    queue = await async_client.get(
        "/api/admin/disputes", params={"status": "OPEN"}, headers=admin.headers
    )
    assert [item["id"] for item in queue.json()["disputes"]] == [dispute.json()["id"]]
    assert queue.json()["stats"]["by_status"] == {"OPEN": 1}

    resolved = await async_client.patch(
        f"/api/admin/disputes/{dispute.json()['id']}",
        json={"resolution": "Box score confirms the win", "correct_result": "WON", "refund": True},
        headers=admin.headers,
    )
    assert resolved.status_code == 200, resolved.text
    body = resolved.json()
    assert body["dispute"]["status"] == "RESOLVED"
    assert body["dispute"]["pick"]["status"] == "WON"
    assert body["refunds"] == [
        {"purchase_id": purchased_pick["purchase_id"], "success": True, "error": None}
    ]
    assert len(whop.calls("POST", f"/payments/{purchased_pick['payment_id']}/refund")) == 1

    status = await async_client.get(f"/api/picks/{pick_id}/purchase", headers=buyer.headers)
    assert status.json()["status"] == "REFUNDED"

    again = await async_client.patch(
        f"/api/admin/disputes/{dispute.json()['id']}",
        json={"resolution": "Box score confirms the win", "correct_result": "WON"},
        headers=admin.headers,
    )
    assert again.status_code == 400
    assert again.json()["detail"] == "Dispute already resolved"


@pytest.mark.asyncio
async def test_refund_failures_are_reported_per_purchase(
    async_client: AsyncClient, make_user, purchased_pick, whop
) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    pick_id = purchased_pick["pick"]["id"]
    await _grade(async_client, admin, pick_id, "LOST")
    dispute = await async_client.post(
        f"/api/picks/{pick_id}/disputes",
        json={"reason": REASON},
        headers=purchased_pick["buyer"].headers,
    )
    whop.fail("POST", "/payments/")

    resolved = await async_client.patch(
        f"/api/admin/disputes/{dispute.json()['id']}",
        json={"resolution": "Result corrected to a push", "correct_result": "PUSH", "refund": True},
        headers=admin.headers,
    )

    assert resolved.status_code == 200, resolved.text
    [outcome] = resolved.json()["refunds"]
    assert outcome["success"] is False
    assert outcome["error"]
    assert resolved.json()["dispute"]["status"] == "RESOLVED"


@pytest.mark.asyncio
async def test_grading_closes_open_disputes(
    async_client: AsyncClient, make_user, create_pick
) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    author = await make_user()
    fan = await make_user()
    pick = await create_pick(author)
    await _grade(async_client, admin, pick["id"], "LOST")
    await async_client.post(
        f"/api/picks/{pick['id']}/disputes", json={"reason": REASON}, headers=fan.headers
    )

    await _grade(async_client, admin, pick["id"], "WON")

    [dispute] = (await async_client.get("/api/disputes", headers=fan.headers)).json()["disputes"]
    assert dispute["status"] == "RESOLVED"
    assert dispute["resolution"] == "Result verified by admin: WON"
