"""Creator withdrawal tests."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from picks_api.core.rbac import UserRole
from picks_api.features.payments.models import Payout


async def _sell(
    client: AsyncClient, make_user, create_pick, send_webhook, *, price: str
) -> Any:
    """Return a seller with a payout account who has sold one pick at ``price``."""

    seller = await make_user()
    buyer = await make_user()
    configured = await client.put(
        "/api/settings/payout",
        json={"payout_method": "WHOP_BALANCE", "whop_user_id": "user_seller"},
        headers=seller.headers,
    )
    assert configured.status_code == 200, configured.text
    pick = await create_pick(seller, is_premium=True, price=price)
    purchase = await client.post(f"/api/picks/{pick['id']}/purchase", headers=buyer.headers)
    payment_id = purchase.json()["checkout_url"].rsplit("/", 1)[-1]
    await send_webhook("payment.succeeded", {"id": payment_id})
    return seller


@pytest.mark.asyncio
async def test_withdrawal_is_paid_when_the_transfer_completes(
    async_client: AsyncClient, make_user, create_pick, send_webhook, session_factory, whop
) -> None:
    seller = await _sell(async_client, make_user, create_pick, send_webhook, price="20.00")

    requested = await async_client.post(
        "/api/creator/withdrawal", json={}, headers=seller.headers
    )
    assert requested.status_code == 200, requested.text
    payout = requested.json()["payout"]
    assert payout["amount"] == 17.0
    assert payout["status"] == "PROCESSING"
    assert payout["payout_method"] == "WHOP_BALANCE"

    [transfer] = whop.calls("POST", "/transfers")
    assert transfer["destination"] == "user_seller"
    assert transfer["amount"] == 1700

    balance = await async_client.get("/api/creator/stats", headers=seller.headers)
    assert balance.json()["available_balance"] == 0.0
    assert balance.json()["lifetime_earnings"] == 17.0

    async with session_factory() as session:
        transfer_id = (
            await session.execute(select(Payout.whop_transfer_id))
        ).scalar_one()
    await send_webhook("transfer.completed", {"id": transfer_id})

    history = await async_client.get("/api/creator/withdrawal", headers=seller.headers)
    [paid] = history.json()["payouts"]
    assert paid["status"] == "PAID"
    assert paid["processed_at"] is not None
    ledger = await async_client.get("/api/transactions", headers=seller.headers)
    assert ledger.json()["summary"]["total_withdrawn"] == 17.0


@pytest.mark.asyncio
async def test_failed_transfer_returns_funds(
    async_client: AsyncClient, make_user, create_pick, send_webhook, session_factory
) -> None:
    seller = await _sell(async_client, make_user, create_pick, send_webhook, price="20.00")
    await async_client.post("/api/creator/withdrawal", json={}, headers=seller.headers)
    async with session_factory() as session:
        transfer_id = (
            await session.execute(select(Payout.whop_transfer_id))
        ).scalar_one()

    await send_webhook(
        "transfer.failed", {"id": transfer_id, "failure_reason": "Account closed"}
    )

    history = await async_client.get("/api/creator/withdrawal", headers=seller.headers)
    [failed] = history.json()["payouts"]
    assert failed["status"] == "FAILED"
    assert failed["failure_reason"] == "Account closed"
    assert history.json()["available_balance"] == 17.0


@pytest.mark.asyncio
async def test_withdrawal_amount_rules(
    async_client: AsyncClient, make_user, create_pick, send_webhook
) -> None:
    seller = await _sell(async_client, make_user, create_pick, send_webhook, price="20.00")

    too_much = await async_client.post(
        "/api/creator/withdrawal", json={"amount": "50.00"}, headers=seller.headers
    )
    too_little = await async_client.post(
        "/api/creator/withdrawal", json={"amount": "5.00"}, headers=seller.headers
    )

    assert too_much.status_code == 400
    assert too_much.json()["detail"] == "Insufficient balance"
    assert too_little.status_code == 400
    assert too_little.json()["detail"].startswith("Below minimum withdrawal amount")


@pytest.mark.asyncio
async def test_withdrawals_can_be_switched_off(
    async_client: AsyncClient, make_user, create_pick, send_webhook
) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    seller = await _sell(async_client, make_user, create_pick, send_webhook, price="20.00")
    await async_client.patch(
        "/api/admin/payments/config",
        json={"withdrawal_enabled": False},
        headers=admin.headers,
    )

    response = await async_client.post(
        "/api/creator/withdrawal", json={}, headers=seller.headers
    )

    assert response.status_code == 503
    assert response.json()["detail"] == "Withdrawals are currently disabled"
