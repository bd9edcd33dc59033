"""Admin refunds, payout review, payment configuration and reporting."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from picks_api.core.rbac import UserRole
from picks_api.features.payments.models import Payout, PayoutStatus


@pytest.mark.asyncio
async def test_partial_then_full_refund(
    async_client: AsyncClient, make_user, purchased_pick, whop
) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    buyer = purchased_pick["buyer"]
    pick_id = purchased_pick["pick"]["id"]
    purchase_id = purchased_pick["purchase_id"]

    partial = await async_client.post(
        "/api/admin/refunds",
        json={"purchase_id": purchase_id, "amount": "4.00", "reason": "Game postponed"},
        headers=admin.headers,
    )
    assert partial.status_code == 200, partial.text
    assert partial.json()["success"] is True
    assert partial.json()["refund"]["amount"] == 4.0
    assert partial.json()["refund"]["status"] == "PARTIALLY_REFUNDED"

    still_open = await async_client.get(f"/api/picks/{pick_id}/purchase", headers=buyer.headers)
    assert still_open.json()["purchased"] is True

    remainder = await async_client.post(
        "/api/admin/refunds",
        json={"purchase_id": purchase_id, "reason": "Game cancelled"},
        headers=admin.headers,
    )
    assert remainder.json()["refund"]["amount"] == 6.0
    assert remainder.json()["refund"]["status"] == "REFUNDED"

    [first, second] = whop.calls("POST", f"/payments/{purchased_pick['payment_id']}/refund")
    assert first["amount"] == 400
    assert second["amount"] == 600

    relocked = await async_client.get(f"/api/picks/{pick_id}/purchase", headers=buyer.headers)
    assert relocked.json()["purchased"] is False
    assert relocked.json()["status"] == "REFUNDED"

    exhausted = await async_client.post(
        "/api/admin/refunds",
        json={"purchase_id": purchase_id, "reason": "Duplicate request"},
        headers=admin.headers,
    )
    assert exhausted.status_code == 400

    listing = await async_client.get("/api/admin/refunds", headers=admin.headers)
    [record] = listing.json()["refunds"]
    assert record["refund_amount"] == 10.0
    assert record["refund_reason"] == "Game cancelled"


@pytest.mark.asyncio
async def test_refund_rules(async_client: AsyncClient, make_user, purchased_pick) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    moderator = await make_user(role=UserRole.MODERATOR)

    too_much = await async_client.post(
        "/api/admin/refunds",
        json={"purchase_id": purchased_pick["purchase_id"], "amount": "25.00", "reason": "Oops"},
        headers=admin.headers,
    )
    unknown = await async_client.post(
        "/api/admin/refunds",
        json={"purchase_id": "00000000-0000-0000-0000-000000000000", "reason": "Oops"},
        headers=admin.headers,
    )
    by_moderator = await async_client.post(
        "/api/admin/refunds",
        json={"purchase_id": purchased_pick["purchase_id"], "reason": "Oops"},
        headers=moderator.headers,
    )

    assert too_much.status_code == 400
    assert unknown.status_code == 404
    assert by_moderator.status_code == 403


@pytest.mark.asyncio
async def test_payout_review(async_client: AsyncClient, make_user, session_factory) -> None:
    """Only pending payouts can be reviewed, and each review happens once."""

    admin = await make_user(role=UserRole.ADMIN)
    creator = await make_user()
    async with session_factory() as session:
        rejected = Payout(user_id=creator.id, amount=2500, status=PayoutStatus.PENDING)
        approved = Payout(user_id=creator.id, amount=1500, status=PayoutStatus.UNDER_REVIEW)
        session.add_all([rejected, approved])
        await session.commit()
        rejected_id, approved_id = str(rejected.id), str(approved.id)

    listing = await async_client.get(
        "/api/admin/payouts", params={"status": "PENDING"}, headers=admin.headers
    )
    assert [item["id"] for item in listing.json()["payouts"]] == [rejected_id]
    assert listing.json()["stats"] == {"pending_amount": 40.0, "pending_count": 2}

    reject = await async_client.post(
        f"/api/admin/payouts/{rejected_id}/reject",
        json={"reason": "Account details mismatch"},
        headers=admin.headers,
    )
    assert reject.status_code == 200, reject.text
    assert reject.json()["message"] == "Payout rejected successfully"
    assert reject.json()["payout"]["status"] == "REJECTED"
    assert reject.json()["payout"]["notes"] == "REJECTED: Account details mismatch"

    approve = await async_client.post(
        f"/api/admin/payouts/{approved_id}/approve", headers=admin.headers
    )
    assert approve.json()["payout"]["status"] == "APPROVED"
    assert approve.json()["payout"]["reviewed_by"] == str(admin.id)

    again = await async_client.post(
        f"/api/admin/payouts/{rejected_id}/approve", headers=admin.headers
    )
    assert again.status_code == 400
    assert again.json()["detail"] == "Payout already processed"


@pytest.mark.asyncio
async def test_payment_config_updates_apply_to_new_purchases(
    async_client: AsyncClient, make_user, create_pick, whop
) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    seller = await make_user()
    buyer = await make_user()

    current = await async_client.get("/api/admin/payments/config", headers=admin.headers)
    assert current.json()["platform_fee_percent"] == 15.0
    assert current.json()["withdrawal_minimum"] == 1000

    updated = await async_client.patch(
        "/api/admin/payments/config",
        json={"platform_fee_percent": 10},
        headers=admin.headers,
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["platform_fee_percent"] == 10.0

    pick = await create_pick(seller, is_premium=True, price="10.00")
    await async_client.post(f"/api/picks/{pick['id']}/purchase", headers=buyer.headers)

    [charge] = whop.calls("POST", "/payments")
    assert charge["metadata"]["platform_fee"] == 100
    assert charge["metadata"]["creator_earnings"] == 900


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [{}, {"min_pick_price": 2_000_000}, {"max_subscription_price": 10}],
)
async def test_payment_config_rejects_invalid_updates(
    async_client: AsyncClient, make_user, body: dict
) -> None:
    admin = await make_user(role=UserRole.ADMIN)

    response = await async_client.patch(
        "/api/admin/payments/config", json=body, headers=admin.headers
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_transactions_and_analytics(
    async_client: AsyncClient, make_user, purchased_pick
) -> None:
    moderator = await make_user(role=UserRole.MODERATOR)

    ledger = await async_client.get(
        "/api/admin/transactions", params={"type": "PICK_PURCHASE"}, headers=moderator.headers
    )
    assert ledger.status_code == 200, ledger.text
    [purchase] = ledger.json()["transactions"]
    assert purchase["user_id"] == str(purchased_pick["buyer"].id)
    assert purchase["amount"] == 10.0
    assert ledger.json()["stats"]["total_revenue"] == 10.0

    analytics = await async_client.get(
        "/api/admin/analytics", params={"days": 7}, headers=moderator.headers
    )
    assert analytics.status_code == 200, analytics.text
    body = analytics.json()
    assert body["period"]["days"] == 7
    assert body["revenue"]["total"] == 1000
    assert body["revenue"]["transaction_count"] == 1
    assert body["picks"]["total"] == 1
    assert len(body["users"]["daily"]) == 7
