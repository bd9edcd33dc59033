"""Payment provider webhook tests."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from picks_api.features.payments.whop import compute_webhook_signature, verify_webhook_signature
from picks_api.features.webhooks.models import WebhookEvent
from picks_api.features.webhooks.service import parse_timestamp


def test_signature_round_trip_and_tampering() -> None:
    body = b'{"type":"payment.succeeded","data":{"id":"pay_1"}}'
    signature = compute_webhook_signature(body, "secret")

    assert verify_webhook_signature(body, signature, "secret") is True
    assert verify_webhook_signature(body + b" ", signature, "secret") is False
    assert verify_webhook_signature(body, signature, None) is False
    assert verify_webhook_signature(body, None, "secret") is False


def test_parse_timestamp_reads_unix_seconds() -> None:
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp(1_700_000_000) == datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)


@pytest.mark.asyncio
async def test_invalid_signature_is_rejected(send_webhook) -> None:
    response = await send_webhook("payment.succeeded", {"id": "pay_1"}, signature="deadbeef")

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid signature"


@pytest.mark.asyncio
async def test_payload_without_type_is_rejected(async_client: AsyncClient) -> None:
    raw = b'{"data": {}}'

    response = await async_client.post(
        "/api/webhooks/whop",
        content=raw,
        headers={"whop-signature": compute_webhook_signature(raw, "whsec_test")},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_event_types_are_acknowledged_and_stored(
    send_webhook, session_factory
) -> None:
    response = await send_webhook("app.installed", {"id": "app_1"})

    assert response.status_code == 200
    assert response.json() == {"received": True}
    async with session_factory() as session:
        event = (await session.execute(select(WebhookEvent))).scalar_one()
    assert event.event_type == "app.installed"
    assert event.processed is True


@pytest.mark.asyncio
async def test_processing_failure_is_recorded_not_raised(send_webhook, session_factory) -> None:
    """An event for an unknown payment is stored with its error and still acknowledged."""

    response = await send_webhook("payment.succeeded", {"id": "pay_missing"})

    assert response.status_code == 200
    assert response.json() == {"received": True, "error": "Processing failed"}
    async with session_factory() as session:
        event = (await session.execute(select(WebhookEvent))).scalar_one()
    assert event.processed is False
    assert event.attempts == 1
    assert "pay_missing" in event.processing_error
