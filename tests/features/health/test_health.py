"""Health endpoint and request middleware tests."""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from httpx import AsyncClient

from picks_api.common.time import utc_now


@pytest.mark.asyncio
async def test_health_reports_ok_and_payment_configuration(async_client: AsyncClient) -> None:
    """The health route should answer without authentication."""

    response = await async_client.get("/api/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["payments"] == {"configured": True}
    assert "timestamp" in payload


@pytest.mark.asyncio
async def test_responses_carry_a_request_id(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/health", headers={"X-Request-ID": "abc123"})

    assert response.headers.get("X-Request-ID") == "abc123"


@pytest.mark.asyncio
async def test_malformed_request_ids_are_replaced(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/health", headers={"X-Request-ID": "bad id;drop"})

    replaced = response.headers.get("X-Request-ID")
    assert replaced
    assert replaced != "bad id;drop"


@pytest.mark.asyncio
async def test_unknown_routes_use_the_detail_envelope(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_client_errors_for_signed_in_callers_keep_their_status(
    async_client: AsyncClient, make_user, caplog: pytest.LogCaptureFixture
) -> None:
    """A rolled-back request still logs the caller and returns the original 4xx."""

    author = await make_user()
    caplog.set_level(logging.INFO, logger="picks_api.request")

    response = await async_client.post(
        "/api/picks",
        json={
            "sport": "NBA",
            "matchup": "Lakers vs Celtics",
            "game_date": (utc_now() + timedelta(minutes=1)).isoformat(),
            "confidence": 3,
        },
        headers=author.headers,
    )

    assert response.status_code == 400, response.text
    assert response.headers.get("X-Request-ID")
    [record] = [r for r in caplog.records if r.getMessage() == "request.complete"]
    assert record.user_id == str(author.id)
    assert record.status_code == 400
