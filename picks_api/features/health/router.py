"""API routes for the health module."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, status

from picks_api.common.schema import BaseSchema
from picks_api.common.time import utc_now

from ..payments.dependencies import WhopClientDep

router = APIRouter(tags=["health"])


class PaymentsHealth(BaseSchema):
    configured: bool


class HealthCheckResponse(BaseSchema):
    status: Literal["ok"] = "ok"
    timestamp: datetime
    payments: PaymentsHealth


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Service health status",
)
async def read_health(whop: WhopClientDep) -> HealthCheckResponse:
    """Return liveness plus whether the payment provider has credentials."""
    return HealthCheckResponse(
        timestamp=utc_now(),
        payments=PaymentsHealth(configured=whop.is_configured),
    )


__all__ = ["HealthCheckResponse", "router"]
