"""Schemas for pick disputes."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from picks_api.common.pagination import Pagination
from picks_api.common.schema import BaseSchema, RequestSchema, StatusBreakdown

from ..picks.models import PickStatus, Sport
from ..users.schemas import UserSummary
from .models import DisputeStatus


class DisputeCreate(RequestSchema):
    reason: str = Field(min_length=10, max_length=2000)


class DisputedPick(BaseSchema):
    id: UUID
    user_id: UUID
    matchup: str
    sport: Sport
    status: PickStatus


class DisputeOut(BaseSchema):
    id: UUID
    pick_id: UUID
    user_id: UUID
    reason: str
    status: DisputeStatus
    resolution: str | None = None
    resolved_by: UUID | None = None
    resolved_at: datetime | None = None
    created_at: datetime
    pick: DisputedPick
    user: UserSummary


class DisputeList(BaseSchema):
    disputes: list[DisputeOut]


class DisputePage(BaseSchema):
    disputes: list[DisputeOut]
    pagination: Pagination
    stats: StatusBreakdown


class DisputeResolve(RequestSchema):
    resolution: str = Field(min_length=10, max_length=2000)
    correct_result: PickStatus
    refund: bool = False


class RefundOutcomeOut(BaseSchema):
    purchase_id: UUID
    success: bool
    error: str | None = None


class DisputeResolutionOut(BaseSchema):
    message: str = "Dispute resolved successfully"
    dispute: DisputeOut
    correct_result: PickStatus
    refund: bool
    refunds: list[RefundOutcomeOut]


__all__ = [
    "DisputeCreate",
    "DisputeList",
    "DisputeOut",
    "DisputePage",
    "DisputeResolutionOut",
    "DisputeResolve",
    "DisputedPick",
    "RefundOutcomeOut",
]
