"""Schemas for user reports and their resolution."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from picks_api.common.pagination import Pagination
from picks_api.common.schema import BaseSchema, RequestSchema

from .models import ReportPriority, ReportStatus, ReportTargetType
from .service import DEFAULT_SUSPENSION_DAYS, ReportAction


class ReportCreate(RequestSchema):
    target_type: ReportTargetType
    target_id: UUID
    reason: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    priority: ReportPriority | None = None


class ReportOut(BaseSchema):
    id: UUID
    reporter_id: UUID
    target_type: ReportTargetType
    target_id: UUID
    reason: str
    description: str | None = None
    priority: ReportPriority
    status: ReportStatus
    resolution: str | None = None
    action_taken: str | None = None
    resolved_by: UUID | None = None
    resolved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ReportDetail(ReportOut):
    target: dict[str, Any] | None = None


class ReportStats(BaseSchema):
    by_status: dict[str, int]
    pending_by_priority: dict[str, int]


class ReportPage(BaseSchema):
    reports: list[ReportOut]
    pagination: Pagination
    stats: ReportStats


class ReportUpdate(RequestSchema):
    status: ReportStatus | None = None
    priority: ReportPriority | None = None


class ReportResolve(RequestSchema):
    resolution: str = Field(min_length=10, max_length=2000)
    action: ReportAction = ReportAction.NONE
    notes: str | None = Field(default=None, max_length=2000)
    suspension_days: int = Field(default=DEFAULT_SUSPENSION_DAYS, ge=1, le=365)
    ban_reason: str | None = Field(default=None, max_length=2000)


class ReportResolutionOut(BaseSchema):
    message: str = "Report resolved successfully"
    report: ReportOut
    action: ReportAction
    target_user_id: UUID | None = None
    sanctions: list[dict[str, Any]] = Field(default_factory=list)


__all__ = [
    "ReportCreate",
    "ReportDetail",
    "ReportOut",
    "ReportPage",
    "ReportResolutionOut",
    "ReportResolve",
    "ReportStats",
    "ReportUpdate",
]
