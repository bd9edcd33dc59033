"""Schemas for audit log listings."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from picks_api.common.pagination import Pagination
from picks_api.common.schema import BaseSchema


class AuditActor(BaseSchema):
    id: UUID
    username: str | None = None
    email: str
    role: str


class AuditLogOut(BaseSchema):
    id: UUID
    user_id: UUID | None = None
    action: str
    resource: str
    resource_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    details: dict[str, Any]
    success: bool
    created_at: datetime
    user: AuditActor | None = None


class AuditLogPage(BaseSchema):
    logs: list[AuditLogOut]
    pagination: Pagination


__all__ = ["AuditActor", "AuditLogOut", "AuditLogPage"]
