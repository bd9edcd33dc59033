"""Shared Pydantic schema utilities."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base class for API schemas."""

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


class RequestSchema(BaseSchema):
    """Request payloads reject unknown keys."""

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


class ErrorMessage(BaseSchema):
    """Standard error envelope mirroring FastAPI's ``{"detail": ...}`` payload."""

    detail: str | dict[str, Any]


class MessageResponse(BaseSchema):
    message: str


class StatusBreakdown(BaseSchema):
    """Row counts keyed by status, shown next to admin listings."""

    by_status: dict[str, int]


__all__ = [
    "BaseSchema",
    "ErrorMessage",
    "MessageResponse",
    "RequestSchema",
    "StatusBreakdown",
]
