"""User reports against picks, comments and accounts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from picks_api.db import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin, UUIDType
from picks_api.db.enums import enum_column


class ReportTargetType(str, Enum):
    PICK = "PICK"
    COMMENT = "COMMENT"
    USER = "USER"


class ReportPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ReportStatus(str, Enum):
    PENDING = "PENDING"
    REVIEWING = "REVIEWING"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class Report(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "reports"

    reporter_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_type: Mapped[ReportTargetType] = mapped_column(
        enum_column(ReportTargetType, "report_target_type", length=10), nullable=False
    )
    target_id: Mapped[UUID] = mapped_column(UUIDType(), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[ReportPriority] = mapped_column(
        enum_column(ReportPriority, "report_priority", length=10),
        nullable=False,
        default=ReportPriority.MEDIUM,
    )
    status: Mapped[ReportStatus] = mapped_column(
        enum_column(ReportStatus, "report_status", length=20),
        nullable=False,
        default=ReportStatus.PENDING,
    )
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    action_taken: Mapped[str | None] = mapped_column(String(32), nullable=True)
    resolved_by: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)


__all__ = ["Report", "ReportPriority", "ReportStatus", "ReportTargetType"]
