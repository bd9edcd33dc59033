"""Disputes raised against graded pick results."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from picks_api.db import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin, UUIDType
from picks_api.db.enums import enum_column
from picks_api.features.picks.models import Pick
from picks_api.features.users.models import User


class DisputeStatus(str, Enum):
    OPEN = "OPEN"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"


OPEN_DISPUTE_STATUSES = (DisputeStatus.OPEN, DisputeStatus.INVESTIGATING)


class Dispute(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "disputes"

    pick_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("picks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[DisputeStatus] = mapped_column(
        enum_column(DisputeStatus, "dispute_status", length=20),
        nullable=False,
        default=DisputeStatus.OPEN,
    )
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_by: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    pick: Mapped[Pick] = relationship(Pick, lazy="joined", innerjoin=True)
    user: Mapped[User] = relationship(User, lazy="joined", innerjoin=True)


__all__ = ["Dispute", "DisputeStatus", "OPEN_DISPUTE_STATUSES"]
