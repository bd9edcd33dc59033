"""Picks and the engagement rows attached to them."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from picks_api.db import (
    Base,
    DollarAmount,
    TimestampMixin,
    UTCDateTime,
    UUIDPrimaryKeyMixin,
    UUIDType,
)
from picks_api.db.enums import enum_column
from picks_api.features.users.models import User


class PickType(str, Enum):
    SINGLE = "SINGLE"
    PARLAY = "PARLAY"


class Sport(str, Enum):
    NFL = "NFL"
    NBA = "NBA"
    MLB = "MLB"
    NHL = "NHL"
    SOCCER = "SOCCER"
    COLLEGE_FOOTBALL = "COLLEGE_FOOTBALL"
    COLLEGE_BASKETBALL = "COLLEGE_BASKETBALL"


class PredictionType(str, Enum):
    WINNER = "WINNER"
    SPREAD = "SPREAD"
    TOTAL = "TOTAL"


class TotalPrediction(str, Enum):
    OVER = "OVER"
    UNDER = "UNDER"


class PickStatus(str, Enum):
    PENDING = "PENDING"
    WON = "WON"
    LOST = "LOST"
    PUSH = "PUSH"


class ModerationStatus(str, Enum):
    APPROVED = "APPROVED"
    PENDING_REVIEW = "PENDING_REVIEW"
    REMOVED = "REMOVED"


class VoteType(str, Enum):
    UPVOTE = "UPVOTE"
    DOWNVOTE = "DOWNVOTE"


class Pick(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "picks"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pick_type: Mapped[PickType] = mapped_column(
        enum_column(PickType, "pick_type", length=10), nullable=False
    )
    sport: Mapped[Sport] = mapped_column(enum_column(Sport, "sport", length=32), nullable=False)
    matchup: Mapped[str] = mapped_column(String(200), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    odds: Mapped[str | None] = mapped_column(String(16), nullable=True)
    game_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    locked_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    confidence: Mapped[int] = mapped_column(Integer, nullable=False)
    is_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    price: Mapped[Decimal | None] = mapped_column(DollarAmount(), nullable=True)
    media_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    home_team: Mapped[str | None] = mapped_column(String(120), nullable=True)
    away_team: Mapped[str | None] = mapped_column(String(120), nullable=True)
    prediction_type: Mapped[PredictionType | None] = mapped_column(
        enum_column(PredictionType, "prediction_type", length=10), nullable=True
    )
    predicted_winner: Mapped[str | None] = mapped_column(String(120), nullable=True)
    spread_value: Mapped[Decimal | None] = mapped_column(Numeric(6, 1), nullable=True)
    spread_team: Mapped[str | None] = mapped_column(String(120), nullable=True)
    total_value: Mapped[Decimal | None] = mapped_column(Numeric(6, 1), nullable=True)
    total_prediction: Mapped[TotalPrediction | None] = mapped_column(
        enum_column(TotalPrediction, "total_prediction", length=10), nullable=True
    )
    status: Mapped[PickStatus] = mapped_column(
        enum_column(PickStatus, "pick_status", length=10),
        nullable=False,
        default=PickStatus.PENDING,
    )
    moderation_status: Mapped[ModerationStatus] = mapped_column(
        enum_column(ModerationStatus, "moderation_status", length=20),
        nullable=False,
        default=ModerationStatus.APPROVED,
    )
    moderation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    moderated_by: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    moderated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    author: Mapped[User] = relationship(User, lazy="joined", innerjoin=True)


class Vote(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """An up or down vote; a ``like`` is an UPVOTE."""

    __tablename__ = "votes"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pick_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("picks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vote_type: Mapped[VoteType] = mapped_column(
        enum_column(VoteType, "vote_type", length=10),
        nullable=False,
        default=VoteType.UPVOTE,
    )

    __table_args__ = (UniqueConstraint("user_id", "pick_id"),)


class Comment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "comments"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pick_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("picks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    author: Mapped[User] = relationship(User, lazy="joined", innerjoin=True)


class Bookmark(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "bookmarks"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pick_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("picks.id", ondelete="CASCADE"), nullable=False, index=True
    )

    __table_args__ = (UniqueConstraint("user_id", "pick_id"),)


class View(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "views"

    pick_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("picks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)


__all__ = [
    "Bookmark",
    "Comment",
    "ModerationStatus",
    "Pick",
    "PickStatus",
    "PickType",
    "PredictionType",
    "Sport",
    "TotalPrediction",
    "View",
    "Vote",
    "VoteType",
]
