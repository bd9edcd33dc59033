"""Schemas for picks, votes, comments, bookmarks and views."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from picks_api.common.pagination import Pagination
from picks_api.common.schema import BaseSchema, RequestSchema

from ..users.schemas import UserSummary
from .models import (
    ModerationStatus,
    PickStatus,
    PickType,
    PredictionType,
    Sport,
    TotalPrediction,
    VoteType,
)

MATCHUP_PATTERN = r"^[a-zA-Z0-9\s@\-.,()&]+$"
ODDS_PATTERN = r"^[+-]?\d+(\.\d{1,2})?$"
MAX_DETAILS_LENGTH = 1000
MAX_PRICE = Decimal("10000")
MIN_PREMIUM_PRICE = Decimal("0.50")


def _clean_details(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def _check_price(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    if value <= 0:
        raise ValueError("Price must be greater than 0")
    if value > MAX_PRICE:
        raise ValueError("Price cannot exceed $10,000")
    if value != value.quantize(Decimal("0.01")):
        raise ValueError("Price can have at most 2 decimal places")
    return value


class _PickFields(RequestSchema):
    details: str | None = Field(default=None, max_length=MAX_DETAILS_LENGTH)
    odds: str | None = Field(default=None, pattern=ODDS_PATTERN)
    media_url: str | None = Field(default=None, max_length=1024)
    home_team: str | None = Field(default=None, max_length=120)
    away_team: str | None = Field(default=None, max_length=120)
    prediction_type: PredictionType | None = None
    predicted_winner: str | None = Field(default=None, max_length=120)
    spread_value: Decimal | None = None
    spread_team: str | None = Field(default=None, max_length=120)
    total_value: Decimal | None = None
    total_prediction: TotalPrediction | None = None

    @field_validator("details")
    @classmethod
    def _normalise_details(cls, value: str | None) -> str | None:
        return _clean_details(value)

    @field_validator("odds", mode="before")
    @classmethod
    def _blank_odds(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class PickCreate(_PickFields):
    pick_type: PickType = PickType.SINGLE
    sport: Sport
    matchup: str = Field(min_length=1, max_length=200, pattern=MATCHUP_PATTERN)
    game_date: datetime
    confidence: int = Field(ge=1, le=5)
    is_premium: bool = False
    price: Decimal | None = None

    @field_validator("price")
    @classmethod
    def _validate_price(cls, value: Decimal | None) -> Decimal | None:
        return _check_price(value)

    @model_validator(mode="after")
    def _premium_needs_price(self) -> PickCreate:
        if self.is_premium and (self.price is None or self.price < MIN_PREMIUM_PRICE):
            raise ValueError("Premium picks require a price of at least $0.50")
        return self


class PickUpdate(_PickFields):
    pick_type: PickType | None = None
    sport: Sport | None = None
    matchup: str | None = Field(default=None, min_length=1, max_length=200, pattern=MATCHUP_PATTERN)
    game_date: datetime | None = None
    confidence: int | None = Field(default=None, ge=1, le=5)
    is_premium: bool | None = None
    price: Decimal | None = None
    status: PickStatus | None = None

    @field_validator("price")
    @classmethod
    def _validate_price(cls, value: Decimal | None) -> Decimal | None:
        return _check_price(value)


class PickStats(BaseSchema):
    upvotes: int = 0
    downvotes: int = 0
    score: int = 0
    comments: int = 0
    bookmarks: int = 0
    views: int = 0
    unlocks: int = 0


class PickOut(BaseSchema):
    id: UUID
    user_id: UUID
    pick_type: PickType
    sport: Sport
    matchup: str
    details: str | None = None
    odds: str | None = None
    game_date: datetime
    locked_at: datetime
    confidence: int
    is_premium: bool
    price: float | None = None
    media_url: str | None = None
    home_team: str | None = None
    away_team: str | None = None
    prediction_type: PredictionType | None = None
    predicted_winner: str | None = None
    spread_value: float | None = None
    spread_team: str | None = None
    total_value: float | None = None
    total_prediction: TotalPrediction | None = None
    status: PickStatus
    moderation_status: ModerationStatus
    view_count: int
    created_at: datetime
    updated_at: datetime
    author: UserSummary
    stats: PickStats = Field(default_factory=PickStats)
    is_locked: bool = False
    is_premium_locked: bool = False
    is_unlocked: bool = False
    is_bookmarked: bool = False
    user_vote_type: VoteType | None = None


class PickPage(BaseSchema):
    picks: list[PickOut]
    pagination: Pagination


class PickList(BaseSchema):
    picks: list[PickOut]


class PickTotals(BaseSchema):
    total: int = 0
    won: int = 0
    lost: int = 0
    push: int = 0
    pending: int = 0
    win_rate: int = 0


class LikeToggle(BaseSchema):
    liked: bool


class LikeSummary(BaseSchema):
    count: int
    is_liked: bool


class VoteRequest(RequestSchema):
    vote_type: VoteType


class VoteSummary(BaseSchema):
    upvotes: int
    downvotes: int
    score: int
    user_vote_type: VoteType | None = None


class ViewCount(BaseSchema):
    count: int


class CommentCreate(RequestSchema):
    content: str = Field(min_length=1, max_length=500)


class CommentOut(BaseSchema):
    id: UUID
    pick_id: UUID
    content: str
    created_at: datetime
    author: UserSummary


class CommentList(BaseSchema):
    comments: list[CommentOut]


class BookmarkStatus(BaseSchema):
    bookmarked: bool


__all__ = [
    "BookmarkStatus",
    "CommentCreate",
    "CommentList",
    "CommentOut",
    "LikeSummary",
    "LikeToggle",
    "MATCHUP_PATTERN",
    "ODDS_PATTERN",
    "PickCreate",
    "PickList",
    "PickOut",
    "PickPage",
    "PickStats",
    "PickTotals",
    "PickUpdate",
    "ViewCount",
    "VoteRequest",
    "VoteSummary",
]
