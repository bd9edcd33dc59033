"""Response models for trending picks."""

from __future__ import annotations

from picks_api.common.schema import BaseSchema

from ..picks.schemas import PickOut


class TrendingPick(PickOut):
    author_win_rate: int = 0
    engagement: float = 0.0
    score: float = 0.0


class TrendingResponse(BaseSchema):
    picks: list[TrendingPick]
    algorithm: str
    sport: str
    period: str


__all__ = ["TrendingPick", "TrendingResponse"]
