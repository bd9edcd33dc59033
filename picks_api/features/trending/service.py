"""Ranking of recent picks by engagement (hot, rising, top, new)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.time import ensure_utc, utc_now

from ..picks.models import ModerationStatus, Pick
from ..picks.schemas import PickStats
from ..picks.service import collect_stats, load_viewer_state, present_pick, win_rate
from ..users.models import User
from ..users.service import graded_counts
from .cache import TrendingCache
from .schemas import TrendingPick, TrendingResponse

logger = logging.getLogger(__name__)

CANDIDATE_POOL = 100
RISING_WINDOW = timedelta(hours=48)

LIKE_WEIGHT = 5
COMMENT_WEIGHT = 10
BOOKMARK_WEIGHT = 7
VIEW_WEIGHT = 0.1


class TrendingAlgorithm(str, Enum):
    HOT = "hot"
    RISING = "rising"
    TOP = "top"
    NEW = "new"


class TrendingPeriod(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


_PERIOD_WINDOWS: dict[TrendingPeriod, timedelta | None] = {
    TrendingPeriod.TODAY: timedelta(days=1),
    TrendingPeriod.WEEK: timedelta(days=7),
    TrendingPeriod.MONTH: timedelta(days=30),
    TrendingPeriod.ALL: None,
}


def engagement_score(stats: PickStats, views: int) -> float:
    return (
        stats.upvotes * LIKE_WEIGHT
        + stats.comments * COMMENT_WEIGHT
        + stats.bookmarks * BOOKMARK_WEIGHT
        + views * VIEW_WEIGHT
    )


def rank_score(algorithm: TrendingAlgorithm, engagement: float, age_hours: float) -> float:
    """Score used to order candidates; ``new`` keeps recency order and scores 0."""

    if algorithm == TrendingAlgorithm.HOT:
        return engagement / (age_hours + 2) ** 1.5
    if algorithm == TrendingAlgorithm.RISING:
        return engagement / age_hours if age_hours > 0 else engagement
    if algorithm == TrendingAlgorithm.TOP:
        return engagement
    return 0.0


def _age_hours(created_at: datetime, now: datetime) -> float:
    return max((now - ensure_utc(created_at)).total_seconds() / 3600, 0.0)


@dataclass(slots=True)
class TrendingService:
    session: AsyncSession
    cache: TrendingCache

    async def _candidates(
        self,
        algorithm: TrendingAlgorithm,
        sport: str,
        period: TrendingPeriod,
        limit: int,
        now: datetime,
    ) -> list[Pick]:
        stmt = select(Pick).where(Pick.moderation_status == ModerationStatus.APPROVED)
        if sport != "ALL":
            stmt = stmt.where(Pick.sport == sport)
        if algorithm in (TrendingAlgorithm.TOP, TrendingAlgorithm.RISING):
            window = _PERIOD_WINDOWS[period]
            if window is not None:
                stmt = stmt.where(Pick.created_at >= now - window)
        if algorithm == TrendingAlgorithm.RISING:
            stmt = stmt.where(Pick.created_at >= now - RISING_WINDOW)
        pool = limit if algorithm == TrendingAlgorithm.NEW else CANDIDATE_POOL
        stmt = stmt.order_by(Pick.created_at.desc(), Pick.id.desc()).limit(pool)
        return list((await self.session.execute(stmt)).scalars().all())

    async def trending(
        self,
        *,
        algorithm: TrendingAlgorithm,
        sport: str,
        period: TrendingPeriod,
        limit: int,
        viewer: User | None,
    ) -> TrendingResponse:
        key = (
            algorithm.value,
            sport,
            period.value,
            limit,
            str(viewer.id) if viewer is not None else None,
        )
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("trending.cache.hit", extra={"algorithm": algorithm.value})
            return cached

        now = utc_now()
        picks = await self._candidates(algorithm, sport, period, limit, now)
        ids = [pick.id for pick in picks]
        stats = await collect_stats(self.session, ids)
        state = await load_viewer_state(self.session, viewer, ids)
        graded = await graded_counts(self.session, [pick.user_id for pick in picks])

        ranked: list[TrendingPick] = []
        for pick in picks:
            engagement = engagement_score(stats[pick.id], pick.view_count)
            score = rank_score(algorithm, engagement, _age_hours(pick.created_at, now))
            base = present_pick(pick, stats=stats[pick.id], viewer=state, now=now)
            won, lost = graded.get(pick.user_id, (0, 0))
            ranked.append(
                TrendingPick(
                    **base.model_dump(),
                    author_win_rate=win_rate(won, lost),
                    engagement=round(engagement, 2),
                    score=round(score, 4),
                )
            )

        if algorithm != TrendingAlgorithm.NEW:
            ranked.sort(key=lambda item: item.score, reverse=True)

        response = TrendingResponse(
            picks=ranked[:limit],
            algorithm=algorithm.value,
            sport=sport,
            period=period.value,
        )
        self.cache.set(key, response)
        return response


__all__ = [
    "CANDIDATE_POOL",
    "TrendingAlgorithm",
    "TrendingPeriod",
    "TrendingService",
    "engagement_score",
    "rank_score",
]
