"""HTTP route for trending picks."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from picks_api.api.deps import SessionDep
from picks_api.settings import get_app_settings

from ..auth.dependencies import OptionalUser
from ..picks.models import Sport
from .cache import TrendingCache
from .schemas import TrendingResponse
from .service import TrendingAlgorithm, TrendingPeriod, TrendingService

router = APIRouter(tags=["trending"])


def get_trending_cache(request: Request) -> TrendingCache:
    """Return the process-wide trending cache, creating it on first use."""

    cache = getattr(request.app.state, "trending_cache", None)
    if cache is None:
        settings = get_app_settings(request.app)
        cache = TrendingCache(
            ttl_seconds=settings.trending_cache_ttl.total_seconds(),
            max_entries=settings.trending_cache_max_entries,
        )
        request.app.state.trending_cache = cache
    return cache


TrendingCacheDep = Annotated[TrendingCache, Depends(get_trending_cache)]


@router.get(
    "/picks/trending",
    response_model=TrendingResponse,
    summary="Rank recent picks by engagement",
)
async def read_trending(
    viewer: OptionalUser,
    session: SessionDep,
    cache: TrendingCacheDep,
    algorithm: TrendingAlgorithm = TrendingAlgorithm.HOT,
    sport: Annotated[str, Query(description="ALL or a sport code")] = "ALL",
    period: TrendingPeriod = TrendingPeriod.WEEK,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> TrendingResponse:
    sport = sport.upper()
    if sport != "ALL" and sport not in {item.value for item in Sport}:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=f"Unknown sport: {sport}")
    service = TrendingService(session=session, cache=cache)
    return await service.trending(
        algorithm=algorithm,
        sport=sport,
        period=period,
        limit=limit,
        viewer=viewer,
    )


__all__ = ["get_trending_cache", "router"]
