"""FastAPI lifespan helpers for the picks API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import Lifespan

from .db.bootstrap import ensure_database_ready
from .features.account_status.broadcaster import StatusBroadcaster
from .features.payments.whop import WhopClient
from .features.trending.cache import TrendingCache
from .settings import Settings

logger = logging.getLogger(__name__)


def create_application_lifespan(*, settings: Settings) -> Lifespan[FastAPI]:
    """Return the FastAPI lifespan handler used by the app factory.

    State already placed on ``app.state`` (for example a provider client with a
    mock transport) is left alone.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        if getattr(app.state, "whop_client", None) is None:
            app.state.whop_client = WhopClient(settings)
        if getattr(app.state, "trending_cache", None) is None:
            app.state.trending_cache = TrendingCache(
                ttl_seconds=settings.trending_cache_ttl.total_seconds(),
                max_entries=settings.trending_cache_max_entries,
            )
        if getattr(app.state, "status_broadcaster", None) is None:
            app.state.status_broadcaster = StatusBroadcaster()
        await ensure_database_ready(settings)
        logger.info(
            "app.startup",
            extra={"payments_configured": app.state.whop_client.is_configured},
        )
        try:
            yield
        finally:
            app.state.trending_cache.clear()
            logger.info(
                "app.shutdown",
                extra={"open_streams": app.state.status_broadcaster.total_connections()},
            )

    return lifespan


__all__ = ["create_application_lifespan"]
