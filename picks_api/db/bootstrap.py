"""Helpers for preparing the database before serving requests."""

from __future__ import annotations

import asyncio
import logging

from picks_api.settings import Settings, get_settings

from .base import metadata
from .engine import get_engine

_BOOTSTRAP_LOCK = asyncio.Lock()
_BOOTSTRAPPED_URLS: set[str] = set()

logger = logging.getLogger(__name__)


async def ensure_database_ready(settings: Settings | None = None) -> None:
    """Create every mapped table once per database URL."""

    # Model modules register their tables on the shared metadata.
    from picks_api import models  # noqa: F401

    resolved = settings or get_settings()
    database_url = resolved.database_dsn

    async with _BOOTSTRAP_LOCK:
        if database_url in _BOOTSTRAPPED_URLS:
            return

        engine = get_engine(resolved)
        async with engine.begin() as connection:
            await connection.run_sync(metadata.create_all)
        _BOOTSTRAPPED_URLS.add(database_url)
        logger.info("db.bootstrap.complete", extra={"tables": len(metadata.tables)})


def reset_bootstrap_state() -> None:
    """Clear cached bootstrap results (useful for tests)."""

    _BOOTSTRAPPED_URLS.clear()


__all__ = ["ensure_database_ready", "reset_bootstrap_state"]
