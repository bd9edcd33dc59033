"""The process-wide async engine.

One engine is kept per distinct database configuration. SQLite (the default,
through ``aiosqlite``) shares a single connection via ``StaticPool`` and has
SQLAlchemy issue ``BEGIN`` itself so the SAVEPOINTs used by audit writes and
dispute refunds nest properly.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from picks_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_ENGINE: AsyncEngine | None = None
_ENGINE_KEY: tuple[Any, ...] | None = None


def engine_cache_key(settings: Settings) -> tuple[Any, ...]:
    return (
        settings.database_dsn,
        settings.database_echo,
        settings.database_pool_size,
        settings.database_max_overflow,
        settings.database_pool_timeout,
    )


def _sqlite_file(url: URL) -> Path | None:
    """Filesystem path of a SQLite database, or ``None`` for in-memory ones."""

    database = (url.database or "").strip()
    if not database or database == ":memory:" or database.startswith("file:"):
        return None
    path = Path(database)
    return path if path.is_absolute() else Path.cwd() / path


def _engine_options(url: URL, settings: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.database_echo, "pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
        )
        return options
    options.update(
        poolclass=StaticPool,
        connect_args={"check_same_thread": False, "timeout": settings.database_pool_timeout},
    )
    return options


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=30000")
        finally:
            cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(connection) -> None:
        connection.exec_driver_sql("BEGIN")


def _build_engine(settings: Settings) -> AsyncEngine:
    url = make_url(settings.database_dsn)
    if url.get_backend_name() == "sqlite" and (path := _sqlite_file(url)) is not None:
        path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        url.render_as_string(hide_password=False), **_engine_options(url, settings)
    )
    if url.get_backend_name() == "sqlite":
        _install_sqlite_hooks(engine)
    logger.debug("db.engine.created", extra={"dsn": url.render_as_string(hide_password=True)})
    return engine


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    global _ENGINE, _ENGINE_KEY
    settings = settings or get_settings()
    key = engine_cache_key(settings)
    if _ENGINE is None or _ENGINE_KEY != key:
        if _ENGINE is not None:
            _ENGINE.sync_engine.dispose()
        _ENGINE = _build_engine(settings)
        _ENGINE_KEY = key
    return _ENGINE


def _forget_engine() -> AsyncEngine | None:
    global _ENGINE, _ENGINE_KEY
    engine, _ENGINE, _ENGINE_KEY = _ENGINE, None, None

    from .bootstrap import reset_bootstrap_state
    from .session import reset_session_state

    reset_session_state()
    reset_bootstrap_state()
    return engine


async def dispose_engine() -> None:
    """Close pooled connections from inside the loop that opened them."""

    engine = _forget_engine()
    if engine is not None:
        await engine.dispose()


def reset_database_state() -> None:
    """Synchronous variant of :func:`dispose_engine` for test teardown."""

    engine = _forget_engine()
    if engine is not None:
        engine.sync_engine.dispose()


__all__ = ["dispose_engine", "engine_cache_key", "get_engine", "reset_database_state"]
