"""Session factories, the request session dependency and a unit-of-work helper."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from picks_api.settings import Settings, get_app_settings, get_settings

from .engine import engine_cache_key, get_engine

_FACTORIES: dict[tuple[Any, ...], async_sessionmaker[AsyncSession]] = {}


def reset_session_state() -> None:
    _FACTORIES.clear()


def get_sessionmaker(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Return the ``async_sessionmaker`` for the engine ``settings`` resolve to."""

    settings = settings or get_settings()
    key = engine_cache_key(settings)
    factory = _FACTORIES.get(key)
    if factory is None:
        factory = async_sessionmaker(
            bind=get_engine(settings),
            expire_on_commit=False,
            autoflush=False,
        )
        _FACTORIES[key] = factory
    return factory


@asynccontextmanager
async def session_scope(settings: Settings | None = None) -> AsyncIterator[AsyncSession]:
    """Yield a session that commits on exit and rolls back if the block raises.

    Used outside the request cycle (CLI commands, lifespan tasks).
    """

    async with get_sessionmaker(settings)() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


def _request_sessionmaker(request: Request) -> async_sessionmaker[AsyncSession]:
    return get_sessionmaker(get_app_settings(request.app))


async def get_session(
    factory: Annotated[async_sessionmaker[AsyncSession], Depends(_request_sessionmaker)],
) -> AsyncIterator[AsyncSession]:
    """Request-scoped session: committed when the endpoint returns, rolled back when it raises."""

    async with factory() as session:
        try:
            yield session
            if session.in_transaction():
                await session.commit()
        except Exception:
            if session.in_transaction():
                await session.rollback()
            raise


__all__ = ["get_session", "get_sessionmaker", "reset_session_state", "session_scope"]
