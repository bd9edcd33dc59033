"""Dependency aliases shared by feature routers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.db.session import get_session
from picks_api.settings import Settings, get_app_settings


def get_request_settings(request: Request) -> Settings:
    """Return the settings bound to the running application."""

    return get_app_settings(request.app)


SettingsDep = Annotated[Settings, Depends(get_request_settings)]
SessionDep = Annotated[AsyncSession, Depends(get_session)]

__all__ = ["SessionDep", "SettingsDep", "get_request_settings"]
