"""Routes exposing the caller's account status and its live change stream."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from picks_api.api.deps import SettingsDep
from picks_api.common.logging import log_context
from picks_api.common.schema import BaseSchema
from picks_api.common.sse import sse_json
from picks_api.common.time import utc_now

from ..auth.dependencies import CurrentUser
from ..users.models import AccountStatus
from .broadcaster import AccountStatusChange, StatusBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/account-status", tags=["account-status"])

# Interval at which an idle stream checks whether the client went away.
DISCONNECT_POLL_SECONDS = 1.0


class AccountStatusOut(BaseSchema):
    account_status: AccountStatus
    suspended_until: datetime | None = None
    suspension_reason: str | None = None
    ban_reason: str | None = None
    warning_count: int = 0
    trust_score: int


def get_status_broadcaster(request: Request) -> StatusBroadcaster:
    broadcaster = getattr(request.app.state, "status_broadcaster", None)
    if broadcaster is None:
        broadcaster = StatusBroadcaster()
        request.app.state.status_broadcaster = broadcaster
    return broadcaster


StatusBroadcasterDep = Annotated[StatusBroadcaster, Depends(get_status_broadcaster)]


async def status_events(
    broadcaster: StatusBroadcaster,
    user_id: UUID,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[dict[str, str]]:
    """Yield a ``connected`` message, then every status change for ``user_id``."""

    queue: asyncio.Queue[AccountStatusChange] = asyncio.Queue()
    unsubscribe = broadcaster.subscribe(user_id, queue.put_nowait)
    try:
        yield sse_json({"type": "connected", "timestamp": utc_now()})
        while True:
            try:
                change = await asyncio.wait_for(queue.get(), timeout=DISCONNECT_POLL_SECONDS)
            except TimeoutError:
                if await is_disconnected():
                    return
                continue
            yield sse_json(change.as_message())
    finally:
        unsubscribe()
        logger.debug("account_status.stream.closed", extra=log_context(user_id=user_id))


@router.get("", response_model=AccountStatusOut, summary="Read the caller's account status")
async def read_account_status(user: CurrentUser) -> AccountStatusOut:
    return AccountStatusOut.model_validate(user)


@router.get("/stream", summary="Stream account status changes")
async def stream_account_status(
    request: Request,
    user: CurrentUser,
    broadcaster: StatusBroadcasterDep,
    settings: SettingsDep,
) -> EventSourceResponse:
    logger.info("account_status.stream.open", extra=log_context(user_id=user.id))
    return EventSourceResponse(
        status_events(broadcaster, user.id, request.is_disconnected),
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
        ping=int(settings.account_status_keepalive.total_seconds()),
    )


__all__ = [
    "AccountStatusOut",
    "StatusBroadcasterDep",
    "get_status_broadcaster",
    "router",
    "status_events",
]
