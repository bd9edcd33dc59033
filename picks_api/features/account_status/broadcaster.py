"""In-process pub/sub of account status changes.

Listeners are plain callables registered per user. Open status streams use
them to push changes to connected browsers; admin actions call
:meth:`StatusBroadcaster.broadcast` after a ban, suspension or warning.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from picks_api.common.logging import log_context
from picks_api.common.time import utc_now

from ..users.models import AccountStatus, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AccountStatusChange:
    user_id: UUID
    account_status: AccountStatus
    suspended_until: datetime | None = None
    suspension_reason: str | None = None
    ban_reason: str | None = None
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def for_user(cls, user: User) -> AccountStatusChange:
        return cls(
            user_id=user.id,
            account_status=AccountStatus(user.account_status),
            suspended_until=user.suspended_until,
            suspension_reason=user.suspension_reason,
            ban_reason=user.ban_reason,
        )

    def as_message(self) -> dict[str, Any]:
        return {"type": "status_change", **asdict(self)}


StatusListener = Callable[[AccountStatusChange], None]


class StatusBroadcaster:
    """Fan status changes out to the listeners registered for each user."""

    def __init__(self) -> None:
        self._listeners: dict[UUID, set[StatusListener]] = {}

    def subscribe(self, user_id: UUID, listener: StatusListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        self._listeners.setdefault(user_id, set()).add(listener)
        logger.debug(
            "account_status.subscribe",
            extra=log_context(user_id=user_id, listeners=self.listener_count(user_id)),
        )

        def unsubscribe() -> None:
            listeners = self._listeners.get(user_id)
            if listeners is None:
                return
            listeners.discard(listener)
            if not listeners:
                del self._listeners[user_id]

        return unsubscribe

    def broadcast(self, change: AccountStatusChange) -> int:
        """Deliver ``change`` to every listener of the user; returns the delivery count."""

        delivered = 0
        for listener in list(self._listeners.get(change.user_id, ())):
            try:
                listener(change)
            except Exception:
                logger.exception(
                    "account_status.listener.failed",
                    extra=log_context(user_id=change.user_id),
                )
                continue
            delivered += 1
        logger.info(
            "account_status.broadcast",
            extra=log_context(
                user_id=change.user_id,
                account_status=change.account_status.value,
                delivered=delivered,
            ),
        )
        return delivered

    def listener_count(self, user_id: UUID) -> int:
        return len(self._listeners.get(user_id, ()))

    def total_connections(self) -> int:
        return sum(len(listeners) for listeners in self._listeners.values())


__all__ = ["AccountStatusChange", "StatusBroadcaster", "StatusListener"]
