"""Store and dispatch payment provider webhook deliveries."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.time import utc_now

from ..payments.service import PaymentService
from ..subscriptions.service import SubscriptionService
from .models import WebhookEvent

logger = logging.getLogger(__name__)

PROVIDER = "whop"


class WebhookPayloadError(ValueError):
    """Raised when a delivery is not a JSON object with a ``type``."""


def parse_timestamp(value: Any) -> datetime | None:
    """Convert a unix-seconds value from the provider into an aware datetime."""

    if value is None or value == "":
        return None
    return datetime.fromtimestamp(float(value), tz=UTC)


@dataclass(slots=True)
class WebhookOutcome:
    event: WebhookEvent
    error: str | None = None

    @property
    def processed(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class WebhookService:
    session: AsyncSession
    payments: PaymentService
    subscriptions: SubscriptionService

    def _handlers(self) -> dict[str, Callable[[dict[str, Any]], Awaitable[Any]]]:
        return {
            "payment.succeeded": lambda data: self.payments.complete_purchase(str(data["id"])),
            "payment.failed": lambda data: self.payments.fail_purchase(str(data["id"])),
            "membership.went_valid": lambda data: self.subscriptions.activate(
                str(data["id"]), parse_timestamp(data.get("current_period_end"))
            ),
            "membership.went_invalid": lambda data: self.subscriptions.deactivate(
                str(data["id"])
            ),
            "membership.renewed": lambda data: self.subscriptions.renew(
                str(data["id"]), parse_timestamp(data.get("current_period_end"))
            ),
            "transfer.completed": lambda data: self.payments.complete_transfer(str(data["id"])),
            "transfer.failed": lambda data: self.payments.fail_transfer(
                str(data["id"]), data.get("failure_reason")
            ),
        }

    async def receive(self, payload: Any) -> WebhookOutcome:
        """Persist the delivery, then apply it; processing errors are recorded, not raised."""

        if not isinstance(payload, dict) or not payload.get("type"):
            raise WebhookPayloadError("Invalid webhook payload")
        event_type = str(payload["type"])

        event = WebhookEvent(
            provider=PROVIDER,
            event_type=event_type,
            payload=payload,
            processed=False,
            attempts=0,
        )
        self.session.add(event)
        await self.session.flush()

        handler = self._handlers().get(event_type)
        data = payload.get("data") or {}
        try:
            async with self.session.begin_nested():
                if handler is None:
                    logger.info(
                        "webhook.unhandled",
                        extra=log_context(event_type=event_type, event_id=str(event.id)),
                    )
                else:
                    await handler(data)
        except Exception as exc:
            logger.exception(
                "webhook.process.failed",
                extra=log_context(event_type=event_type, event_id=str(event.id)),
            )
            event.processing_error = str(exc) or exc.__class__.__name__
            event.attempts = (event.attempts or 0) + 1
            await self.session.flush()
            return WebhookOutcome(event=event, error="Processing failed")

        event.processed = True
        event.processed_at = utc_now()
        await self.session.flush()
        logger.info(
            "webhook.process.success",
            extra=log_context(event_type=event_type, event_id=str(event.id)),
        )
        return WebhookOutcome(event=event)


__all__ = ["WebhookOutcome", "WebhookPayloadError", "WebhookService", "parse_timestamp"]
