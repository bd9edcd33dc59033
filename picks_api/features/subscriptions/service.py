"""Creator subscriptions: sign-up, cancellation and provider lifecycle events."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.time import ensure_utc, utc_now

from ..payments.models import Transaction, TransactionStatus, TransactionType
from ..payments.service import PaymentService, dollars_to_cents
from ..users.models import User
from .models import Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)


class SubscriptionError(ValueError):
    """Raised when a subscription request breaks a business rule."""


class SubscriptionNotFoundError(LookupError):
    pass


class CreatorNotFoundError(LookupError):
    pass


@dataclass(slots=True)
class SubscriptionStats:
    active_subscribers: int
    total_subscribers: int
    mrr: int
    churn_rate: float
    average_value: int


def add_month(value: datetime) -> datetime:
    """Return ``value`` one calendar month later, clamped to the month's last day."""

    year = value.year + value.month // 12
    month = value.month % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


@dataclass(slots=True)
class SubscriptionService:
    session: AsyncSession
    payments: PaymentService

    async def _active(self, subscriber_id: UUID, creator_id: UUID) -> Subscription | None:
        result = await self.session.execute(
            select(Subscription)
            .where(
                Subscription.subscriber_id == subscriber_id,
                Subscription.creator_id == creator_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def latest(self, subscriber_id: UUID, creator_id: UUID) -> Subscription | None:
        result = await self.session.execute(
            select(Subscription)
            .where(
                Subscription.subscriber_id == subscriber_id,
                Subscription.creator_id == creator_id,
            )
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def subscribe(self, subscriber: User, creator_id: UUID) -> tuple[Subscription, str | None]:
        """Open a provider subscription and store it as pending until the provider confirms."""

        if subscriber.id == creator_id:
            raise SubscriptionError("You cannot subscribe to yourself")
        creator = await self.session.get(User, creator_id)
        if creator is None:
            raise CreatorNotFoundError(f"User {creator_id} not found")
        if await self._active(subscriber.id, creator_id) is not None:
            raise SubscriptionError("Already subscribed to this creator")
        if not creator.subscription_enabled or creator.subscription_price is None:
            raise SubscriptionError("Creator does not offer subscriptions")
        if not creator.whop_user_id:
            raise SubscriptionError("Creator has not set up payment account")

        amount = dollars_to_cents(creator.subscription_price)
        await self.payments.validate_subscription_price(amount)
        fees = await self.payments.calculate_fees(amount)

        result = await self.payments.whop.create_subscription(
            user_id=subscriber.whop_user_id or str(subscriber.id),
            plan_id=creator.whop_user_id,
            metadata={
                "creator_id": str(creator.id),
                "subscriber_id": str(subscriber.id),
                "amount": fees.amount,
                "platform_fee": fees.platform_fee,
                "creator_earnings": fees.creator_earnings,
            },
        )

        now = utc_now()
        subscription = Subscription(
            subscriber_id=subscriber.id,
            creator_id=creator.id,
            status=SubscriptionStatus.PENDING,
            amount=fees.amount,
            platform_fee=fees.platform_fee,
            creator_earnings=fees.creator_earnings,
            whop_subscription_id=result.get("id"),
            current_period_start=now,
            current_period_end=add_month(now),
        )
        self.session.add(subscription)
        await self.session.flush()
        logger.info(
            "subscription.create.pending",
            extra=log_context(
                user_id=subscriber.id,
                creator_id=str(creator.id),
                subscription_id=str(subscription.id),
            ),
        )
        return subscription, result.get("checkout_url")

    async def list_for_subscriber(self, subscriber: User) -> list[Subscription]:
        result = await self.session.execute(
            select(Subscription)
            .where(Subscription.subscriber_id == subscriber.id)
            .order_by(Subscription.created_at.desc())
        )
        return list(result.scalars().all())

    async def cancel(
        self, subscriber: User, subscription_id: UUID, *, cancel_at_period_end: bool = True
    ) -> Subscription:
        subscription = await self.session.get(Subscription, subscription_id)
        if subscription is None or subscription.subscriber_id != subscriber.id:
            raise SubscriptionNotFoundError("Subscription not found")
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise SubscriptionError("Subscription is not active")
        if not subscription.whop_subscription_id:
            raise SubscriptionError("Cannot cancel: no payment provider reference")

        await self.payments.whop.cancel_subscription(
            subscription.whop_subscription_id, cancel_at_period_end=cancel_at_period_end
        )
        subscription.cancel_at_period_end = cancel_at_period_end
        subscription.canceled_at = utc_now()
        subscription.status = (
            SubscriptionStatus.ACTIVE if cancel_at_period_end else SubscriptionStatus.CANCELED
        )
        await self.session.flush()
        logger.info(
            "subscription.cancel.success",
            extra=log_context(
                user_id=subscriber.id,
                subscription_id=str(subscription.id),
                at_period_end=cancel_at_period_end,
            ),
        )
        return subscription

    async def _by_provider_id(self, provider_id: str) -> Subscription:
        result = await self.session.execute(
            select(Subscription).where(Subscription.whop_subscription_id == provider_id)
        )
        subscription = result.scalar_one_or_none()
        if subscription is None:
            raise SubscriptionNotFoundError(f"Subscription {provider_id} not found")
        return subscription

    async def _record_payment(self, subscription: Subscription) -> None:
        creator = await self.session.get(User, subscription.creator_id)
        subscriber = await self.session.get(User, subscription.subscriber_id)
        creator_label = (creator.name or creator.username) if creator else None
        subscriber_label = (subscriber.name or subscriber.email) if subscriber else None
        self.session.add_all(
            [
                Transaction(
                    user_id=subscription.subscriber_id,
                    type=TransactionType.SUBSCRIPTION,
                    status=TransactionStatus.COMPLETED,
                    amount=subscription.amount,
                    platform_fee=subscription.platform_fee,
                    subscription_id=subscription.id,
                    description=f"Subscription to {creator_label or 'creator'}",
                    details={"creator_id": str(subscription.creator_id)},
                ),
                Transaction(
                    user_id=subscription.creator_id,
                    type=TransactionType.SUBSCRIPTION_REVENUE,
                    status=TransactionStatus.COMPLETED,
                    amount=subscription.amount - subscription.platform_fee,
                    subscription_id=subscription.id,
                    description=f"Subscription revenue from {subscriber_label or 'subscriber'}",
                    details={"subscriber_id": str(subscription.subscriber_id)},
                ),
            ]
        )
        await self.session.flush()
        await self.payments.check_auto_withdrawal(subscription.creator_id)

    async def activate(self, provider_id: str, period_end: datetime | None) -> Subscription:
        subscription = await self._by_provider_id(provider_id)
        subscription.status = SubscriptionStatus.ACTIVE
        if period_end is not None:
            subscription.current_period_end = ensure_utc(period_end)
        await self.session.flush()
        await self._record_payment(subscription)
        logger.info(
            "subscription.activated", extra=log_context(subscription_id=str(subscription.id))
        )
        return subscription

    async def deactivate(self, provider_id: str) -> Subscription:
        subscription = await self._by_provider_id(provider_id)
        subscription.status = SubscriptionStatus.CANCELED
        if subscription.canceled_at is None:
            subscription.canceled_at = utc_now()
        await self.session.flush()
        logger.info(
            "subscription.deactivated", extra=log_context(subscription_id=str(subscription.id))
        )
        return subscription

    async def renew(self, provider_id: str, period_end: datetime | None) -> Subscription:
        subscription = await self._by_provider_id(provider_id)
        previous_end = ensure_utc(subscription.current_period_end)
        subscription.current_period_start = previous_end
        subscription.current_period_end = (
            ensure_utc(period_end) if period_end is not None else add_month(previous_end)
        )
        await self.session.flush()
        await self._record_payment(subscription)
        logger.info("subscription.renewed", extra=log_context(subscription_id=str(subscription.id)))
        return subscription

    async def active_subscribers(self, creator: User) -> list[tuple[Subscription, User]]:
        result = await self.session.execute(
            select(Subscription, User)
            .join(User, User.id == Subscription.subscriber_id)
            .where(
                Subscription.creator_id == creator.id,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
            .order_by(Subscription.created_at.desc())
        )
        return [(subscription, user) for subscription, user in result.all()]

    async def creator_stats(self, creator_id: UUID) -> SubscriptionStats:
        result = await self.session.execute(
            select(Subscription).where(Subscription.creator_id == creator_id)
        )
        subscriptions = list(result.scalars().all())
        active = [item for item in subscriptions if item.status == SubscriptionStatus.ACTIVE]
        mrr = sum(item.amount for item in active)

        now = utc_now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        canceled_this_month = sum(
            1
            for item in subscriptions
            if item.canceled_at is not None and ensure_utc(item.canceled_at) >= month_start
        )
        at_month_start = sum(
            1
            for item in subscriptions
            if ensure_utc(item.created_at) < month_start
            and (
                item.status == SubscriptionStatus.ACTIVE
                or (item.canceled_at is not None and ensure_utc(item.canceled_at) >= month_start)
            )
        )
        churn = canceled_this_month / at_month_start * 100 if at_month_start else 0.0
        return SubscriptionStats(
            active_subscribers=len(active),
            total_subscribers=len(subscriptions),
            mrr=mrr,
            churn_rate=round(churn, 2),
            average_value=round(mrr / len(active)) if active else 0,
        )


__all__ = [
    "CreatorNotFoundError",
    "SubscriptionError",
    "SubscriptionNotFoundError",
    "SubscriptionService",
    "SubscriptionStats",
    "add_month",
]
