"""Schemas for creator subscriptions."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from picks_api.common.schema import BaseSchema, RequestSchema

from ..payments.service import cents_to_dollars
from ..users.schemas import UserSummary
from .models import Subscription, SubscriptionStatus
from .service import SubscriptionStats


class SubscriptionCreate(RequestSchema):
    creator_id: UUID


class SubscriptionCancel(RequestSchema):
    subscription_id: UUID
    cancel_at_period_end: bool = True


class SubscriptionOut(BaseSchema):
    id: UUID
    subscriber_id: UUID
    creator_id: UUID
    status: SubscriptionStatus
    amount: float
    platform_fee: float
    creator_earnings: float
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    canceled_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_model(cls, subscription: Subscription) -> SubscriptionOut:
        return cls(
            id=subscription.id,
            subscriber_id=subscription.subscriber_id,
            creator_id=subscription.creator_id,
            status=subscription.status,
            amount=cents_to_dollars(subscription.amount),
            platform_fee=cents_to_dollars(subscription.platform_fee),
            creator_earnings=cents_to_dollars(subscription.creator_earnings),
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
            canceled_at=subscription.canceled_at,
            created_at=subscription.created_at,
        )


class SubscriptionCreated(BaseSchema):
    subscription: SubscriptionOut
    checkout_url: str | None = None


class SubscriptionStatusOut(BaseSchema):
    subscribed: bool
    subscription: SubscriptionOut | None = None


class SubscriptionList(BaseSchema):
    subscriptions: list[SubscriptionOut]


class SubscriptionStatsOut(BaseSchema):
    active_subscribers: int
    total_subscribers: int
    mrr: float
    churn_rate: float
    average_value: float

    @classmethod
    def from_stats(cls, stats: SubscriptionStats) -> SubscriptionStatsOut:
        return cls(
            active_subscribers=stats.active_subscribers,
            total_subscribers=stats.total_subscribers,
            mrr=cents_to_dollars(stats.mrr),
            churn_rate=stats.churn_rate,
            average_value=cents_to_dollars(stats.average_value),
        )


class SubscriberOut(BaseSchema):
    subscription: SubscriptionOut
    subscriber: UserSummary


class SubscriberList(BaseSchema):
    subscribers: list[SubscriberOut]
    stats: SubscriptionStatsOut


__all__ = [
    "SubscriberList",
    "SubscriberOut",
    "SubscriptionCancel",
    "SubscriptionCreate",
    "SubscriptionCreated",
    "SubscriptionList",
    "SubscriptionOut",
    "SubscriptionStatsOut",
    "SubscriptionStatusOut",
]
