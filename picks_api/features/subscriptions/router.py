"""HTTP routes for subscribing to creators."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, status

from picks_api.common.schema import ErrorMessage

from ..auth.dependencies import CurrentUser
from ..payments.dependencies import PaymentServiceDep
from ..payments.router import provider_failure
from ..payments.service import PaymentError
from ..payments.whop import WhopError
from ..users.schemas import UserSummary
from .models import SubscriptionStatus
from .schemas import (
    SubscriberList,
    SubscriberOut,
    SubscriptionCancel,
    SubscriptionCreate,
    SubscriptionCreated,
    SubscriptionList,
    SubscriptionOut,
    SubscriptionStatsOut,
    SubscriptionStatusOut,
)
from .service import (
    CreatorNotFoundError,
    SubscriptionError,
    SubscriptionNotFoundError,
    SubscriptionService,
)

router = APIRouter(tags=["subscriptions"])


def get_subscription_service(payments: PaymentServiceDep) -> SubscriptionService:
    return SubscriptionService(session=payments.session, payments=payments)


SubscriptionServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]


@router.post(
    "/subscriptions",
    response_model=SubscriptionCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Subscribe to a creator",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_404_NOT_FOUND: {"model": ErrorMessage},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorMessage},
    },
)
async def create_subscription(
    payload: SubscriptionCreate,
    user: CurrentUser,
    service: SubscriptionServiceDep,
) -> SubscriptionCreated:
    try:
        subscription, checkout_url = await service.subscribe(user, payload.creator_id)
    except CreatorNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Creator not found") from exc
    except (SubscriptionError, PaymentError) as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except WhopError as exc:
        raise provider_failure(exc) from exc
    return SubscriptionCreated(
        subscription=SubscriptionOut.from_model(subscription),
        checkout_url=checkout_url,
    )


@router.get(
    "/subscriptions",
    response_model=SubscriptionList,
    summary="List the caller's subscriptions",
)
async def list_subscriptions(
    user: CurrentUser, service: SubscriptionServiceDep
) -> SubscriptionList:
    subscriptions = await service.list_for_subscriber(user)
    return SubscriptionList(
        subscriptions=[SubscriptionOut.from_model(item) for item in subscriptions]
    )


@router.post(
    "/subscriptions/cancel",
    response_model=SubscriptionOut,
    summary="Cancel a subscription",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_404_NOT_FOUND: {"model": ErrorMessage},
    },
)
async def cancel_subscription(
    payload: SubscriptionCancel,
    user: CurrentUser,
    service: SubscriptionServiceDep,
) -> SubscriptionOut:
    try:
        subscription = await service.cancel(
            user,
            payload.subscription_id,
            cancel_at_period_end=payload.cancel_at_period_end,
        )
    except SubscriptionNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SubscriptionError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except WhopError as exc:
        raise provider_failure(exc) from exc
    return SubscriptionOut.from_model(subscription)


@router.get(
    "/subscriptions/{creator_id}",
    response_model=SubscriptionStatusOut,
    summary="Whether the caller subscribes to a creator",
)
async def read_subscription_status(
    creator_id: Annotated[UUID, Path(description="Creator identifier")],
    user: CurrentUser,
    service: SubscriptionServiceDep,
) -> SubscriptionStatusOut:
    subscription = await service.latest(user.id, creator_id)
    if subscription is None:
        return SubscriptionStatusOut(subscribed=False)
    return SubscriptionStatusOut(
        subscribed=subscription.status == SubscriptionStatus.ACTIVE,
        subscription=SubscriptionOut.from_model(subscription),
    )


@router.get(
    "/creator/subscribers",
    response_model=SubscriberList,
    summary="Active subscribers of the caller",
)
async def list_subscribers(user: CurrentUser, service: SubscriptionServiceDep) -> SubscriberList:
    rows = await service.active_subscribers(user)
    stats = await service.creator_stats(user.id)
    return SubscriberList(
        subscribers=[
            SubscriberOut(
                subscription=SubscriptionOut.from_model(subscription),
                subscriber=UserSummary.model_validate(subscriber),
            )
            for subscription, subscriber in rows
        ],
        stats=SubscriptionStatsOut.from_stats(stats),
    )


__all__ = ["get_subscription_service", "router"]
