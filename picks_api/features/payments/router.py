"""HTTP routes for pick purchases, creator withdrawals and the caller's ledger."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Request, status

from picks_api.api.deps import SessionDep
from picks_api.common.schema import ErrorMessage

from ..audit.service import AuditAction, AuditResource, record_request_event
from ..auth.dependencies import CurrentUser
from ..picks.service import PickNotFoundError
from ..subscriptions.schemas import SubscriptionStatsOut
from ..subscriptions.service import SubscriptionService
from .dependencies import PaymentServiceDep
from .models import TransactionType
from .schemas import (
    CreatorStatsOut,
    PayoutOut,
    PurchaseCreated,
    PurchaseStatusOut,
    TransactionOut,
    TransactionPage,
    TransactionSummary,
    WithdrawalCreated,
    WithdrawalHistory,
    WithdrawalRequest,
)
from .service import (
    PaymentError,
    WithdrawalsDisabledError,
    cents_to_dollars,
    dollars_to_cents,
)
from .whop import WhopError

router = APIRouter(tags=["payments"])

PickId = Annotated[UUID, Path(description="Pick identifier")]


def provider_failure(exc: WhopError) -> HTTPException:
    return HTTPException(
        status.HTTP_502_BAD_GATEWAY,
        detail={"error": "Payment processing failed", "code": exc.code, "message": exc.message},
    )


@router.post(
    "/picks/{pick_id}/purchase",
    response_model=PurchaseCreated,
    summary="Buy access to a premium pick",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_404_NOT_FOUND: {"model": ErrorMessage},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorMessage},
    },
)
async def purchase_pick(
    request: Request,
    pick_id: PickId,
    user: CurrentUser,
    session: SessionDep,
    payments: PaymentServiceDep,
) -> PurchaseCreated:
    try:
        purchase, checkout_url = await payments.purchase_pick(user, pick_id)
    except PickNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Pick not found") from exc
    except PaymentError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except WhopError as exc:
        raise provider_failure(exc) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.PURCHASE_PICK,
        resource=AuditResource.PICK,
        user_id=user.id,
        resource_id=pick_id,
        details={"purchase_id": str(purchase.id), "amount": purchase.amount},
    )
    return PurchaseCreated(
        purchase_id=purchase.id,
        checkout_url=checkout_url,
        amount=cents_to_dollars(purchase.amount),
        status=purchase.status,
    )


@router.get(
    "/picks/{pick_id}/purchase",
    response_model=PurchaseStatusOut,
    summary="Whether the caller has bought a pick",
)
async def read_purchase_status(
    pick_id: PickId, user: CurrentUser, payments: PaymentServiceDep
) -> PurchaseStatusOut:
    purchase = await payments.find_unlocking_purchase(user.id, pick_id)
    if purchase is None:
        latest = await payments.latest_purchase(user.id, pick_id)
        return PurchaseStatusOut(
            purchased=False, status=latest.status if latest is not None else None
        )
    return PurchaseStatusOut(
        purchased=True,
        status=purchase.status,
        amount=cents_to_dollars(purchase.amount),
        purchased_at=purchase.completed_at or purchase.created_at,
    )


@router.post(
    "/creator/withdrawal",
    response_model=WithdrawalCreated,
    summary="Request a payout of available earnings",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorMessage},
    },
)
async def request_withdrawal(
    request: Request,
    payload: WithdrawalRequest,
    user: CurrentUser,
    session: SessionDep,
    payments: PaymentServiceDep,
) -> WithdrawalCreated:
    amount = dollars_to_cents(payload.amount) if payload.amount is not None else None
    try:
        payout = await payments.request_withdrawal(user, amount)
    except PaymentError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except WithdrawalsDisabledError as exc:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except WhopError as exc:
        raise provider_failure(exc) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.REQUEST_WITHDRAWAL,
        resource=AuditResource.PAYOUT,
        user_id=user.id,
        resource_id=payout.id,
        details={"amount": payout.amount},
    )
    return WithdrawalCreated(payout=PayoutOut.from_model(payout))


@router.get(
    "/creator/withdrawal",
    response_model=WithdrawalHistory,
    summary="Recent payouts and the available balance",
)
async def read_withdrawals(user: CurrentUser, payments: PaymentServiceDep) -> WithdrawalHistory:
    payouts = await payments.payout_history(user)
    balance = await payments.creator_balance(user.id)
    return WithdrawalHistory(
        available_balance=cents_to_dollars(balance),
        payouts=[PayoutOut.from_model(payout) for payout in payouts],
    )


@router.get("/creator/stats", response_model=CreatorStatsOut, summary="Creator earnings")
async def read_creator_stats(user: CurrentUser, payments: PaymentServiceDep) -> CreatorStatsOut:
    earnings = await payments.creator_earnings(user.id)
    subscriptions = await SubscriptionService(
        session=payments.session, payments=payments
    ).creator_stats(user.id)
    return CreatorStatsOut(
        available_balance=cents_to_dollars(earnings.available_balance),
        lifetime_earnings=cents_to_dollars(earnings.lifetime_earnings),
        pick_sales=earnings.pick_sales,
        subscriptions=SubscriptionStatsOut.from_stats(subscriptions),
    )


@router.get("/transactions", response_model=TransactionPage, summary="The caller's ledger")
async def list_transactions(
    user: CurrentUser,
    payments: PaymentServiceDep,
    transaction_type: Annotated[TransactionType | None, Query(alias="type")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> TransactionPage:
    result = await payments.list_transactions(
        user, transaction_type=transaction_type, page=page, limit=limit
    )
    totals = await payments.transaction_totals(user)
    return TransactionPage(
        transactions=[TransactionOut.from_model(item) for item in result.items],
        summary=TransactionSummary(
            total_spent=cents_to_dollars(totals.total_spent),
            total_earned=cents_to_dollars(totals.total_earned),
            total_withdrawn=cents_to_dollars(totals.total_withdrawn),
        ),
        pagination=result.pagination,
    )


__all__ = ["provider_failure", "router"]
