"""Admin console routes: users, sanctions, picks, payouts, refunds and reporting.

Every route sits behind the staff gate; payout review, refunds, bans and the
payment configuration additionally require the ADMIN role.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Request, status

from picks_api.api.deps import SessionDep
from picks_api.common.pagination import Pagination
from picks_api.common.schema import ErrorMessage, StatusBreakdown
from picks_api.core.rbac import UserRole

from ..account_status.broadcaster import AccountStatusChange
from ..account_status.router import StatusBroadcasterDep
from ..audit.schemas import AuditLogOut, AuditLogPage
from ..audit.service import AuditAction, AuditResource, list_events, record_request_event
from ..payments.dependencies import PaymentServiceDep
from ..payments.models import PayoutStatus, Purchase, TransactionStatus, TransactionType
from ..payments.router import provider_failure
from ..payments.schemas import PaymentConfigOut, PaymentConfigUpdate
from ..payments.service import (
    PaymentError,
    PurchaseNotFoundError,
    cents_to_dollars,
    dollars_to_cents,
)
from ..payments.whop import WhopError
from ..picks.models import ModerationStatus, Pick, PickStatus, Sport
from ..users.models import AccountStatus, User
from ..users.service import UserNotFoundError
from .dependencies import AdminUser, StaffUser
from .moderation import ModerationError, ModerationForbiddenError, ModerationService
from .schemas import (
    AdminPayoutOut,
    AdminPayoutPage,
    AdminPickOut,
    AdminPickPage,
    AdminPickSummary,
    AdminTransactionOut,
    AdminTransactionPage,
    AdminUserDetail,
    AdminUserOut,
    AdminUserPage,
    AdminUserUpdate,
    AnalyticsOut,
    AnalyticsPeriod,
    BanRequest,
    PayoutApprove,
    PayoutReject,
    PayoutReviewed,
    PayoutStats,
    PickDeleted,
    PickModeration,
    RefundOut,
    RefundPage,
    RefundProcessed,
    RefundRecord,
    RefundRequest,
    ReportSummary,
    RevenueOut,
    SanctionOut,
    SuspendRequest,
    TransactionStatsOut,
    WarningHistory,
    WarningOut,
    WarningRecord,
    WarnRequest,
)
from .service import (
    AdminService,
    PayoutNotFound,
    PayoutReviewError,
    PickNotFound,
    TransactionFilters,
)

router = APIRouter(prefix="/admin", tags=["admin"])

UserId = Annotated[UUID, Path(description="User identifier")]
PickId = Annotated[UUID, Path(description="Pick identifier")]
PayoutId = Annotated[UUID, Path(description="Payout identifier")]
Page = Annotated[int, Query(ge=1)]
SortOrder = Literal["asc", "desc"]

AUTO_FLAG_MESSAGE = "Account flagged for review due to excessive warnings"

_ERRORS = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
    status.HTTP_403_FORBIDDEN: {"model": ErrorMessage},
    status.HTTP_404_NOT_FOUND: {"model": ErrorMessage},
}


def _moderation_failure(exc: Exception) -> HTTPException:
    if isinstance(exc, UserNotFoundError):
        return HTTPException(status.HTTP_404_NOT_FOUND, detail="User not found")
    if isinstance(exc, ModerationForbiddenError):
        return HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc))
    return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _admin_pick(pick: Pick) -> AdminPickOut:
    base = AdminPickSummary.model_validate(pick)
    return AdminPickOut(
        **base.model_dump(),
        author_username=pick.author.username,
        author_email=pick.author.email,
        author_status=pick.author.account_status,
        author_trust_score=pick.author.trust_score,
    )


def _snapshot(user: User) -> dict[str, Any]:
    return {
        "role": UserRole(user.role).value,
        "account_status": AccountStatus(user.account_status).value,
        "trust_score": user.trust_score,
        "is_verified": user.is_verified,
    }


# Users -----------------------------------------------------------------------------


@router.get("/users", response_model=AdminUserPage, summary="List users")
async def list_users(
    request: Request,
    admin: StaffUser,
    session: SessionDep,
    page: Page = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    search: Annotated[str | None, Query(max_length=100)] = None,
    role: UserRole | None = None,
    account_status: Annotated[AccountStatus | None, Query(alias="status")] = None,
    verified: bool | None = None,
    sort_by: Literal["created_at", "email", "username", "trust_score"] = "created_at",
    sort_order: SortOrder = "desc",
) -> AdminUserPage:
    service = AdminService(session=session)
    result = await service.list_users(
        page=page,
        limit=limit,
        search=search,
        role=role,
        status=account_status,
        verified=verified,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    by_status = await service.users_by_status()
    await record_request_event(
        session,
        request,
        action=AuditAction.LIST_USERS,
        resource=AuditResource.USER,
        user_id=admin.id,
        details={
            "page": page,
            "limit": limit,
            "search": search,
            "filters": {"role": role, "status": account_status, "verified": verified},
        },
    )
    return AdminUserPage(
        users=[AdminUserOut.model_validate(user) for user in result.items],
        pagination=result.pagination,
        stats=StatusBreakdown(by_status=by_status),
    )


@router.get(
    "/users/{user_id}",
    response_model=AdminUserDetail,
    summary="Inspect a user",
    responses=_ERRORS,
)
async def read_user(
    request: Request, user_id: UserId, admin: StaffUser, session: SessionDep
) -> AdminUserDetail:
    try:
        detail = await AdminService(session=session).user_detail(user_id)
    except UserNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="User not found") from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.VIEW_USER,
        resource=AuditResource.USER,
        user_id=admin.id,
        resource_id=user_id,
    )
    return AdminUserDetail(
        user=AdminUserOut.model_validate(detail.user),
        counts=detail.counts,
        revenue=RevenueOut(
            total_revenue=cents_to_dollars(detail.revenue.total),
            platform_fees=cents_to_dollars(detail.revenue.fees),
            net_revenue=cents_to_dollars(detail.revenue.net),
            total_sales=detail.revenue.sales,
        ),
        recent_picks=[AdminPickSummary.model_validate(pick) for pick in detail.recent_picks],
        reports=[ReportSummary.model_validate(report) for report in detail.reports],
    )


@router.patch(
    "/users/{user_id}",
    response_model=AdminUserOut,
    summary="Update a user's role, status or trust score",
    responses=_ERRORS,
)
async def update_user(
    request: Request,
    user_id: UserId,
    payload: AdminUserUpdate,
    admin: StaffUser,
    session: SessionDep,
    broadcaster: StatusBroadcasterDep,
) -> AdminUserOut:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="No changes provided")
    if "role" in changes:
        changes["role"] = UserRole(changes["role"])
    if "account_status" in changes:
        changes["account_status"] = AccountStatus(changes["account_status"])

    try:
        user, before = await AdminService(session=session).update_user(admin, user_id, changes)
    except (UserNotFoundError, ModerationForbiddenError) as exc:
        raise _moderation_failure(exc) from exc

    if "account_status" in changes and before["account_status"] != user.account_status:
        broadcaster.broadcast(AccountStatusChange.for_user(user))

    await record_request_event(
        session,
        request,
        action=AuditAction.UPDATE_USER,
        resource=AuditResource.USER,
        user_id=admin.id,
        resource_id=user_id,
        details={
            "changes": changes,
            "before": before,
            "after": _snapshot(user),
            "notes": changes.get("notes"),
        },
    )
    return AdminUserOut.model_validate(user)


@router.post(
    "/users/{user_id}/ban",
    response_model=SanctionOut,
    summary="Ban a user",
    responses=_ERRORS,
)
async def ban_user(
    request: Request,
    user_id: UserId,
    payload: BanRequest,
    admin: AdminUser,
    session: SessionDep,
    broadcaster: StatusBroadcasterDep,
) -> SanctionOut:
    service = ModerationService(session=session, broadcaster=broadcaster)
    try:
        user = await service.ban(
            admin, user_id, reason=payload.reason, delete_picks=payload.delete_picks
        )
    except (UserNotFoundError, ModerationError, ModerationForbiddenError) as exc:
        raise _moderation_failure(exc) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.BAN_USER,
        resource=AuditResource.USER,
        user_id=admin.id,
        resource_id=user_id,
        details={
            "reason": payload.reason,
            "delete_picks": payload.delete_picks,
            "permanent": payload.permanent,
            "banned_user": {"id": str(user.id), "email": user.email, "username": user.username},
        },
    )
    return SanctionOut(message="User banned successfully", user=AdminUserOut.model_validate(user))


@router.delete(
    "/users/{user_id}/ban",
    response_model=SanctionOut,
    summary="Lift a ban",
    responses=_ERRORS,
)
async def unban_user(
    request: Request,
    user_id: UserId,
    admin: AdminUser,
    session: SessionDep,
    broadcaster: StatusBroadcasterDep,
) -> SanctionOut:
    service = ModerationService(session=session, broadcaster=broadcaster)
    try:
        user, previous_reason = await service.unban(admin, user_id)
    except (UserNotFoundError, ModerationError) as exc:
        raise _moderation_failure(exc) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.UNBAN_USER,
        resource=AuditResource.USER,
        user_id=admin.id,
        resource_id=user_id,
        details={"previous_ban_reason": previous_reason},
    )
    return SanctionOut(
        message="User unbanned successfully", user=AdminUserOut.model_validate(user)
    )


@router.post(
    "/users/{user_id}/suspend",
    response_model=SanctionOut,
    summary="Suspend a user",
    responses=_ERRORS,
)
async def suspend_user(
    request: Request,
    user_id: UserId,
    payload: SuspendRequest,
    admin: StaffUser,
    session: SessionDep,
    broadcaster: StatusBroadcasterDep,
) -> SanctionOut:
    service = ModerationService(session=session, broadcaster=broadcaster)
    try:
        user = await service.suspend(
            admin,
            user_id,
            reason=payload.reason,
            days=payload.duration,
            hide_picks=payload.hide_picks,
        )
    except (UserNotFoundError, ModerationError, ModerationForbiddenError) as exc:
        raise _moderation_failure(exc) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.SUSPEND_USER,
        resource=AuditResource.USER,
        user_id=admin.id,
        resource_id=user_id,
        details={
            "reason": payload.reason,
            "duration": payload.duration,
            "suspended_until": user.suspended_until,
            "hide_picks": payload.hide_picks,
        },
    )
    return SanctionOut(
        message="User suspended successfully", user=AdminUserOut.model_validate(user)
    )


@router.delete(
    "/users/{user_id}/suspend",
    response_model=SanctionOut,
    summary="Lift a suspension early",
    responses=_ERRORS,
)
async def unsuspend_user(
    request: Request,
    user_id: UserId,
    admin: StaffUser,
    session: SessionDep,
    broadcaster: StatusBroadcasterDep,
) -> SanctionOut:
    service = ModerationService(session=session, broadcaster=broadcaster)
    try:
        user, previous_reason, previous_until = await service.unsuspend(admin, user_id)
    except (UserNotFoundError, ModerationError) as exc:
        raise _moderation_failure(exc) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.UNSUSPEND_USER,
        resource=AuditResource.USER,
        user_id=admin.id,
        resource_id=user_id,
        details={
            "previous_suspension_reason": previous_reason,
            "original_suspended_until": previous_until,
        },
    )
    return SanctionOut(
        message="User suspension lifted successfully", user=AdminUserOut.model_validate(user)
    )


@router.post(
    "/users/{user_id}/warn",
    response_model=WarningOut,
    summary="Warn a user",
    responses=_ERRORS,
)
async def warn_user(
    request: Request,
    user_id: UserId,
    payload: WarnRequest,
    admin: StaffUser,
    session: SessionDep,
    broadcaster: StatusBroadcasterDep,
) -> WarningOut:
    service = ModerationService(session=session, broadcaster=broadcaster)
    try:
        outcome = await service.warn(admin, user_id, severity=payload.severity)
    except (UserNotFoundError, ModerationForbiddenError) as exc:
        raise _moderation_failure(exc) from exc

    user = outcome.user
    await record_request_event(
        session,
        request,
        action=AuditAction.WARN_USER,
        resource=AuditResource.USER,
        user_id=admin.id,
        resource_id=user_id,
        details={
            "reason": payload.reason,
            "severity": payload.severity,
            "message": payload.message,
            "new_warning_count": user.warning_count,
            "old_trust_score": outcome.previous_trust_score,
            "new_trust_score": user.trust_score,
        },
    )
    auto_action = None
    if outcome.auto_flagged:
        auto_action = AUTO_FLAG_MESSAGE
        await record_request_event(
            session,
            request,
            action=AuditAction.AUTO_FLAG_USER,
            resource=AuditResource.USER,
            user_id=admin.id,
            resource_id=user_id,
            details={
                "reason": "Exceeded warning threshold",
                "warning_count": user.warning_count,
            },
        )
    return WarningOut(
        user=AdminUserOut.model_validate(user),
        previous_trust_score=outcome.previous_trust_score,
        auto_action=auto_action,
    )


@router.get(
    "/users/{user_id}/warn",
    response_model=WarningHistory,
    summary="List warnings issued to a user",
    responses=_ERRORS,
)
async def warning_history(
    user_id: UserId,
    admin: StaffUser,
    session: SessionDep,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> WarningHistory:
    user = await session.get(User, user_id)
    if user is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="User not found")
    events = await list_events(
        session,
        limit=limit,
        action=AuditAction.WARN_USER.value,
        resource=AuditResource.USER,
        resource_id=user_id,
        success=True,
    )
    return WarningHistory(
        user_id=user.id,
        warning_count=user.warning_count,
        trust_score=user.trust_score,
        warnings=[
            WarningRecord(
                id=event.id,
                issued_by=event.user_id,
                reason=event.details.get("reason"),
                severity=event.details.get("severity"),
                message=event.details.get("message"),
                created_at=event.created_at,
            )
            for event in events.events
        ],
    )


# Picks -----------------------------------------------------------------------------


@router.get("/picks", response_model=AdminPickPage, summary="List picks for moderation")
async def list_picks(
    request: Request,
    admin: StaffUser,
    session: SessionDep,
    moderation_status: ModerationStatus | None = None,
    pick_status: Annotated[PickStatus | None, Query(alias="status")] = None,
    sport: Sport | None = None,
    user_id: UUID | None = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    page: Page = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> AdminPickPage:
    service = AdminService(session=session)
    result = await service.list_picks(
        page=page,
        limit=limit,
        moderation_status=moderation_status,
        status=pick_status,
        sport=sport,
        user_id=user_id,
        search=search,
    )
    by_status = await service.picks_by_moderation_status()
    await record_request_event(
        session,
        request,
        action=AuditAction.LIST_PICKS,
        resource=AuditResource.PICK,
        user_id=admin.id,
        details={
            "page": page,
            "filters": {
                "moderation_status": moderation_status,
                "status": pick_status,
                "sport": sport,
            },
        },
    )
    return AdminPickPage(
        picks=[_admin_pick(pick) for pick in result.items],
        pagination=result.pagination,
        stats=StatusBreakdown(by_status=by_status),
    )


@router.patch(
    "/picks/{pick_id}",
    response_model=AdminPickOut,
    summary="Moderate a pick or verify its result",
    responses=_ERRORS,
)
async def moderate_pick(
    request: Request,
    pick_id: PickId,
    payload: PickModeration,
    admin: StaffUser,
    session: SessionDep,
) -> AdminPickOut:
    try:
        pick, before = await AdminService(session=session).moderate_pick(
            admin,
            pick_id,
            moderation_status=payload.moderation_status,
            notes=payload.notes,
            verify_result=payload.verify_result,
        )
    except PickNotFound as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Pick not found") from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.MODERATE_PICK,
        resource=AuditResource.PICK,
        user_id=admin.id,
        resource_id=pick_id,
        details={
            "before": before,
            "changes": {
                "moderation_status": payload.moderation_status,
                "verify_result": payload.verify_result,
            },
            "notes": payload.notes,
        },
    )
    return _admin_pick(pick)


@router.delete(
    "/picks/{pick_id}",
    response_model=PickDeleted,
    summary="Delete a pick",
    responses=_ERRORS,
)
async def delete_pick(
    request: Request, pick_id: PickId, admin: StaffUser, session: SessionDep
) -> PickDeleted:
    try:
        snapshot = await AdminService(session=session).delete_pick(admin, pick_id)
    except PickNotFound as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Pick not found") from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.DELETE_PICK,
        resource=AuditResource.PICK,
        user_id=admin.id,
        resource_id=pick_id,
        details={"deleted_pick": snapshot},
    )
    return PickDeleted(deleted_pick=snapshot)


# Payouts ---------------------------------------------------------------------------


@router.get("/payouts", response_model=AdminPayoutPage, summary="List payouts")
async def list_payouts(
    request: Request,
    admin: StaffUser,
    session: SessionDep,
    payout_status: Annotated[PayoutStatus | None, Query(alias="status")] = None,
    user_id: UUID | None = None,
    page: Page = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> AdminPayoutPage:
    service = AdminService(session=session)
    result = await service.list_payouts(
        page=page, limit=limit, status=payout_status, user_id=user_id
    )
    pending_amount, pending_count = await service.pending_payouts()
    await record_request_event(
        session,
        request,
        action=AuditAction.LIST_PAYOUTS,
        resource=AuditResource.PAYOUT,
        user_id=admin.id,
        details={"page": page, "filters": {"status": payout_status}},
    )
    return AdminPayoutPage(
        payouts=[AdminPayoutOut.from_payout(payout) for payout in result.items],
        pagination=result.pagination,
        stats=PayoutStats(
            pending_amount=cents_to_dollars(pending_amount), pending_count=pending_count
        ),
    )


async def _review_payout(
    request: Request,
    session: SessionDep,
    admin: User,
    payout_id: UUID,
    *,
    approve: bool,
    reason: str | None = None,
    notes: str | None = None,
) -> PayoutReviewed:
    try:
        payout = await AdminService(session=session).review_payout(
            admin, payout_id, approve=approve, reason=reason, notes=notes
        )
    except PayoutNotFound as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Payout not found") from exc
    except PayoutReviewError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.APPROVE_PAYOUT if approve else AuditAction.REJECT_PAYOUT,
        resource=AuditResource.PAYOUT,
        user_id=admin.id,
        resource_id=payout_id,
        details={
            "amount": payout.amount,
            "creator_id": str(payout.user_id),
            "reason": reason,
            "notes": notes,
        },
    )
    verb = "approved" if approve else "rejected"
    return PayoutReviewed(
        message=f"Payout {verb} successfully", payout=AdminPayoutOut.from_payout(payout)
    )


@router.post(
    "/payouts/{payout_id}/approve",
    response_model=PayoutReviewed,
    summary="Approve a payout",
    responses=_ERRORS,
)
async def approve_payout(
    request: Request,
    payout_id: PayoutId,
    admin: AdminUser,
    session: SessionDep,
    payload: PayoutApprove | None = None,
) -> PayoutReviewed:
    notes = payload.notes if payload is not None else None
    return await _review_payout(request, session, admin, payout_id, approve=True, notes=notes)


@router.post(
    "/payouts/{payout_id}/reject",
    response_model=PayoutReviewed,
    summary="Reject a payout",
    responses=_ERRORS,
)
async def reject_payout(
    request: Request,
    payout_id: PayoutId,
    payload: PayoutReject,
    admin: AdminUser,
    session: SessionDep,
) -> PayoutReviewed:
    return await _review_payout(
        request,
        session,
        admin,
        payout_id,
        approve=False,
        reason=payload.reason,
        notes=payload.notes,
    )


# Refunds ---------------------------------------------------------------------------


@router.post(
    "/refunds",
    response_model=RefundProcessed,
    summary="Refund a purchase",
    responses={**_ERRORS, status.HTTP_502_BAD_GATEWAY: {"model": ErrorMessage}},
)
async def create_refund(
    request: Request,
    payload: RefundRequest,
    admin: AdminUser,
    session: SessionDep,
    payments: PaymentServiceDep,
) -> RefundProcessed:
    amount = dollars_to_cents(payload.amount) if payload.amount is not None else None
    existing = await session.get(Purchase, payload.purchase_id)
    previously_refunded = existing.refund_amount if existing is not None else 0
    try:
        purchase = await payments.process_refund(
            payload.purchase_id, amount=amount, reason=payload.reason
        )
    except PurchaseNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Purchase not found") from exc
    except PaymentError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except WhopError as exc:
        raise provider_failure(exc) from exc

    refunded = purchase.refund_amount - previously_refunded
    await record_request_event(
        session,
        request,
        action=AuditAction.REFUND_PROCESSED,
        resource=AuditResource.TRANSACTION,
        user_id=admin.id,
        resource_id=purchase.id,
        details={
            "purchase_id": str(purchase.id),
            "amount": refunded,
            "reason": payload.reason,
            "buyer_id": str(purchase.user_id),
        },
    )
    return RefundProcessed(
        refund=RefundOut(
            purchase_id=purchase.id,
            amount=cents_to_dollars(refunded),
            reason=payload.reason,
            status=purchase.status,
            processed_by=admin.display_name,
        )
    )


@router.get("/refunds", response_model=RefundPage, summary="List refunded purchases")
async def list_refunds(
    admin: AdminUser,
    session: SessionDep,
    page: Page = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> RefundPage:
    result = await AdminService(session=session).list_refunds(page=page, limit=limit)
    return RefundPage(
        refunds=[RefundRecord.from_purchase(purchase) for purchase in result.items],
        pagination=result.pagination,
    )


# Transactions and analytics --------------------------------------------------------


@router.get(
    "/transactions", response_model=AdminTransactionPage, summary="List ledger transactions"
)
async def list_transactions(
    request: Request,
    admin: StaffUser,
    session: SessionDep,
    transaction_type: Annotated[TransactionType | None, Query(alias="type")] = None,
    transaction_status: Annotated[TransactionStatus | None, Query(alias="status")] = None,
    user_id: UUID | None = None,
    min_amount: Annotated[float | None, Query(gt=0, description="Dollars")] = None,
    suspicious: bool = False,
    sort_by: Literal["created_at", "amount"] = "created_at",
    sort_order: SortOrder = "desc",
    page: Page = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> AdminTransactionPage:
    service = AdminService(session=session)
    filters = TransactionFilters(
        transaction_type=transaction_type,
        status=transaction_status,
        user_id=user_id,
        min_amount=dollars_to_cents(min_amount) if min_amount is not None else None,
        suspicious=suspicious,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    result = await service.list_transactions(filters, page=page, limit=limit)
    stats = await service.transaction_stats()
    await record_request_event(
        session,
        request,
        action=AuditAction.LIST_TRANSACTIONS,
        resource=AuditResource.TRANSACTION,
        user_id=admin.id,
        details={
            "page": page,
            "filters": {
                "type": transaction_type,
                "status": transaction_status,
                "suspicious": suspicious,
            },
        },
    )
    return AdminTransactionPage(
        transactions=[AdminTransactionOut.from_transaction(item) for item in result.items],
        pagination=result.pagination,
        stats=TransactionStatsOut(
            total=result.total,
            total_revenue=cents_to_dollars(stats.total_revenue),
            total_fees=cents_to_dollars(stats.total_fees),
            today_revenue=cents_to_dollars(stats.today_revenue),
            today_count=stats.today_count,
        ),
    )


@router.get("/analytics", response_model=AnalyticsOut, summary="Platform analytics")
async def read_analytics(
    request: Request,
    admin: StaffUser,
    session: SessionDep,
    days: Annotated[int, Query(ge=1, le=365)] = 30,
) -> AnalyticsOut:
    analytics = await AdminService(session=session).analytics(days)
    await record_request_event(
        session,
        request,
        action=AuditAction.VIEW_ANALYTICS,
        resource=AuditResource.ANALYTICS,
        user_id=admin.id,
        details={"days": days},
    )
    return AnalyticsOut(
        users=analytics.users,
        picks=analytics.picks,
        revenue=analytics.revenue,
        reports=analytics.reports,
        period=AnalyticsPeriod(
            days=analytics.days, start_date=analytics.start, end_date=analytics.end
        ),
    )


# Payment configuration -------------------------------------------------------------


@router.get(
    "/payments/config", response_model=PaymentConfigOut, summary="Read payment configuration"
)
async def read_payment_config(admin: AdminUser, payments: PaymentServiceDep) -> PaymentConfigOut:
    return PaymentConfigOut.model_validate(await payments.get_config())


@router.patch(
    "/payments/config",
    response_model=PaymentConfigOut,
    summary="Update payment configuration",
    responses=_ERRORS,
)
async def update_payment_config(
    request: Request,
    payload: PaymentConfigUpdate,
    admin: AdminUser,
    session: SessionDep,
    payments: PaymentServiceDep,
) -> PaymentConfigOut:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="No changes provided")

    current = await payments.get_config()
    merged = {
        key: changes.get(key, getattr(current, key))
        for key in (
            "min_pick_price",
            "max_pick_price",
            "min_subscription_price",
            "max_subscription_price",
        )
    }
    if merged["min_pick_price"] > merged["max_pick_price"]:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            detail="Minimum pick price cannot exceed the maximum pick price",
        )
    if merged["min_subscription_price"] > merged["max_subscription_price"]:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            detail="Minimum subscription price cannot exceed the maximum subscription price",
        )

    config, before = await payments.update_config(changes)
    await record_request_event(
        session,
        request,
        action=AuditAction.UPDATE_PAYMENT_CONFIG,
        resource=AuditResource.PAYMENT_CONFIG,
        user_id=admin.id,
        resource_id=config.id,
        details={"before": before, "after": changes},
    )
    return PaymentConfigOut.model_validate(config)


# Audit log -------------------------------------------------------------------------


@router.get("/audit-logs", response_model=AuditLogPage, summary="Search the audit log")
async def list_audit_logs(
    admin: StaffUser,
    session: SessionDep,
    page: Page = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    user_id: UUID | None = None,
    action: Annotated[str | None, Query(max_length=64)] = None,
    resource: AuditResource | None = None,
    success: bool | None = None,
    sort_order: SortOrder = "desc",
) -> AuditLogPage:
    result = await list_events(
        session,
        page=page,
        limit=limit,
        user_id=user_id,
        action=action,
        resource=resource,
        success=success,
        sort_order=sort_order,
    )
    return AuditLogPage(
        logs=[AuditLogOut.model_validate(event) for event in result.events],
        pagination=Pagination.build(page=result.page, limit=result.limit, total=result.total),
    )


__all__ = ["router"]
