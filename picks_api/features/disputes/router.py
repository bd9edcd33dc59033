"""HTTP routes for raising and reviewing pick disputes."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Request, status

from picks_api.api.deps import SessionDep
from picks_api.common.schema import ErrorMessage, StatusBreakdown

from ..admin.dependencies import StaffUser
from ..audit.service import AuditAction, AuditResource, record_request_event
from ..auth.dependencies import CurrentUser
from ..payments.dependencies import PaymentServiceDep
from ..picks.service import PickNotFoundError
from .models import DisputeStatus
from .schemas import (
    DisputeCreate,
    DisputeList,
    DisputeOut,
    DisputePage,
    DisputeResolutionOut,
    DisputeResolve,
    RefundOutcomeOut,
)
from .service import (
    DisputeError,
    DisputeNotFoundError,
    DisputeService,
    DuplicateDisputeError,
)

router = APIRouter(tags=["disputes"])
admin_router = APIRouter(prefix="/admin/disputes", tags=["admin"])


@router.post(
    "/picks/{pick_id}/disputes",
    response_model=DisputeOut,
    status_code=status.HTTP_201_CREATED,
    summary="Dispute a graded pick result",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_404_NOT_FOUND: {"model": ErrorMessage},
        status.HTTP_409_CONFLICT: {"model": ErrorMessage},
    },
)
async def create_dispute(
    request: Request,
    pick_id: Annotated[UUID, Path(description="Pick identifier")],
    payload: DisputeCreate,
    user: CurrentUser,
    session: SessionDep,
) -> DisputeOut:
    try:
        dispute = await DisputeService(session=session).open_dispute(user, pick_id, payload.reason)
    except PickNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Pick not found") from exc
    except DuplicateDisputeError as exc:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except DisputeError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.CREATE_DISPUTE,
        resource=AuditResource.DISPUTE,
        user_id=user.id,
        resource_id=dispute.id,
        details={"pick_id": str(pick_id)},
    )
    return DisputeOut.model_validate(dispute)


@router.get("/disputes", response_model=DisputeList, summary="List the caller's disputes")
async def list_my_disputes(user: CurrentUser, session: SessionDep) -> DisputeList:
    disputes = await DisputeService(session=session).list_for_user(user)
    return DisputeList(disputes=[DisputeOut.model_validate(item) for item in disputes])


@admin_router.get("", response_model=DisputePage, summary="List disputes")
async def list_disputes(
    request: Request,
    admin: StaffUser,
    session: SessionDep,
    dispute_status: Annotated[DisputeStatus | None, Query(alias="status")] = None,
    user_id: UUID | None = None,
    pick_id: UUID | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> DisputePage:
    service = DisputeService(session=session)
    result = await service.list_disputes(
        status=dispute_status, user_id=user_id, pick_id=pick_id, page=page, limit=limit
    )
    by_status = await service.counts_by_status()
    await record_request_event(
        session,
        request,
        action=AuditAction.LIST_DISPUTES,
        resource=AuditResource.DISPUTE,
        user_id=admin.id,
        details={"status": dispute_status, "page": page},
    )
    return DisputePage(
        disputes=[DisputeOut.model_validate(item) for item in result.items],
        pagination=result.pagination,
        stats=StatusBreakdown(by_status=by_status),
    )


@admin_router.patch(
    "/{dispute_id}",
    response_model=DisputeResolutionOut,
    summary="Resolve a dispute",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_404_NOT_FOUND: {"model": ErrorMessage},
    },
)
async def resolve_dispute(
    request: Request,
    dispute_id: Annotated[UUID, Path(description="Dispute identifier")],
    payload: DisputeResolve,
    admin: StaffUser,
    session: SessionDep,
    payments: PaymentServiceDep,
) -> DisputeResolutionOut:
    try:
        outcome = await DisputeService(session=session).resolve(
            admin,
            dispute_id,
            resolution=payload.resolution,
            correct_result=payload.correct_result,
            refund=payload.refund,
            payments=payments,
        )
    except DisputeNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Dispute not found") from exc
    except DisputeError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.RESOLVE_DISPUTE,
        resource=AuditResource.DISPUTE,
        user_id=admin.id,
        resource_id=dispute_id,
        details={
            "pick_id": str(outcome.dispute.pick_id),
            "correct_result": payload.correct_result,
            "refund": payload.refund,
            "resolution": payload.resolution,
            "refunds_failed": sum(1 for item in outcome.refunds if not item.success),
        },
    )
    return DisputeResolutionOut(
        dispute=DisputeOut.model_validate(outcome.dispute),
        correct_result=payload.correct_result,
        refund=payload.refund,
        refunds=[
            RefundOutcomeOut(purchase_id=item.purchase_id, success=item.success, error=item.error)
            for item in outcome.refunds
        ],
    )


__all__ = ["admin_router", "router"]
