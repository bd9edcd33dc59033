"""HTTP routes for filing reports and working the moderation queue."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Request, status

from picks_api.api.deps import SessionDep
from picks_api.common.schema import ErrorMessage

from ..account_status.router import StatusBroadcasterDep
from ..admin.dependencies import StaffUser
from ..admin.moderation import (
    ContentNotFoundError,
    ModerationError,
    ModerationForbiddenError,
    ModerationService,
)
from ..audit.service import AuditAction, AuditResource, record_request_event
from ..auth.dependencies import CurrentUser
from .models import ReportPriority, ReportStatus, ReportTargetType
from .schemas import (
    ReportCreate,
    ReportDetail,
    ReportOut,
    ReportPage,
    ReportResolutionOut,
    ReportResolve,
    ReportStats,
    ReportUpdate,
)
from .service import ReportError, ReportNotFoundError, ReportService

router = APIRouter(prefix="/reports", tags=["reports"])
admin_router = APIRouter(prefix="/admin/reports", tags=["admin"])

ReportId = Annotated[UUID, Path(description="Report identifier")]

_ERRORS = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
    status.HTTP_403_FORBIDDEN: {"model": ErrorMessage},
    status.HTTP_404_NOT_FOUND: {"model": ErrorMessage},
}


def _not_found() -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail="Report not found")


@router.post(
    "",
    response_model=ReportOut,
    status_code=status.HTTP_201_CREATED,
    summary="Report a pick, comment or account",
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorMessage}},
)
async def create_report(
    request: Request, payload: ReportCreate, user: CurrentUser, session: SessionDep
) -> ReportOut:
    try:
        report = await ReportService(session=session).create(
            user,
            target_type=payload.target_type,
            target_id=payload.target_id,
            reason=payload.reason,
            description=payload.description,
            priority=payload.priority,
        )
    except ContentNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.CREATE_REPORT,
        resource=AuditResource.REPORT,
        user_id=user.id,
        resource_id=report.id,
        details={
            "target_type": payload.target_type,
            "target_id": str(payload.target_id),
            "reason": payload.reason,
        },
    )
    return ReportOut.model_validate(report)


@admin_router.get("", response_model=ReportPage, summary="List reports")
async def list_reports(
    request: Request,
    admin: StaffUser,
    session: SessionDep,
    report_status: Annotated[ReportStatus | None, Query(alias="status")] = None,
    target_type: ReportTargetType | None = None,
    priority: ReportPriority | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> ReportPage:
    service = ReportService(session=session)
    result = await service.list_reports(
        status=report_status,
        target_type=target_type,
        priority=priority,
        page=page,
        limit=limit,
    )
    stats = ReportStats(
        by_status=await service.counts_by_status(),
        pending_by_priority=await service.pending_by_priority(),
    )
    await record_request_event(
        session,
        request,
        action=AuditAction.LIST_REPORTS,
        resource=AuditResource.REPORT,
        user_id=admin.id,
        details={
            "page": page,
            "filters": {"status": report_status, "target_type": target_type, "priority": priority},
        },
    )
    return ReportPage(
        reports=[ReportOut.model_validate(report) for report in result.items],
        pagination=result.pagination,
        stats=stats,
    )


@admin_router.get(
    "/{report_id}", response_model=ReportDetail, summary="Inspect a report", responses=_ERRORS
)
async def read_report(report_id: ReportId, admin: StaffUser, session: SessionDep) -> ReportDetail:
    service = ReportService(session=session)
    try:
        report = await service.get(report_id)
    except ReportNotFoundError as exc:
        raise _not_found() from exc
    base = ReportOut.model_validate(report)
    return ReportDetail(**base.model_dump(), target=await service.describe_target(report))


@admin_router.patch(
    "/{report_id}", response_model=ReportOut, summary="Triage a report", responses=_ERRORS
)
async def update_report(
    request: Request,
    report_id: ReportId,
    payload: ReportUpdate,
    admin: StaffUser,
    session: SessionDep,
) -> ReportOut:
    if payload.status is None and payload.priority is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="No changes provided")
    try:
        report, before = await ReportService(session=session).update(
            report_id, status=payload.status, priority=payload.priority
        )
    except ReportNotFoundError as exc:
        raise _not_found() from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.UPDATE_REPORT,
        resource=AuditResource.REPORT,
        user_id=admin.id,
        resource_id=report_id,
        details={
            "before": before,
            "after": {"status": report.status, "priority": report.priority},
        },
    )
    return ReportOut.model_validate(report)


@admin_router.post(
    "/{report_id}/resolve",
    response_model=ReportResolutionOut,
    summary="Resolve a report and sanction the content or its author",
    responses=_ERRORS,
)
async def resolve_report(
    request: Request,
    report_id: ReportId,
    payload: ReportResolve,
    admin: StaffUser,
    session: SessionDep,
    broadcaster: StatusBroadcasterDep,
) -> ReportResolutionOut:
    moderation = ModerationService(session=session, broadcaster=broadcaster)
    try:
        outcome = await ReportService(session=session).resolve(
            admin,
            report_id,
            resolution=payload.resolution,
            action=payload.action,
            moderation=moderation,
            notes=payload.notes,
            suspension_days=payload.suspension_days,
            ban_reason=payload.ban_reason,
        )
    except ReportNotFoundError as exc:
        raise _not_found() from exc
    except ModerationForbiddenError as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except (ReportError, ModerationError) as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    report = outcome.report
    for sanction in outcome.sanctions:
        await record_request_event(
            session,
            request,
            action=sanction["action"],
            resource=AuditResource.USER,
            user_id=admin.id,
            resource_id=sanction["user_id"],
            details={"reason": payload.resolution, "via_report": str(report_id), **sanction},
        )
    await record_request_event(
        session,
        request,
        action=AuditAction.RESOLVE_REPORT,
        resource=AuditResource.REPORT,
        user_id=admin.id,
        resource_id=report_id,
        details={
            "action": payload.action,
            "resolution": payload.resolution,
            "target_type": report.target_type,
            "target_id": str(report.target_id),
        },
    )
    return ReportResolutionOut(
        report=ReportOut.model_validate(report),
        action=outcome.action,
        target_user_id=outcome.target_user_id,
        sanctions=outcome.sanctions,
    )


__all__ = ["admin_router", "router"]
