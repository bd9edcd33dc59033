"""Helpers for recording and querying audit events."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context

from .models import AuditLog

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    SIGNUP = "SIGNUP"
    CREATE_PICK = "CREATE_PICK"
    UPDATE_PICK = "UPDATE_PICK"
    DELETE_PICK = "DELETE_PICK"
    PURCHASE_PICK = "PURCHASE_PICK"
    CREATE_COMMENT = "CREATE_COMMENT"
    DELETE_COMMENT = "DELETE_COMMENT"
    UPDATE_PROFILE = "UPDATE_PROFILE"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    FORBIDDEN_ACCESS = "FORBIDDEN_ACCESS"
    LIST_USERS = "LIST_USERS"
    VIEW_USER = "VIEW_USER"
    UPDATE_USER = "UPDATE_USER"
    BAN_USER = "BAN_USER"
    UNBAN_USER = "UNBAN_USER"
    SUSPEND_USER = "SUSPEND_USER"
    UNSUSPEND_USER = "UNSUSPEND_USER"
    WARN_USER = "WARN_USER"
    AUTO_FLAG_USER = "AUTO_FLAG_USER"
    LIST_PICKS = "LIST_PICKS"
    MODERATE_PICK = "MODERATE_PICK"
    LIST_REPORTS = "LIST_REPORTS"
    CREATE_REPORT = "CREATE_REPORT"
    UPDATE_REPORT = "UPDATE_REPORT"
    RESOLVE_REPORT = "RESOLVE_REPORT"
    LIST_TRANSACTIONS = "LIST_TRANSACTIONS"
    LIST_PAYOUTS = "LIST_PAYOUTS"
    APPROVE_PAYOUT = "APPROVE_PAYOUT"
    REJECT_PAYOUT = "REJECT_PAYOUT"
    LIST_DISPUTES = "LIST_DISPUTES"
    CREATE_DISPUTE = "CREATE_DISPUTE"
    RESOLVE_DISPUTE = "RESOLVE_DISPUTE"
    VIEW_ANALYTICS = "VIEW_ANALYTICS"
    ADMIN_ACCESS_DENIED = "ADMIN_ACCESS_DENIED"
    REFUND_PROCESSED = "REFUND_PROCESSED"
    REQUEST_WITHDRAWAL = "REQUEST_WITHDRAWAL"
    UPDATE_PAYMENT_CONFIG = "UPDATE_PAYMENT_CONFIG"


class AuditResource(str, Enum):
    PICK = "PICK"
    COMMENT = "COMMENT"
    USER = "USER"
    PROFILE = "PROFILE"
    AUTH = "AUTH"
    REPORT = "REPORT"
    TRANSACTION = "TRANSACTION"
    PAYOUT = "PAYOUT"
    DISPUTE = "DISPUTE"
    ANALYTICS = "ANALYTICS"
    ADMIN = "ADMIN"
    PAYMENT_CONFIG = "PAYMENT_CONFIG"


@dataclass(slots=True)
class RequestMetadata:
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(slots=True)
class AuditEventRecord:
    """Input payload accepted by :func:`record_event`."""

    action: AuditAction | str
    resource: AuditResource | str
    user_id: UUID | None = None
    resource_id: UUID | str | None = None
    details: dict[str, Any] | None = None
    success: bool = True
    metadata: RequestMetadata | None = None


@dataclass(slots=True)
class AuditEventQueryResult:
    """Container for a page of audit events."""

    events: list[AuditLog]
    total: int
    page: int
    limit: int


def request_metadata(request: Request | None) -> RequestMetadata:
    """Return the client ip and user agent of ``request``.

    The first ``X-Forwarded-For`` hop wins, then ``X-Real-IP``, then the
    socket peer.
    """

    if request is None:
        return RequestMetadata()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address: str | None = forwarded.split(",")[0].strip() or None
    else:
        ip_address = request.headers.get("x-real-ip")
    if ip_address is None and request.client is not None:
        ip_address = request.client.host
    return RequestMetadata(
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )


def _enum_value(value: Enum | str) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _normalise_details(details: dict[str, Any] | None) -> dict[str, Any]:
    if details is None:
        return {}
    # Sorted keys keep stored payloads stable across retries.
    serialised = json.dumps(details, sort_keys=True, separators=(",", ":"), default=str)
    return json.loads(serialised)


async def record_event(session: AsyncSession, event: AuditEventRecord) -> AuditLog | None:
    """Persist an audit event inside a SAVEPOINT.

    Failures are logged and swallowed so auditing never breaks the calling
    request.
    """

    metadata = event.metadata or RequestMetadata()
    model = AuditLog(
        user_id=event.user_id,
        action=_enum_value(event.action),
        resource=_enum_value(event.resource),
        resource_id=str(event.resource_id) if event.resource_id is not None else None,
        ip_address=metadata.ip_address,
        user_agent=metadata.user_agent,
        details=_normalise_details(event.details),
        success=event.success,
    )

    try:
        async with session.begin_nested():
            session.add(model)
    except SQLAlchemyError:
        logger.exception(
            "audit.record.failed",
            extra=log_context(
                user_id=event.user_id,
                action=_enum_value(event.action),
                resource=_enum_value(event.resource),
            ),
        )
        return None

    return model


async def record_request_event(
    session: AsyncSession,
    request: Request | None,
    *,
    action: AuditAction | str,
    resource: AuditResource | str,
    user_id: UUID | None = None,
    resource_id: UUID | str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> AuditLog | None:
    """Record an event tagged with the client ip and user agent of ``request``."""

    return await record_event(
        session,
        AuditEventRecord(
            action=action,
            resource=resource,
            user_id=user_id,
            resource_id=resource_id,
            details=details,
            success=success,
            metadata=request_metadata(request),
        ),
    )


def _apply_filters(statement: Select[Any], filters: dict[str, Any]) -> Select[Any]:
    if user_id := filters.get("user_id"):
        statement = statement.where(AuditLog.user_id == user_id)
    if action := filters.get("action"):
        statement = statement.where(func.upper(AuditLog.action).contains(str(action).upper()))
    if resource := filters.get("resource"):
        statement = statement.where(AuditLog.resource == _enum_value(resource))
    if resource_id := filters.get("resource_id"):
        statement = statement.where(AuditLog.resource_id == str(resource_id))
    success = filters.get("success")
    if success is not None:
        statement = statement.where(AuditLog.success.is_(success))
    return statement


async def list_events(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 50,
    user_id: UUID | None = None,
    action: str | None = None,
    resource: AuditResource | str | None = None,
    resource_id: UUID | str | None = None,
    success: bool | None = None,
    sort_order: str = "desc",
) -> AuditEventQueryResult:
    """Return audit events ordered by creation time with optional filters."""

    if limit <= 0:
        raise ValueError("limit must be positive")
    if page <= 0:
        raise ValueError("page must be positive")

    filters = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "resource_id": resource_id,
        "success": success,
    }
    filtered = _apply_filters(select(AuditLog), filters)
    ordering = AuditLog.created_at.asc() if sort_order == "asc" else AuditLog.created_at.desc()

    total_statement = select(func.count()).select_from(filtered.subquery())
    total = int((await session.execute(total_statement)).scalar_one() or 0)

    result = await session.execute(
        filtered.order_by(ordering).offset((page - 1) * limit).limit(limit)
    )
    events = list(result.scalars().all())
    return AuditEventQueryResult(events=events, total=total, page=page, limit=limit)


__all__ = [
    "AuditAction",
    "AuditEventQueryResult",
    "AuditEventRecord",
    "AuditResource",
    "RequestMetadata",
    "list_events",
    "record_event",
    "record_request_event",
    "request_metadata",
]
