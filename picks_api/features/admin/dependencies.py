"""Role gates for the admin API.

Every denial is written to the audit log before the error is raised, so the
audit row is committed even though the request itself fails.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from picks_api.api.deps import SessionDep, SettingsDep
from picks_api.core.rbac import UserRole

from ..audit.service import AuditAction, AuditResource, record_request_event
from ..auth.dependencies import BearerCredentials, authenticate_request
from ..auth.service import AuthenticationError, AuthService, CsrfError
from ..users.models import User

_STAFF = frozenset({UserRole.ADMIN, UserRole.MODERATOR})
_ADMINS = frozenset({UserRole.ADMIN})


async def _deny(
    request: Request,
    session: SessionDep,
    *,
    status_code: int,
    detail: str,
    user: User | None,
    reason: str,
    required: str,
) -> HTTPException:
    details = {
        "reason": reason,
        "path": request.url.path,
        "method": request.method,
        "required": required,
    }
    if user is not None:
        details["role"] = UserRole(user.role).value
    await record_request_event(
        session,
        request,
        action=AuditAction.ADMIN_ACCESS_DENIED,
        resource=AuditResource.ADMIN,
        user_id=user.id if user is not None else None,
        details=details,
        success=False,
    )
    await session.commit()
    return HTTPException(status_code, detail=detail)


async def _require_roles(
    request: Request,
    credentials: BearerCredentials,
    session: SessionDep,
    settings: SettingsDep,
    *,
    allowed: frozenset[UserRole],
    required: str,
) -> User:
    service = AuthService(session=session, settings=settings)
    try:
        user = await authenticate_request(service, request, credentials)
    except AuthenticationError as exc:
        raise await _deny(
            request,
            session,
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            user=None,
            reason=str(exc) or "No session",
            required=required,
        ) from exc
    except CsrfError as exc:
        raise await _deny(
            request,
            session,
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
            user=None,
            reason=str(exc),
            required=required,
        ) from exc

    request.state.user_id = user.id
    if UserRole(user.role) not in allowed:
        raise await _deny(
            request,
            session,
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
            user=user,
            reason="Insufficient permissions",
            required=required,
        )
    return user


async def require_admin(
    request: Request,
    credentials: BearerCredentials,
    session: SessionDep,
    settings: SettingsDep,
) -> User:
    """Allow administrators and moderators."""

    return await _require_roles(
        request, credentials, session, settings, allowed=_STAFF, required="ADMIN or MODERATOR"
    )


async def require_admin_only(
    request: Request,
    credentials: BearerCredentials,
    session: SessionDep,
    settings: SettingsDep,
) -> User:
    """Allow administrators only."""

    return await _require_roles(
        request, credentials, session, settings, allowed=_ADMINS, required="ADMIN"
    )


StaffUser = Annotated[User, Depends(require_admin)]
AdminUser = Annotated[User, Depends(require_admin_only)]

__all__ = ["AdminUser", "StaffUser", "require_admin", "require_admin_only"]
