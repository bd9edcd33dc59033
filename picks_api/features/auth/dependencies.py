"""FastAPI dependencies resolving the caller from a bearer token or session cookie."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from picks_api.api.deps import SessionDep, SettingsDep

from ..users.models import User
from .service import AuthenticationError, AuthService, CsrfError

_bearer_scheme = HTTPBearer(auto_error=False)

BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)]


async def authenticate_request(
    service: AuthService,
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> User:
    if credentials is not None:
        payload = service.decode(credentials.credentials)
        return await service.resolve_user(payload)

    session_cookie = request.cookies.get(service.settings.session_cookie_name)
    if session_cookie:
        payload = service.decode(session_cookie)
        service.enforce_csrf(request, payload)
        return await service.resolve_user(payload)

    raise AuthenticationError("Authentication required")


async def get_current_user(
    request: Request,
    credentials: BearerCredentials,
    session: SessionDep,
    settings: SettingsDep,
) -> User:
    """Return the authenticated user or fail with 401/403."""

    service = AuthService(session=session, settings=settings)
    try:
        user = await authenticate_request(service, request, credentials)
    except AuthenticationError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except CsrfError as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    request.state.user_id = user.id
    return user


async def get_optional_user(
    request: Request,
    credentials: BearerCredentials,
    session: SessionDep,
    settings: SettingsDep,
) -> User | None:
    """Return the caller when credentials are valid; anonymous otherwise."""

    service = AuthService(session=session, settings=settings)
    try:
        user = await authenticate_request(service, request, credentials)
    except (AuthenticationError, CsrfError):
        return None
    request.state.user_id = user.id
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]

__all__ = [
    "BearerCredentials",
    "CurrentUser",
    "OptionalUser",
    "authenticate_request",
    "get_current_user",
    "get_optional_user",
]
