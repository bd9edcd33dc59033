"""Routes for signup, login and account recovery."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response, status

from picks_api.api.deps import SessionDep, SettingsDep
from picks_api.common.schema import ErrorMessage, MessageResponse

from ..audit.service import AuditAction, AuditResource, record_request_event, request_metadata
from ..users.schemas import UserProfile
from .dependencies import CurrentUser, OptionalUser
from .schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SessionEnvelope,
    SignupRequest,
    TokenRequest,
)
from .service import (
    AccountBannedError,
    AuthService,
    EmailInUseError,
    InvalidCredentialsError,
    InvalidTokenError,
    UsernameTakenError,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/signup",
    response_model=UserProfile,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage}},
)
async def signup(
    request: Request,
    payload: SignupRequest,
    session: SessionDep,
    settings: SettingsDep,
) -> UserProfile:
    service = AuthService(session=session, settings=settings)
    try:
        user = await service.signup(
            name=payload.name,
            email=payload.email,
            password=payload.password,
            username=payload.username,
        )
    except (EmailInUseError, UsernameTakenError) as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.SIGNUP,
        resource=AuditResource.AUTH,
        user_id=user.id,
        resource_id=user.id,
    )
    return UserProfile.model_validate(user)


@router.post(
    "/login",
    response_model=SessionEnvelope,
    summary="Log in with email and password",
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorMessage},
        status.HTTP_403_FORBIDDEN: {"model": ErrorMessage},
    },
)
async def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    session: SessionDep,
    settings: SettingsDep,
) -> SessionEnvelope:
    service = AuthService(session=session, settings=settings)
    try:
        user = await service.authenticate(
            email=payload.email,
            password=payload.password,
            metadata=request_metadata(request),
        )
    except InvalidCredentialsError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except AccountBannedError as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    tokens = service.start_session(user)
    service.apply_session_cookies(response, tokens, secure=service.is_secure_request(request))
    await record_request_event(
        session,
        request,
        action=AuditAction.LOGIN,
        resource=AuditResource.AUTH,
        user_id=user.id,
        resource_id=user.id,
    )
    return SessionEnvelope(
        user=UserProfile.model_validate(user),
        access_token=tokens.access_token,
        expires_at=tokens.expires_at,
        csrf_token=tokens.csrf_token,
    )


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear the session cookies",
)
async def logout(
    request: Request,
    user: OptionalUser,
    session: SessionDep,
    settings: SettingsDep,
) -> Response:
    service = AuthService(session=session, settings=settings)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    service.clear_session_cookies(response)
    if user is not None:
        await record_request_event(
            session,
            request,
            action=AuditAction.LOGOUT,
            resource=AuditResource.AUTH,
            user_id=user.id,
            resource_id=user.id,
        )
    return response


@router.get("/me", response_model=UserProfile, summary="Return the current user")
async def read_me(user: CurrentUser) -> UserProfile:
    return UserProfile.model_validate(user)


@router.post(
    "/verify-email",
    response_model=MessageResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage}},
)
async def verify_email(
    payload: TokenRequest,
    session: SessionDep,
    settings: SettingsDep,
) -> MessageResponse:
    service = AuthService(session=session, settings=settings)
    try:
        await service.verify_email(payload.token)
    except InvalidTokenError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return MessageResponse(message="Email verified")


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage}},
)
async def resend_verification(
    user: CurrentUser,
    session: SessionDep,
    settings: SettingsDep,
) -> MessageResponse:
    service = AuthService(session=session, settings=settings)
    try:
        await service.resend_verification(user)
    except InvalidTokenError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return MessageResponse(message="Verification email sent")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    session: SessionDep,
    settings: SettingsDep,
) -> MessageResponse:
    service = AuthService(session=session, settings=settings)
    await service.forgot_password(payload.email)
    return MessageResponse(
        message="If an account exists for that email, a reset link has been sent"
    )


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage}},
)
async def reset_password(
    payload: ResetPasswordRequest,
    session: SessionDep,
    settings: SettingsDep,
) -> MessageResponse:
    service = AuthService(session=session, settings=settings)
    try:
        await service.reset_password(token=payload.token, password=payload.password)
    except InvalidTokenError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return MessageResponse(message="Password has been reset")


__all__ = ["router"]
