"""Account creation, credential checks and session token handling."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

import jwt
from fastapi import Request, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.time import utc_now
from picks_api.core.security import (
    create_access_token,
    decode_token,
    hash_csrf_token,
    hash_password,
    needs_rehash,
    verify_password,
)
from picks_api.settings import Settings

from ..audit.service import RequestMetadata
from ..users.models import AccountStatus, User, canonical_email
from .models import EmailVerification, LoginActivity, PasswordReset

logger = logging.getLogger(__name__)

_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


class AuthenticationError(Exception):
    """Raised when a request carries no usable credentials."""


class InvalidCredentialsError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class AccountBannedError(PermissionError):
    def __init__(self, reason: str | None) -> None:
        message = "Your account has been banned"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CsrfError(PermissionError):
    """Raised when a cookie-authenticated write lacks a matching CSRF token."""


class EmailInUseError(ValueError):
    def __init__(self) -> None:
        super().__init__("Email already in use")


class UsernameTakenError(ValueError):
    def __init__(self) -> None:
        super().__init__("Username already taken")


class InvalidTokenError(ValueError):
    """Raised for unknown, used or expired one-time tokens."""


@dataclass(slots=True)
class SessionTokens:
    access_token: str
    csrf_token: str
    expires_at: datetime
    max_age: int


@dataclass(slots=True)
class AuthService:
    """Service for signup, login and one-time token flows."""

    session: AsyncSession
    settings: Settings

    async def _get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.email == canonical_email(email))
        )
        return result.scalar_one_or_none()

    async def username_exists(self, username: str, *, exclude: UUID | None = None) -> bool:
        stmt = select(User.id).where(User.username == username)
        if exclude is not None:
            stmt = stmt.where(User.id != exclude)
        return (await self.session.execute(stmt)).first() is not None

    async def signup(
        self,
        *,
        name: str,
        email: str,
        password: str,
        username: str | None = None,
    ) -> User:
        if await self._get_by_email(email) is not None:
            raise EmailInUseError()
        if username and await self.username_exists(username):
            raise UsernameTakenError()

        user = User(
            email=email,
            name=name.strip(),
            username=username or None,
            password_hash=hash_password(password),
        )
        self.session.add(user)
        await self.session.flush()
        await self.issue_email_verification(user)

        logger.info("auth.signup.success", extra=log_context(user_id=user.id))
        return user

    async def issue_email_verification(self, user: User) -> EmailVerification:
        record = EmailVerification(
            user_id=user.id,
            email=user.email,
            token=secrets.token_urlsafe(32),
            expires_at=utc_now() + self.settings.email_verification_ttl,
        )
        self.session.add(record)
        await self.session.flush()
        logger.info("auth.email_verification.issued", extra=log_context(user_id=user.id))
        return record

    async def resend_verification(self, user: User) -> EmailVerification:
        if user.email_verified_at is not None:
            raise InvalidTokenError("Email is already verified")
        return await self.issue_email_verification(user)

    async def verify_email(self, token: str) -> User:
        result = await self.session.execute(
            select(EmailVerification).where(EmailVerification.token == token)
        )
        record = result.scalar_one_or_none()
        if record is None or record.used or record.expires_at <= utc_now():
            raise InvalidTokenError("Invalid or expired verification token")
        user = await self.session.get(User, record.user_id)
        if user is None or user.email != record.email:
            raise InvalidTokenError("Invalid or expired verification token")

        record.used = True
        user.email_verified_at = utc_now()
        await self.session.flush()
        logger.info("auth.email_verification.success", extra=log_context(user_id=user.id))
        return user

    async def authenticate(
        self,
        *,
        email: str,
        password: str,
        metadata: RequestMetadata | None = None,
    ) -> User:
        """Return the user for valid credentials; failures never reveal which part was wrong."""

        user = await self._get_by_email(email)
        if user is None:
            logger.warning("auth.login.unknown_email")
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            await self._record_login(user, successful=False, metadata=metadata)
            # The failed attempt must survive the request rollback.
            await self.session.commit()
            logger.warning("auth.login.bad_password", extra=log_context(user_id=user.id))
            raise InvalidCredentialsError()

        if user.account_status == AccountStatus.BANNED:
            logger.warning("auth.login.banned", extra=log_context(user_id=user.id))
            raise AccountBannedError(user.ban_reason)

        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)
        await self._record_login(user, successful=True, metadata=metadata)
        logger.info("auth.login.success", extra=log_context(user_id=user.id))
        return user

    async def _record_login(
        self,
        user: User,
        *,
        successful: bool,
        metadata: RequestMetadata | None,
    ) -> None:
        metadata = metadata or RequestMetadata()
        self.session.add(
            LoginActivity(
                user_id=user.id,
                successful=successful,
                ip_address=metadata.ip_address,
                user_agent=metadata.user_agent,
            )
        )
        await self.session.flush()

    async def forgot_password(self, email: str) -> PasswordReset | None:
        user = await self._get_by_email(email)
        if user is None:
            return None
        record = PasswordReset(
            user_id=user.id,
            token=secrets.token_urlsafe(32),
            expires_at=utc_now() + self.settings.password_reset_ttl,
        )
        self.session.add(record)
        await self.session.flush()
        logger.info("auth.password_reset.issued", extra=log_context(user_id=user.id))
        return record

    async def reset_password(self, *, token: str, password: str) -> User:
        result = await self.session.execute(
            select(PasswordReset).where(PasswordReset.token == token)
        )
        record = result.scalar_one_or_none()
        if record is None or record.used or record.expires_at <= utc_now():
            raise InvalidTokenError("Invalid or expired reset token")
        user = await self.session.get(User, record.user_id)
        if user is None:
            raise InvalidTokenError("Invalid or expired reset token")

        record.used = True
        user.password_hash = hash_password(password)
        user.session_version += 1
        await self.session.flush()
        logger.info("auth.password_reset.success", extra=log_context(user_id=user.id))
        return user

    def start_session(self, user: User) -> SessionTokens:
        """Mint a bearer token bound to the user's session version and a CSRF token."""

        csrf_token = secrets.token_urlsafe(32)
        access_token, expires_at = create_access_token(
            subject=str(user.id),
            secret=self.settings.jwt_secret.get_secret_value(),
            algorithm=self.settings.jwt_algorithm,
            ttl=self.settings.jwt_access_ttl,
            claims={"sv": user.session_version, "csrf": hash_csrf_token(csrf_token)},
        )
        return SessionTokens(
            access_token=access_token,
            csrf_token=csrf_token,
            expires_at=expires_at,
            max_age=int(self.settings.jwt_access_ttl.total_seconds()),
        )

    def decode(self, token: str) -> dict[str, Any]:
        try:
            payload = decode_token(
                token,
                secret=self.settings.jwt_secret.get_secret_value(),
                algorithms=[self.settings.jwt_algorithm],
            )
        except jwt.PyJWTError as exc:
            raise AuthenticationError("Invalid session token") from exc
        if payload.get("typ") != "access":
            raise AuthenticationError("Unexpected token type")
        return payload

    async def resolve_user(self, payload: dict[str, Any]) -> User:
        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError as exc:
            raise AuthenticationError("Invalid session token") from exc
        user = await self.session.get(User, user_id)
        if user is None:
            raise AuthenticationError("Invalid session token")
        if payload.get("sv", 0) != user.session_version:
            raise AuthenticationError("Session has ended")
        return user

    def enforce_csrf(self, request: Request, payload: dict[str, Any]) -> None:
        """Verify the CSRF token for cookie-authenticated writes."""

        if request.method.upper() in _SAFE_METHODS:
            return
        csrf_cookie = request.cookies.get(self.settings.session_csrf_cookie_name)
        header_token = request.headers.get("X-CSRF-Token")
        if not csrf_cookie or not header_token:
            raise CsrfError("CSRF token missing")
        if not secrets.compare_digest(csrf_cookie, header_token):
            raise CsrfError("CSRF token mismatch")
        expected = payload.get("csrf")
        if not expected or not secrets.compare_digest(hash_csrf_token(header_token), expected):
            raise CsrfError("CSRF token mismatch")

    def is_secure_request(self, request: Request) -> bool:
        forwarded_proto = request.headers.get("x-forwarded-proto")
        if forwarded_proto:
            return any(
                part.strip().lower() == "https" for part in forwarded_proto.split(",")
            )
        return request.url.scheme == "https"

    def apply_session_cookies(
        self, response: Response, tokens: SessionTokens, *, secure: bool
    ) -> None:
        settings = self.settings
        response.set_cookie(
            key=settings.session_cookie_name,
            value=tokens.access_token,
            max_age=tokens.max_age,
            domain=settings.session_cookie_domain,
            path=settings.session_cookie_path,
            secure=secure,
            httponly=True,
            samesite="lax",
        )
        response.set_cookie(
            key=settings.session_csrf_cookie_name,
            value=tokens.csrf_token,
            max_age=tokens.max_age,
            domain=settings.session_cookie_domain,
            path=settings.session_cookie_path,
            secure=secure,
            httponly=False,
            samesite="lax",
        )
        response.headers["X-CSRF-Token"] = tokens.csrf_token

    def clear_session_cookies(self, response: Response) -> None:
        for key in (self.settings.session_cookie_name, self.settings.session_csrf_cookie_name):
            response.delete_cookie(
                key=key,
                domain=self.settings.session_cookie_domain,
                path=self.settings.session_cookie_path,
            )


__all__ = [
    "AccountBannedError",
    "AuthService",
    "AuthenticationError",
    "CsrfError",
    "EmailInUseError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "SessionTokens",
    "UsernameTakenError",
]
