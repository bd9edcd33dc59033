"""Request and response models for the authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import EmailStr, Field

from picks_api.common.schema import BaseSchema, RequestSchema
from picks_api.core.security import PASSWORD_MIN_LENGTH

from ..users.schemas import USERNAME_PATTERN, UserProfile


class SignupRequest(RequestSchema):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)
    username: str | None = Field(default=None, pattern=USERNAME_PATTERN)


class LoginRequest(RequestSchema):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class SessionEnvelope(BaseSchema):
    """Profile plus the bearer token minted for the new session."""

    user: UserProfile
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    csrf_token: str


class TokenRequest(RequestSchema):
    token: str = Field(min_length=1, max_length=128)


class ForgotPasswordRequest(RequestSchema):
    email: EmailStr


class ResetPasswordRequest(RequestSchema):
    token: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)


__all__ = [
    "ForgotPasswordRequest",
    "LoginRequest",
    "ResetPasswordRequest",
    "SessionEnvelope",
    "SignupRequest",
    "TokenRequest",
]
