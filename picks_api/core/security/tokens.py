"""JWT helpers for session tokens."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

import jwt

from picks_api.common.time import utc_now


def create_access_token(
    *,
    subject: str,
    secret: str,
    algorithm: str,
    ttl: timedelta,
    claims: dict[str, Any] | None = None,
    issued_at: datetime | None = None,
) -> tuple[str, datetime]:
    """Return a signed token for ``subject`` and its expiry."""

    now = issued_at or utc_now()
    expires_at = now + ttl
    payload: dict[str, Any] = {
        "sub": subject,
        "typ": "access",
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if claims:
        payload.update(claims)
    token = jwt.encode(payload, secret, algorithm=algorithm)
    return token, expires_at


def decode_token(token: str, *, secret: str, algorithms: Sequence[str]) -> dict[str, Any]:
    """Decode a JWT and return its payload."""

    return jwt.decode(token, secret, algorithms=list(algorithms))


def hash_csrf_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


__all__ = ["create_access_token", "decode_token", "hash_csrf_token"]
