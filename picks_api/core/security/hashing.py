"""Account password hashing.

Hashes are stored as ``scrypt$n$r$p$salt$key`` so the cost can be raised later
without invalidating existing accounts: :func:`needs_rehash` tells the login
flow when a stored hash was produced with different parameters.
"""

from __future__ import annotations

import base64
import hashlib
import os
import secrets
from typing import NamedTuple

PASSWORD_MIN_LENGTH = 8

_SCHEME = "scrypt"
_SALT_BYTES = 16
_KEY_LEN = 32


class ScryptParams(NamedTuple):
    n: int
    r: int = 8
    p: int = 1


_PRODUCTION = ScryptParams(n=2**14)
_FAST = ScryptParams(n=2**10)


def current_params() -> ScryptParams:
    """Cost used for new hashes; ``PICKS_TEST_FAST_HASH`` selects a cheap one."""

    return _FAST if os.getenv("PICKS_TEST_FAST_HASH") else _PRODUCTION


def _b64(value: bytes) -> str:
    return base64.urlsafe_b64encode(value).decode("ascii").rstrip("=")


def _unb64(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _derive(password: str, salt: bytes, params: ScryptParams, length: int) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"), salt=salt, n=params.n, r=params.r, p=params.p, dklen=length
    )


def _parse(hashed: str) -> tuple[ScryptParams, bytes, bytes] | None:
    parts = hashed.split("$")
    if len(parts) != 6 or parts[0] != _SCHEME:
        return None
    try:
        params = ScryptParams(int(parts[1]), int(parts[2]), int(parts[3]))
        return params, _unb64(parts[4]), _unb64(parts[5])
    except (ValueError, TypeError):
        return None


def hash_password(password: str) -> str:
    if not password or not password.strip():
        raise ValueError("Password must not be empty")
    params = current_params()
    salt = secrets.token_bytes(_SALT_BYTES)
    key = _derive(password, salt, params, _KEY_LEN)
    return "$".join([_SCHEME, str(params.n), str(params.r), str(params.p), _b64(salt), _b64(key)])


def verify_password(password: str, hashed: str | None) -> bool:
    """Return ``True`` when ``password`` matches the stored ``hashed`` value."""

    parsed = _parse(hashed) if hashed else None
    if parsed is None:
        return False
    params, salt, expected = parsed
    try:
        candidate = _derive(password, salt, params, len(expected))
    except ValueError:
        return False
    return secrets.compare_digest(candidate, expected)


def needs_rehash(hashed: str | None) -> bool:
    parsed = _parse(hashed) if hashed else None
    return parsed is None or parsed[0] != current_params()


__all__ = [
    "PASSWORD_MIN_LENGTH",
    "ScryptParams",
    "current_params",
    "hash_password",
    "needs_rehash",
    "verify_password",
]
