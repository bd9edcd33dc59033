"""Database primitives: declarative base, column types, engine and sessions."""

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, metadata
from .session import get_session, get_sessionmaker, session_scope
from .types import DollarAmount, UTCDateTime, UUIDType

__all__ = [
    "Base",
    "DollarAmount",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDPrimaryKeyMixin",
    "UUIDType",
    "get_session",
    "get_sessionmaker",
    "metadata",
    "session_scope",
]
