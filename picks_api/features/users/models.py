"""User identity, creator payment settings and the follow graph."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from picks_api.core.rbac import UserRole
from picks_api.db import (
    Base,
    DollarAmount,
    TimestampMixin,
    UTCDateTime,
    UUIDPrimaryKeyMixin,
    UUIDType,
)
from picks_api.db.enums import enum_column


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    BANNED = "BANNED"
    UNDER_REVIEW = "UNDER_REVIEW"


class PayoutMethod(str, Enum):
    BANK = "BANK"
    CRYPTO = "CRYPTO"
    WHOP_BALANCE = "WHOP_BALANCE"
    PAYPAL = "PAYPAL"


DEFAULT_TRUST_SCORE = 100
DEFAULT_MIN_PAYOUT_CENTS = 10_000


def canonical_email(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        msg = "Email must not be empty"
        raise ValueError(msg)
    return cleaned.lower()


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A member of the platform; creators are users who sell picks."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    username: Mapped[str | None] = mapped_column(String(50), nullable=True, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email_verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role", length=20),
        nullable=False,
        default=UserRole.USER,
    )
    account_status: Mapped[AccountStatus] = mapped_column(
        enum_column(AccountStatus, "account_status", length=20),
        nullable=False,
        default=AccountStatus.ACTIVE,
    )
    trust_score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_TRUST_SCORE
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    warning_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_warning_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    ban_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    banned_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    banned_by: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    suspended_until: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    suspension_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    suspended_by: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    session_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    whop_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payout_method: Mapped[PayoutMethod | None] = mapped_column(
        enum_column(PayoutMethod, "payout_method", length=20),
        nullable=True,
    )
    crypto_wallet_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bank_account_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    auto_withdraw: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    min_payout: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MIN_PAYOUT_CENTS
    )
    subscription_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    subscription_price: Mapped[Decimal | None] = mapped_column(DollarAmount(), nullable=True)

    @validates("email")
    def _store_canonical_email(self, _key: str, value: str) -> str:
        return canonical_email(value)

    @property
    def display_name(self) -> str:
        return self.username or self.name or self.email

    @property
    def is_banned(self) -> bool:
        return self.account_status == AccountStatus.BANNED


class Follow(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Directed follow edge: ``follower`` follows ``following``."""

    __tablename__ = "follows"

    follower_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    following_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    __table_args__ = (UniqueConstraint("follower_id", "following_id"),)


__all__ = [
    "AccountStatus",
    "DEFAULT_MIN_PAYOUT_CENTS",
    "DEFAULT_TRUST_SCORE",
    "Follow",
    "PayoutMethod",
    "User",
    "canonical_email",
]
