"""Payment configuration, purchases, ledger transactions and payouts.

Every monetary column in this module holds integer cents.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from picks_api.db import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin, UUIDType
from picks_api.db.enums import enum_column
from picks_api.features.users.models import PayoutMethod, User


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class TransactionType(str, Enum):
    PICK_PURCHASE = "PICK_PURCHASE"
    PICK_SALE = "PICK_SALE"
    SUBSCRIPTION = "SUBSCRIPTION"
    SUBSCRIPTION_REVENUE = "SUBSCRIPTION_REVENUE"
    PAYOUT = "PAYOUT"
    REFUND = "REFUND"
    PLATFORM_FEE = "PLATFORM_FEE"
    ADJUSTMENT = "ADJUSTMENT"
    SELLER_PAYOUT_REVERSAL = "SELLER_PAYOUT_REVERSAL"
    PLATFORM_FEE_REVERSAL = "PLATFORM_FEE_REVERSAL"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REVERSED = "REVERSED"


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    FAILED = "FAILED"


class PaymentConfig(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Singleton row holding fee and limit configuration."""

    __tablename__ = "payment_config"

    platform_fee_percent: Mapped[float] = mapped_column(Float, nullable=False)
    min_pick_price: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    max_pick_price: Mapped[int] = mapped_column(Integer, nullable=False, default=1_000_000)
    min_subscription_price: Mapped[int] = mapped_column(Integer, nullable=False, default=499)
    max_subscription_price: Mapped[int] = mapped_column(Integer, nullable=False, default=99_999)
    withdrawal_minimum: Mapped[int] = mapped_column(Integer, nullable=False, default=1_000)
    withdrawal_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False, default="whop")


class Purchase(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "purchases"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pick_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("picks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    seller_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_fee: Mapped[int] = mapped_column(Integer, nullable=False)
    creator_earnings: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        enum_column(PaymentStatus, "payment_status", length=20),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    whop_payment_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True
    )
    refund_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    refunded_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def remaining_amount(self) -> int:
        return self.amount - (self.refund_amount or 0)


class Transaction(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Signed ledger entry for a single user."""

    __tablename__ = "transactions"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[TransactionType] = mapped_column(
        enum_column(TransactionType, "transaction_type", length=32), nullable=False
    )
    status: Mapped[TransactionStatus] = mapped_column(
        enum_column(TransactionStatus, "transaction_status", length=20),
        nullable=False,
        default=TransactionStatus.COMPLETED,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    purchase_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("purchases.id", ondelete="SET NULL"), nullable=True
    )
    subscription_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True
    )
    payout_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("payouts.id", ondelete="SET NULL"), nullable=True
    )
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    user: Mapped[User] = relationship(User, lazy="joined", innerjoin=True)


class Payout(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "payouts"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PayoutStatus] = mapped_column(
        enum_column(PayoutStatus, "payout_status", length=20),
        nullable=False,
        default=PayoutStatus.PENDING,
    )
    payout_method: Mapped[PayoutMethod | None] = mapped_column(
        enum_column(PayoutMethod, "payout_method", length=20), nullable=True
    )
    whop_transfer_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    user: Mapped[User] = relationship(User, lazy="joined", innerjoin=True)


__all__ = [
    "PaymentConfig",
    "PaymentStatus",
    "Payout",
    "PayoutStatus",
    "Purchase",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
