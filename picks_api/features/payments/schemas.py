"""Schemas for purchases, payouts, the ledger and payment configuration.

Money leaves the API in dollars; configuration limits stay in cents.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import Field

from picks_api.common.pagination import Pagination
from picks_api.common.schema import BaseSchema, RequestSchema

from ..subscriptions.schemas import SubscriptionStatsOut
from ..users.models import PayoutMethod
from .models import (
    PaymentStatus,
    Payout,
    PayoutStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from .service import cents_to_dollars


class PaymentConfigOut(BaseSchema):
    platform_fee_percent: float
    min_pick_price: int
    max_pick_price: int
    min_subscription_price: int
    max_subscription_price: int
    withdrawal_minimum: int
    withdrawal_enabled: bool
    provider: str
    updated_at: datetime


class PaymentConfigUpdate(RequestSchema):
    platform_fee_percent: float | None = Field(default=None, ge=0, le=100)
    min_pick_price: int | None = Field(default=None, ge=1)
    max_pick_price: int | None = Field(default=None, ge=1)
    min_subscription_price: int | None = Field(default=None, ge=1)
    max_subscription_price: int | None = Field(default=None, ge=1)
    withdrawal_minimum: int | None = Field(default=None, ge=0)
    withdrawal_enabled: bool | None = None


class PurchaseCreated(BaseSchema):
    purchase_id: UUID
    checkout_url: str
    amount: float
    status: PaymentStatus


class PurchaseStatusOut(BaseSchema):
    purchased: bool
    status: PaymentStatus | None = None
    amount: float | None = None
    purchased_at: datetime | None = None


class WithdrawalRequest(RequestSchema):
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)


class PayoutOut(BaseSchema):
    id: UUID
    amount: float
    payout_method: PayoutMethod | None = None
    status: PayoutStatus
    notes: str | None = None
    failure_reason: str | None = None
    processed_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_model(cls, payout: Payout) -> PayoutOut:
        return cls(
            id=payout.id,
            amount=cents_to_dollars(payout.amount),
            payout_method=payout.payout_method,
            status=payout.status,
            notes=payout.notes,
            failure_reason=payout.failure_reason,
            processed_at=payout.processed_at,
            created_at=payout.created_at,
        )


class WithdrawalCreated(BaseSchema):
    payout: PayoutOut
    message: str = "Withdrawal request created successfully"


class WithdrawalHistory(BaseSchema):
    available_balance: float
    payouts: list[PayoutOut]


class TransactionOut(BaseSchema):
    id: UUID
    type: TransactionType
    status: TransactionStatus
    amount: float
    platform_fee: float
    description: str | None = None
    details: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_model(cls, transaction: Transaction) -> TransactionOut:
        return cls(
            id=transaction.id,
            type=transaction.type,
            status=transaction.status,
            amount=cents_to_dollars(transaction.amount),
            platform_fee=cents_to_dollars(transaction.platform_fee),
            description=transaction.description,
            details=transaction.details or {},
            created_at=transaction.created_at,
        )


class CreatorStatsOut(BaseSchema):
    available_balance: float
    lifetime_earnings: float
    pick_sales: int
    subscriptions: SubscriptionStatsOut


class TransactionSummary(BaseSchema):
    total_spent: float
    total_earned: float
    total_withdrawn: float


class TransactionPage(BaseSchema):
    transactions: list[TransactionOut]
    summary: TransactionSummary
    pagination: Pagination


__all__ = [
    "CreatorStatsOut",
    "PaymentConfigOut",
    "PaymentConfigUpdate",
    "PayoutOut",
    "PurchaseCreated",
    "PurchaseStatusOut",
    "TransactionOut",
    "TransactionPage",
    "TransactionSummary",
    "WithdrawalCreated",
    "WithdrawalHistory",
    "WithdrawalRequest",
]
