"""Request and response models for the admin console."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import Field

from picks_api.common.pagination import Pagination
from picks_api.common.schema import BaseSchema, RequestSchema, StatusBreakdown
from picks_api.core.rbac import UserRole

from ..payments.models import PaymentStatus, Payout, Purchase, Transaction
from ..payments.schemas import PayoutOut, TransactionOut
from ..payments.service import cents_to_dollars
from ..picks.models import ModerationStatus, PickStatus, Sport
from ..reports.models import ReportPriority, ReportStatus, ReportTargetType
from ..users.models import AccountStatus
from .moderation import WarningSeverity


class AdminUserOut(BaseSchema):
    id: UUID
    email: str
    username: str | None = None
    name: str | None = None
    avatar_url: str | None = None
    role: UserRole
    account_status: AccountStatus
    trust_score: int
    is_verified: bool
    warning_count: int
    last_warning_at: datetime | None = None
    ban_reason: str | None = None
    banned_at: datetime | None = None
    suspended_until: datetime | None = None
    suspension_reason: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class AdminUserPage(BaseSchema):
    users: list[AdminUserOut]
    pagination: Pagination
    stats: StatusBreakdown


class AdminPickSummary(BaseSchema):
    id: UUID
    user_id: UUID
    sport: Sport
    matchup: str
    status: PickStatus
    moderation_status: ModerationStatus
    moderation_notes: str | None = None
    is_premium: bool
    price: float | None = None
    view_count: int
    created_at: datetime


class ReportSummary(BaseSchema):
    id: UUID
    reporter_id: UUID
    target_type: ReportTargetType
    reason: str
    priority: ReportPriority
    status: ReportStatus
    created_at: datetime


class RevenueOut(BaseSchema):
    total_revenue: float
    platform_fees: float
    net_revenue: float
    total_sales: int


class AdminUserDetail(BaseSchema):
    user: AdminUserOut
    counts: dict[str, int]
    revenue: RevenueOut
    recent_picks: list[AdminPickSummary]
    reports: list[ReportSummary]


class AdminUserUpdate(RequestSchema):
    role: UserRole | None = None
    account_status: AccountStatus | None = None
    trust_score: int | None = Field(default=None, ge=0, le=100)
    is_verified: bool | None = None
    notes: str | None = Field(default=None, max_length=5000)


class BanRequest(RequestSchema):
    reason: str = Field(min_length=10, max_length=2000)
    delete_picks: bool = False
    permanent: bool = True


class SuspendRequest(RequestSchema):
    reason: str = Field(min_length=10, max_length=2000)
    duration: int = Field(ge=1, le=365, description="Suspension length in days")
    hide_picks: bool = False


class WarnRequest(RequestSchema):
    reason: str = Field(min_length=10, max_length=2000)
    severity: WarningSeverity = WarningSeverity.MEDIUM
    message: str | None = Field(default=None, max_length=2000)


class SanctionOut(BaseSchema):
    message: str
    user: AdminUserOut


class WarningOut(BaseSchema):
    message: str = "Warning issued successfully"
    user: AdminUserOut
    previous_trust_score: int
    auto_action: str | None = None


class WarningRecord(BaseSchema):
    id: UUID
    issued_by: UUID | None = None
    reason: str | None = None
    severity: str | None = None
    message: str | None = None
    created_at: datetime


class WarningHistory(BaseSchema):
    user_id: UUID
    warning_count: int
    trust_score: int
    warnings: list[WarningRecord]


class AdminPickOut(AdminPickSummary):
    author_username: str | None = None
    author_email: str | None = None
    author_status: AccountStatus | None = None
    author_trust_score: int | None = None


class AdminPickPage(BaseSchema):
    picks: list[AdminPickOut]
    pagination: Pagination
    stats: StatusBreakdown


class PickModeration(RequestSchema):
    moderation_status: ModerationStatus | None = None
    notes: str | None = Field(default=None, max_length=2000)
    verify_result: PickStatus | None = None


class PickDeleted(BaseSchema):
    message: str = "Pick deleted successfully"
    deleted_pick: dict[str, Any]


class AdminPayoutOut(PayoutOut):
    user_id: UUID
    username: str | None = None
    email: str
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None

    @classmethod
    def from_payout(cls, payout: Payout) -> AdminPayoutOut:
        base = PayoutOut.from_model(payout)
        return cls(
            **base.model_dump(),
            user_id=payout.user_id,
            username=payout.user.username,
            email=payout.user.email,
            reviewed_by=payout.reviewed_by,
            reviewed_at=payout.reviewed_at,
        )


class PayoutStats(BaseSchema):
    pending_amount: float
    pending_count: int


class AdminPayoutPage(BaseSchema):
    payouts: list[AdminPayoutOut]
    pagination: Pagination
    stats: PayoutStats


class PayoutApprove(RequestSchema):
    notes: str | None = Field(default=None, max_length=2000)


class PayoutReject(RequestSchema):
    reason: str = Field(min_length=10, max_length=2000)
    notes: str | None = Field(default=None, max_length=2000)


class PayoutReviewed(BaseSchema):
    message: str
    payout: AdminPayoutOut


class RefundRequest(RequestSchema):
    purchase_id: UUID
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    reason: str = Field(min_length=1, max_length=2000)


class RefundOut(BaseSchema):
    purchase_id: UUID
    amount: float
    reason: str
    status: PaymentStatus
    processed_by: str


class RefundProcessed(BaseSchema):
    success: bool = True
    message: str = "Refund processed successfully"
    refund: RefundOut


class RefundRecord(BaseSchema):
    id: UUID
    pick_id: UUID
    buyer_id: UUID
    purchase_amount: float
    refund_amount: float
    status: PaymentStatus
    refund_reason: str | None = None
    refunded_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_purchase(cls, purchase: Purchase) -> RefundRecord:
        return cls(
            id=purchase.id,
            pick_id=purchase.pick_id,
            buyer_id=purchase.user_id,
            purchase_amount=cents_to_dollars(purchase.amount),
            refund_amount=cents_to_dollars(purchase.refund_amount),
            status=purchase.status,
            refund_reason=purchase.refund_reason,
            refunded_at=purchase.refunded_at,
            created_at=purchase.created_at,
        )


class RefundPage(BaseSchema):
    refunds: list[RefundRecord]
    pagination: Pagination


class AdminTransactionOut(TransactionOut):
    user_id: UUID
    username: str | None = None
    email: str
    account_status: AccountStatus
    trust_score: int

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> AdminTransactionOut:
        base = TransactionOut.from_model(transaction)
        return cls(
            **base.model_dump(),
            user_id=transaction.user_id,
            username=transaction.user.username,
            email=transaction.user.email,
            account_status=transaction.user.account_status,
            trust_score=transaction.user.trust_score,
        )


class TransactionStatsOut(BaseSchema):
    total: int
    total_revenue: float
    total_fees: float
    today_revenue: float
    today_count: int


class AdminTransactionPage(BaseSchema):
    transactions: list[AdminTransactionOut]
    pagination: Pagination
    stats: TransactionStatsOut


class AnalyticsPeriod(BaseSchema):
    days: int
    start_date: datetime
    end_date: datetime


class AnalyticsOut(BaseSchema):
    users: dict[str, Any]
    picks: dict[str, Any]
    revenue: dict[str, Any]
    reports: dict[str, Any]
    period: AnalyticsPeriod


__all__ = [
    "AdminPayoutOut",
    "AdminPayoutPage",
    "AdminPickOut",
    "AdminPickPage",
    "AdminPickSummary",
    "AdminTransactionOut",
    "AdminTransactionPage",
    "AdminUserDetail",
    "AdminUserOut",
    "AdminUserPage",
    "AdminUserUpdate",
    "AnalyticsOut",
    "AnalyticsPeriod",
    "BanRequest",
    "PayoutApprove",
    "PayoutReject",
    "PayoutReviewed",
    "PayoutStats",
    "PickDeleted",
    "PickModeration",
    "RefundOut",
    "RefundPage",
    "RefundProcessed",
    "RefundRecord",
    "RefundRequest",
    "ReportSummary",
    "RevenueOut",
    "SanctionOut",
    "SuspendRequest",
    "TransactionStatsOut",
    "WarnRequest",
    "WarningHistory",
    "WarningOut",
    "WarningRecord",
]
