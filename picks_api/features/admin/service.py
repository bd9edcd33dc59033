"""Queries and mutations behind the admin console."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.pagination import PageResult, paginate_sql
from picks_api.common.time import ensure_utc, utc_now
from picks_api.core.rbac import UserRole

from ..auth.models import LoginActivity
from ..disputes.models import OPEN_DISPUTE_STATUSES, Dispute, DisputeStatus
from ..payments.models import (
    PaymentStatus,
    Payout,
    PayoutStatus,
    Purchase,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ..picks.models import Comment, ModerationStatus, Pick, PickStatus, Vote
from ..reports.models import Report, ReportStatus, ReportTargetType
from ..users.models import AccountStatus, Follow, User
from ..users.service import UserNotFoundError
from .moderation import ModerationForbiddenError

logger = logging.getLogger(__name__)

SUSPICIOUS_AMOUNT = 50_000
LOW_TRUST_THRESHOLD = 50
REVIEWABLE_PAYOUT_STATUSES = (PayoutStatus.PENDING, PayoutStatus.UNDER_REVIEW)
REFUNDED_STATUSES = (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED)
RECENT_ITEMS = 10

USER_SORT_COLUMNS = {
    "created_at": User.created_at,
    "email": User.email,
    "username": User.username,
    "trust_score": User.trust_score,
}
TRANSACTION_SORT_COLUMNS = {
    "created_at": Transaction.created_at,
    "amount": Transaction.amount,
}


class PickNotFound(LookupError):
    pass


class PayoutReviewError(ValueError):
    pass


class PayoutNotFound(LookupError):
    pass


def _ordering(column: Any, sort_order: str) -> Any:
    return column.asc() if sort_order == "asc" else column.desc()


@dataclass(slots=True)
class RevenueSummary:
    total: int = 0
    fees: int = 0
    sales: int = 0

    @property
    def net(self) -> int:
        return self.total - self.fees


@dataclass(slots=True)
class UserDetail:
    user: User
    counts: dict[str, int]
    revenue: RevenueSummary
    recent_picks: list[Pick]
    reports: list[Report]


@dataclass(slots=True)
class TransactionFilters:
    transaction_type: TransactionType | str | None = None
    status: TransactionStatus | str | None = None
    user_id: UUID | None = None
    min_amount: int | None = None
    suspicious: bool = False
    sort_by: str = "created_at"
    sort_order: str = "desc"


@dataclass(slots=True)
class TransactionStats:
    total_revenue: int
    total_fees: int
    today_revenue: int
    today_count: int


@dataclass(slots=True)
class Analytics:
    days: int
    start: datetime
    end: datetime
    users: dict[str, Any] = field(default_factory=dict)
    picks: dict[str, Any] = field(default_factory=dict)
    revenue: dict[str, Any] = field(default_factory=dict)
    reports: dict[str, Any] = field(default_factory=dict)


def _daily_series(
    timestamps: list[datetime], start: date, days: int
) -> list[tuple[str, int]]:
    buckets = Counter(ensure_utc(value).date() for value in timestamps)
    return [
        ((start + timedelta(days=offset)).isoformat(), buckets.get(start + timedelta(days=offset), 0))
        for offset in range(days)
    ]


@dataclass(slots=True)
class AdminService:
    session: AsyncSession

    async def _count(self, stmt: Select[Any]) -> int:
        return int((await self.session.execute(stmt)).scalar_one() or 0)

    async def _grouped(self, column: Any) -> dict[str, int]:
        rows = await self.session.execute(select(column, func.count()).group_by(column))
        return {
            (value.value if hasattr(value, "value") else str(value)): int(count)
            for value, count in rows.all()
        }

    # Users -----------------------------------------------------------------------

    async def list_users(
        self,
        *,
        page: int,
        limit: int,
        search: str | None = None,
        role: UserRole | str | None = None,
        status: AccountStatus | str | None = None,
        verified: bool | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> PageResult[User]:
        stmt = select(User)
        if search:
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(User.email).like(pattern),
                    func.lower(User.username).like(pattern),
                    func.lower(User.name).like(pattern),
                )
            )
        if role is not None:
            stmt = stmt.where(User.role == role)
        if status is not None:
            stmt = stmt.where(User.account_status == status)
        if verified is not None:
            stmt = stmt.where(User.is_verified.is_(verified))
        column = USER_SORT_COLUMNS.get(sort_by, User.created_at)
        return await paginate_sql(
            self.session,
            stmt,
            page=page,
            limit=limit,
            order_by=[_ordering(column, sort_order), User.id.desc()],
        )

    async def users_by_status(self) -> dict[str, int]:
        return await self._grouped(User.account_status)

    async def user_detail(self, user_id: UUID) -> UserDetail:
        user = await self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        def owned(model: Any, column: Any = None) -> Select[Any]:
            column = column if column is not None else model.user_id
            return select(func.count()).select_from(model).where(column == user_id)

        counts = {
            "picks": await self._count(owned(Pick)),
            "purchases": await self._count(owned(Purchase)),
            "transactions": await self._count(owned(Transaction)),
            "reports": await self._count(owned(Report, Report.reporter_id)),
            "disputes": await self._count(owned(Dispute)),
            "followers": await self._count(owned(Follow, Follow.following_id)),
            "following": await self._count(owned(Follow, Follow.follower_id)),
            "comments": await self._count(owned(Comment)),
            "votes": await self._count(owned(Vote)),
        }

        total, fees, sales = (
            await self.session.execute(
                select(
                    func.coalesce(func.sum(Purchase.amount), 0),
                    func.coalesce(func.sum(Purchase.platform_fee), 0),
                    func.count(Purchase.id),
                ).where(
                    Purchase.seller_id == user_id,
                    Purchase.status.in_(
                        [PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED]
                    ),
                )
            )
        ).one()

        picks = await self.session.execute(
            select(Pick)
            .where(Pick.user_id == user_id)
            .order_by(Pick.created_at.desc())
            .limit(RECENT_ITEMS)
        )
        reports = await self.session.execute(
            select(Report)
            .where(Report.target_type == ReportTargetType.USER, Report.target_id == user_id)
            .order_by(Report.created_at.desc())
            .limit(RECENT_ITEMS)
        )
        return UserDetail(
            user=user,
            counts=counts,
            revenue=RevenueSummary(total=int(total), fees=int(fees), sales=int(sales)),
            recent_picks=list(picks.scalars().unique().all()),
            reports=list(reports.scalars().all()),
        )

    async def update_user(
        self, admin: User, user_id: UUID, changes: dict[str, Any]
    ) -> tuple[User, dict[str, Any]]:
        """Apply admin edits; returns the user and the previous values of changed fields."""

        user = await self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        if "role" in changes and admin.role != UserRole.ADMIN:
            raise ModerationForbiddenError("Only administrators can change roles")

        before: dict[str, Any] = {}
        for key, value in changes.items():
            before[key] = getattr(user, key)
            setattr(user, key, value)
        await self.session.flush()
        logger.info(
            "admin.user.updated",
            extra=log_context(user_id=user.id, actor_id=admin.id, fields=sorted(changes)),
        )
        return user, before

    # Picks -----------------------------------------------------------------------

    async def list_picks(
        self,
        *,
        page: int,
        limit: int,
        moderation_status: ModerationStatus | str | None = None,
        status: PickStatus | str | None = None,
        sport: str | None = None,
        user_id: UUID | None = None,
        search: str | None = None,
    ) -> PageResult[Pick]:
        stmt = select(Pick)
        if moderation_status is not None:
            stmt = stmt.where(Pick.moderation_status == moderation_status)
        if status is not None:
            stmt = stmt.where(Pick.status == status)
        if sport is not None:
            stmt = stmt.where(Pick.sport == sport)
        if user_id is not None:
            stmt = stmt.where(Pick.user_id == user_id)
        if search:
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(func.lower(Pick.matchup).like(pattern), func.lower(Pick.details).like(pattern))
            )
        return await paginate_sql(
            self.session,
            stmt,
            page=page,
            limit=limit,
            order_by=[Pick.created_at.desc(), Pick.id.desc()],
        )

    async def picks_by_moderation_status(self) -> dict[str, int]:
        return await self._grouped(Pick.moderation_status)

    async def moderate_pick(
        self,
        admin: User,
        pick_id: UUID,
        *,
        moderation_status: ModerationStatus | str | None,
        notes: str | None,
        verify_result: PickStatus | str | None,
    ) -> tuple[Pick, dict[str, Any]]:
        pick = await self.session.get(Pick, pick_id)
        if pick is None:
            raise PickNotFound(f"Pick {pick_id} not found")

        before = {
            "moderation_status": ModerationStatus(pick.moderation_status).value,
            "status": PickStatus(pick.status).value,
        }
        now = utc_now()
        if moderation_status is not None:
            pick.moderation_status = ModerationStatus(moderation_status)
        if notes:
            pick.moderation_notes = notes
        pick.moderated_by = admin.id
        pick.moderated_at = now

        if verify_result is not None:
            result = PickStatus(verify_result)
            pick.status = result
            await self.session.execute(
                update(Dispute)
                .where(Dispute.pick_id == pick_id, Dispute.status.in_(OPEN_DISPUTE_STATUSES))
                .values(
                    status=DisputeStatus.RESOLVED,
                    resolution=f"Result verified by admin: {result.value}",
                    resolved_by=admin.id,
                    resolved_at=now,
                )
            )
        await self.session.flush()
        logger.info(
            "admin.pick.moderated",
            extra=log_context(user_id=admin.id, pick_id=pick.id, **before),
        )
        return pick, before

    async def delete_pick(self, admin: User, pick_id: UUID) -> dict[str, Any]:
        pick = await self.session.get(Pick, pick_id)
        if pick is None:
            raise PickNotFound(f"Pick {pick_id} not found")
        snapshot = {
            "id": str(pick.id),
            "matchup": pick.matchup,
            "user_id": str(pick.user_id),
        }
        await self.session.delete(pick)
        await self.session.flush()
        logger.info("admin.pick.deleted", extra=log_context(user_id=admin.id, pick_id=pick_id))
        return snapshot

    # Payouts ---------------------------------------------------------------------

    async def list_payouts(
        self,
        *,
        page: int,
        limit: int,
        status: PayoutStatus | str | None = None,
        user_id: UUID | None = None,
    ) -> PageResult[Payout]:
        stmt = select(Payout)
        if status is not None:
            stmt = stmt.where(Payout.status == status)
        if user_id is not None:
            stmt = stmt.where(Payout.user_id == user_id)
        return await paginate_sql(
            self.session,
            stmt,
            page=page,
            limit=limit,
            order_by=[Payout.created_at.desc(), Payout.id.desc()],
        )

    async def pending_payouts(self) -> tuple[int, int]:
        """Return the amount and number of payouts awaiting review."""

        amount, count = (
            await self.session.execute(
                select(func.coalesce(func.sum(Payout.amount), 0), func.count(Payout.id)).where(
                    Payout.status.in_(REVIEWABLE_PAYOUT_STATUSES)
                )
            )
        ).one()
        return int(amount), int(count)

    async def review_payout(
        self,
        admin: User,
        payout_id: UUID,
        *,
        approve: bool,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Payout:
        payout = await self.session.get(Payout, payout_id)
        if payout is None:
            raise PayoutNotFound(f"Payout {payout_id} not found")
        if payout.status not in REVIEWABLE_PAYOUT_STATUSES:
            raise PayoutReviewError("Payout already processed")

        payout.reviewed_by = admin.id
        payout.reviewed_at = utc_now()
        if approve:
            payout.status = PayoutStatus.APPROVED
            payout.notes = notes
        else:
            payout.status = PayoutStatus.REJECTED
            payout.notes = f"REJECTED: {reason}" + (f"\n\n{notes}" if notes else "")
        await self.session.flush()
        logger.info(
            "admin.payout.reviewed",
            extra=log_context(
                user_id=admin.id,
                payout_id=payout.id,
                status=PayoutStatus(payout.status).value,
            ),
        )
        return payout

    # Transactions ----------------------------------------------------------------

    async def list_transactions(
        self, filters: TransactionFilters, *, page: int, limit: int
    ) -> PageResult[Transaction]:
        stmt = select(Transaction)
        if filters.transaction_type is not None:
            stmt = stmt.where(Transaction.type == filters.transaction_type)
        if filters.status is not None:
            stmt = stmt.where(Transaction.status == filters.status)
        if filters.user_id is not None:
            stmt = stmt.where(Transaction.user_id == filters.user_id)
        if filters.min_amount:
            stmt = stmt.where(Transaction.amount >= filters.min_amount)
        if filters.suspicious:
            low_trust = select(User.id).where(User.trust_score < LOW_TRUST_THRESHOLD)
            stmt = stmt.where(
                or_(
                    Transaction.amount >= SUSPICIOUS_AMOUNT,
                    Transaction.status == TransactionStatus.FAILED,
                    Transaction.user_id.in_(low_trust),
                )
            )
        column = TRANSACTION_SORT_COLUMNS.get(filters.sort_by, Transaction.created_at)
        return await paginate_sql(
            self.session,
            stmt,
            page=page,
            limit=limit,
            order_by=[_ordering(column, filters.sort_order), Transaction.id.desc()],
        )

    async def transaction_stats(self) -> TransactionStats:
        revenue, fees = (
            await self.session.execute(
                select(
                    func.coalesce(func.sum(Transaction.amount), 0),
                    func.coalesce(func.sum(Transaction.platform_fee), 0),
                ).where(
                    Transaction.type == TransactionType.PICK_PURCHASE,
                    Transaction.status == TransactionStatus.COMPLETED,
                )
            )
        ).one()
        midnight = utc_now().replace(hour=0, minute=0, second=0, microsecond=0)
        today_revenue, today_count = (
            await self.session.execute(
                select(func.coalesce(func.sum(Transaction.amount), 0), func.count(Transaction.id))
                .where(
                    Transaction.created_at >= midnight,
                    Transaction.status == TransactionStatus.COMPLETED,
                    Transaction.type.in_(
                        [TransactionType.PICK_PURCHASE, TransactionType.SUBSCRIPTION]
                    ),
                )
            )
        ).one()
        return TransactionStats(
            total_revenue=int(revenue),
            total_fees=int(fees),
            today_revenue=int(today_revenue),
            today_count=int(today_count),
        )

    # Refunds ---------------------------------------------------------------------

    async def list_refunds(self, *, page: int, limit: int) -> PageResult[Purchase]:
        return await paginate_sql(
            self.session,
            select(Purchase).where(Purchase.status.in_(REFUNDED_STATUSES)),
            page=page,
            limit=limit,
            order_by=[Purchase.refunded_at.desc(), Purchase.id.desc()],
        )

    # Analytics -------------------------------------------------------------------

    async def analytics(self, days: int) -> Analytics:
        end = utc_now()
        first_day = end.date() - timedelta(days=days - 1)
        start = end - timedelta(days=days)
        window_start = min(
            start, datetime.combine(first_day, datetime.min.time(), tzinfo=end.tzinfo)
        )

        def count(model: Any, *criteria: Any) -> Select[Any]:
            return select(func.count()).select_from(model).where(*criteria)

        async def timestamps(column: Any) -> list[datetime]:
            rows = await self.session.execute(select(column).where(column >= window_start))
            return list(rows.scalars().all())

        active = await self._count(
            select(func.count(func.distinct(LoginActivity.user_id))).where(
                LoginActivity.created_at >= start, LoginActivity.successful.is_(True)
            )
        )
        analytics = Analytics(days=days, start=start, end=end)
        analytics.users = {
            "total": await self._count(count(User)),
            "new": await self._count(count(User, User.created_at >= start)),
            "active": active,
            "low_trust": await self._count(count(User, User.trust_score < LOW_TRUST_THRESHOLD)),
            "banned": await self._count(count(User, User.account_status == AccountStatus.BANNED)),
            "suspended": await self._count(
                count(User, User.account_status == AccountStatus.SUSPENDED)
            ),
            "daily": [
                {"date": day, "count": value}
                for day, value in _daily_series(await timestamps(User.created_at), first_day, days)
            ],
        }
        analytics.picks = {
            "total": await self._count(count(Pick)),
            "new": await self._count(count(Pick, Pick.created_at >= start)),
            "by_status": await self._grouped(Pick.status),
            "daily": [
                {"date": day, "count": value}
                for day, value in _daily_series(await timestamps(Pick.created_at), first_day, days)
            ],
        }

        paid = Purchase.status.in_([PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED])
        totals_stmt = select(
            func.coalesce(func.sum(Purchase.amount), 0),
            func.coalesce(func.sum(Purchase.platform_fee), 0),
            func.count(Purchase.id),
        ).where(paid)
        total, fees, purchases = (await self.session.execute(totals_stmt)).one()
        recent, recent_fees, recent_count = (
            await self.session.execute(totals_stmt.where(Purchase.created_at >= start))
        ).one()
        rows = await self.session.execute(
            select(Purchase.created_at, Purchase.amount).where(
                paid, Purchase.created_at >= window_start
            )
        )
        amounts: Counter[date] = Counter()
        for created_at, amount in rows.all():
            amounts[ensure_utc(created_at).date()] += int(amount)
        analytics.revenue = {
            "total": int(total),
            "total_fees": int(fees),
            "recent": int(recent),
            "recent_fees": int(recent_fees),
            "transaction_count": int(purchases),
            "recent_count": int(recent_count),
            "daily": [
                {
                    "date": (first_day + timedelta(days=offset)).isoformat(),
                    "amount": amounts.get(first_day + timedelta(days=offset), 0),
                }
                for offset in range(days)
            ],
        }
        analytics.reports = {
            "pending": await self._count(count(Report, Report.status == ReportStatus.PENDING)),
            "by_status": await self._grouped(Report.status),
        }
        return analytics


__all__ = [
    "AdminService",
    "Analytics",
    "LOW_TRUST_THRESHOLD",
    "PayoutNotFound",
    "PayoutReviewError",
    "PickNotFound",
    "RevenueSummary",
    "SUSPICIOUS_AMOUNT",
    "TransactionFilters",
    "TransactionStats",
    "UserDetail",
]
