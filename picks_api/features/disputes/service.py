"""Disputes raised against graded pick results and their resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.pagination import PageResult, paginate_sql
from picks_api.common.time import utc_now

from ..payments.models import PaymentStatus, Purchase
from ..payments.service import PaymentError, PaymentService
from ..payments.whop import WhopError
from ..picks.models import Pick, PickStatus
from ..picks.service import PickNotFoundError
from ..users.models import User
from .models import OPEN_DISPUTE_STATUSES, Dispute, DisputeStatus

logger = logging.getLogger(__name__)


class DisputeNotFoundError(LookupError):
    pass


class DisputeError(ValueError):
    """Raised when a dispute cannot be opened or resolved."""


class DuplicateDisputeError(ValueError):
    def __init__(self) -> None:
        super().__init__("You already have an open dispute for this pick")


@dataclass(slots=True)
class RefundOutcome:
    purchase_id: UUID
    success: bool
    error: str | None = None


@dataclass(slots=True)
class DisputeResolution:
    dispute: Dispute
    refunds: list[RefundOutcome] = field(default_factory=list)


@dataclass(slots=True)
class DisputeService:
    session: AsyncSession

    async def open_dispute(self, user: User, pick_id: UUID, reason: str) -> Dispute:
        pick = await self.session.get(Pick, pick_id)
        if pick is None:
            raise PickNotFoundError(pick_id)
        if pick.status == PickStatus.PENDING:
            raise DisputeError("Only graded picks can be disputed")
        if pick.user_id == user.id:
            raise DisputeError("You cannot dispute your own pick")

        existing = await self.session.execute(
            select(Dispute.id).where(
                Dispute.pick_id == pick_id,
                Dispute.user_id == user.id,
                Dispute.status.in_(OPEN_DISPUTE_STATUSES),
            )
        )
        if existing.first() is not None:
            raise DuplicateDisputeError()

        dispute = Dispute(pick_id=pick_id, user_id=user.id, reason=reason.strip())
        self.session.add(dispute)
        await self.session.flush()
        await self.session.refresh(dispute)
        logger.info(
            "dispute.create.success",
            extra=log_context(user_id=user.id, pick_id=pick_id, dispute_id=str(dispute.id)),
        )
        return dispute

    async def list_for_user(self, user: User) -> list[Dispute]:
        result = await self.session.execute(
            select(Dispute).where(Dispute.user_id == user.id).order_by(Dispute.created_at.desc())
        )
        return list(result.scalars().unique().all())

    async def list_disputes(
        self,
        *,
        status: DisputeStatus | str | None,
        user_id: UUID | None,
        pick_id: UUID | None,
        page: int,
        limit: int,
    ) -> PageResult[Dispute]:
        stmt = select(Dispute)
        if status is not None:
            stmt = stmt.where(Dispute.status == status)
        if user_id is not None:
            stmt = stmt.where(Dispute.user_id == user_id)
        if pick_id is not None:
            stmt = stmt.where(Dispute.pick_id == pick_id)
        return await paginate_sql(
            self.session,
            stmt,
            page=page,
            limit=limit,
            order_by=[Dispute.created_at.desc(), Dispute.id.desc()],
        )

    async def counts_by_status(self) -> dict[str, int]:
        rows = await self.session.execute(
            select(Dispute.status, func.count(Dispute.id)).group_by(Dispute.status)
        )
        return {DisputeStatus(status).value: int(count) for status, count in rows.all()}

    async def get(self, dispute_id: UUID) -> Dispute:
        dispute = await self.session.get(Dispute, dispute_id)
        if dispute is None:
            raise DisputeNotFoundError(f"Dispute {dispute_id} not found")
        return dispute

    async def resolve(
        self,
        admin: User,
        dispute_id: UUID,
        *,
        resolution: str,
        correct_result: PickStatus | str,
        refund: bool,
        payments: PaymentService | None = None,
    ) -> DisputeResolution:
        """Close the dispute, correct the pick's result and optionally refund buyers.

        Refund failures are logged and reported per purchase.
        """

        dispute = await self.get(dispute_id)
        if dispute.status == DisputeStatus.RESOLVED:
            raise DisputeError("Dispute already resolved")

        now = utc_now()
        dispute.status = DisputeStatus.RESOLVED
        dispute.resolution = resolution
        dispute.resolved_by = admin.id
        dispute.resolved_at = now

        pick = await self.session.get(Pick, dispute.pick_id)
        if pick is not None:
            pick.status = PickStatus(correct_result)
            pick.moderated_by = admin.id
            pick.moderated_at = now
            pick.moderation_notes = f"Result updated via dispute resolution: {resolution}"
        await self.session.flush()

        outcome = DisputeResolution(dispute=dispute)
        if refund and payments is not None:
            purchases = await self.session.execute(
                select(Purchase.id).where(
                    Purchase.pick_id == dispute.pick_id,
                    Purchase.status == PaymentStatus.COMPLETED,
                )
            )
            for purchase_id in purchases.scalars().all():
                try:
                    async with self.session.begin_nested():
                        await payments.process_refund(
                            purchase_id, reason=f"Dispute resolution: {resolution}"
                        )
                except (PaymentError, WhopError) as exc:
                    logger.warning(
                        "dispute.refund.failed",
                        extra=log_context(
                            dispute_id=str(dispute.id),
                            purchase_id=str(purchase_id),
                            error=str(exc),
                        ),
                    )
                    outcome.refunds.append(
                        RefundOutcome(purchase_id=purchase_id, success=False, error=str(exc))
                    )
                else:
                    outcome.refunds.append(RefundOutcome(purchase_id=purchase_id, success=True))

        logger.info(
            "dispute.resolve.success",
            extra=log_context(
                user_id=admin.id,
                dispute_id=str(dispute.id),
                pick_id=dispute.pick_id,
                correct_result=PickStatus(correct_result).value,
            ),
        )
        return outcome


__all__ = [
    "DisputeError",
    "DisputeNotFoundError",
    "DisputeResolution",
    "DisputeService",
    "DuplicateDisputeError",
    "RefundOutcome",
]
