"""Filing, triaging and resolving user reports."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.pagination import PageResult, paginate_sql
from picks_api.common.time import utc_now
from picks_api.core.rbac import UserRole

from ..admin.moderation import (
    ContentNotFoundError,
    ModerationForbiddenError,
    ModerationService,
    WarningSeverity,
    content_owner,
)
from ..picks.models import Comment, Pick
from ..users.models import User
from .models import Report, ReportPriority, ReportStatus, ReportTargetType

logger = logging.getLogger(__name__)

DEFAULT_SUSPENSION_DAYS = 7

_PRIORITY_RANK = {
    ReportPriority.URGENT: 0,
    ReportPriority.HIGH: 1,
    ReportPriority.MEDIUM: 2,
    ReportPriority.LOW: 3,
}


class ReportAction(str, Enum):
    NONE = "none"
    REMOVE_CONTENT = "remove_content"
    WARN_USER = "warn_user"
    SUSPEND_USER = "suspend_user"
    BAN_USER = "ban_user"
    DISMISS = "dismiss"


class ReportNotFoundError(LookupError):
    pass


class ReportError(ValueError):
    """Raised when a report cannot be resolved in its current state."""


@dataclass(slots=True)
class ReportResolution:
    report: Report
    action: ReportAction
    target_user_id: UUID | None = None
    sanctions: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class ReportService:
    session: AsyncSession

    async def create(
        self,
        reporter: User,
        *,
        target_type: ReportTargetType | str,
        target_id: UUID,
        reason: str,
        description: str | None = None,
        priority: ReportPriority | str | None = None,
    ) -> Report:
        """File a report; raises :class:`ContentNotFoundError` for unknown targets."""

        target_type = ReportTargetType(target_type)
        await content_owner(self.session, target_type, target_id)

        report = Report(
            reporter_id=reporter.id,
            target_type=target_type,
            target_id=target_id,
            reason=reason,
            description=description,
            priority=ReportPriority(priority) if priority else ReportPriority.MEDIUM,
        )
        self.session.add(report)
        await self.session.flush()
        await self.session.refresh(report)
        logger.info(
            "report.create.success",
            extra=log_context(
                user_id=reporter.id,
                report_id=str(report.id),
                target_type=target_type.value,
            ),
        )
        return report

    async def list_reports(
        self,
        *,
        status: ReportStatus | str | None = None,
        target_type: ReportTargetType | str | None = None,
        priority: ReportPriority | str | None = None,
        page: int,
        limit: int,
    ) -> PageResult[Report]:
        """Pending reports first, then by priority, newest first within a priority."""

        stmt = select(Report)
        if status is not None:
            stmt = stmt.where(Report.status == status)
        if target_type is not None:
            stmt = stmt.where(Report.target_type == target_type)
        if priority is not None:
            stmt = stmt.where(Report.priority == priority)

        pending_first = case((Report.status == ReportStatus.PENDING, 0), else_=1)
        priority_rank = case(
            *((Report.priority == level, rank) for level, rank in _PRIORITY_RANK.items()),
            else_=len(_PRIORITY_RANK),
        )
        return await paginate_sql(
            self.session,
            stmt,
            page=page,
            limit=limit,
            order_by=[pending_first, priority_rank, Report.created_at.desc(), Report.id.desc()],
        )

    async def counts_by_status(self) -> dict[str, int]:
        rows = await self.session.execute(
            select(Report.status, func.count(Report.id)).group_by(Report.status)
        )
        return {ReportStatus(status).value: int(count) for status, count in rows.all()}

    async def pending_by_priority(self) -> dict[str, int]:
        rows = await self.session.execute(
            select(Report.priority, func.count(Report.id))
            .where(Report.status == ReportStatus.PENDING)
            .group_by(Report.priority)
        )
        return {ReportPriority(priority).value: int(count) for priority, count in rows.all()}

    async def get(self, report_id: UUID) -> Report:
        report = await self.session.get(Report, report_id)
        if report is None:
            raise ReportNotFoundError(f"Report {report_id} not found")
        return report

    async def describe_target(self, report: Report) -> dict[str, Any] | None:
        """Summarise the reported pick, comment or account, if it still exists."""

        target_type = ReportTargetType(report.target_type)
        if target_type == ReportTargetType.PICK:
            pick = await self.session.get(Pick, report.target_id)
            if pick is None:
                return None
            return {
                "id": pick.id,
                "user_id": pick.user_id,
                "matchup": pick.matchup,
                "sport": pick.sport,
                "status": pick.status,
                "moderation_status": pick.moderation_status,
            }
        if target_type == ReportTargetType.COMMENT:
            comment = await self.session.get(Comment, report.target_id)
            if comment is None:
                return None
            return {
                "id": comment.id,
                "user_id": comment.user_id,
                "pick_id": comment.pick_id,
                "content": comment.content,
                "is_hidden": comment.is_hidden,
            }
        user = await self.session.get(User, report.target_id)
        if user is None:
            return None
        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "role": user.role,
            "account_status": user.account_status,
        }

    async def update(
        self,
        report_id: UUID,
        *,
        status: ReportStatus | str | None = None,
        priority: ReportPriority | str | None = None,
    ) -> tuple[Report, dict[str, Any]]:
        report = await self.get(report_id)
        before = {"status": report.status, "priority": report.priority}
        if status is not None:
            report.status = ReportStatus(status)
        if priority is not None:
            report.priority = ReportPriority(priority)
        await self.session.flush()
        return report, before

    async def resolve(
        self,
        admin: User,
        report_id: UUID,
        *,
        resolution: str,
        action: ReportAction | str,
        moderation: ModerationService,
        notes: str | None = None,
        suspension_days: int = DEFAULT_SUSPENSION_DAYS,
        ban_reason: str | None = None,
    ) -> ReportResolution:
        """Apply ``action`` to the reported content or its author and close the report.

        Sanctions whose target no longer exists are skipped.
        """

        report = await self.get(report_id)
        if report.status == ReportStatus.RESOLVED:
            raise ReportError("Report already resolved")
        action = ReportAction(action)
        if action == ReportAction.BAN_USER and UserRole(admin.role) != UserRole.ADMIN:
            raise ModerationForbiddenError("Only administrators can ban users")

        outcome = ReportResolution(report=report, action=action)
        if action == ReportAction.REMOVE_CONTENT:
            if report.target_type != ReportTargetType.USER:
                try:
                    await moderation.remove_content(
                        admin, report.target_type, report.target_id, notes=resolution
                    )
                except ContentNotFoundError:
                    logger.warning(
                        "report.resolve.target_missing",
                        extra=log_context(user_id=admin.id, report_id=str(report.id)),
                    )
        elif action in (ReportAction.WARN_USER, ReportAction.SUSPEND_USER, ReportAction.BAN_USER):
            try:
                owner_id = await moderation.content_owner(report.target_type, report.target_id)
            except ContentNotFoundError:
                owner_id = None
                logger.warning(
                    "report.resolve.target_missing",
                    extra=log_context(user_id=admin.id, report_id=str(report.id)),
                )
            if owner_id is not None:
                outcome.target_user_id = owner_id
                await self._sanction(
                    admin,
                    owner_id,
                    action,
                    moderation=moderation,
                    resolution=resolution,
                    suspension_days=suspension_days,
                    ban_reason=ban_reason,
                    outcome=outcome,
                )

        report.status = (
            ReportStatus.DISMISSED if action == ReportAction.DISMISS else ReportStatus.RESOLVED
        )
        report.resolution = resolution if notes is None else f"{resolution}\n\n{notes}"
        report.action_taken = action.value
        report.resolved_by = admin.id
        report.resolved_at = utc_now()
        await self.session.flush()
        logger.info(
            "report.resolve.success",
            extra=log_context(user_id=admin.id, report_id=str(report.id), action=action.value),
        )
        return outcome

    async def _sanction(
        self,
        admin: User,
        owner_id: UUID,
        action: ReportAction,
        *,
        moderation: ModerationService,
        resolution: str,
        suspension_days: int,
        ban_reason: str | None,
        outcome: ReportResolution,
    ) -> None:
        if action == ReportAction.WARN_USER:
            warning = await moderation.warn(admin, owner_id, severity=WarningSeverity.MEDIUM)
            outcome.sanctions.append(
                {
                    "action": "WARN_USER",
                    "user_id": owner_id,
                    "old_trust_score": warning.previous_trust_score,
                    "new_trust_score": warning.user.trust_score,
                    "auto_flagged": warning.auto_flagged,
                }
            )
        elif action == ReportAction.SUSPEND_USER:
            user = await moderation.suspend(
                admin, owner_id, reason=resolution, days=suspension_days
            )
            outcome.sanctions.append(
                {
                    "action": "SUSPEND_USER",
                    "user_id": owner_id,
                    "suspended_until": user.suspended_until,
                }
            )
        else:
            await moderation.ban(admin, owner_id, reason=ban_reason or resolution)
            outcome.sanctions.append({"action": "BAN_USER", "user_id": owner_id})


__all__ = [
    "DEFAULT_SUSPENSION_DAYS",
    "ReportAction",
    "ReportError",
    "ReportNotFoundError",
    "ReportResolution",
    "ReportService",
]
