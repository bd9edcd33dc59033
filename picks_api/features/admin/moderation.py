"""Account sanctions and content removal performed by staff.

Bans, suspensions and warnings change a user's standing and are pushed to
open status streams through the :class:`StatusBroadcaster`. The admin user
routes and report resolution both go through this service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.time import utc_now
from picks_api.core.rbac import UserRole

from ..account_status.broadcaster import AccountStatusChange, StatusBroadcaster
from ..picks.models import Comment, ModerationStatus, Pick
from ..reports.models import ReportTargetType
from ..users.models import AccountStatus, User
from ..users.service import UserNotFoundError

logger = logging.getLogger(__name__)

AUTO_FLAG_WARNINGS = 5
SUSPENSION_NOTE_PREFIX = "Picks hidden due to user suspension"


class WarningSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


TRUST_PENALTIES: dict[WarningSeverity, int] = {
    WarningSeverity.LOW: 5,
    WarningSeverity.MEDIUM: 10,
    WarningSeverity.HIGH: 20,
}


class ModerationError(ValueError):
    """Raised when a sanction does not apply to the target's current state."""


class ModerationForbiddenError(PermissionError):
    """Raised when the target is protected from the requested sanction."""


class ContentNotFoundError(LookupError):
    pass


async def content_owner(
    session: AsyncSession, target_type: ReportTargetType | str, target_id: UUID
) -> UUID:
    """Return the id of the user behind a pick, comment or account."""

    target_type = ReportTargetType(target_type)
    if target_type == ReportTargetType.USER:
        owner = await session.get(User, target_id)
        if owner is None:
            raise ContentNotFoundError("User not found")
        return owner.id
    model = Pick if target_type == ReportTargetType.PICK else Comment
    result = await session.execute(select(model.user_id).where(model.id == target_id))
    owner_id = result.scalar_one_or_none()
    if owner_id is None:
        raise ContentNotFoundError(f"{target_type.value.title()} not found")
    return owner_id


@dataclass(slots=True)
class WarningOutcome:
    user: User
    previous_trust_score: int
    auto_flagged: bool


@dataclass(slots=True)
class ModerationService:
    session: AsyncSession
    broadcaster: StatusBroadcaster

    async def _target(self, user_id: UUID) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def _announce(self, user: User) -> None:
        self.broadcaster.broadcast(AccountStatusChange.for_user(user))

    async def ban(
        self,
        admin: User,
        user_id: UUID,
        *,
        reason: str,
        delete_picks: bool = False,
    ) -> User:
        if user_id == admin.id:
            raise ModerationError("Cannot ban your own account")
        user = await self._target(user_id)
        if user.role == UserRole.ADMIN:
            raise ModerationForbiddenError("Cannot ban other administrators")

        now = utc_now()
        user.account_status = AccountStatus.BANNED
        user.ban_reason = reason
        user.banned_at = now
        user.banned_by = admin.id
        user.session_version = (user.session_version or 0) + 1
        if delete_picks:
            await self.session.execute(
                update(Pick)
                .where(Pick.user_id == user.id)
                .values(
                    moderation_status=ModerationStatus.REMOVED,
                    moderated_by=admin.id,
                    moderated_at=now,
                    moderation_notes=f"Picks removed due to user ban: {reason}",
                )
            )
        await self.session.flush()
        logger.info(
            "moderation.ban.success",
            extra=log_context(user_id=user.id, actor_id=admin.id, delete_picks=delete_picks),
        )
        self._announce(user)
        return user

    async def unban(self, admin: User, user_id: UUID) -> tuple[User, str | None]:
        """Lift a ban; returns the user and the reason that was cleared."""

        user = await self._target(user_id)
        if user.account_status != AccountStatus.BANNED:
            raise ModerationError("User is not banned")
        previous = user.ban_reason
        user.account_status = AccountStatus.ACTIVE
        user.ban_reason = None
        user.banned_at = None
        user.banned_by = None
        await self.session.flush()
        logger.info("moderation.unban.success", extra=log_context(user_id=user.id, actor_id=admin.id))
        self._announce(user)
        return user, previous

    async def suspend(
        self,
        admin: User,
        user_id: UUID,
        *,
        reason: str,
        days: int,
        hide_picks: bool = False,
    ) -> User:
        if user_id == admin.id:
            raise ModerationError("Cannot suspend your own account")
        user = await self._target(user_id)
        if user.role == UserRole.ADMIN:
            raise ModerationForbiddenError("Cannot suspend other administrators")

        now = utc_now()
        user.account_status = AccountStatus.SUSPENDED
        user.suspension_reason = reason
        user.suspended_until = now + timedelta(days=days)
        user.suspended_by = admin.id
        user.session_version = (user.session_version or 0) + 1
        if hide_picks:
            await self.session.execute(
                update(Pick)
                .where(
                    Pick.user_id == user.id,
                    Pick.moderation_status == ModerationStatus.APPROVED,
                )
                .values(
                    moderation_status=ModerationStatus.PENDING_REVIEW,
                    moderated_by=admin.id,
                    moderated_at=now,
                    moderation_notes=f"{SUSPENSION_NOTE_PREFIX}: {reason}",
                )
            )
        await self.session.flush()
        logger.info(
            "moderation.suspend.success",
            extra=log_context(user_id=user.id, actor_id=admin.id, days=days, hide_picks=hide_picks),
        )
        self._announce(user)
        return user

    async def unsuspend(
        self, admin: User, user_id: UUID
    ) -> tuple[User, str | None, datetime | None]:
        """Lift a suspension early and restore picks hidden by it."""

        user = await self._target(user_id)
        if user.account_status != AccountStatus.SUSPENDED:
            raise ModerationError("User is not suspended")
        previous_reason = user.suspension_reason
        previous_until = user.suspended_until
        user.account_status = AccountStatus.ACTIVE
        user.suspension_reason = None
        user.suspended_until = None
        user.suspended_by = None
        await self.session.execute(
            update(Pick)
            .where(
                Pick.user_id == user.id,
                Pick.moderation_status == ModerationStatus.PENDING_REVIEW,
                Pick.moderation_notes.startswith(SUSPENSION_NOTE_PREFIX),
            )
            .values(
                moderation_status=ModerationStatus.APPROVED,
                moderated_by=admin.id,
                moderated_at=utc_now(),
                moderation_notes=None,
            )
        )
        await self.session.flush()
        logger.info(
            "moderation.unsuspend.success", extra=log_context(user_id=user.id, actor_id=admin.id)
        )
        self._announce(user)
        return user, previous_reason, previous_until

    async def warn(
        self,
        admin: User,
        user_id: UUID,
        *,
        severity: WarningSeverity | str = WarningSeverity.MEDIUM,
    ) -> WarningOutcome:
        """Record a warning, lower the trust score and flag repeat offenders."""

        user = await self._target(user_id)
        if user.role == UserRole.ADMIN:
            raise ModerationForbiddenError("Cannot warn administrators")

        severity = WarningSeverity(severity)
        previous = user.trust_score
        user.trust_score = max(0, previous - TRUST_PENALTIES[severity])
        user.warning_count = (user.warning_count or 0) + 1
        user.last_warning_at = utc_now()

        auto_flagged = False
        if user.warning_count >= AUTO_FLAG_WARNINGS and user.account_status == AccountStatus.ACTIVE:
            user.account_status = AccountStatus.UNDER_REVIEW
            auto_flagged = True
        await self.session.flush()
        logger.info(
            "moderation.warn.success",
            extra=log_context(
                user_id=user.id,
                actor_id=admin.id,
                severity=severity.value,
                warning_count=user.warning_count,
                auto_flagged=auto_flagged,
            ),
        )
        if auto_flagged:
            self._announce(user)
        return WarningOutcome(user=user, previous_trust_score=previous, auto_flagged=auto_flagged)

    async def content_owner(self, target_type: ReportTargetType | str, target_id: UUID) -> UUID:
        return await content_owner(self.session, target_type, target_id)

    async def remove_content(
        self,
        admin: User,
        target_type: ReportTargetType | str,
        target_id: UUID,
        *,
        notes: str,
    ) -> None:
        """Remove a pick from public view or hide a comment."""

        target_type = ReportTargetType(target_type)
        if target_type == ReportTargetType.PICK:
            pick = await self.session.get(Pick, target_id)
            if pick is None:
                raise ContentNotFoundError("Pick not found")
            pick.moderation_status = ModerationStatus.REMOVED
            pick.moderated_by = admin.id
            pick.moderated_at = utc_now()
            pick.moderation_notes = notes
        elif target_type == ReportTargetType.COMMENT:
            comment = await self.session.get(Comment, target_id)
            if comment is None:
                raise ContentNotFoundError("Comment not found")
            comment.is_hidden = True
        else:
            raise ModerationError("Accounts cannot be removed as content")
        await self.session.flush()
        logger.info(
            "moderation.content.removed",
            extra=log_context(
                actor_id=admin.id, target_type=target_type.value, target_id=str(target_id)
            ),
        )


__all__ = [
    "AUTO_FLAG_WARNINGS",
    "ContentNotFoundError",
    "ModerationError",
    "ModerationForbiddenError",
    "ModerationService",
    "TRUST_PENALTIES",
    "WarningOutcome",
    "WarningSeverity",
    "content_owner",
]
