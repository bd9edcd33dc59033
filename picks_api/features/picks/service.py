"""Pick lifecycle, listing and viewer-aware presentation."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.pagination import PageResult, paginate_sql
from picks_api.common.time import ensure_utc, utc_now
from picks_api.core.rbac import is_staff

from ..payments.models import PaymentStatus, Purchase
from ..users.models import AccountStatus, Follow, User
from .models import Bookmark, Comment, ModerationStatus, Pick, PickStatus, Vote, VoteType
from .schemas import MIN_PREMIUM_PRICE, PickCreate, PickOut, PickStats, PickTotals, PickUpdate

logger = logging.getLogger(__name__)

LOCK_WINDOW = timedelta(minutes=5)
PREVIEW_LENGTH = 50
UNLOCKING_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED)

RevealMode = Literal["list", "detail"]


class PickNotFoundError(LookupError):
    def __init__(self, pick_id: UUID) -> None:
        super().__init__(f"Pick {pick_id} not found")
        self.pick_id = pick_id


class PickForbiddenError(PermissionError):
    """Raised when the caller does not own the pick."""


class PickLockedError(PermissionError):
    """Raised when a pick can no longer change because its event has started."""


class AuthorRestrictedError(PermissionError):
    """Raised when a banned or suspended author tries to post."""


class PickValidationError(ValueError):
    """Raised for business-rule validation failures on create or update."""


def win_rate(won: int, lost: int) -> int:
    """Percentage of graded picks won, rounded; 0 with nothing graded."""

    graded = won + lost
    if graded == 0:
        return 0
    return round(won / graded * 100)


def compute_locked_at(game_date: datetime) -> datetime:
    return ensure_utc(game_date) - LOCK_WINDOW


def is_pick_locked(pick: Pick, now: datetime | None = None) -> bool:
    return (now or utc_now()) >= ensure_utc(pick.locked_at)


def ensure_author_can_post(user: User, now: datetime | None = None) -> None:
    """Reject banned authors and authors whose suspension is still running."""

    now = now or utc_now()
    if user.account_status == AccountStatus.BANNED:
        reason = user.ban_reason or "No reason provided"
        raise AuthorRestrictedError(f"Your account has been banned: {reason}")
    if user.suspended_until is not None and ensure_utc(user.suspended_until) > now:
        until = ensure_utc(user.suspended_until).isoformat()
        raise AuthorRestrictedError(f"Your account is suspended until {until}")


@dataclass(slots=True)
class ViewerState:
    """What the caller has unlocked, bookmarked and voted on among a set of picks."""

    user_id: UUID | None = None
    unlocked: set[UUID] = field(default_factory=set)
    bookmarked: set[UUID] = field(default_factory=set)
    votes: dict[UUID, VoteType] = field(default_factory=dict)


async def collect_stats(session: AsyncSession, pick_ids: Sequence[UUID]) -> dict[UUID, PickStats]:
    """Return engagement counters for each pick id."""

    ids = list(dict.fromkeys(pick_ids))
    stats = {pick_id: PickStats() for pick_id in ids}
    if not ids:
        return stats

    vote_rows = await session.execute(
        select(Vote.pick_id, Vote.vote_type, func.count(Vote.id))
        .where(Vote.pick_id.in_(ids))
        .group_by(Vote.pick_id, Vote.vote_type)
    )
    for pick_id, vote_type, count in vote_rows.all():
        if vote_type == VoteType.UPVOTE:
            stats[pick_id].upvotes = int(count)
        else:
            stats[pick_id].downvotes = int(count)

    comment_rows = await session.execute(
        select(Comment.pick_id, func.count(Comment.id))
        .where(Comment.pick_id.in_(ids), Comment.is_hidden.is_(False))
        .group_by(Comment.pick_id)
    )
    for pick_id, count in comment_rows.all():
        stats[pick_id].comments = int(count)

    bookmark_rows = await session.execute(
        select(Bookmark.pick_id, func.count(Bookmark.id))
        .where(Bookmark.pick_id.in_(ids))
        .group_by(Bookmark.pick_id)
    )
    for pick_id, count in bookmark_rows.all():
        stats[pick_id].bookmarks = int(count)

    unlock_rows = await session.execute(
        select(Purchase.pick_id, func.count(Purchase.id))
        .where(Purchase.pick_id.in_(ids), Purchase.status.in_(UNLOCKING_STATUSES))
        .group_by(Purchase.pick_id)
    )
    for pick_id, count in unlock_rows.all():
        stats[pick_id].unlocks = int(count)

    for item in stats.values():
        item.score = item.upvotes - item.downvotes
    return stats


async def load_viewer_state(
    session: AsyncSession, viewer: User | None, pick_ids: Sequence[UUID]
) -> ViewerState:
    if viewer is None:
        return ViewerState()
    state = ViewerState(user_id=viewer.id)
    ids = list(dict.fromkeys(pick_ids))
    if not ids:
        return state

    purchased = await session.execute(
        select(Purchase.pick_id).where(
            Purchase.user_id == viewer.id,
            Purchase.pick_id.in_(ids),
            Purchase.status.in_(UNLOCKING_STATUSES),
        )
    )
    state.unlocked = set(purchased.scalars().all())
    bookmarked = await session.execute(
        select(Bookmark.pick_id).where(Bookmark.user_id == viewer.id, Bookmark.pick_id.in_(ids))
    )
    state.bookmarked = set(bookmarked.scalars().all())
    votes = await session.execute(
        select(Vote.pick_id, Vote.vote_type).where(
            Vote.user_id == viewer.id, Vote.pick_id.in_(ids)
        )
    )
    state.votes = {pick_id: VoteType(vote_type) for pick_id, vote_type in votes.all()}
    return state


def present_pick(
    pick: Pick,
    *,
    stats: PickStats,
    viewer: ViewerState,
    mode: RevealMode = "list",
    now: datetime | None = None,
) -> PickOut:
    """Render ``pick`` for ``viewer``, hiding premium content that is not unlocked.

    Listings blank the details; the detail view keeps a short preview and
    drops the odds.
    """

    owner = viewer.user_id is not None and viewer.user_id == pick.user_id
    unlocked = pick.id in viewer.unlocked
    out = PickOut.model_validate(pick)
    update: dict[str, Any] = {
        "stats": stats.model_copy(update={"views": pick.view_count}),
        "is_locked": is_pick_locked(pick, now),
        "is_unlocked": unlocked,
        "is_bookmarked": pick.id in viewer.bookmarked,
        "user_vote_type": viewer.votes.get(pick.id),
    }
    if pick.is_premium and not owner and not unlocked:
        update["is_premium_locked"] = True
        if mode == "detail":
            update["details"] = (pick.details or "")[:PREVIEW_LENGTH] + "..."
            update["odds"] = None
        else:
            update["details"] = ""
    return out.model_copy(update=update)


async def present_picks(
    session: AsyncSession,
    picks: Sequence[Pick],
    viewer: User | None,
    *,
    mode: RevealMode = "list",
) -> list[PickOut]:
    ids = [pick.id for pick in picks]
    stats = await collect_stats(session, ids)
    state = await load_viewer_state(session, viewer, ids)
    now = utc_now()
    return [
        present_pick(pick, stats=stats[pick.id], viewer=state, mode=mode, now=now)
        for pick in picks
    ]


@dataclass(slots=True)
class PickFilters:
    sport: str | None = None
    status: str | None = None
    confidence: int | None = None
    premium_only: bool = False
    following_only: bool = False
    user_id: UUID | None = None


@dataclass(slots=True)
class PicksService:
    """Create, read, update and delete picks."""

    session: AsyncSession

    async def create_pick(
        self, author: User, payload: PickCreate, *, now: datetime | None = None
    ) -> Pick:
        now = now or utc_now()
        ensure_author_can_post(author, now)
        locked_at = compute_locked_at(payload.game_date)
        if now >= locked_at:
            raise PickValidationError(
                "Cannot create pick for an event that has already started or is starting soon"
            )

        values = payload.model_dump()
        values["game_date"] = ensure_utc(payload.game_date)
        pick = Pick(user_id=author.id, locked_at=locked_at, **values)
        pick.author = author
        self.session.add(pick)
        await self.session.flush()
        logger.info(
            "pick.create.success",
            extra=log_context(user_id=author.id, pick_id=pick.id, sport=pick.sport),
        )
        return pick

    async def _load(self, pick_id: UUID) -> Pick:
        pick = await self.session.get(Pick, pick_id)
        if pick is None:
            raise PickNotFoundError(pick_id)
        return pick

    async def get_visible_pick(self, pick_id: UUID, viewer: User | None) -> Pick:
        """Return the pick unless it was removed; owners and staff still see removed picks."""

        pick = await self._load(pick_id)
        if pick.moderation_status == ModerationStatus.REMOVED:
            if viewer is None or (viewer.id != pick.user_id and not is_staff(viewer.role)):
                raise PickNotFoundError(pick_id)
        return pick

    async def get_owned_pick(self, user: User, pick_id: UUID, *, verb: str) -> Pick:
        pick = await self._load(pick_id)
        if pick.user_id != user.id:
            raise PickForbiddenError(f"You do not have permission to {verb} this pick")
        if is_pick_locked(pick):
            raise PickLockedError(f"Cannot {verb} pick after the event has started")
        return pick

    async def update_pick(
        self, user: User, pick_id: UUID, payload: PickUpdate
    ) -> tuple[Pick, dict[str, Any]]:
        pick = await self.get_owned_pick(user, pick_id, verb="edit")
        changes = payload.model_dump(exclude_unset=True)
        now = utc_now()

        if changes.get("game_date") is not None:
            locked_at = compute_locked_at(changes["game_date"])
            if now >= locked_at:
                raise PickValidationError(
                    "Cannot set game date to an event that has already started or is starting soon"
                )
            changes["game_date"] = ensure_utc(changes["game_date"])
            pick.locked_at = locked_at

        is_premium = changes.get("is_premium", pick.is_premium)
        price = changes.get("price", pick.price)
        if is_premium and (price is None or Decimal(price) < MIN_PREMIUM_PRICE):
            raise PickValidationError("Premium picks require a price of at least $0.50")

        for key, value in changes.items():
            setattr(pick, key, value)
        await self.session.flush()
        logger.info(
            "pick.update.success",
            extra=log_context(user_id=user.id, pick_id=pick.id, fields=",".join(sorted(changes))),
        )
        return pick, changes

    async def delete_pick(self, user: User, pick_id: UUID) -> None:
        pick = await self.get_owned_pick(user, pick_id, verb="delete")
        await self.session.delete(pick)
        await self.session.flush()
        logger.info("pick.delete.success", extra=log_context(user_id=user.id, pick_id=pick_id))

    async def list_picks(
        self,
        filters: PickFilters,
        *,
        viewer: User | None,
        page: int,
        limit: int,
    ) -> PageResult[Pick]:
        stmt = select(Pick).where(Pick.moderation_status == ModerationStatus.APPROVED)
        if filters.sport:
            stmt = stmt.where(Pick.sport == filters.sport)
        if filters.status:
            stmt = stmt.where(Pick.status == filters.status)
        if filters.confidence is not None:
            stmt = stmt.where(Pick.confidence == filters.confidence)
        if filters.premium_only:
            stmt = stmt.where(Pick.is_premium.is_(True))
        if filters.user_id is not None:
            stmt = stmt.where(Pick.user_id == filters.user_id)
        if filters.following_only:
            if viewer is None:
                return PageResult(items=[], page=page, limit=limit, total=0)
            followed = select(Follow.following_id).where(Follow.follower_id == viewer.id)
            stmt = stmt.where(Pick.user_id.in_(followed))
        return await paginate_sql(
            self.session,
            stmt,
            page=page,
            limit=limit,
            order_by=[Pick.created_at.desc(), Pick.id.desc()],
        )

    async def list_user_picks(self, user: User) -> list[Pick]:
        result = await self.session.execute(
            select(Pick).where(Pick.user_id == user.id).order_by(Pick.created_at.desc())
        )
        return list(result.scalars().all())

    async def totals(self, user_id: UUID) -> PickTotals:
        stmt = select(
            func.count(Pick.id),
            func.sum(case((Pick.status == PickStatus.WON, 1), else_=0)),
            func.sum(case((Pick.status == PickStatus.LOST, 1), else_=0)),
            func.sum(case((Pick.status == PickStatus.PUSH, 1), else_=0)),
            func.sum(case((Pick.status == PickStatus.PENDING, 1), else_=0)),
        ).where(Pick.user_id == user_id)
        total, won, lost, push, pending = (await self.session.execute(stmt)).one()
        won = int(won or 0)
        lost = int(lost or 0)
        return PickTotals(
            total=int(total or 0),
            won=won,
            lost=lost,
            push=int(push or 0),
            pending=int(pending or 0),
            win_rate=win_rate(won, lost),
        )


__all__ = [
    "AuthorRestrictedError",
    "LOCK_WINDOW",
    "PickFilters",
    "PickForbiddenError",
    "PickLockedError",
    "PickNotFoundError",
    "PickValidationError",
    "PicksService",
    "UNLOCKING_STATUSES",
    "ViewerState",
    "collect_stats",
    "compute_locked_at",
    "ensure_author_can_post",
    "is_pick_locked",
    "load_viewer_state",
    "present_pick",
    "present_picks",
    "win_rate",
]
