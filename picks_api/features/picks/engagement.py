"""Votes, views, comments and bookmarks attached to picks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.time import utc_now
from picks_api.core.rbac import Permission, can_perform, has_permission

from ..users.models import User
from .models import Bookmark, Comment, Pick, View, Vote, VoteType
from .schemas import LikeSummary, VoteSummary
from .service import PickNotFoundError

logger = logging.getLogger(__name__)

VIEW_DEDUP_WINDOW = timedelta(hours=1)


class CommentNotFoundError(LookupError):
    pass


class CommentForbiddenError(PermissionError):
    pass


class AlreadyBookmarkedError(ValueError):
    def __init__(self) -> None:
        super().__init__("Pick already bookmarked")


@dataclass(slots=True)
class EngagementService:
    """Service for the lightweight interactions users have with picks."""

    session: AsyncSession

    async def _require_pick(self, pick_id: UUID) -> Pick:
        pick = await self.session.get(Pick, pick_id)
        if pick is None:
            raise PickNotFoundError(pick_id)
        return pick

    async def _vote_of(self, user_id: UUID, pick_id: UUID) -> Vote | None:
        result = await self.session.execute(
            select(Vote).where(Vote.user_id == user_id, Vote.pick_id == pick_id)
        )
        return result.scalar_one_or_none()

    async def _vote_counts(self, pick_id: UUID) -> tuple[int, int]:
        rows = await self.session.execute(
            select(Vote.vote_type, func.count(Vote.id))
            .where(Vote.pick_id == pick_id)
            .group_by(Vote.vote_type)
        )
        counts = {VoteType(vote_type): int(count) for vote_type, count in rows.all()}
        return counts.get(VoteType.UPVOTE, 0), counts.get(VoteType.DOWNVOTE, 0)

    async def toggle_like(self, user: User, pick_id: UUID) -> bool:
        """Flip the caller's upvote; a downvote becomes an upvote."""

        await self._require_pick(pick_id)
        vote = await self._vote_of(user.id, pick_id)
        if vote is None:
            self.session.add(Vote(user_id=user.id, pick_id=pick_id, vote_type=VoteType.UPVOTE))
            liked = True
        elif vote.vote_type == VoteType.UPVOTE:
            await self.session.delete(vote)
            liked = False
        else:
            vote.vote_type = VoteType.UPVOTE
            liked = True
        await self.session.flush()
        return liked

    async def like_summary(self, pick_id: UUID, viewer: User | None) -> LikeSummary:
        await self._require_pick(pick_id)
        upvotes, _ = await self._vote_counts(pick_id)
        liked = False
        if viewer is not None:
            vote = await self._vote_of(viewer.id, pick_id)
            liked = vote is not None and vote.vote_type == VoteType.UPVOTE
        return LikeSummary(count=upvotes, is_liked=liked)

    async def vote(self, user: User, pick_id: UUID, vote_type: VoteType) -> VoteSummary:
        """Cast a vote; repeating the same vote withdraws it."""

        await self._require_pick(pick_id)
        vote_type = VoteType(vote_type)
        vote = await self._vote_of(user.id, pick_id)
        current: VoteType | None = vote_type
        if vote is None:
            self.session.add(Vote(user_id=user.id, pick_id=pick_id, vote_type=vote_type))
        elif vote.vote_type == vote_type:
            await self.session.delete(vote)
            current = None
        else:
            vote.vote_type = vote_type
        await self.session.flush()

        upvotes, downvotes = await self._vote_counts(pick_id)
        return VoteSummary(
            upvotes=upvotes,
            downvotes=downvotes,
            score=upvotes - downvotes,
            user_vote_type=current,
        )

    async def record_view(
        self,
        pick_id: UUID,
        *,
        viewer: User | None,
        ip_address: str | None,
    ) -> int:
        """Count a view once per user, or per IP for anonymous callers, per hour."""

        pick = await self._require_pick(pick_id)
        since = utc_now() - VIEW_DEDUP_WINDOW
        stmt = select(View.id).where(View.pick_id == pick_id, View.created_at >= since)
        if viewer is not None:
            stmt = stmt.where(View.user_id == viewer.id)
        elif ip_address:
            stmt = stmt.where(View.user_id.is_(None), View.ip_address == ip_address)
        else:
            return pick.view_count

        if (await self.session.execute(stmt.limit(1))).first() is not None:
            return pick.view_count

        self.session.add(
            View(
                pick_id=pick_id,
                user_id=viewer.id if viewer is not None else None,
                ip_address=ip_address,
            )
        )
        pick.view_count = (pick.view_count or 0) + 1
        await self.session.flush()
        return pick.view_count

    async def view_count(self, pick_id: UUID) -> int:
        pick = await self._require_pick(pick_id)
        return pick.view_count

    async def list_comments(self, pick_id: UUID) -> list[Comment]:
        await self._require_pick(pick_id)
        result = await self.session.execute(
            select(Comment)
            .where(Comment.pick_id == pick_id, Comment.is_hidden.is_(False))
            .order_by(Comment.created_at.desc())
        )
        return list(result.scalars().all())

    async def add_comment(self, user: User, pick_id: UUID, content: str) -> Comment:
        await self._require_pick(pick_id)
        comment = Comment(user_id=user.id, pick_id=pick_id, content=content.strip())
        comment.author = user
        self.session.add(comment)
        await self.session.flush()
        logger.info(
            "comment.create.success",
            extra=log_context(user_id=user.id, pick_id=pick_id, comment_id=str(comment.id)),
        )
        return comment

    async def delete_comment(
        self, user: User, pick_id: UUID, comment_id: UUID
    ) -> tuple[Comment, bool]:
        """Delete a comment as its author or as a moderator.

        Returns the removed comment and whether the deletion was a moderator
        action.
        """

        comment = await self.session.get(Comment, comment_id)
        if comment is None or comment.pick_id != pick_id:
            raise CommentNotFoundError("Comment not found")

        own = can_perform(
            user.role, Permission.DELETE_OWN_COMMENT, actor_id=user.id, owner_id=comment.user_id
        )
        moderator = has_permission(user.role, Permission.DELETE_ANY_COMMENT)
        if not own and not moderator:
            raise CommentForbiddenError("You do not have permission to delete this comment")

        await self.session.delete(comment)
        await self.session.flush()
        return comment, not own

    async def add_bookmark(self, user: User, pick_id: UUID) -> Bookmark:
        await self._require_pick(pick_id)
        existing = await self.session.execute(
            select(Bookmark.id).where(Bookmark.user_id == user.id, Bookmark.pick_id == pick_id)
        )
        if existing.first() is not None:
            raise AlreadyBookmarkedError()
        bookmark = Bookmark(user_id=user.id, pick_id=pick_id)
        self.session.add(bookmark)
        await self.session.flush()
        return bookmark

    async def remove_bookmark(self, user: User, pick_id: UUID) -> None:
        result = await self.session.execute(
            select(Bookmark).where(Bookmark.user_id == user.id, Bookmark.pick_id == pick_id)
        )
        bookmark = result.scalar_one_or_none()
        if bookmark is not None:
            await self.session.delete(bookmark)
            await self.session.flush()

    async def bookmarked_picks(self, user: User) -> list[Pick]:
        result = await self.session.execute(
            select(Pick)
            .join(Bookmark, Bookmark.pick_id == Pick.id)
            .where(Bookmark.user_id == user.id)
            .order_by(Bookmark.created_at.desc())
        )
        return list(result.scalars().unique().all())


__all__ = [
    "AlreadyBookmarkedError",
    "CommentForbiddenError",
    "CommentNotFoundError",
    "EngagementService",
    "VIEW_DEDUP_WINDOW",
]
