"""Profiles, public stats, search, the follow graph and creator settings."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.core.security import (
    BankDetails,
    SealedValueError,
    hash_password,
    open_bank_details,
    seal_bank_details,
    verify_password,
)
from picks_api.settings import Settings

from ..picks.models import ModerationStatus, Pick, PickStatus
from ..picks.service import win_rate
from .models import AccountStatus, Follow, PayoutMethod, User
from .schemas import (
    PayoutSettings,
    PayoutSettingsUpdate,
    ProfileStats,
    ProfileUpdate,
    PublicProfile,
    TopCreator,
)

logger = logging.getLogger(__name__)

TOP_CREATOR_MIN_GRADED = 3
TOP_CREATOR_LIMIT = 3


class UserNotFoundError(LookupError):
    def __init__(self, user_id: UUID) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class ProfileConflictError(ValueError):
    """Raised when a requested username is already taken."""


class FollowError(ValueError):
    """Raised for follow requests that can never succeed."""


class PasswordMismatchError(ValueError):
    def __init__(self) -> None:
        super().__init__("Current password is incorrect")


async def graded_counts(
    session: AsyncSession, user_ids: Iterable[UUID]
) -> dict[UUID, tuple[int, int]]:
    """Return ``{user_id: (won, lost)}`` for the given authors."""

    ids = list(set(user_ids))
    if not ids:
        return {}
    stmt = (
        select(
            Pick.user_id,
            func.sum(case((Pick.status == PickStatus.WON, 1), else_=0)),
            func.sum(case((Pick.status == PickStatus.LOST, 1), else_=0)),
        )
        .where(Pick.user_id.in_(ids))
        .group_by(Pick.user_id)
    )
    rows = (await session.execute(stmt)).all()
    counts = {user_id: (int(won or 0), int(lost or 0)) for user_id, won, lost in rows}
    return {user_id: counts.get(user_id, (0, 0)) for user_id in ids}


@dataclass(slots=True)
class UsersService:
    """Service encapsulating profile and social graph operations."""

    session: AsyncSession

    async def get_user(self, user_id: UUID) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def update_profile(self, user: User, payload: ProfileUpdate) -> dict[str, object]:
        changes = payload.model_dump(exclude_unset=True)
        username = changes.get("username")
        if username and username != user.username:
            stmt = select(User.id).where(User.username == username, User.id != user.id)
            if (await self.session.execute(stmt)).first() is not None:
                raise ProfileConflictError("Username already taken")
        for field, value in changes.items():
            setattr(user, field, value)
        await self.session.flush()
        logger.info(
            "user.profile.updated",
            extra=log_context(user_id=user.id, fields=",".join(sorted(changes))),
        )
        return changes

    async def _count(self, stmt) -> int:
        return int((await self.session.execute(stmt)).scalar_one() or 0)

    async def profile_stats(self, user_id: UUID) -> ProfileStats:
        picks = await self._count(
            select(func.count(Pick.id)).where(
                Pick.user_id == user_id,
                Pick.moderation_status == ModerationStatus.APPROVED,
            )
        )
        followers = await self._count(
            select(func.count(Follow.id)).where(Follow.following_id == user_id)
        )
        following = await self._count(
            select(func.count(Follow.id)).where(Follow.follower_id == user_id)
        )
        won, lost = (await graded_counts(self.session, [user_id]))[user_id]
        return ProfileStats(
            picks=picks,
            followers=followers,
            following=following,
            won=won,
            lost=lost,
            win_rate=win_rate(won, lost),
        )

    async def is_following(self, follower_id: UUID, following_id: UUID) -> bool:
        stmt = select(Follow.id).where(
            Follow.follower_id == follower_id, Follow.following_id == following_id
        )
        return (await self.session.execute(stmt)).first() is not None

    async def public_profile(self, user_id: UUID, *, viewer: User | None) -> PublicProfile:
        user = await self.get_user(user_id)
        stats = await self.profile_stats(user.id)
        following = False
        if viewer is not None and viewer.id != user.id:
            following = await self.is_following(viewer.id, user.id)
        return PublicProfile(
            id=user.id,
            username=user.username,
            name=user.name,
            bio=user.bio,
            avatar_url=user.avatar_url,
            is_verified=user.is_verified,
            subscription_enabled=user.subscription_enabled,
            subscription_price=user.subscription_price,
            created_at=user.created_at,
            stats=stats,
            is_following=following,
        )

    async def search(self, query: str, *, limit: int) -> list[User]:
        pattern = f"%{query.strip().lower()}%"
        stmt = (
            select(User)
            .where(
                or_(
                    func.lower(User.username).like(pattern),
                    func.lower(User.name).like(pattern),
                ),
                User.account_status != AccountStatus.BANNED,
            )
            .order_by(User.username.asc())
            .limit(limit)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def top_creators(self) -> list[TopCreator]:
        won = func.sum(case((Pick.status == PickStatus.WON, 1), else_=0))
        lost = func.sum(case((Pick.status == PickStatus.LOST, 1), else_=0))
        stmt = (
            select(Pick.user_id, won, lost)
            .where(Pick.status.in_([PickStatus.WON, PickStatus.LOST]))
            .group_by(Pick.user_id)
            .having(func.count(Pick.id) >= TOP_CREATOR_MIN_GRADED)
        )
        rows = (await self.session.execute(stmt)).all()
        if not rows:
            return []

        follower_rows = await self.session.execute(
            select(Follow.following_id, func.count(Follow.id))
            .where(Follow.following_id.in_([row[0] for row in rows]))
            .group_by(Follow.following_id)
        )
        followers = dict(follower_rows.all())

        creators: list[TopCreator] = []
        for user_id, won_count, lost_count in rows:
            user = await self.session.get(User, user_id)
            if user is None or user.account_status == AccountStatus.BANNED:
                continue
            creators.append(
                TopCreator(
                    id=user.id,
                    username=user.username,
                    name=user.name,
                    avatar_url=user.avatar_url,
                    is_verified=user.is_verified,
                    win_rate=win_rate(int(won_count), int(lost_count)),
                    graded_picks=int(won_count) + int(lost_count),
                    followers=int(followers.get(user_id, 0)),
                )
            )
        creators.sort(key=lambda item: (item.win_rate, item.followers), reverse=True)
        return creators[:TOP_CREATOR_LIMIT]

    async def follow(self, follower: User, target_id: UUID) -> None:
        if follower.id == target_id:
            raise FollowError("You cannot follow yourself")
        await self.get_user(target_id)
        if await self.is_following(follower.id, target_id):
            return
        self.session.add(Follow(follower_id=follower.id, following_id=target_id))
        await self.session.flush()
        logger.info(
            "user.follow.created",
            extra=log_context(user_id=follower.id, target_id=str(target_id)),
        )

    async def unfollow(self, follower: User, target_id: UUID) -> None:
        result = await self.session.execute(
            select(Follow).where(
                Follow.follower_id == follower.id, Follow.following_id == target_id
            )
        )
        edge = result.scalar_one_or_none()
        if edge is not None:
            await self.session.delete(edge)
            await self.session.flush()

    async def followers(self, user_id: UUID) -> list[User]:
        await self.get_user(user_id)
        stmt = (
            select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.following_id == user_id)
            .order_by(Follow.created_at.desc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def following(self, user_id: UUID) -> list[User]:
        await self.get_user(user_id)
        stmt = (
            select(User)
            .join(Follow, Follow.following_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(Follow.created_at.desc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def following_ids(self, user_id: UUID) -> list[UUID]:
        stmt = select(Follow.following_id).where(Follow.follower_id == user_id)
        return list((await self.session.execute(stmt)).scalars().all())

    async def change_password(self, user: User, *, current: str, new: str) -> None:
        if not verify_password(current, user.password_hash):
            raise PasswordMismatchError()
        user.password_hash = hash_password(new)
        user.session_version += 1
        await self.session.flush()
        logger.info("user.password.changed", extra=log_context(user_id=user.id))

    async def set_subscription_pricing(
        self,
        user: User,
        *,
        enabled: bool | None,
        price: Decimal | None,
        price_set: bool,
    ) -> User:
        if price_set:
            user.subscription_price = price
        if enabled is not None:
            user.subscription_enabled = enabled
        await self.session.flush()
        return user


def payout_settings(user: User, settings: Settings) -> PayoutSettings:
    last4: str | None = None
    if user.bank_account_id:
        try:
            details = open_bank_details(user.bank_account_id, settings)
        except SealedValueError:
            logger.warning("user.payout.bank_decrypt_failed", extra=log_context(user_id=user.id))
        else:
            last4 = details.last4
    return PayoutSettings(
        payout_method=user.payout_method,
        whop_user_id=user.whop_user_id,
        crypto_wallet_address=user.crypto_wallet_address,
        has_bank_account=user.bank_account_id is not None,
        bank_account_last4=last4,
        auto_withdraw=user.auto_withdraw,
        min_payout=user.min_payout,
    )


def apply_payout_settings(user: User, payload: PayoutSettingsUpdate, settings: Settings) -> None:
    """Store payout preferences; bank details are kept only as an encrypted identifier."""

    user.payout_method = PayoutMethod(payload.payout_method)
    if payload.whop_user_id is not None:
        user.whop_user_id = payload.whop_user_id or None
    if payload.payout_method == PayoutMethod.CRYPTO:
        user.crypto_wallet_address = payload.crypto_wallet_address
    if payload.payout_method == PayoutMethod.BANK:
        details = BankDetails(
            account_name=payload.bank_account_name or "",
            routing_number=payload.bank_routing_number or "",
            account_number=payload.bank_account_number or "",
        )
        user.bank_account_id = seal_bank_details(details, settings)
    if payload.auto_withdraw is not None:
        user.auto_withdraw = payload.auto_withdraw
    if payload.min_payout is not None:
        user.min_payout = payload.min_payout


__all__ = [
    "FollowError",
    "PasswordMismatchError",
    "ProfileConflictError",
    "UserNotFoundError",
    "UsersService",
    "apply_payout_settings",
    "graded_counts",
    "payout_settings",
    "win_rate",
]
