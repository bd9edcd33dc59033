"""Profile, user directory, follow and creator settings routes."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Request, status

from picks_api.api.deps import SessionDep, SettingsDep
from picks_api.common.schema import ErrorMessage, MessageResponse

from ..audit.service import AuditAction, AuditResource, record_request_event
from ..auth.dependencies import CurrentUser, OptionalUser
from .schemas import (
    FollowList,
    FollowRequest,
    FollowStatus,
    PasswordChangeRequest,
    PayoutSettings,
    PayoutSettingsUpdate,
    ProfileUpdate,
    PublicProfile,
    SubscriptionPricing,
    SubscriptionPricingUpdate,
    TopCreatorList,
    UserProfile,
    UserSearchResults,
    UserSummary,
)
from .service import (
    FollowError,
    PasswordMismatchError,
    ProfileConflictError,
    UserNotFoundError,
    UsersService,
    apply_payout_settings,
    payout_settings,
)

router = APIRouter(tags=["users"])

UserId = Annotated[UUID, Path(description="User identifier")]


def _not_found(exc: UserNotFoundError) -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail="User not found")


@router.get("/profile", response_model=UserProfile, summary="Read the caller's profile")
async def read_profile(user: CurrentUser) -> UserProfile:
    return UserProfile.model_validate(user)


@router.patch(
    "/profile",
    response_model=UserProfile,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage}},
)
async def update_profile(
    request: Request,
    payload: ProfileUpdate,
    user: CurrentUser,
    session: SessionDep,
) -> UserProfile:
    service = UsersService(session=session)
    try:
        changes = await service.update_profile(user, payload)
    except ProfileConflictError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await record_request_event(
        session,
        request,
        action=AuditAction.UPDATE_PROFILE,
        resource=AuditResource.PROFILE,
        user_id=user.id,
        resource_id=user.id,
        details={"fields": sorted(changes)},
    )
    return UserProfile.model_validate(user)


@router.get("/users/search", response_model=UserSearchResults)
async def search_users(
    session: SessionDep,
    q: Annotated[str, Query(min_length=2, max_length=100)],
    limit: Annotated[int, Query(ge=1, le=20)] = 10,
) -> UserSearchResults:
    users = await UsersService(session=session).search(q, limit=limit)
    return UserSearchResults(users=[UserSummary.model_validate(user) for user in users])


@router.get("/users/top-creators", response_model=TopCreatorList)
async def top_creators(session: SessionDep) -> TopCreatorList:
    creators = await UsersService(session=session).top_creators()
    return TopCreatorList(creators=creators)


@router.get(
    "/users/{user_id}",
    response_model=PublicProfile,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorMessage}},
)
async def read_user(user_id: UserId, viewer: OptionalUser, session: SessionDep) -> PublicProfile:
    try:
        return await UsersService(session=session).public_profile(user_id, viewer=viewer)
    except UserNotFoundError as exc:
        raise _not_found(exc) from exc


@router.get("/users/{user_id}/followers", response_model=FollowList)
async def list_followers(user_id: UserId, session: SessionDep) -> FollowList:
    try:
        users = await UsersService(session=session).followers(user_id)
    except UserNotFoundError as exc:
        raise _not_found(exc) from exc
    return FollowList(users=[UserSummary.model_validate(u) for u in users], total=len(users))


@router.get("/users/{user_id}/following", response_model=FollowList)
async def list_following(user_id: UserId, session: SessionDep) -> FollowList:
    try:
        users = await UsersService(session=session).following(user_id)
    except UserNotFoundError as exc:
        raise _not_found(exc) from exc
    return FollowList(users=[UserSummary.model_validate(u) for u in users], total=len(users))


@router.post(
    "/follow",
    response_model=FollowStatus,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_404_NOT_FOUND: {"model": ErrorMessage},
    },
)
async def follow_user(
    payload: FollowRequest,
    user: CurrentUser,
    session: SessionDep,
) -> FollowStatus:
    try:
        await UsersService(session=session).follow(user, payload.user_id)
    except FollowError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UserNotFoundError as exc:
        raise _not_found(exc) from exc
    return FollowStatus(following=True)


@router.delete("/follow/{user_id}", response_model=FollowStatus)
async def unfollow_user(user_id: UserId, user: CurrentUser, session: SessionDep) -> FollowStatus:
    await UsersService(session=session).unfollow(user, user_id)
    return FollowStatus(following=False)


@router.put(
    "/settings/password",
    response_model=MessageResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage}},
)
async def change_password(
    payload: PasswordChangeRequest,
    user: CurrentUser,
    session: SessionDep,
) -> MessageResponse:
    try:
        await UsersService(session=session).change_password(
            user, current=payload.current_password, new=payload.new_password
        )
    except PasswordMismatchError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return MessageResponse(message="Password updated")


@router.get("/settings/payout", response_model=PayoutSettings)
async def read_payout_settings(user: CurrentUser, settings: SettingsDep) -> PayoutSettings:
    return payout_settings(user, settings)


@router.put("/settings/payout", response_model=PayoutSettings)
async def update_payout_settings(
    payload: PayoutSettingsUpdate,
    user: CurrentUser,
    session: SessionDep,
    settings: SettingsDep,
) -> PayoutSettings:
    apply_payout_settings(user, payload, settings)
    await session.flush()
    return payout_settings(user, settings)


@router.get("/settings/subscription-pricing", response_model=SubscriptionPricing)
async def read_subscription_pricing(user: CurrentUser) -> SubscriptionPricing:
    return SubscriptionPricing.model_validate(user)


@router.patch("/settings/subscription-pricing", response_model=SubscriptionPricing)
async def update_subscription_pricing(
    payload: SubscriptionPricingUpdate,
    user: CurrentUser,
    session: SessionDep,
) -> SubscriptionPricing:
    await UsersService(session=session).set_subscription_pricing(
        user,
        enabled=payload.subscription_enabled,
        price=payload.subscription_price,
        price_set="subscription_price" in payload.model_fields_set,
    )
    return SubscriptionPricing.model_validate(user)


__all__ = ["router"]
