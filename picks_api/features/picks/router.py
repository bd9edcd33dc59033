"""HTTP routes for picks and their engagement."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Request, Response, status

from picks_api.api.deps import SessionDep
from picks_api.common.schema import ErrorMessage

from ..audit.service import (
    AuditAction,
    AuditResource,
    record_request_event,
    request_metadata,
)
from ..auth.dependencies import CurrentUser, OptionalUser
from .engagement import (
    AlreadyBookmarkedError,
    CommentForbiddenError,
    CommentNotFoundError,
    EngagementService,
)
from .models import PickStatus, Sport
from .schemas import (
    BookmarkStatus,
    CommentCreate,
    CommentList,
    CommentOut,
    LikeSummary,
    LikeToggle,
    PickCreate,
    PickList,
    PickOut,
    PickPage,
    PickTotals,
    PickUpdate,
    ViewCount,
    VoteRequest,
    VoteSummary,
)
from .service import (
    AuthorRestrictedError,
    PickFilters,
    PickForbiddenError,
    PickLockedError,
    PickNotFoundError,
    PicksService,
    PickValidationError,
    present_picks,
)

router = APIRouter(tags=["picks"])

PickId = Annotated[UUID, Path(description="Pick identifier")]

_NOT_FOUND = {status.HTTP_404_NOT_FOUND: {"model": ErrorMessage}}


def _pick_not_found() -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail="Pick not found")


@router.post(
    "/picks",
    response_model=PickOut,
    status_code=status.HTTP_201_CREATED,
    summary="Publish a pick",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_403_FORBIDDEN: {"model": ErrorMessage},
    },
)
async def create_pick(
    request: Request,
    payload: PickCreate,
    user: CurrentUser,
    session: SessionDep,
) -> PickOut:
    service = PicksService(session=session)
    try:
        pick = await service.create_pick(user, payload)
    except AuthorRestrictedError as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except PickValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.CREATE_PICK,
        resource=AuditResource.PICK,
        user_id=user.id,
        resource_id=pick.id,
        details={"sport": pick.sport, "is_premium": pick.is_premium},
    )
    [out] = await present_picks(session, [pick], user, mode="detail")
    return out


@router.get("/picks", response_model=PickPage, summary="List approved picks")
async def list_picks(
    viewer: OptionalUser,
    session: SessionDep,
    sport: Sport | None = None,
    pick_status: Annotated[PickStatus | None, Query(alias="status")] = None,
    confidence: Annotated[int | None, Query(ge=1, le=5)] = None,
    premium_only: bool = False,
    following_only: bool = False,
    user_id: UUID | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> PickPage:
    filters = PickFilters(
        sport=sport.value if sport else None,
        status=pick_status.value if pick_status else None,
        confidence=confidence,
        premium_only=premium_only,
        following_only=following_only,
        user_id=user_id,
    )
    result = await PicksService(session=session).list_picks(
        filters, viewer=viewer, page=page, limit=limit
    )
    picks = await present_picks(session, result.items, viewer)
    return PickPage(picks=picks, pagination=result.pagination)


@router.get("/picks/mine", response_model=PickList, summary="List the caller's picks")
async def list_my_picks(user: CurrentUser, session: SessionDep) -> PickList:
    picks = await PicksService(session=session).list_user_picks(user)
    return PickList(picks=await present_picks(session, picks, user, mode="detail"))


@router.get("/picks/stats", response_model=PickTotals, summary="Totals for the caller's picks")
async def read_my_totals(user: CurrentUser, session: SessionDep) -> PickTotals:
    return await PicksService(session=session).totals(user.id)


@router.get("/picks/{pick_id}", response_model=PickOut, responses=_NOT_FOUND)
async def read_pick(pick_id: PickId, viewer: OptionalUser, session: SessionDep) -> PickOut:
    try:
        pick = await PicksService(session=session).get_visible_pick(pick_id, viewer)
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc
    [out] = await present_picks(session, [pick], viewer, mode="detail")
    return out


@router.patch(
    "/picks/{pick_id}",
    response_model=PickOut,
    responses={
        **_NOT_FOUND,
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_403_FORBIDDEN: {"model": ErrorMessage},
    },
)
async def update_pick(
    request: Request,
    pick_id: PickId,
    payload: PickUpdate,
    user: CurrentUser,
    session: SessionDep,
) -> PickOut:
    service = PicksService(session=session)
    try:
        pick, changes = await service.update_pick(user, pick_id, payload)
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc
    except (PickForbiddenError, PickLockedError) as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except PickValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.UPDATE_PICK,
        resource=AuditResource.PICK,
        user_id=user.id,
        resource_id=pick.id,
        details={"fields": sorted(changes)},
    )
    [out] = await present_picks(session, [pick], user, mode="detail")
    return out


@router.delete(
    "/picks/{pick_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**_NOT_FOUND, status.HTTP_403_FORBIDDEN: {"model": ErrorMessage}},
)
async def delete_pick(
    request: Request,
    pick_id: PickId,
    user: CurrentUser,
    session: SessionDep,
) -> Response:
    try:
        await PicksService(session=session).delete_pick(user, pick_id)
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc
    except (PickForbiddenError, PickLockedError) as exc:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.DELETE_PICK,
        resource=AuditResource.PICK,
        user_id=user.id,
        resource_id=pick_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/picks/{pick_id}/like", response_model=LikeToggle, responses=_NOT_FOUND)
async def toggle_like(pick_id: PickId, user: CurrentUser, session: SessionDep) -> LikeToggle:
    try:
        liked = await EngagementService(session=session).toggle_like(user, pick_id)
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc
    return LikeToggle(liked=liked)


@router.get("/picks/{pick_id}/like", response_model=LikeSummary, responses=_NOT_FOUND)
async def read_likes(pick_id: PickId, viewer: OptionalUser, session: SessionDep) -> LikeSummary:
    try:
        return await EngagementService(session=session).like_summary(pick_id, viewer)
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc


@router.post("/picks/{pick_id}/vote", response_model=VoteSummary, responses=_NOT_FOUND)
async def cast_vote(
    pick_id: PickId,
    payload: VoteRequest,
    user: CurrentUser,
    session: SessionDep,
) -> VoteSummary:
    try:
        return await EngagementService(session=session).vote(user, pick_id, payload.vote_type)
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc


@router.post("/picks/{pick_id}/view", response_model=ViewCount, responses=_NOT_FOUND)
async def record_view(
    request: Request,
    pick_id: PickId,
    viewer: OptionalUser,
    session: SessionDep,
) -> ViewCount:
    try:
        count = await EngagementService(session=session).record_view(
            pick_id,
            viewer=viewer,
            ip_address=request_metadata(request).ip_address,
        )
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc
    return ViewCount(count=count)


@router.get("/picks/{pick_id}/view", response_model=ViewCount, responses=_NOT_FOUND)
async def read_views(pick_id: PickId, session: SessionDep) -> ViewCount:
    try:
        count = await EngagementService(session=session).view_count(pick_id)
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc
    return ViewCount(count=count)


@router.get("/picks/{pick_id}/comments", response_model=CommentList, responses=_NOT_FOUND)
async def list_comments(pick_id: PickId, session: SessionDep) -> CommentList:
    try:
        comments = await EngagementService(session=session).list_comments(pick_id)
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc
    return CommentList(comments=[CommentOut.model_validate(item) for item in comments])


@router.post(
    "/picks/{pick_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
    responses=_NOT_FOUND,
)
async def create_comment(
    request: Request,
    pick_id: PickId,
    payload: CommentCreate,
    user: CurrentUser,
    session: SessionDep,
) -> CommentOut:
    try:
        comment = await EngagementService(session=session).add_comment(
            user, pick_id, payload.content
        )
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.CREATE_COMMENT,
        resource=AuditResource.COMMENT,
        user_id=user.id,
        resource_id=comment.id,
        details={"pick_id": str(pick_id)},
    )
    return CommentOut.model_validate(comment)


@router.delete(
    "/picks/{pick_id}/comments/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**_NOT_FOUND, status.HTTP_403_FORBIDDEN: {"model": ErrorMessage}},
)
async def delete_comment(
    request: Request,
    pick_id: PickId,
    comment_id: UUID,
    user: CurrentUser,
    session: SessionDep,
) -> Response:
    try:
        comment, moderator_action = await EngagementService(session=session).delete_comment(
            user, pick_id, comment_id
        )
    except CommentNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except CommentForbiddenError as exc:
        await record_request_event(
            session,
            request,
            action=AuditAction.FORBIDDEN_ACCESS,
            resource=AuditResource.COMMENT,
            user_id=user.id,
            resource_id=comment_id,
            details={"operation": "delete_comment", "pick_id": str(pick_id)},
            success=False,
        )
        await session.commit()
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    await record_request_event(
        session,
        request,
        action=AuditAction.DELETE_COMMENT,
        resource=AuditResource.COMMENT,
        user_id=user.id,
        resource_id=comment.id,
        details={
            "pick_id": str(pick_id),
            "comment_author_id": str(comment.user_id),
            "is_moderator_action": moderator_action,
        },
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/picks/{pick_id}/bookmark",
    response_model=BookmarkStatus,
    status_code=status.HTTP_201_CREATED,
    responses={**_NOT_FOUND, status.HTTP_409_CONFLICT: {"model": ErrorMessage}},
)
async def add_bookmark(pick_id: PickId, user: CurrentUser, session: SessionDep) -> BookmarkStatus:
    try:
        await EngagementService(session=session).add_bookmark(user, pick_id)
    except PickNotFoundError as exc:
        raise _pick_not_found() from exc
    except AlreadyBookmarkedError as exc:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return BookmarkStatus(bookmarked=True)


@router.delete("/picks/{pick_id}/bookmark", response_model=BookmarkStatus)
async def remove_bookmark(
    pick_id: PickId, user: CurrentUser, session: SessionDep
) -> BookmarkStatus:
    await EngagementService(session=session).remove_bookmark(user, pick_id)
    return BookmarkStatus(bookmarked=False)


@router.get("/bookmarks", response_model=PickList, summary="List bookmarked picks")
async def list_bookmarks(user: CurrentUser, session: SessionDep) -> PickList:
    picks = await EngagementService(session=session).bookmarked_picks(user)
    return PickList(picks=await present_picks(session, picks, user))


__all__ = ["router"]
