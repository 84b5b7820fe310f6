from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Union
from uuid import UUID

from app.database import get_db
from app.middlewares.auth_middleware import get_current_user, get_optional_user
from app.models.user import User
from app.schemas.comment_schemas import CommentCreate, CommentListResponse, CommentNodeResponse, CommentThreadResponse
from app.schemas.post_schemas import LikeState
from app.schemas.response import BaseResponse, ErrorBody, api_response, error_response
from app.services.comment_service import CommentService
from app.utils.comment_tree import CommentSort

router = APIRouter(prefix="/api", tags=["comments"])


@router.get("/posts/{post_id}/comments", response_model=BaseResponse[CommentListResponse], responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}})
async def list_comments(
    post_id: UUID,
    sort: CommentSort = Query(CommentSort.NEWEST),
    expanded: bool = False,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        threads = await CommentService.list_threads(db, post_id, current_user, sort, expanded)
        return BaseResponse(success=True, message="Comments fetched", data=threads)
    except HTTPException as e:
        return error_response(e)


@router.post(
    "/posts/{post_id}/comments",
    response_model=BaseResponse[Union[CommentThreadResponse, CommentNodeResponse]],
    status_code=201,
    responses={400: {"model": ErrorBody}, 403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def add_comment(
    post_id: UUID,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        comment = await CommentService.add_comment(db, current_user, post_id, data.content, data.parent_id)
        message = "Reply added" if data.parent_id else "Comment added"
        return BaseResponse(success=True, message=message, data=comment)
    except HTTPException as e:
        return error_response(e)


@router.delete("/comments/{comment_id}", response_model=BaseResponse[dict], responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}})
async def delete_comment(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        removed = await CommentService.delete_comment(db, current_user, comment_id)
        return api_response(True, "Comment deleted", {"removed": removed})
    except HTTPException as e:
        return error_response(e)


@router.post("/comments/{comment_id}/like", response_model=BaseResponse[LikeState], responses={404: {"model": ErrorBody}})
async def like_comment(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        state = await CommentService.set_like(db, current_user, comment_id, True)
        return BaseResponse(success=True, message="Comment liked", data=LikeState(**state))
    except HTTPException as e:
        return error_response(e)


@router.delete("/comments/{comment_id}/like", response_model=BaseResponse[LikeState], responses={404: {"model": ErrorBody}})
async def unlike_comment(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        state = await CommentService.set_like(db, current_user, comment_id, False)
        return BaseResponse(success=True, message="Comment unliked", data=LikeState(**state))
    except HTTPException as e:
        return error_response(e)


@router.post("/comments/{comment_id}/like/toggle", response_model=BaseResponse[LikeState], responses={404: {"model": ErrorBody}})
async def toggle_comment_like(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        state = await CommentService.toggle_like(db, current_user, comment_id)
        return BaseResponse(success=True, message="Like toggled", data=LikeState(**state))
    except HTTPException as e:
        return error_response(e)
