from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID

from app.config import settings
from app.database import get_db
from app.middlewares.auth_middleware import get_current_user, get_optional_user, require_creator
from app.models.user import User
from app.schemas.pagination import Pagination
from app.schemas.post_schemas import LikeState, PaginatedPosts, PostCreate, PostResponse, PostUpdate
from app.schemas.response import BaseResponse, ErrorBody, api_response, error_response
from app.services.post_service import PostService

router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.get("", response_model=BaseResponse[PaginatedPosts])
async def list_posts(
    page: int = Query(1, ge=1),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    creator_id: Optional[UUID] = None,
    subscribed: bool = False,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    pagination = Pagination(page=page, size=size)
    items, total = await PostService.list_feed(
        db, current_user, pagination.offset, pagination.size, creator_id=creator_id, subscribed_only=subscribed
    )
    return BaseResponse(
        success=True,
        message="Posts fetched",
        data=PaginatedPosts(total=total, page=page, size=size, items=items),
    )


@router.get("/{post_id}", response_model=BaseResponse[PostResponse], responses={404: {"model": ErrorBody}})
async def get_post(
    post_id: UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        post = await PostService.get_for_viewer(db, post_id, current_user)
        return BaseResponse(success=True, message="Post fetched", data=post)
    except HTTPException as e:
        return error_response(e)


@router.post("", response_model=BaseResponse[PostResponse], status_code=201, responses={403: {"model": ErrorBody}})
async def create_post(
    data: PostCreate,
    current_user: User = Depends(require_creator),
    db: AsyncSession = Depends(get_db)
):
    try:
        post = await PostService.create_post(db, current_user, data)
        return BaseResponse(
            success=True,
            message="Post created",
            data=PostService.to_response(post, current_user, {}, set()),
        )
    except HTTPException as e:
        return error_response(e)


@router.put("/{post_id}", response_model=BaseResponse[PostResponse], responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}})
async def update_post(
    post_id: UUID,
    data: PostUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        post = await PostService.update_post(db, current_user, post_id, data)
        return BaseResponse(
            success=True,
            message="Post updated",
            data=PostService.to_response(post, current_user, {}, set()),
        )
    except HTTPException as e:
        return error_response(e)


@router.delete("/{post_id}", response_model=BaseResponse[None], responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}})
async def delete_post(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        await PostService.delete_post(db, current_user, post_id)
        return api_response(True, "Post deleted")
    except HTTPException as e:
        return error_response(e)


@router.post("/{post_id}/like", response_model=BaseResponse[LikeState], responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}})
async def like_post(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        state = await PostService.like_post(db, current_user, post_id)
        return BaseResponse(success=True, message="Post liked", data=LikeState(**state))
    except HTTPException as e:
        return error_response(e)


@router.delete("/{post_id}/like", response_model=BaseResponse[LikeState], responses={404: {"model": ErrorBody}})
async def unlike_post(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        state = await PostService.unlike_post(db, current_user, post_id)
        return BaseResponse(success=True, message="Post unliked", data=LikeState(**state))
    except HTTPException as e:
        return error_response(e)
