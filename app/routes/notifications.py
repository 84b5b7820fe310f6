from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.config import settings
from app.database import get_db
from app.middlewares.auth_middleware import get_current_user
from app.models.user import User
from app.schemas.notification_schemas import NotificationResponse, PaginatedNotifications, UnreadCount
from app.schemas.pagination import Pagination
from app.schemas.response import BaseResponse, ErrorBody, api_response, error_response
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=BaseResponse[PaginatedNotifications])
async def list_notifications(
    page: int = Query(1, ge=1),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    unread_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    pagination = Pagination(page=page, size=size)
    notifications, total = await NotificationService.list_for_user(
        db, current_user.id, pagination.offset, pagination.size, unread_only
    )
    unread = await NotificationService.unread_count(db, current_user.id)
    return BaseResponse(
        success=True,
        message="Notifications fetched",
        data=PaginatedNotifications(
            total=total,
            unread=unread,
            page=page,
            size=size,
            items=[NotificationResponse.model_validate(n) for n in notifications],
        ),
    )


@router.get("/unread-count", response_model=BaseResponse[UnreadCount])
async def unread_count(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    count = await NotificationService.unread_count(db, current_user.id)
    return BaseResponse(success=True, message="Unread count fetched", data=UnreadCount(count=count))


@router.patch("/mark-all-read", response_model=BaseResponse[dict])
async def mark_all_read(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    updated = await NotificationService.mark_all_read(db, current_user.id)
    return api_response(True, "All notifications marked as read", {"updated": updated})


@router.patch("/{notification_id}/read", response_model=BaseResponse[NotificationResponse], responses={404: {"model": ErrorBody}})
async def mark_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        notification = await NotificationService.mark_read(db, current_user.id, notification_id)
        return BaseResponse(
            success=True,
            message="Notification marked as read",
            data=NotificationResponse.model_validate(notification),
        )
    except HTTPException as e:
        return error_response(e)


@router.delete("/{notification_id}", response_model=BaseResponse[None], responses={404: {"model": ErrorBody}})
async def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        await NotificationService.delete(db, current_user.id, notification_id)
        return api_response(True, "Notification deleted")
    except HTTPException as e:
        return error_response(e)
