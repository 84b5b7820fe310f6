from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.config import settings
from app.database import get_db
from app.exceptions import BusinessLogicError
from app.middlewares.auth_middleware import get_current_user, require_admin
from app.middlewares.logging_middleware import UserActivityLogger
from app.models.report import ReportStatus
from app.models.user import User, UserRole
from app.schemas.pagination import PaginatedResponse, Pagination
from app.schemas.payout_schemas import PlatformStats, TopCreator
from app.schemas.report_schemas import (
    BroadcastRequest,
    ReportCreate,
    ReportResponse,
    ReportStatusUpdate,
    UserStatusUpdate,
)
from app.schemas.response import BaseResponse, ErrorBody, api_response, error_response
from app.schemas.user_schemas import UserResponse
from app.services.notification_service import NotificationService
from app.services.payout_service import PayoutService
from app.services.report_service import ReportService
from app.services.user_service import UserService

reports_router = APIRouter(prefix="/api/reports", tags=["reports"])
router = APIRouter(prefix="/api/admin", tags=["admin"])


@reports_router.post(
    "",
    response_model=BaseResponse[ReportResponse],
    status_code=201,
    responses={400: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def create_report(
    data: ReportCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        report = await ReportService.create_report(db, current_user, data)
        return BaseResponse(success=True, message="Report submitted", data=ReportResponse.model_validate(report))
    except HTTPException as e:
        return error_response(e)


@router.get("/reports", response_model=BaseResponse[PaginatedResponse[ReportResponse]], responses={403: {"model": ErrorBody}})
async def list_reports(
    status: Optional[ReportStatus] = None,
    page: int = Query(1, ge=1),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    pagination = Pagination(page=page, size=size)
    reports, total = await ReportService.list_reports(db, status, pagination.offset, pagination.size)
    return BaseResponse(
        success=True,
        message="Reports fetched",
        data=PaginatedResponse[ReportResponse](
            total=total, page=page, size=size, items=[ReportResponse.model_validate(r) for r in reports]
        ),
    )


@router.put(
    "/reports/{report_id}/status",
    response_model=BaseResponse[ReportResponse],
    responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def update_report_status(
    report_id: UUID,
    data: ReportStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        report = await ReportService.update_status(db, admin, report_id, data)
        return BaseResponse(success=True, message="Report updated", data=ReportResponse.model_validate(report))
    except HTTPException as e:
        return error_response(e)


@router.get("/users", response_model=BaseResponse[PaginatedResponse[UserResponse]], responses={403: {"model": ErrorBody}})
async def list_users(
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    page: int = Query(1, ge=1),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    pagination = Pagination(page=page, size=size)
    users, total = await UserService.list_users(
        db, pagination.offset, pagination.size, search, role.value if role else None
    )
    return BaseResponse(
        success=True,
        message="Users fetched",
        data=PaginatedResponse[UserResponse](
            total=total, page=page, size=size, items=[UserResponse.model_validate(u) for u in users]
        ),
    )


@router.put(
    "/users/{user_id}/status",
    response_model=BaseResponse[UserResponse],
    responses={400: {"model": ErrorBody}, 403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def update_user_status(
    user_id: UUID,
    data: UserStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        if user_id == admin.id:
            raise BusinessLogicError("You cannot change your own status")
        user = await UserService.set_status(db, user_id, data.status)
        await UserActivityLogger.log_user_action(
            str(admin.id), "user_status_changed", str(user_id), {"status": user.status}
        )
        return BaseResponse(success=True, message="User status updated", data=UserResponse.model_validate(user))
    except HTTPException as e:
        return error_response(e)


@router.post("/notifications/broadcast", response_model=BaseResponse[dict], responses={403: {"model": ErrorBody}})
async def broadcast_notification(
    data: BroadcastRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    recipients = await NotificationService.broadcast(db, admin.id, data.title, data.message, data.action_url)
    return api_response(True, "Broadcast sent", {"recipients": recipients})


@router.get("/platform-stats", response_model=BaseResponse[PlatformStats], responses={403: {"model": ErrorBody}})
async def platform_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    stats = await PayoutService.platform_stats(db)
    return BaseResponse(success=True, message="Platform stats fetched", data=PlatformStats(**stats))


@router.get("/top-creators", response_model=BaseResponse[List[TopCreator]], responses={403: {"model": ErrorBody}})
async def top_creators(
    limit: int = Query(5, ge=1, le=50),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    creators = await PayoutService.top_creators(db, limit)
    return BaseResponse(success=True, message="Top creators fetched", data=[TopCreator(**c) for c in creators])
