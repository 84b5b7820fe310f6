from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.database import get_db
from app.exceptions import NotFoundError
from app.middlewares.auth_middleware import get_current_user, require_admin, require_creator
from app.middlewares.logging_middleware import UserActivityLogger
from app.models.user import User
from app.schemas.payout_schemas import (
    EarningsResponse,
    MonthlyPayoutRun,
    PayoutResponse,
    PayoutSettingsResponse,
    PayoutSettingsUpdate,
    PayoutStats,
)
from app.schemas.response import BaseResponse, ErrorBody, error_response
from app.services.payout_service import PayoutService

router = APIRouter(prefix="/api/payouts", tags=["payouts"])


@router.get(
    "/creator/{creator_id}/current-earnings",
    response_model=BaseResponse[EarningsResponse],
    responses={403: {"model": ErrorBody}},
)
async def current_earnings(
    creator_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        earnings = await PayoutService.current_earnings(db, current_user, creator_id)
        return BaseResponse(success=True, message="Current earnings fetched", data=EarningsResponse(**earnings))
    except HTTPException as e:
        return error_response(e)


@router.get(
    "/creator/{creator_id}/history",
    response_model=BaseResponse[List[PayoutResponse]],
    responses={403: {"model": ErrorBody}},
)
async def payout_history(
    creator_id: UUID,
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        payouts = await PayoutService.history(db, current_user, creator_id, limit)
        return BaseResponse(
            success=True,
            message="Payout history fetched",
            data=[PayoutResponse.model_validate(p) for p in payouts],
        )
    except HTTPException as e:
        return error_response(e)


@router.get(
    "/creator/{creator_id}/stats",
    response_model=BaseResponse[PayoutStats],
    responses={403: {"model": ErrorBody}},
)
async def creator_payout_stats(
    creator_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        PayoutService.ensure_can_view(current_user, creator_id)
        stats = await PayoutService.stats(db, creator_id)
        return BaseResponse(success=True, message="Payout stats fetched", data=PayoutStats(**stats))
    except HTTPException as e:
        return error_response(e)


@router.get(
    "/settings",
    response_model=BaseResponse[Optional[PayoutSettingsResponse]],
    responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def get_payout_settings(
    current_user: User = Depends(require_creator),
    db: AsyncSession = Depends(get_db)
):
    try:
        payout_settings = await PayoutService.get_settings(db, current_user.id)
        if payout_settings is None:
            raise NotFoundError("Payout settings not configured")
        return BaseResponse(
            success=True,
            message="Payout settings fetched",
            data=PayoutSettingsResponse.model_validate(payout_settings),
        )
    except HTTPException as e:
        return error_response(e)


@router.put(
    "/settings",
    response_model=BaseResponse[PayoutSettingsResponse],
    responses={403: {"model": ErrorBody}},
)
async def update_payout_settings(
    data: PayoutSettingsUpdate,
    current_user: User = Depends(require_creator),
    db: AsyncSession = Depends(get_db)
):
    try:
        payout_settings = await PayoutService.save_settings(db, current_user, data)
        return BaseResponse(
            success=True,
            message="Payout settings saved",
            data=PayoutSettingsResponse.model_validate(payout_settings),
        )
    except HTTPException as e:
        return error_response(e)


@router.post(
    "/admin/process-monthly",
    response_model=BaseResponse[MonthlyPayoutRun],
    responses={403: {"model": ErrorBody}},
)
async def process_monthly_payouts(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Settle last month's earnings now instead of waiting for the monthly job."""
    try:
        processed = await PayoutService.process_monthly_payouts(db)
        await UserActivityLogger.log_user_action(str(admin.id), "payouts_processed", None, {"processed": processed})
        stats = await PayoutService.stats(db)
        return BaseResponse(
            success=True,
            message="Monthly payouts processed",
            data=MonthlyPayoutRun(processed=processed, stats=PayoutStats(**stats)),
        )
    except HTTPException as e:
        return error_response(e)


@router.get("/admin/stats", response_model=BaseResponse[PayoutStats], responses={403: {"model": ErrorBody}})
async def platform_payout_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    stats = await PayoutService.stats(db)
    return BaseResponse(success=True, message="Payout stats fetched", data=PayoutStats(**stats))
