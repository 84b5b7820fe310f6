from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from app.database import get_db
from app.exceptions import AuthorizationError, BusinessLogicError
from app.middlewares.auth_middleware import get_current_user
from app.models.subscription import SubscriptionStatus
from app.models.user import User
from app.schemas.response import BaseResponse, ErrorBody, api_response, error_response
from app.schemas.subscription_schemas import (
    DowngradeResponse,
    PendingChangeResponse,
    SubscriptionChangeResponse,
    SubscriptionCreate,
    SubscriptionOverview,
    SubscriptionResponse,
    SubscriptionUpdate,
    TierChangeRequest,
    UpgradeResponse,
)
from app.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


def _ensure_self_or_admin(user: User, user_id: UUID) -> None:
    if user.id != user_id and not user.is_admin:
        raise AuthorizationError("You can only view your own subscriptions")


@router.post(
    "",
    response_model=BaseResponse[SubscriptionResponse],
    status_code=201,
    responses={402: {"model": ErrorBody}, 404: {"model": ErrorBody}, 409: {"model": ErrorBody}},
)
async def subscribe(
    data: SubscriptionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Subscribe to a free tier; paid tiers go through /api/payments/initialize."""
    try:
        subscription = await SubscriptionService.subscribe_free(db, current_user, data.creator_id, data.tier_id)
        return BaseResponse(
            success=True,
            message="Subscribed successfully",
            data=SubscriptionResponse.model_validate(subscription),
        )
    except HTTPException as e:
        return error_response(e)


@router.get("/user/{user_id}", response_model=BaseResponse[List[SubscriptionOverview]], responses={403: {"model": ErrorBody}})
async def list_user_subscriptions(
    user_id: UUID,
    include_inactive: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Subscriptions with their tier options, pending changes and recent history."""
    try:
        _ensure_self_or_admin(current_user, user_id)
        overview = await SubscriptionService.overview_for_fan(db, user_id, include_inactive)
        return BaseResponse(
            success=True,
            message="Subscriptions fetched",
            data=[SubscriptionOverview.from_overview(item) for item in overview],
        )
    except HTTPException as e:
        return error_response(e)


@router.get(
    "/user/{user_id}/creator/{creator_id}",
    response_model=BaseResponse[Optional[SubscriptionResponse]],
    responses={403: {"model": ErrorBody}},
)
async def get_creator_subscription(
    user_id: UUID,
    creator_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        _ensure_self_or_admin(current_user, user_id)
        subscription = await SubscriptionService.get_for_fan_and_creator(db, user_id, creator_id)
        if subscription is None:
            return api_response(True, "No subscription to this creator", None)
        return BaseResponse(
            success=True,
            message="Subscription fetched",
            data=SubscriptionResponse.model_validate(subscription),
        )
    except HTTPException as e:
        return error_response(e)


@router.put(
    "/{subscription_id}",
    response_model=BaseResponse[SubscriptionResponse],
    responses={400: {"model": ErrorBody}, 403: {"model": ErrorBody}, 404: {"model": ErrorBody}, 409: {"model": ErrorBody}},
)
async def update_subscription(
    subscription_id: UUID,
    data: SubscriptionUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        if data.status is None and data.auto_renew is None:
            raise BusinessLogicError("Nothing to update")

        subscription = None
        if data.status == SubscriptionStatus.PAUSED.value:
            subscription = await SubscriptionService.pause(db, current_user, subscription_id)
        elif data.status == SubscriptionStatus.ACTIVE.value:
            subscription = await SubscriptionService.resume(db, current_user, subscription_id)
        if data.auto_renew is not None and data.status != SubscriptionStatus.PAUSED.value:
            subscription = await SubscriptionService.set_auto_renew(db, current_user, subscription_id, data.auto_renew)

        return BaseResponse(
            success=True,
            message="Subscription updated",
            data=SubscriptionResponse.model_validate(subscription),
        )
    except HTTPException as e:
        return error_response(e)


@router.put(
    "/{subscription_id}/cancel",
    response_model=BaseResponse[SubscriptionResponse],
    responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}, 409: {"model": ErrorBody}},
)
async def cancel_subscription(
    subscription_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        subscription = await SubscriptionService.cancel(db, current_user, subscription_id)
        return BaseResponse(
            success=True,
            message="Subscription cancelled",
            data=SubscriptionResponse.model_validate(subscription),
        )
    except HTTPException as e:
        return error_response(e)


@router.post(
    "/{subscription_id}/upgrade",
    response_model=BaseResponse[UpgradeResponse],
    responses={400: {"model": ErrorBody}, 403: {"model": ErrorBody}, 404: {"model": ErrorBody}, 409: {"model": ErrorBody}},
)
async def upgrade_subscription(
    subscription_id: UUID,
    data: TierChangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        result = await SubscriptionService.upgrade(db, current_user, subscription_id, data.new_tier_id)
        result["subscription"] = SubscriptionResponse.model_validate(result["subscription"])
        message = "Payment required to complete upgrade" if result["requires_payment"] else "Subscription upgraded"
        return BaseResponse(success=True, message=message, data=UpgradeResponse(**result))
    except HTTPException as e:
        return error_response(e)


@router.post(
    "/{subscription_id}/schedule-downgrade",
    response_model=BaseResponse[DowngradeResponse],
    responses={400: {"model": ErrorBody}, 403: {"model": ErrorBody}, 404: {"model": ErrorBody}, 409: {"model": ErrorBody}},
)
async def schedule_downgrade(
    subscription_id: UUID,
    data: TierChangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        result = await SubscriptionService.schedule_downgrade(db, current_user, subscription_id, data.new_tier_id)
        result["subscription"] = SubscriptionResponse.model_validate(result["subscription"])
        return BaseResponse(success=True, message="Downgrade scheduled", data=DowngradeResponse(**result))
    except HTTPException as e:
        return error_response(e)


@router.get(
    "/{subscription_id}/pending-changes",
    response_model=BaseResponse[List[PendingChangeResponse]],
    responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def list_pending_changes(
    subscription_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        changes = await SubscriptionService.list_pending_changes(db, current_user, subscription_id)
        return BaseResponse(
            success=True,
            message="Pending changes fetched",
            data=[PendingChangeResponse.model_validate(c) for c in changes],
        )
    except HTTPException as e:
        return error_response(e)


@router.delete(
    "/pending-changes/{change_id}",
    response_model=BaseResponse[PendingChangeResponse],
    responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def cancel_pending_change(
    change_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        change = await SubscriptionService.cancel_pending_change(db, current_user, change_id)
        return BaseResponse(
            success=True,
            message="Pending change cancelled",
            data=PendingChangeResponse.model_validate(change),
        )
    except HTTPException as e:
        return error_response(e)


@router.get(
    "/{subscription_id}/history",
    response_model=BaseResponse[List[SubscriptionChangeResponse]],
    responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def subscription_history(
    subscription_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        changes = await SubscriptionService.history(db, current_user, subscription_id)
        return BaseResponse(
            success=True,
            message="History fetched",
            data=[SubscriptionChangeResponse.model_validate(c) for c in changes],
        )
    except HTTPException as e:
        return error_response(e)
