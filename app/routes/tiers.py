from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from app.database import get_db
from app.middlewares.auth_middleware import require_creator
from app.models.user import User
from app.schemas.response import BaseResponse, ErrorBody, api_response, error_response
from app.schemas.subscription_schemas import TierCreate, TierResponse, TierUpdate
from app.services.tier_service import TierService

router = APIRouter(prefix="/api", tags=["tiers"])


@router.get("/creators/{creator_id}/tiers", response_model=BaseResponse[List[TierResponse]])
async def list_tiers(creator_id: UUID, db: AsyncSession = Depends(get_db)):
    tiers = await TierService.list_creator_tiers(db, creator_id)
    return api_response(True, "Tiers fetched", tiers)


@router.post(
    "/creators/{creator_id}/tiers",
    response_model=BaseResponse[TierResponse],
    status_code=201,
    responses={403: {"model": ErrorBody}, 409: {"model": ErrorBody}},
)
async def create_tier(
    creator_id: UUID,
    data: TierCreate,
    current_user: User = Depends(require_creator),
    db: AsyncSession = Depends(get_db)
):
    try:
        tier = await TierService.create_tier(db, current_user, creator_id, data)
        return BaseResponse(success=True, message="Tier created", data=TierResponse.model_validate(tier))
    except HTTPException as e:
        return error_response(e)


@router.put("/tiers/{tier_id}", response_model=BaseResponse[TierResponse], responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}})
async def update_tier(
    tier_id: UUID,
    data: TierUpdate,
    current_user: User = Depends(require_creator),
    db: AsyncSession = Depends(get_db)
):
    try:
        tier = await TierService.update_tier(db, current_user, tier_id, data)
        return BaseResponse(success=True, message="Tier updated", data=TierResponse.model_validate(tier))
    except HTTPException as e:
        return error_response(e)


@router.delete("/tiers/{tier_id}", response_model=BaseResponse[TierResponse], responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}})
async def deactivate_tier(
    tier_id: UUID,
    current_user: User = Depends(require_creator),
    db: AsyncSession = Depends(get_db)
):
    try:
        tier = await TierService.deactivate_tier(db, current_user, tier_id)
        return BaseResponse(success=True, message="Tier deactivated", data=TierResponse.model_validate(tier))
    except HTTPException as e:
        return error_response(e)
