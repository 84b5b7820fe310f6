from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.database import get_db
from app.middlewares.auth_middleware import get_current_user
from app.models.user import User
from app.schemas.response import BaseResponse, ErrorBody, api_response, error_response
from app.schemas.user_schemas import PasswordChange, UserPublic, UserResponse, UserUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=BaseResponse[UserResponse], responses={401: {"model": ErrorBody}})
async def read_users_me(current_user: User = Depends(get_current_user)):
    return api_response(True, "User profile fetched", UserResponse.model_validate(current_user).model_dump(mode="json"))


@router.put("/me", response_model=BaseResponse[UserResponse], responses={401: {"model": ErrorBody}, 404: {"model": ErrorBody}})
async def update_user_me(
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        user = await UserService.update_profile(db, current_user.id, user_update)
        return api_response(True, "Profile updated", UserResponse.model_validate(user).model_dump(mode="json"))
    except HTTPException as e:
        return error_response(e)


@router.post("/me/password", response_model=BaseResponse[None], responses={401: {"model": ErrorBody}})
async def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        await UserService.change_password(db, current_user.id, data)
        return api_response(True, "Password changed")
    except HTTPException as e:
        return error_response(e)


@router.get("/{user_id}", response_model=BaseResponse[UserPublic], responses={404: {"model": ErrorBody}})
async def read_user(user_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        user = await UserService.get_or_404(db, user_id)
        return api_response(True, "User fetched", UserPublic.model_validate(user).model_dump(mode="json"))
    except HTTPException as e:
        return error_response(e)
