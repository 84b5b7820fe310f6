import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.exceptions import AuthenticationError
from app.middlewares.auth_middleware import get_current_token, get_current_user
from app.middlewares.logging_middleware import UserActivityLogger
from app.models.user import User
from app.schemas.response import BaseResponse, ErrorBody, api_response, error_response
from app.schemas.user_schemas import (
    AuthResponse,
    RefreshRequest,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from app.services.user_service import UserService
from app.utils.jwt import (
    blacklist_token,
    create_token_pair,
    is_refresh_token_payload,
    is_token_blacklisted,
    seconds_until_expiry,
    verify_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=BaseResponse[AuthResponse], status_code=201, responses={409: {"model": ErrorBody}})
async def register(data: UserRegister, request: Request, db: AsyncSession = Depends(get_db)):
    try:
        user = await UserService.register_user(db, data)
        tokens = create_token_pair(user.id, user.role)
        await UserActivityLogger.log_authentication_event(str(user.id), "register", True, _client_ip(request))
        return BaseResponse(
            success=True,
            message="User registered successfully",
            data=AuthResponse(user=UserResponse.model_validate(user), tokens=TokenResponse(**tokens)),
        )
    except HTTPException as e:
        return error_response(e)


@router.post("/login", response_model=BaseResponse[AuthResponse], responses={401: {"model": ErrorBody}})
async def login(data: UserLogin, request: Request, db: AsyncSession = Depends(get_db)):
    try:
        user = await UserService.authenticate_user(db, data.email, data.password)
        tokens = create_token_pair(user.id, user.role)
        await UserActivityLogger.log_authentication_event(str(user.id), "login", True, _client_ip(request))
        return BaseResponse(
            success=True,
            message="Login successful",
            data=AuthResponse(user=UserResponse.model_validate(user), tokens=TokenResponse(**tokens)),
        )
    except HTTPException as e:
        await UserActivityLogger.log_authentication_event(
            None, "login", False, _client_ip(request), {"email": data.email}
        )
        return error_response(e)


@router.post("/refresh", response_model=BaseResponse[TokenResponse], responses={401: {"model": ErrorBody}})
async def refresh(data: RefreshRequest, db: AsyncSession = Depends(get_db)):
    try:
        payload = verify_token(data.refresh_token)
        if not is_refresh_token_payload(payload):
            raise AuthenticationError("Invalid refresh token")
        if await is_token_blacklisted(data.refresh_token):
            raise AuthenticationError("Refresh token has been revoked")

        user = await UserService.get_profile(db, payload.get("sub"))
        if user is None or not user.is_active:
            raise AuthenticationError("Invalid refresh token")

        # Refresh tokens are single use
        await blacklist_token(data.refresh_token, seconds_until_expiry(payload))
        return BaseResponse(
            success=True,
            message="Token refreshed",
            data=TokenResponse(**create_token_pair(user.id, user.role)),
        )
    except HTTPException as e:
        return error_response(e)


@router.get("/verify", response_model=BaseResponse[UserResponse], responses={401: {"model": ErrorBody}})
async def verify(current_user: User = Depends(get_current_user)):
    return api_response(True, "Token is valid", UserResponse.model_validate(current_user).model_dump(mode="json"))


@router.post("/logout", response_model=BaseResponse[None], responses={401: {"model": ErrorBody}})
async def logout(
    token: str = Depends(get_current_token),
    current_user: User = Depends(get_current_user),
):
    payload = verify_token(token) or {}
    await blacklist_token(token, seconds_until_expiry(payload))
    logger.info(f"User {current_user.id} logged out")
    return api_response(True, "Logged out successfully")
