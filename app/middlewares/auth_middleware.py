from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from app.database import get_db
from app.exceptions import AuthenticationError, AuthorizationError
from app.utils.jwt import verify_token, is_token_blacklisted
from app.services.user_service import UserService
from app.models.user import User

security = HTTPBearer(auto_error=False)


async def authenticate_token(db: AsyncSession, token: str) -> User:
    """Resolve an access token to an active user or raise AuthenticationError."""
    payload = verify_token(token)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")
    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")
    if await is_token_blacklisted(token):
        raise AuthenticationError("Token has been revoked")
    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError("Could not validate credentials")
    user = await UserService.get_profile(db, user_id=user_id)
    if user is None:
        raise AuthenticationError("Could not validate credentials")
    if not user.is_active:
        raise AuthorizationError("Account suspended")
    return user


async def get_current_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_current_token),
    db: AsyncSession = Depends(get_db)
) -> User:
    return await authenticate_token(db, token)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """Anonymous browsing is allowed; a bad token is still rejected."""
    if credentials is None or not credentials.credentials:
        return None
    return await authenticate_token(db, credentials.credentials)


async def require_creator(current_user: User = Depends(get_current_user)) -> User:
    if not (current_user.is_creator or current_user.is_admin):
        raise AuthorizationError("Creator account required")
    return current_user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user
