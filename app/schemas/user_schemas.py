from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, constr
from typing import Literal, Optional
from uuid import UUID

from app.models.user import UserRole, UserStatus

USERNAME_PATTERN = r"^[A-Za-z0-9_.]{3,50}$"


class UserRegister(BaseModel):
    username: constr(pattern=USERNAME_PATTERN)
    email: EmailStr
    password: constr(min_length=8)
    role: Literal["fan", "creator"] = "fan"
    display_name: Optional[str] = Field(None, max_length=100)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class UserPublic(BaseModel):
    id: UUID
    username: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    role: UserRole
    is_online: bool = False
    last_seen: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserResponse(UserPublic):
    email: EmailStr
    status: UserStatus
    bio: Optional[str] = None
    comments_enabled: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    user: UserResponse
    tokens: TokenResponse


class UserUpdate(BaseModel):
    display_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    avatar: Optional[str] = None
    comments_enabled: Optional[bool] = None


class PasswordChange(BaseModel):
    old_password: str
    new_password: constr(min_length=8)
