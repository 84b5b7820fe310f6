import logging
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError
from typing import Optional, List, Tuple
from uuid import UUID

from app.exceptions import AuthenticationError, AuthorizationError, ConflictError, NotFoundError
from app.models.user import User, UserStatus
from app.schemas.user_schemas import UserRegister, UserUpdate, PasswordChange
from app.utils.password import hash_password, verify_password
from app.utils.time_utils import utcnow

Logger = logging.getLogger(__name__)


class UserService:
    @staticmethod
    async def register_user(db: AsyncSession, user_data: UserRegister) -> User:
        """
        Register a new fan or creator account.
        """
        email = user_data.email.lower()
        try:
            # 1. Validate email uniqueness
            result = await db.execute(select(User).where(func.lower(User.email) == email))
            if result.scalar_one_or_none():
                raise ConflictError("Email already registered")

            # 2. Validate username uniqueness
            result = await db.execute(select(User).where(User.username == user_data.username))
            if result.scalar_one_or_none():
                raise ConflictError("Username already taken")

            # 3. Create user
            user = User(
                username=user_data.username,
                email=email,
                password_hash=hash_password(user_data.password),
                role=user_data.role,
                display_name=user_data.display_name,
            )
            db.add(user)
            await db.commit()
            await db.refresh(user)

            Logger.info(f"User registered successfully: {user.username} ({user.role})")
            return user

        except ConflictError:
            await db.rollback()
            raise
        except IntegrityError:
            await db.rollback()
            raise ConflictError("Registration failed due to data conflict")

    @staticmethod
    async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
        """Authenticate a user by email and password."""
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        user = result.scalar_one_or_none()
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        if not user.is_active:
            raise AuthorizationError("Account suspended")
        return user

    @staticmethod
    async def get_profile(db: AsyncSession, user_id: UUID) -> Optional[User]:
        if isinstance(user_id, str):
            try:
                user_id = UUID(user_id)
            except ValueError:
                return None
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_404(db: AsyncSession, user_id: UUID) -> User:
        user = await UserService.get_profile(db, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    async def update_profile(db: AsyncSession, user_id: UUID, data: UserUpdate) -> User:
        user = await UserService.get_or_404(db, user_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def change_password(db: AsyncSession, user_id: UUID, data: PasswordChange) -> None:
        user = await UserService.get_profile(db, user_id)
        if not user or not verify_password(data.old_password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        user.password_hash = hash_password(data.new_password)
        await db.commit()

    @staticmethod
    async def set_status(db: AsyncSession, user_id: UUID, status: UserStatus) -> User:
        user = await UserService.get_or_404(db, user_id)
        user.status = UserStatus(status).value
        await db.commit()
        await db.refresh(user)
        Logger.info(f"User {user_id} status set to {user.status}")
        return user

    @staticmethod
    async def set_online(db: AsyncSession, user_id: UUID, online: bool) -> None:
        user = await UserService.get_profile(db, user_id)
        if not user:
            return
        user.is_online = online
        user.last_seen = utcnow()
        await db.commit()

    @staticmethod
    async def list_users(
        db: AsyncSession,
        offset: int = 0,
        limit: int = 20,
        search: Optional[str] = None,
        role: Optional[str] = None,
    ) -> Tuple[List[User], int]:
        query = select(User)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(func.lower(User.username).like(pattern), func.lower(User.email).like(pattern)))
        if role:
            query = query.where(User.role == role)

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
        result = await db.execute(query.order_by(User.created_at.desc()).offset(offset).limit(limit))
        return list(result.scalars().all()), total
