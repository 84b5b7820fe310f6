from sqlalchemy import Boolean, Column, String, DateTime, Text, Uuid
import uuid
import enum
from app.database import Base
from app.utils.time_utils import utcnow


class UserRole(str, enum.Enum):
    FAN = "fan"
    CREATOR = "creator"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.FAN.value)
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)
    display_name = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)
    avatar = Column(String, nullable=True)
    comments_enabled = Column(Boolean, nullable=False, default=True)
    is_online = Column(Boolean, nullable=False, default=False)
    last_seen = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def is_creator(self) -> bool:
        return self.role == UserRole.CREATOR.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def public_name(self) -> str:
        return self.display_name or self.username
