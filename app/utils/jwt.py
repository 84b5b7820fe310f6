import uuid
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from app.config import settings
from app.redis_client import get_redis, redis_key

SECRET_KEY = settings.secret_key
ALGORITHM = settings.algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes
REFRESH_TOKEN_EXPIRE_MINUTES = settings.refresh_token_expire_minutes


def _encode(data: dict, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    # jti keeps two tokens issued in the same second distinct
    to_encode.update({"exp": expire, "type": token_type, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


# Create JWT access token
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(data, "access", expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


# Create refresh token
def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(data, "refresh", expires_delta or timedelta(minutes=REFRESH_TOKEN_EXPIRE_MINUTES))


def create_token_pair(user_id: Any, role: str) -> Dict[str, Any]:
    claims = {"sub": str(user_id), "role": role}
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


# Verify and decode JWT token
def verify_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def is_refresh_token_payload(payload: Optional[Dict[str, Any]]) -> bool:
    return payload is not None and payload.get("type") == "refresh"


def seconds_until_expiry(payload: Dict[str, Any]) -> int:
    exp = payload.get("exp")
    if not exp:
        return 0
    return max(int(exp - datetime.now(timezone.utc).timestamp()), 0)


# Blacklist token in Redis until it would have expired anyway
async def blacklist_token(token: str, expires_in: int) -> None:
    if expires_in <= 0:
        return
    redis = await get_redis()
    await redis.setex(redis_key("blacklist", token), expires_in, "1")


async def is_token_blacklisted(token: str) -> bool:
    redis = await get_redis()
    return await redis.exists(redis_key("blacklist", token)) == 1
