import redis.asyncio as aioredis
from app.config import settings

KEY_PREFIX = "xclusive"

_redis = None

async def get_redis() -> aioredis.Redis:
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.redis_url, decode_responses=True, max_connections=10)
    return _redis

def redis_key(*parts) -> str:
    """Namespace a key, e.g. redis_key("blacklist", token) -> "xclusive:blacklist:<token>"."""
    return ":".join([KEY_PREFIX, *(str(p) for p in parts)])

async def redis_health_check() -> bool:
    try:
        redis = await get_redis()
        return await redis.ping() is True
    except Exception:
        return False

async def close_redis():
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
