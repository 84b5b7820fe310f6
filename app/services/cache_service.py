from app.redis_client import get_redis, redis_key
from typing import Any, Optional
import json
import logging

logger = logging.getLogger(__name__)


class CacheService:
    @staticmethod
    def _creator_tiers_key(creator_id: str) -> str:
        return redis_key("creator", creator_id, "tiers")

    @staticmethod
    async def get_creator_tiers_cache(creator_id: str) -> Optional[Any]:
        redis = await get_redis()
        data = await redis.get(CacheService._creator_tiers_key(creator_id))
        if data:
            return json.loads(data)
        return None

    @staticmethod
    async def set_creator_tiers_cache(creator_id: str, data: Any, ttl: int = 600) -> None:
        redis = await get_redis()
        await redis.set(CacheService._creator_tiers_key(creator_id), json.dumps(data, default=str), ex=ttl)

    @staticmethod
    async def invalidate_creator_tiers_cache(creator_id: str) -> None:
        redis = await get_redis()
        await redis.delete(CacheService._creator_tiers_key(creator_id))
        logger.debug(f"Invalidated tier cache for creator {creator_id}")
