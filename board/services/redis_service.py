# board/services/redis_service.py
from typing import List, Optional
from redis.asyncio import Redis
from board.config import settings

class RedisService:
    def __init__(self, redis: Optional[Redis] = None):
        self.redis: Redis = redis if redis is not None else Redis.from_url(settings.redis_url, decode_responses=True)

    async def replace_list(self, key: str, values: List[str], expire: Optional[int] = None):
        """Atomically swap the list at ``key`` for ``values``"""
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            if values:
                pipe.rpush(key, *values)
                if expire:
                    pipe.expire(key, expire)
            await pipe.execute()

    async def pop_head(self, key: str) -> Optional[str]:
        """Remove and return the first element of the list at ``key``"""
        return await self.redis.lpop(key)

    async def length(self, key: str) -> int:
        return await self.redis.llen(key)

    async def delete(self, key: str):
        """Delete a key"""
        await self.redis.delete(key)

    async def set_flag(self, key: str, expire: int):
        """Store a marker at ``key`` that disappears after ``expire`` seconds"""
        await self.redis.set(key, "1", ex=expire)

    async def exists(self, key: str) -> bool:
        return bool(await self.redis.exists(key))

    async def ping(self) -> bool:
        return await self.redis.ping()

    async def close(self):
        """Close the Redis connection"""
        await self.redis.aclose()

_redis_service: Optional[RedisService] = None

def get_redis_service() -> RedisService:
    """Dependency returning the process-wide Redis service"""
    global _redis_service
    if _redis_service is None:
        _redis_service = RedisService()
    return _redis_service
