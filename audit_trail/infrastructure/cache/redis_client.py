# audit_trail/infrastructure/cache/redis_client.py

import redis.asyncio as redis


class RedisClient:
    def __init__(self, redis_url: str):
        self.client = redis.from_url(
            redis_url,
            decode_responses=True,
        )

    async def incr(self, key: str) -> int:
        """Increment key, return new value."""
        return await self.client.incr(key)

    async def expire(self, key: str, seconds: int) -> None:
        """Set TTL on key."""
        await self.client.expire(key, seconds)

    async def close(self) -> None:
        await self.client.aclose()
