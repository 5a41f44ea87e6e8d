"""Push token registry."""

from redis.asyncio import Redis

from nudgepush.storage.redis_client import RedisKeys, get_redis, store_operation


class TokenRegistry:
    """Registered FCM tokens per user, stored as a Redis set."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    @store_operation
    async def list(self, user_id: str) -> list[str]:
        """List a user's tokens. Possibly empty."""
        tokens = await self.redis.smembers(RedisKeys.user_tokens(user_id))
        return sorted(t for t in tokens if t)

    @store_operation
    async def add(self, user_id: str, token: str) -> bool:
        """Register a token. Returns False if it was already registered."""
        return bool(await self.redis.sadd(RedisKeys.user_tokens(user_id), token))

    @store_operation
    async def remove(self, user_id: str, token: str) -> bool:
        """Unregister a token. Returns False if it was not registered."""
        return bool(await self.redis.srem(RedisKeys.user_tokens(user_id), token))
