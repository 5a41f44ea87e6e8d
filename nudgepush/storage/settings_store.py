"""Notification settings storage."""

from redis.asyncio import Redis

from nudgepush.models.user import NotificationSettings, NotificationSettingsUpdate
from nudgepush.storage.redis_client import (
    RedisKeys,
    decode_fields,
    encode_fields,
    get_redis,
    store_operation,
)


class SettingsStore:
    """Per-user notification preferences stored as a Redis hash."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    @store_operation
    async def get(self, user_id: str) -> NotificationSettings:
        """Get resolved settings for a user.

        Missing records and missing fields resolve to their defaults.
        """
        fields = await self.redis.hgetall(RedisKeys.user_settings(user_id))
        if not fields:
            return NotificationSettings()
        return NotificationSettings.model_validate(decode_fields(fields))

    @store_operation
    async def update(self, user_id: str, update: NotificationSettingsUpdate) -> NotificationSettings:
        """Merge a partial update into the stored settings.

        Keeps the morning manna time index in sync.
        """
        previous = await self.get(user_id)
        changes = update.model_dump(exclude_none=True)
        if changes:
            await self.redis.hset(RedisKeys.user_settings(user_id), mapping=encode_fields(changes))

        current = previous.model_copy(update=changes)
        await self._reindex_morning_manna(user_id, previous, current)
        return current

    @store_operation
    async def list_morning_manna_users(self, time: str) -> list[str]:
        """User IDs that scheduled morning manna at the given HH:00 time."""
        members = await self.redis.smembers(RedisKeys.morning_manna_index(time))
        return sorted(members)

    async def _reindex_morning_manna(
        self,
        user_id: str,
        previous: NotificationSettings,
        current: NotificationSettings,
    ) -> None:
        if previous.morning_manna_enabled:
            await self.redis.srem(
                RedisKeys.morning_manna_index(previous.morning_manna_time), user_id
            )
        if current.morning_manna_enabled:
            await self.redis.sadd(
                RedisKeys.morning_manna_index(current.morning_manna_time), user_id
            )
