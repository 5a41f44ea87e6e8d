"""Nudge record storage."""

from redis.asyncio import Redis

from nudgepush.models.nudge import NudgeEvent, NudgeOutcome, NudgeRecord
from nudgepush.storage.redis_client import (
    RedisKeys,
    decode_fields,
    encode_fields,
    get_redis,
    store_operation,
)


class NudgeStore:
    """Nudge records stored as Redis hashes.

    The input fields are written once on creation; outcome fields are
    merged in by the handler.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    @store_operation
    async def create(self, event: NudgeEvent) -> bool:
        """Store a new nudge record.

        Returns:
            False if a record with this ID already exists
        """
        key = RedisKeys.nudge(event.id)
        fields = encode_fields(event.model_dump(mode="json", exclude={"id"}))
        if not await self.redis.hsetnx(key, "from_user_id", fields.pop("from_user_id")):
            return False
        await self.redis.hset(key, mapping=fields)
        return True

    @store_operation
    async def get(self, nudge_id: str) -> NudgeRecord | None:
        fields = await self.redis.hgetall(RedisKeys.nudge(nudge_id))
        if not fields:
            return None
        return NudgeRecord.model_validate({"id": nudge_id, **decode_fields(fields)})

    @store_operation
    async def write_outcome(self, nudge_id: str, outcome: NudgeOutcome) -> None:
        """Merge outcome fields into the record, overwriting any previous outcome."""
        fields = outcome.model_dump(mode="json", exclude_none=True)
        await self.redis.hset(RedisKeys.nudge(nudge_id), mapping=encode_fields(fields))
