"""Reaction storage for batched reaction pushes."""

from datetime import datetime

from redis.asyncio import Redis

from nudgepush.models.reaction import Reaction
from nudgepush.storage.redis_client import (
    RedisKeys,
    decode_fields,
    encode_fields,
    get_redis,
    store_operation,
)


class ReactionStore:
    """Reactions as Redis hashes plus a pending set scored by creation time."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    @store_operation
    async def add(self, reaction: Reaction) -> None:
        fields = reaction.model_dump(mode="json", exclude={"id"})
        await self.redis.hset(RedisKeys.reaction(reaction.id), mapping=encode_fields(fields))
        if not reaction.notified:
            await self.redis.zadd(
                RedisKeys.REACTION_PENDING,
                {reaction.id: reaction.created_at.timestamp()},
            )

    @store_operation
    async def get(self, reaction_id: str) -> Reaction | None:
        fields = await self.redis.hgetall(RedisKeys.reaction(reaction_id))
        if not fields:
            return None
        return Reaction.model_validate({"id": reaction_id, **decode_fields(fields)})

    @store_operation
    async def list_pending_since(self, since: datetime) -> list[Reaction]:
        """Unnotified reactions created strictly after ``since``, oldest first."""
        reaction_ids = await self.redis.zrangebyscore(
            RedisKeys.REACTION_PENDING,
            f"({since.timestamp()}",
            "+inf",
        )
        reactions = []
        for reaction_id in reaction_ids:
            reaction = await self.get(reaction_id)
            if reaction and not reaction.notified:
                reactions.append(reaction)
        return reactions

    @store_operation
    async def mark_notified(self, reaction_ids: list[str]) -> None:
        if not reaction_ids:
            return
        async with self.redis.pipeline(transaction=True) as pipe:
            for reaction_id in reaction_ids:
                pipe.hset(RedisKeys.reaction(reaction_id), "notified", "true")
            pipe.zrem(RedisKeys.REACTION_PENDING, *reaction_ids)
            await pipe.execute()
