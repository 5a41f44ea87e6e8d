"""Redis client management."""

import functools
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from nudgepush.core.config import get_settings
from nudgepush.core.errors import StoreError

T = TypeVar("T")

# Global connection pool
_pool: redis.ConnectionPool | None = None


async def init_redis_pool() -> None:
    """Initialize Redis connection pool."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=20,
        )


async def close_redis_pool() -> None:
    """Close Redis connection pool."""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


def get_redis() -> Redis:
    """Get Redis client from pool.

    Raises:
        RuntimeError: If pool not initialized
    """
    if _pool is None:
        raise RuntimeError("Redis pool not initialized. Call init_redis_pool() first.")
    return redis.Redis(connection_pool=_pool)


@asynccontextmanager
async def redis_client() -> AsyncIterator[Redis]:
    """Context manager for a pooled Redis client."""
    client = get_redis()
    try:
        yield client
    finally:
        await client.aclose()


def store_operation(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Re-raise Redis failures from a store method as StoreError."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except RedisError as e:
            raise StoreError(f"{func.__qualname__} failed: {e}") from e

    return wrapper


def encode_fields(values: dict[str, Any]) -> dict[str, str]:
    """Encode a JSON-compatible mapping as hash fields, one JSON value per field."""
    return {key: json.dumps(value) for key, value in values.items()}


def decode_fields(fields: dict[str, str]) -> dict[str, Any]:
    """Inverse of encode_fields."""
    return {key: json.loads(value) for key, value in fields.items()}


# Key prefixes
class RedisKeys:
    """Redis key patterns."""

    # Users
    USER_PROFILE = "nudgepush:users:{user_id}"
    USER_ALL = "nudgepush:users:all"
    USER_SETTINGS = "nudgepush:users:{user_id}:settings"
    USER_TOKENS = "nudgepush:users:{user_id}:tokens"
    MORNING_MANNA_INDEX = "nudgepush:settings:morning_manna:{time}"

    # Nudges
    NUDGE = "nudgepush:nudges:{nudge_id}"
    SENDER_STATS = "nudgepush:stats:{sender_id}:{day}"
    SENDER_STATS_TARGETS = "nudgepush:stats:{sender_id}:{day}:to"

    # Reactions
    REACTION = "nudgepush:reactions:{reaction_id}"
    REACTION_PENDING = "nudgepush:reactions:pending"

    @classmethod
    def user_profile(cls, user_id: str) -> str:
        return cls.USER_PROFILE.format(user_id=user_id)

    @classmethod
    def user_settings(cls, user_id: str) -> str:
        return cls.USER_SETTINGS.format(user_id=user_id)

    @classmethod
    def user_tokens(cls, user_id: str) -> str:
        return cls.USER_TOKENS.format(user_id=user_id)

    @classmethod
    def morning_manna_index(cls, time: str) -> str:
        return cls.MORNING_MANNA_INDEX.format(time=time)

    @classmethod
    def nudge(cls, nudge_id: str) -> str:
        return cls.NUDGE.format(nudge_id=nudge_id)

    @classmethod
    def sender_stats(cls, sender_id: str, day: str) -> str:
        return cls.SENDER_STATS.format(sender_id=sender_id, day=day)

    @classmethod
    def sender_stats_targets(cls, sender_id: str, day: str) -> str:
        return cls.SENDER_STATS_TARGETS.format(sender_id=sender_id, day=day)

    @classmethod
    def reaction(cls, reaction_id: str) -> str:
        return cls.REACTION.format(reaction_id=reaction_id)
