"""Per-sender daily nudge statistics storage."""

from datetime import date, datetime, timedelta
from typing import Callable

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline

from nudgepush.core.config import get_settings
from nudgepush.models.nudge import RateDecision
from nudgepush.models.stats import SenderDailyStats
from nudgepush.storage.redis_client import RedisKeys, get_redis, store_operation

# Receives (today, previous day) stats and decides whether to accept
DecisionFn = Callable[[SenderDailyStats, SenderDailyStats], RateDecision]


class StatsStore:
    """SenderDailyStats storage.

    Each (sender, day) pair uses two hashes: one for the counter and
    ``updated_at``, one mapping target user IDs to the ISO timestamp of the
    latest accepted nudge.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis
        self._settings = get_settings()

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    @store_operation
    async def get(self, sender_id: str, day: date) -> SenderDailyStats:
        """Get stats for a sender and day. Absent records read as zero."""
        return await self._read(self.redis, sender_id, day)

    @store_operation
    async def get_window(self, sender_id: str, day: date) -> tuple[SenderDailyStats, SenderDailyStats]:
        """Get stats for ``day`` and the day before it."""
        today = await self._read(self.redis, sender_id, day)
        previous = await self._read(self.redis, sender_id, day - timedelta(days=1))
        return today, previous

    @store_operation
    async def increment_and_set(
        self,
        sender_id: str,
        day: date,
        target_id: str,
        now: datetime,
    ) -> None:
        """Count one nudge and record the send time to the target.

        The increment is a field-level HINCRBY, so concurrent writers never
        lose counts.
        """
        async with self.redis.pipeline(transaction=True) as pipe:
            self._queue_increment(pipe, sender_id, day, target_id, now)
            await pipe.execute()

    @store_operation
    async def reserve(
        self,
        sender_id: str,
        day: date,
        target_id: str,
        now: datetime,
        decide: DecisionFn,
    ) -> RateDecision:
        """Read, decide and increment in one optimistic transaction.

        The stats keys are WATCHed while ``decide`` runs; a concurrent write
        aborts EXEC and the whole read-decide-write cycle is retried, so two
        racing nudges cannot both take the last slot.
        """
        yesterday = day - timedelta(days=1)
        watched = [
            RedisKeys.sender_stats(sender_id, day.isoformat()),
            RedisKeys.sender_stats_targets(sender_id, day.isoformat()),
            RedisKeys.sender_stats_targets(sender_id, yesterday.isoformat()),
        ]

        async def attempt(pipe: Pipeline) -> RateDecision:
            today = await self._read(pipe, sender_id, day)
            previous = await self._read(pipe, sender_id, yesterday)
            decision = decide(today, previous)
            pipe.multi()
            if decision.allowed:
                self._queue_increment(pipe, sender_id, day, target_id, now)
            return decision

        return await self.redis.transaction(attempt, *watched, value_from_callable=True)

    async def _read(self, client: Redis | Pipeline, sender_id: str, day: date) -> SenderDailyStats:
        counters = await client.hgetall(RedisKeys.sender_stats(sender_id, day.isoformat()))
        targets = await client.hgetall(RedisKeys.sender_stats_targets(sender_id, day.isoformat()))
        updated_at = counters.get("updated_at")
        return SenderDailyStats(
            sender_id=sender_id,
            day=day,
            nudges_sent=int(counters.get("nudges_sent", 0)),
            nudges_to={target: datetime.fromisoformat(ts) for target, ts in targets.items()},
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    def _queue_increment(
        self,
        pipe: Pipeline,
        sender_id: str,
        day: date,
        target_id: str,
        now: datetime,
    ) -> None:
        stats_key = RedisKeys.sender_stats(sender_id, day.isoformat())
        targets_key = RedisKeys.sender_stats_targets(sender_id, day.isoformat())
        ttl = int(timedelta(days=self._settings.stats_retention_days).total_seconds())

        pipe.hincrby(stats_key, "nudges_sent", 1)
        pipe.hset(stats_key, "updated_at", now.isoformat())
        pipe.hset(targets_key, target_id, now.isoformat())
        pipe.expire(stats_key, ttl)
        pipe.expire(targets_key, ttl)
