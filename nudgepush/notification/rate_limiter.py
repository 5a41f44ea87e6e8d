"""Nudge rate limiting: per-sender daily limits and per-target cooldowns."""

from datetime import datetime, timedelta

from nudgepush.core.clock import local_day
from nudgepush.core.config import Settings, get_settings
from nudgepush.models.nudge import RateDecision, RateLimitReason
from nudgepush.models.stats import SenderDailyStats
from nudgepush.models.user import UserRole
from nudgepush.storage.stats_store import StatsStore
from nudgepush.storage.user_store import UserStore


class RateLimiter:
    """Rate limiter for nudges.

    ``evaluate`` is a pure decision over stats; ``check`` and ``reserve``
    load the stats, the latter also counting the nudge atomically on accept.
    """

    def __init__(
        self,
        user_store: UserStore,
        stats_store: StatsStore,
        settings: Settings | None = None,
    ):
        self._users = user_store
        self._stats = stats_store
        self._settings = settings or get_settings()
        self._limits = {
            UserRole.STANDARD: self._settings.nudge_standard_daily_limit,
            UserRole.LEADER: self._settings.nudge_leader_daily_limit,
            UserRole.ADMIN: self._settings.nudge_leader_daily_limit,
        }
        self._cooldown = timedelta(hours=self._settings.nudge_cooldown_hours)

    def daily_limit(self, role: UserRole) -> int:
        return self._limits[role]

    def evaluate(
        self,
        stats: SenderDailyStats,
        role: UserRole,
        to_user_id: str,
        now: datetime,
        previous: SenderDailyStats | None = None,
    ) -> RateDecision:
        """Decide whether a nudge may proceed.

        Args:
            stats: Sender's stats for today
            role: Sender's role
            to_user_id: Nudge target
            now: Current time
            previous: Sender's stats for the previous day, for cooldowns
                that started before midnight

        Returns:
            Accept, or reject with the first failing check
        """
        limit = self.daily_limit(role)
        if stats.nudges_sent >= limit:
            return RateDecision.reject(RateLimitReason.DAILY_LIMIT_EXCEEDED, limit, stats.nudges_sent)

        sent_times = [
            s.last_sent_to(to_user_id) for s in (stats, previous) if s is not None
        ]
        sent_times = [t for t in sent_times if t is not None]
        if sent_times and now - max(sent_times) < self._cooldown:
            return RateDecision.reject(RateLimitReason.COOLDOWN_ACTIVE, limit, stats.nudges_sent)

        return RateDecision.accept(limit, stats.nudges_sent)

    async def check(self, from_user_id: str, to_user_id: str, now: datetime) -> RateDecision:
        """Evaluate against stored stats without changing them."""
        role = await self._users.get_role(from_user_id)
        today, previous = await self._stats.get_window(from_user_id, local_day(now))
        return self.evaluate(today, role, to_user_id, now, previous)

    async def reserve(self, from_user_id: str, to_user_id: str, now: datetime) -> RateDecision:
        """Evaluate and, on accept, count the nudge in one transaction."""
        role = await self._users.get_role(from_user_id)
        return await self._stats.reserve(
            from_user_id,
            local_day(now),
            to_user_id,
            now,
            lambda today, previous: self.evaluate(today, role, to_user_id, now, previous),
        )
