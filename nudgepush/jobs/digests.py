"""Scheduled digest jobs.

Each job is started by an external clock, queries user state, and pushes
through the shared dispatcher. Jobs return the number of users notified.
"""

import random
from collections import defaultdict
from datetime import datetime, timedelta

from redis.asyncio import Redis

from nudgepush.core.clock import local_day, local_now, utcnow
from nudgepush.core.config import get_settings
from nudgepush.core.logging import get_logger
from nudgepush.models.push import PushNotification, PushPriority
from nudgepush.models.reaction import Reaction
from nudgepush.models.user import NotificationCategory
from nudgepush.notification.dispatcher import PushDispatcher
from nudgepush.observability.metrics import DIGEST_RECIPIENTS
from nudgepush.storage.reaction_store import ReactionStore
from nudgepush.storage.redis_client import get_redis
from nudgepush.storage.settings_store import SettingsStore
from nudgepush.storage.token_registry import TokenRegistry
from nudgepush.storage.user_store import UserStore

logger = get_logger(__name__)

MORNING_MANNA_MESSAGES = [
    "Start your morning with the Lord.",
    "Early will I seek thee.",
    "Begin today with the Word.",
    "Thy word is a lamp unto my feet, and a light unto my path.",
]


class DigestJobs:
    """Scheduled pushes: streak warning, morning manna, reactions, weekly summary."""

    def __init__(
        self,
        redis: Redis | None = None,
        dispatcher: PushDispatcher | None = None,
        rng: random.Random | None = None,
    ):
        self._settings = get_settings()
        self._redis = redis or get_redis()
        self._dispatcher = dispatcher or PushDispatcher()
        self._users = UserStore(self._redis)
        self._notification_settings = SettingsStore(self._redis)
        self._tokens = TokenRegistry(self._redis)
        self._reactions = ReactionStore(self._redis)
        self._rng = rng or random.Random()

    async def close(self) -> None:
        await self._dispatcher.close()

    async def streak_warning(self, now: datetime | None = None) -> int:
        """Remind users with a live streak who have not learned today (daily, 21:00)."""
        today = local_day(now)
        sent = 0

        for profile in await self._users.list_profiles():
            streak = profile.streak
            if streak.current_streak <= 0 or streak.last_learned_date == today:
                continue

            notification = PushNotification(
                title="Don't forget today's memorization!",
                body=f"Keep your {streak.current_streak}-day streak going. It only takes a moment!",
            )
            data = {
                "type": "streak_warning",
                "priority": PushPriority.HIGH.value,
                "currentStreak": str(streak.current_streak),
            }
            if await self._push(profile.user_id, NotificationCategory.STREAK_WARNING, notification, data):
                sent += 1

        return self._done("streak_warning", sent)

    async def morning_manna(self, now: datetime | None = None) -> int:
        """Send morning manna to users scheduled for the current hour (hourly)."""
        target_time = f"{local_now(now).hour:02d}:00"
        logger.info("Running morning manna", target_time=target_time)
        sent = 0

        for user_id in await self._notification_settings.list_morning_manna_users(target_time):
            notification = PushNotification(
                title="Morning Manna",
                body=self._rng.choice(MORNING_MANNA_MESSAGES),
            )
            data = {"type": "morning_manna", "priority": PushPriority.HIGH.value}
            if await self._push(user_id, NotificationCategory.MORNING_MANNA, notification, data):
                sent += 1

        return self._done("morning_manna", sent)

    async def reaction_batch(self, now: datetime | None = None) -> int:
        """Summarize recent unnotified reactions per recipient (every 5 minutes).

        Reactions are marked notified whether or not a push went out, so a
        recipient who opted out is not reconsidered on the next run.
        """
        since = (now or utcnow()) - timedelta(minutes=self._settings.reaction_batch_window_minutes)
        reactions = await self._reactions.list_pending_since(since)
        if not reactions:
            logger.debug("No new reactions")
            return 0

        by_user: dict[str, list[Reaction]] = defaultdict(list)
        for reaction in reactions:
            by_user[reaction.to_user_id].append(reaction)

        sent = 0
        for user_id, user_reactions in by_user.items():
            first_name = user_reactions[0].from_user_name or "Someone"
            count = len(user_reactions)
            notification = PushNotification(
                title="You have new reactions",
                body=(
                    f"{first_name} reacted"
                    if count == 1
                    else f"{first_name} and {count - 1} others reacted"
                ),
            )
            data = {
                "type": "reaction_batch",
                "priority": PushPriority.LOW.value,
                "count": str(count),
            }
            if await self._push(user_id, NotificationCategory.REACTION, notification, data):
                sent += 1
            await self._reactions.mark_notified([r.id for r in user_reactions])

        return self._done("reaction_batch", sent)

    async def weekly_summary(self, now: datetime | None = None) -> int:
        """Weekly memorization report for users active in the last 7 days (Sunday 18:00)."""
        week_ago = local_day(now) - timedelta(days=7)
        sent = 0

        for profile in await self._users.list_profiles():
            streak = profile.streak
            if streak.last_learned_date is None or streak.last_learned_date < week_ago:
                continue

            active_days = sum(1 for day in streak.weekly_history if day)
            notification = PushNotification(
                title="This week's memorization report",
                body=(
                    f"You memorized on {active_days} days this week! "
                    f"Current streak: {streak.current_streak} days"
                ),
            )
            data = {
                "type": "weekly_summary",
                "priority": PushPriority.LOW.value,
                "activeDays": str(active_days),
                "currentStreak": str(streak.current_streak),
            }
            if await self._push(profile.user_id, NotificationCategory.WEEKLY_SUMMARY, notification, data):
                sent += 1

        return self._done("weekly_summary", sent)

    async def _push(
        self,
        user_id: str,
        category: NotificationCategory,
        notification: PushNotification,
        data: dict[str, str],
    ) -> bool:
        """Push to a user if the category is enabled and tokens exist."""
        settings = await self._notification_settings.get(user_id)
        if not settings.allows(category):
            return False

        tokens = await self._tokens.list(user_id)
        if not tokens:
            return False

        await self._dispatcher.send(tokens, notification, data)
        return True

    def _done(self, job: str, sent: int) -> int:
        DIGEST_RECIPIENTS.labels(job=job).inc(sent)
        logger.info("Digest job complete", job=job, users=sent)
        return sent
