"""Nudge event handler."""

from datetime import datetime

from redis.asyncio import Redis

from nudgepush.core.clock import local_day, utcnow
from nudgepush.core.config import get_settings
from nudgepush.core.errors import StoreError
from nudgepush.core.logging import get_logger
from nudgepush.models.nudge import NudgeEvent, NudgeOutcome, NudgeReason, NudgeStage
from nudgepush.models.push import PushNotification, PushPriority
from nudgepush.models.user import NotificationCategory
from nudgepush.notification.dispatcher import PushDispatcher
from nudgepush.notification.rate_limiter import RateLimiter
from nudgepush.observability.metrics import NUDGES_PROCESSED
from nudgepush.storage.nudge_store import NudgeStore
from nudgepush.storage.redis_client import get_redis
from nudgepush.storage.settings_store import SettingsStore
from nudgepush.storage.stats_store import StatsStore
from nudgepush.storage.token_registry import TokenRegistry
from nudgepush.storage.user_store import UserStore

logger = get_logger(__name__)


class NudgeHandler:
    """Runs a new nudge through rate check, lookups, dispatch and bookkeeping."""

    def __init__(self, redis: Redis | None = None, dispatcher: PushDispatcher | None = None):
        """Initialize handler with storage dependencies.

        Args:
            redis: Redis client, pooled client by default
            dispatcher: Push dispatcher, FCM-backed by default
        """
        self._settings = get_settings()
        self._redis = redis or get_redis()
        self._dispatcher = dispatcher or PushDispatcher()
        self._nudges = NudgeStore(self._redis)
        self._users = UserStore(self._redis)
        self._notification_settings = SettingsStore(self._redis)
        self._tokens = TokenRegistry(self._redis)
        self._stats = StatsStore(self._redis)
        self._rate_limiter = RateLimiter(self._users, self._stats, self._settings)

    async def handle(self, event: NudgeEvent, now: datetime | None = None) -> NudgeOutcome:
        """Process a newly created nudge.

        Stages run strictly in order and stop at the first terminal outcome:
        rate check, settings check, token lookup, dispatch, persist outcome.
        The outcome is always written back to the nudge record.

        Args:
            event: Nudge to process
            now: Processing time, current time by default

        Returns:
            The outcome written to the record

        Raises:
            StoreError: If stats or the nudge record cannot be read or written
        """
        now = now or utcnow()
        log = logger.bind(
            nudge_id=event.id,
            from_user_id=event.from_user_id,
            to_user_id=event.to_user_id,
        )
        log.info("Processing nudge", stage=NudgeStage.RECEIVED.value)

        # Rate check
        reserve = self._settings.nudge_reserve_on_check
        if reserve:
            decision = await self._rate_limiter.reserve(event.from_user_id, event.to_user_id, now)
        else:
            decision = await self._rate_limiter.check(event.from_user_id, event.to_user_id, now)

        if not decision.allowed:
            log.info(
                "Nudge rate limited",
                reason=decision.reason.value,
                nudges_sent=decision.nudges_sent,
                daily_limit=decision.daily_limit,
            )
            return await self._finish(event, NudgeOutcome.rate_limited_by(decision.reason, now))

        # Settings check
        try:
            settings = await self._notification_settings.get(event.to_user_id)
            allowed = settings.allows(NotificationCategory.NUDGE)
        except StoreError as e:
            log.warning("Settings lookup failed", error=str(e))
            allowed = False

        if not allowed:
            log.info("Nudge notifications disabled for user")
            return await self._finish(
                event,
                NudgeOutcome.blocked(NudgeReason.NOTIFICATIONS_DISABLED, NudgeStage.SETTINGS_CHECK, now),
            )

        # Token lookup
        try:
            tokens = await self._tokens.list(event.to_user_id)
        except StoreError as e:
            log.warning("Token lookup failed", error=str(e))
            tokens = []

        if not tokens:
            log.info("No push tokens for user")
            return await self._finish(
                event,
                NudgeOutcome.blocked(NudgeReason.NO_TOKENS, NudgeStage.TOKEN_LOOKUP, now),
            )

        # Dispatch
        notification = await self._build_notification(event)
        result = await self._dispatcher.send(tokens, notification, self._build_data(event))

        # Persist outcome. Counted on attempt, not on success
        if not reserve:
            await self._stats.increment_and_set(
                event.from_user_id,
                local_day(now),
                event.to_user_id,
                now,
            )

        outcome = NudgeOutcome(
            delivered=result.success_count > 0,
            rate_limited=False,
            reason=NudgeReason.NONE,
            success_count=result.success_count,
            failure_count=result.failure_count,
            delivered_at=now,
            processed_at=now,
        )
        return await self._finish(event, outcome)

    async def close(self) -> None:
        await self._dispatcher.close()

    async def _finish(self, event: NudgeEvent, outcome: NudgeOutcome) -> NudgeOutcome:
        if outcome.rate_limited is None:
            outcome.rate_limited = False
        await self._nudges.write_outcome(event.id, outcome)

        if outcome.rate_limited:
            label = outcome.rate_limit_reason.value
        elif outcome.reason and outcome.reason != NudgeReason.NONE:
            label = outcome.reason.value
        else:
            label = "delivered" if outcome.delivered else "undelivered"
        NUDGES_PROCESSED.labels(outcome=label).inc()

        logger.info(
            "Nudge processed",
            nudge_id=event.id,
            outcome=label,
            stage=outcome.stage.value,
        )
        return outcome

    async def _build_notification(self, event: NudgeEvent) -> PushNotification:
        sender_name = event.from_user_name
        if not sender_name:
            # Runs after quota is reserved, so lookup failures fall back to the default name
            try:
                profile = await self._users.get(event.from_user_id)
            except (StoreError, ValueError) as e:
                logger.warning("Sender profile lookup failed", nudge_id=event.id, error=str(e))
                profile = None
            sender_name = profile.display_name if profile and profile.display_name else "Someone"

        body = event.message if event.message and event.message.strip() else None
        return PushNotification(
            title=f"{sender_name}'s encouragement",
            body=body or self._settings.nudge_default_message,
        )

    def _build_data(self, event: NudgeEvent) -> dict[str, str]:
        return {
            "type": "nudge_received",
            "priority": PushPriority.MEDIUM.value,
            "nudgeId": event.id,
            "fromUserId": event.from_user_id,
            "groupId": event.group_id or "",
        }


# Singleton handler instance
_handler: NudgeHandler | None = None


def get_nudge_handler() -> NudgeHandler:
    """Get or create nudge handler singleton."""
    global _handler
    if _handler is None:
        _handler = NudgeHandler()
    return _handler


async def handle_nudge(event: NudgeEvent) -> None:
    """Handle a nudge using the singleton handler.

    This is the entry point used by the queue consumer.
    """
    await get_nudge_handler().handle(event)
