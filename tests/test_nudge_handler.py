"""Tests for the nudge handling pipeline."""

from datetime import date, timedelta

import pytest

from nudgepush.core.errors import PushTransportError, StoreError
from nudgepush.models.nudge import NudgeEvent, NudgeReason, NudgeStage, RateLimitReason
from nudgepush.models.user import NotificationSettingsUpdate, UserProfile
from nudgepush.notification.nudge_handler import NudgeHandler
from nudgepush.storage.nudge_store import NudgeStore
from nudgepush.storage.settings_store import SettingsStore
from nudgepush.storage.stats_store import StatsStore
from nudgepush.storage.token_registry import TokenRegistry
from nudgepush.storage.user_store import UserStore

TODAY = date(2026, 3, 10)


@pytest.fixture
def handler(redis, dispatcher, settings) -> NudgeHandler:
    return NudgeHandler(redis, dispatcher)


async def make_nudge(redis, nudge_id: str = "n1", to_user_id: str = "bob", **kwargs) -> NudgeEvent:
    event = NudgeEvent(
        id=nudge_id,
        from_user_id=kwargs.pop("from_user_id", "alice"),
        from_user_name=kwargs.pop("from_user_name", "Alice"),
        to_user_id=to_user_id,
        **kwargs,
    )
    await NudgeStore(redis).create(event)
    return event


@pytest.mark.asyncio
async def test_delivers_to_all_tokens_in_one_batch(redis, handler, transport, now) -> None:
    await TokenRegistry(redis).add("bob", "tok-a")
    await TokenRegistry(redis).add("bob", "tok-b")
    event = await make_nudge(redis, message="You got this", group_id="g1")

    outcome = await handler.handle(event, now)

    assert outcome.delivered is True
    assert outcome.success_count == 2
    assert len(transport.messages) == 1
    message = transport.messages[0]
    assert message.tokens == ["tok-a", "tok-b"]
    assert message.notification.title == "Alice's encouragement"
    assert message.notification.body == "You got this"
    assert message.data["type"] == "nudge_received"
    assert message.data["priority"] == "medium"
    assert message.data["nudgeId"] == "n1"
    assert message.data["fromUserId"] == "alice"
    assert message.data["groupId"] == "g1"

    record = await NudgeStore(redis).get("n1")
    assert record.delivered is True
    assert record.rate_limited is False
    assert record.delivered_at == now
    assert record.stage == NudgeStage.DONE

    stats = await StatsStore(redis).get("alice", TODAY)
    assert stats.nudges_sent == 1
    assert stats.last_sent_to("bob") == now


@pytest.mark.asyncio
async def test_default_body_and_sender_name_from_profile(redis, handler, transport, settings, now) -> None:
    await UserStore(redis).save(UserProfile(user_id="alice", display_name="Grace"))
    await TokenRegistry(redis).add("bob", "tok-a")
    event = await make_nudge(redis, from_user_name="", message="   ")

    await handler.handle(event, now)

    notification = transport.messages[0].notification
    assert notification.title == "Grace's encouragement"
    assert notification.body == settings.nudge_default_message
    assert transport.messages[0].data["groupId"] == ""


@pytest.mark.asyncio
async def test_daily_limit_rejects_without_touching_counters(redis, handler, transport, now) -> None:
    registry = TokenRegistry(redis)
    for i in range(4):
        await registry.add(f"user{i}", "tok")

    for i in range(3):
        event = await make_nudge(redis, nudge_id=f"n{i}", to_user_id=f"user{i}")
        assert (await handler.handle(event, now)).delivered

    event = await make_nudge(redis, nudge_id="n3", to_user_id="user3")
    outcome = await handler.handle(event, now)

    assert outcome.rate_limited is True
    assert outcome.delivered is False
    assert outcome.rate_limit_reason == RateLimitReason.DAILY_LIMIT_EXCEEDED
    assert len(transport.messages) == 3
    stats = await StatsStore(redis).get("alice", TODAY)
    assert stats.nudges_sent == 3
    assert "user3" not in stats.nudges_to

    record = await NudgeStore(redis).get("n3")
    assert record.rate_limited is True
    assert record.delivered is False


@pytest.mark.asyncio
async def test_leader_gets_higher_daily_limit(redis, handler, now) -> None:
    await UserStore(redis).save(UserProfile(user_id="alice", role="leader"))
    registry = TokenRegistry(redis)

    outcomes = []
    for i in range(11):
        await registry.add(f"user{i}", "tok")
        event = await make_nudge(redis, nudge_id=f"n{i}", to_user_id=f"user{i}")
        outcomes.append(await handler.handle(event, now))

    assert sum(1 for o in outcomes if not o.rate_limited) == 10
    assert outcomes[-1].rate_limit_reason == RateLimitReason.DAILY_LIMIT_EXCEEDED


@pytest.mark.asyncio
async def test_accepted_nudges_to_same_target_are_24_hours_apart(redis, handler, now) -> None:
    await TokenRegistry(redis).add("bob", "tok")

    first = await handler.handle(await make_nudge(redis, nudge_id="n1"), now)
    second = await handler.handle(await make_nudge(redis, nudge_id="n2"), now + timedelta(hours=23))
    third = await handler.handle(await make_nudge(redis, nudge_id="n3"), now + timedelta(hours=24))

    assert first.delivered
    assert second.rate_limit_reason == RateLimitReason.COOLDOWN_ACTIVE
    assert third.delivered
    assert third.delivered_at - first.delivered_at >= timedelta(hours=24)


@pytest.mark.asyncio
async def test_disabled_notifications_consume_quota_when_reserving(redis, handler, transport, now) -> None:
    await SettingsStore(redis).update("bob", NotificationSettingsUpdate(enabled=False))
    await TokenRegistry(redis).add("bob", "tok")

    outcome = await handler.handle(await make_nudge(redis), now)

    assert outcome.delivered is False
    assert outcome.reason == NudgeReason.NOTIFICATIONS_DISABLED
    assert transport.messages == []
    stats = await StatsStore(redis).get("alice", TODAY)
    assert stats.nudges_sent == 1


@pytest.mark.asyncio
async def test_disabled_notifications_do_not_count_without_reservation(
    redis, handler, transport, settings, monkeypatch, now
) -> None:
    monkeypatch.setattr(settings, "nudge_reserve_on_check", False)
    await SettingsStore(redis).update("bob", NotificationSettingsUpdate(nudge_enabled=False))

    outcome = await handler.handle(await make_nudge(redis), now)

    assert outcome.reason == NudgeReason.NOTIFICATIONS_DISABLED
    stats = await StatsStore(redis).get("alice", TODAY)
    assert stats.nudges_sent == 0


@pytest.mark.asyncio
async def test_no_tokens_skips_dispatch(redis, handler, transport, now) -> None:
    outcome = await handler.handle(await make_nudge(redis), now)

    assert outcome.delivered is False
    assert outcome.reason == NudgeReason.NO_TOKENS
    assert transport.messages == []
    record = await NudgeStore(redis).get("n1")
    assert record.reason == NudgeReason.NO_TOKENS
    assert record.stage == NudgeStage.TOKEN_LOOKUP


@pytest.mark.parametrize("reserve", [True, False])
@pytest.mark.asyncio
async def test_failed_dispatch_still_counts_attempt(
    redis, handler, transport, settings, monkeypatch, now, reserve
) -> None:
    monkeypatch.setattr(settings, "nudge_reserve_on_check", reserve)
    await TokenRegistry(redis).add("bob", "tok-a")
    await TokenRegistry(redis).add("bob", "tok-b")
    transport.fail_codes = {
        "tok-a": "messaging/registration-token-not-registered",
        "tok-b": "messaging/internal-error",
    }

    outcome = await handler.handle(await make_nudge(redis), now)

    assert outcome.delivered is False
    assert outcome.failure_count == 2
    stats = await StatsStore(redis).get("alice", TODAY)
    assert stats.nudges_sent == 1
    assert stats.last_sent_to("bob") == now
    # Invalid tokens are reported, not pruned
    assert await TokenRegistry(redis).list("bob") == ["tok-a", "tok-b"]


@pytest.mark.asyncio
async def test_partial_failure_counts_as_delivered(redis, handler, transport, now) -> None:
    await TokenRegistry(redis).add("bob", "tok-a")
    await TokenRegistry(redis).add("bob", "tok-b")
    transport.fail_codes = {"tok-b": "messaging/internal-error"}

    outcome = await handler.handle(await make_nudge(redis), now)

    assert outcome.delivered is True
    assert (outcome.success_count, outcome.failure_count) == (1, 1)


@pytest.mark.asyncio
async def test_transport_error_is_recorded_as_failure(redis, handler, transport, now) -> None:
    await TokenRegistry(redis).add("bob", "tok")
    transport.error = PushTransportError("FCM is not configured")

    outcome = await handler.handle(await make_nudge(redis), now)

    assert outcome.delivered is False
    assert outcome.failure_count == 1


@pytest.mark.asyncio
async def test_replay_overwrites_outcome(redis, handler, now) -> None:
    await TokenRegistry(redis).add("bob", "tok")
    event = await make_nudge(redis)

    first = await handler.handle(event, now)
    replay = await handler.handle(event, now + timedelta(minutes=1))

    assert first.delivered is True
    assert replay.rate_limited is True
    record = await NudgeStore(redis).get("n1")
    assert record.rate_limited is True
    assert record.delivered is False


async def redis_down(*args, **kwargs):
    raise StoreError("redis down")


@pytest.mark.asyncio
async def test_settings_lookup_failure_reads_as_disabled(redis, handler, transport, monkeypatch, now) -> None:
    await TokenRegistry(redis).add("bob", "tok")
    monkeypatch.setattr(handler._notification_settings, "get", redis_down)

    outcome = await handler.handle(await make_nudge(redis), now)

    assert outcome.reason == NudgeReason.NOTIFICATIONS_DISABLED
    assert transport.messages == []
    record = await NudgeStore(redis).get("n1")
    assert record.reason == NudgeReason.NOTIFICATIONS_DISABLED


@pytest.mark.asyncio
async def test_token_lookup_failure_reads_as_no_tokens(redis, handler, transport, monkeypatch, now) -> None:
    monkeypatch.setattr(handler._tokens, "list", redis_down)

    outcome = await handler.handle(await make_nudge(redis), now)

    assert outcome.reason == NudgeReason.NO_TOKENS
    assert transport.messages == []
    record = await NudgeStore(redis).get("n1")
    assert record.reason == NudgeReason.NO_TOKENS


@pytest.mark.asyncio
async def test_stats_write_failure_propagates(
    redis, handler, settings, monkeypatch, now
) -> None:
    monkeypatch.setattr(settings, "nudge_reserve_on_check", False)
    await TokenRegistry(redis).add("bob", "tok")
    monkeypatch.setattr(handler._stats, "increment_and_set", redis_down)

    with pytest.raises(StoreError):
        await handler.handle(await make_nudge(redis), now)


@pytest.mark.asyncio
async def test_outcome_write_failure_propagates(redis, handler, monkeypatch, now) -> None:
    await TokenRegistry(redis).add("bob", "tok")
    monkeypatch.setattr(handler._nudges, "write_outcome", redis_down)

    with pytest.raises(StoreError):
        await handler.handle(await make_nudge(redis), now)


@pytest.mark.asyncio
async def test_sender_lookup_failure_still_delivers(redis, handler, transport, monkeypatch, now) -> None:
    await TokenRegistry(redis).add("bob", "tok")
    monkeypatch.setattr(handler._users, "get", redis_down)

    outcome = await handler.handle(await make_nudge(redis, from_user_name=""), now)

    assert outcome.delivered is True
    assert transport.messages[0].notification.title == "Someone's encouragement"
    stats = await StatsStore(redis).get("alice", TODAY)
    assert stats.nudges_sent == 1
