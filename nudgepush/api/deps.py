"""API dependency injection."""

from typing import Annotated

from fastapi import Depends, Request

from nudgepush.messaging.publisher import NudgePublisher
from nudgepush.storage.nudge_store import NudgeStore
from nudgepush.storage.redis_client import get_redis
from nudgepush.storage.settings_store import SettingsStore
from nudgepush.storage.stats_store import StatsStore
from nudgepush.storage.token_registry import TokenRegistry
from nudgepush.storage.user_store import UserStore


def get_nudge_store() -> NudgeStore:
    return NudgeStore(get_redis())


def get_settings_store() -> SettingsStore:
    return SettingsStore(get_redis())


def get_token_registry() -> TokenRegistry:
    return TokenRegistry(get_redis())


def get_user_store() -> UserStore:
    return UserStore(get_redis())


def get_stats_store() -> StatsStore:
    return StatsStore(get_redis())


def get_publisher(request: Request) -> NudgePublisher:
    """Publisher shared for the application's lifetime."""
    return request.app.state.publisher


# Type aliases for dependency injection
NudgeStoreDep = Annotated[NudgeStore, Depends(get_nudge_store)]
SettingsStoreDep = Annotated[SettingsStore, Depends(get_settings_store)]
TokenRegistryDep = Annotated[TokenRegistry, Depends(get_token_registry)]
UserStoreDep = Annotated[UserStore, Depends(get_user_store)]
StatsStoreDep = Annotated[StatsStore, Depends(get_stats_store)]
PublisherDep = Annotated[NudgePublisher, Depends(get_publisher)]
