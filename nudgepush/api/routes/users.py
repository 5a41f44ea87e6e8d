"""User token, settings and nudge usage routes."""

from datetime import date

from fastapi import APIRouter, HTTPException, Query

from nudgepush.api.deps import (
    SettingsStoreDep,
    StatsStoreDep,
    TokenRegistryDep,
    UserStoreDep,
)
from nudgepush.core.clock import local_day
from nudgepush.models.user import NotificationSettings, NotificationSettingsUpdate
from nudgepush.notification.rate_limiter import RateLimiter
from nudgepush.schemas.common import APIResponse
from nudgepush.schemas.nudge import NudgeStatsResponse, TokenListResponse, TokenRegister

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}/tokens", response_model=APIResponse[TokenListResponse])
async def list_tokens(user_id: str, registry: TokenRegistryDep) -> APIResponse[TokenListResponse]:
    return APIResponse(data=TokenListResponse(tokens=await registry.list(user_id)))


@router.put("/{user_id}/tokens", response_model=APIResponse[TokenListResponse])
async def register_token(
    user_id: str,
    data: TokenRegister,
    registry: TokenRegistryDep,
) -> APIResponse[TokenListResponse]:
    """Register a device token. Registering a known token is a no-op."""
    await registry.add(user_id, data.token)
    return APIResponse(data=TokenListResponse(tokens=await registry.list(user_id)))


@router.delete("/{user_id}/tokens", response_model=APIResponse[TokenListResponse])
async def remove_token(
    user_id: str,
    data: TokenRegister,
    registry: TokenRegistryDep,
) -> APIResponse[TokenListResponse]:
    if not await registry.remove(user_id, data.token):
        raise HTTPException(status_code=404, detail="Token not registered")
    return APIResponse(data=TokenListResponse(tokens=await registry.list(user_id)))


@router.get("/{user_id}/settings", response_model=APIResponse[NotificationSettings])
async def get_notification_settings(
    user_id: str,
    store: SettingsStoreDep,
) -> APIResponse[NotificationSettings]:
    return APIResponse(data=await store.get(user_id))


@router.patch("/{user_id}/settings", response_model=APIResponse[NotificationSettings])
async def update_notification_settings(
    user_id: str,
    data: NotificationSettingsUpdate,
    store: SettingsStoreDep,
) -> APIResponse[NotificationSettings]:
    """Update only the fields present in the body."""
    return APIResponse(data=await store.update(user_id, data))


@router.get("/{user_id}/nudge-stats", response_model=APIResponse[NudgeStatsResponse])
async def get_nudge_stats(
    user_id: str,
    users: UserStoreDep,
    stats_store: StatsStoreDep,
    day: date | None = Query(default=None, description="Calendar day, today by default"),
) -> APIResponse[NudgeStatsResponse]:
    """Nudges a sender has used and has left for a day."""
    day = day or local_day()
    role = await users.get_role(user_id)
    limit = RateLimiter(users, stats_store).daily_limit(role)
    stats = await stats_store.get(user_id, day)

    return APIResponse(
        data=NudgeStatsResponse(
            day=day,
            role=role.value,
            daily_limit=limit,
            remaining=max(limit - stats.nudges_sent, 0),
            stats=stats,
        )
    )
