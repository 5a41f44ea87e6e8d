"""Nudge and user API schemas."""

from datetime import date

from pydantic import BaseModel, Field

from nudgepush.models.stats import SenderDailyStats


class NudgeCreate(BaseModel):
    """Request body for sending a nudge."""

    from_user_id: str = Field(..., min_length=1)
    from_user_name: str = Field(default="", max_length=100)
    to_user_id: str = Field(..., min_length=1)
    message: str | None = Field(default=None, max_length=500)
    group_id: str | None = None


class NudgeCreateResponse(BaseModel):
    """Response for a queued nudge."""

    nudge_id: str


class TokenRegister(BaseModel):
    """Request body for registering or removing a push token."""

    token: str = Field(..., min_length=1, max_length=4096)


class TokenListResponse(BaseModel):
    tokens: list[str]


class NudgeStatsResponse(BaseModel):
    """A sender's nudge usage for one day."""

    day: date
    role: str
    daily_limit: int
    remaining: int
    stats: SenderDailyStats
