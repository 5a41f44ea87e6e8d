"""Nudge domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from nudgepush.core.clock import utcnow


class NudgeReason(str, Enum):
    """Terminal reason recorded when a nudge was not pushed."""

    NOTIFICATIONS_DISABLED = "notifications_disabled"
    NO_TOKENS = "no_tokens"
    NONE = "none"


class RateLimitReason(str, Enum):
    """Why the rate limiter rejected a nudge."""

    DAILY_LIMIT_EXCEEDED = "daily_limit_exceeded"
    COOLDOWN_ACTIVE = "cooldown_active"


class NudgeStage(str, Enum):
    """Nudge handler pipeline stages, in execution order."""

    RECEIVED = "received"
    RATE_CHECK = "rate_check"
    SETTINGS_CHECK = "settings_check"
    TOKEN_LOOKUP = "token_lookup"
    DISPATCH = "dispatch"
    PERSIST_OUTCOME = "persist_outcome"
    DONE = "done"


class NudgeEvent(BaseModel):
    """One encouragement sent from one user to another."""

    id: str = Field(..., description="Nudge unique identifier")
    from_user_id: str = Field(..., min_length=1)
    from_user_name: str = Field(default="", description="Sender display name")
    to_user_id: str = Field(..., min_length=1)
    message: str | None = Field(default=None, description="Optional custom body")
    group_id: str | None = Field(default=None, description="Study group, if sent within one")
    created_at: datetime = Field(default_factory=utcnow)


class NudgeOutcome(BaseModel):
    """Outcome fields written back onto the nudge record.

    Only fields that were set are persisted, so a rejection does not
    clobber fields it never decided on.
    """

    delivered: bool = False
    rate_limited: bool | None = None
    rate_limit_reason: RateLimitReason | None = None
    reason: NudgeReason | None = None
    success_count: int | None = Field(default=None, ge=0)
    failure_count: int | None = Field(default=None, ge=0)
    delivered_at: datetime | None = None
    processed_at: datetime = Field(default_factory=utcnow)
    stage: NudgeStage = Field(
        default=NudgeStage.DONE,
        description="Stage at which the pipeline terminated",
    )

    @classmethod
    def rate_limited_by(cls, reason: RateLimitReason, now: datetime) -> "NudgeOutcome":
        return cls(
            delivered=False,
            rate_limited=True,
            rate_limit_reason=reason,
            processed_at=now,
            stage=NudgeStage.RATE_CHECK,
        )

    @classmethod
    def blocked(cls, reason: NudgeReason, stage: NudgeStage, now: datetime) -> "NudgeOutcome":
        return cls(delivered=False, reason=reason, processed_at=now, stage=stage)


class NudgeRecord(NudgeEvent):
    """Stored nudge: the input event plus its outcome fields."""

    delivered: bool | None = None
    rate_limited: bool | None = None
    rate_limit_reason: RateLimitReason | None = None
    reason: NudgeReason | None = None
    success_count: int | None = None
    failure_count: int | None = None
    delivered_at: datetime | None = None
    processed_at: datetime | None = None
    stage: NudgeStage = NudgeStage.RECEIVED


class RateDecision(BaseModel):
    """Result of a rate limit evaluation."""

    allowed: bool
    reason: RateLimitReason | None = None
    daily_limit: int = Field(..., ge=0)
    nudges_sent: int = Field(default=0, ge=0)

    @classmethod
    def accept(cls, daily_limit: int, nudges_sent: int) -> "RateDecision":
        return cls(allowed=True, daily_limit=daily_limit, nudges_sent=nudges_sent)

    @classmethod
    def reject(cls, reason: RateLimitReason, daily_limit: int, nudges_sent: int) -> "RateDecision":
        return cls(allowed=False, reason=reason, daily_limit=daily_limit, nudges_sent=nudges_sent)
