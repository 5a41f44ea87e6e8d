"""Per-sender daily nudge statistics."""

from datetime import date, datetime

from pydantic import BaseModel, Field


class SenderDailyStats(BaseModel):
    """Nudge counters for one sender on one calendar day.

    ``nudges_sent`` counts accepted nudges; ``nudges_to`` keeps the time of
    the latest accepted nudge per target for cooldown evaluation.
    """

    sender_id: str
    day: date
    nudges_sent: int = Field(default=0, ge=0)
    nudges_to: dict[str, datetime] = Field(default_factory=dict)
    updated_at: datetime | None = None

    def last_sent_to(self, target_id: str) -> datetime | None:
        return self.nudges_to.get(target_id)
