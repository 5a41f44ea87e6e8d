"""User domain models: roles, profiles and notification preferences."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """User role within a study group."""

    STANDARD = "standard"
    LEADER = "leader"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str | None) -> "UserRole | None":
        """Parse a stored role string, returning None when unrecognized."""
        if not value:
            return cls.STANDARD
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class StreakInfo(BaseModel):
    """Memorization streak summary kept on the user profile."""

    current_streak: int = Field(default=0, ge=0)
    last_learned_date: date | None = None
    weekly_history: list[bool] = Field(
        default_factory=list,
        description="One flag per day of the current week, True when the user learned",
    )


class UserProfile(BaseModel):
    """User profile fields needed by the notification backend."""

    user_id: str
    display_name: str = ""
    role: str = Field(default=UserRole.STANDARD.value, description="Raw stored role")
    streak: StreakInfo = Field(default_factory=StreakInfo)


class NotificationCategory(str, Enum):
    """Notification categories a user can opt out of."""

    NUDGE = "nudge"
    STREAK_WARNING = "streak_warning"
    REACTION = "reaction"
    WEEKLY_SUMMARY = "weekly_summary"
    MORNING_MANNA = "morning_manna"


class NotificationSettings(BaseModel):
    """Resolved per-user notification preferences.

    Every field carries its default, so a user without a stored record
    resolves to ``NotificationSettings()``.
    """

    enabled: bool = True
    nudge_enabled: bool = True
    streak_warning_enabled: bool = True
    reaction_enabled: bool = True
    weekly_summary_enabled: bool = True
    morning_manna_enabled: bool = False
    morning_manna_time: str = Field(default="07:00", pattern=r"^([01]\d|2[0-3]):00$")

    def allows(self, category: NotificationCategory) -> bool:
        """Check the global switch and the category opt-out."""
        if not self.enabled:
            return False
        return getattr(self, f"{category.value}_enabled")


class NotificationSettingsUpdate(BaseModel):
    """Partial settings update."""

    enabled: bool | None = None
    nudge_enabled: bool | None = None
    streak_warning_enabled: bool | None = None
    reaction_enabled: bool | None = None
    weekly_summary_enabled: bool | None = None
    morning_manna_enabled: bool | None = None
    morning_manna_time: str | None = Field(default=None, pattern=r"^([01]\d|2[0-3]):00$")
