"""Time helpers bound to the configured service timezone."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from nudgepush.core.config import get_settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def service_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def local_now(now: datetime | None = None) -> datetime:
    """Current (or given) time in the service timezone."""
    return (now or utcnow()).astimezone(service_tz())


def local_day(now: datetime | None = None) -> date:
    """Calendar day in the service timezone."""
    return local_now(now).date()
