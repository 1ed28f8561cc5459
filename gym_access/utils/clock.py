# =======================================================================================
# gym_access/utils/clock.py - Time Source and Date Helpers
# =======================================================================================
from datetime import date, datetime, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import ConfigurationError


class Clock:
    """Source of the current instant. Swapped for a fixed clock in tests."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def local_now(self, tz: tzinfo) -> datetime:
        return self.now().astimezone(tz)

    def local_today(self, tz: tzinfo) -> date:
        return self.local_now(tz).date()


system_clock = Clock()


def resolve_timezone(name: str) -> ZoneInfo:
    """Turn an IANA zone name into a tzinfo, or raise ConfigurationError."""
    if not name or not name.strip():
        raise ConfigurationError("Facility time zone is not configured")
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Invalid facility time zone: {name}") from e


def as_date(value: Union[None, str, date, datetime]) -> Optional[date]:
    """
    Normalize a stored date.
    SQLite hands back ISO strings, MySQL hands back date/datetime objects.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def to_db_timestamp(value: datetime) -> str:
    """UTC ISO-8601 text; sorts lexicographically."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
