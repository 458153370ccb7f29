"""
Clock Utilities

All calendar-day decisions in the pipeline (deadline passed, reminder
day, first of month) are taken in the reference timezone, by comparing
calendar dates.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from challengehub.core.config import settings

REFERENCE_TZ = ZoneInfo(settings.REFERENCE_TIMEZONE)


class Clock:
    """Wall clock anchored to the reference timezone."""

    def __init__(self, tz: ZoneInfo = REFERENCE_TZ):
        self.tz = tz

    def now(self) -> datetime:
        """Aware datetime in the reference timezone."""
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def utcnow(self) -> datetime:
        """Naive UTC datetime, the form BSON dates round-trip as."""
        return self.now().astimezone(timezone.utc).replace(tzinfo=None)

    def days_from_today(self, days: int) -> date:
        return self.today() + timedelta(days=days)

    def is_first_day_of_month(self) -> bool:
        return self.today().day == 1


class FixedClock(Clock):
    """Clock pinned to one instant (tests, manual re-runs for a past date)."""

    def __init__(self, instant: datetime, tz: ZoneInfo = REFERENCE_TZ):
        super().__init__(tz)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=tz)
        self._instant = instant.astimezone(tz)

    @classmethod
    def at_date(cls, day: date, tz: ZoneInfo = REFERENCE_TZ) -> "FixedClock":
        """Clock at local midnight of the given calendar day."""
        return cls(datetime.combine(day, time(0, 0), tzinfo=tz), tz)

    def now(self) -> datetime:
        return self._instant


def to_local_date(value: Any, tz: ZoneInfo = REFERENCE_TZ) -> Optional[date]:
    """
    Calendar date of a stored deadline in the reference timezone.

    Accepts BSON datetimes (naive UTC), aware datetimes, dates and ISO
    strings. Date-only strings are taken as calendar dates as-is.
    Returns None for missing or unparseable values.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(tz).date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            # Python < 3.11 does not accept a trailing "Z"
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return to_local_date(parsed, tz)

    return None
