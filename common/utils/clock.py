"""
Clock and calendar helpers.

Every day-sensitive decision (streaks, "already checked in today", the pulse
week window, reminder horizons) goes through a ``Clock`` so tests can pin
"now" with ``FixedClock``.

Conventions:
- Instants are naive UTC datetimes, the form Motor stores and returns.
- Day buckets are ISO ``YYYY-MM-DD`` strings in the user's time zone.

Example:
    clock = Clock()
    today = clock.day_of(tz="Europe/Stockholm")
    start, end = week_window(clock.now(), "UTC")
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

import pytz

logger = logging.getLogger(__name__)

DEFAULT_TZ = "UTC"
DAY_FORMAT = "%Y-%m-%d"


def to_naive_utc(instant: datetime) -> datetime:
    """Normalize an aware or naive-UTC datetime to naive UTC."""
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def get_timezone(tz: Optional[str]):
    """Resolve a tz name, falling back to UTC for unknown names."""
    try:
        return pytz.timezone(tz or DEFAULT_TZ)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{tz}', falling back to UTC")
        return pytz.utc


def to_local(instant: datetime, tz: Optional[str]) -> datetime:
    """Convert a naive-UTC instant to an aware local datetime."""
    aware = pytz.utc.localize(to_naive_utc(instant))
    return aware.astimezone(get_timezone(tz))


def local_to_utc(local: datetime, tz: Optional[str]) -> datetime:
    """Interpret a naive local wall-clock time in ``tz`` and return naive UTC."""
    zone = get_timezone(tz)
    aware = zone.localize(local)
    return aware.astimezone(pytz.utc).replace(tzinfo=None)


def format_day(value: date) -> str:
    return value.strftime(DAY_FORMAT)


def parse_day(value: str) -> date:
    return datetime.strptime(value, DAY_FORMAT).date()


def previous_day(day: str) -> str:
    """Day bucket immediately before ``day``."""
    return format_day(parse_day(day) - timedelta(days=1))


def next_day(day: str) -> str:
    return format_day(parse_day(day) + timedelta(days=1))


def week_window(instant: datetime, tz: Optional[str] = DEFAULT_TZ) -> Tuple[datetime, datetime]:
    """
    Monday 00:00:00.000 to Sunday 23:59:59.999 of the week containing ``instant``.

    Args:
        instant: Naive-UTC instant
        tz: Time zone the week is measured in

    Returns:
        (start, end) as naive UTC datetimes
    """
    local = to_local(instant, tz)
    monday = local.date() - timedelta(days=local.weekday())
    sunday = monday + timedelta(days=6)

    start = local_to_utc(datetime.combine(monday, time.min), tz)
    end = local_to_utc(datetime.combine(sunday, time(23, 59, 59, 999000)), tz)
    return start, end


def iso_week(instant: datetime, tz: Optional[str] = DEFAULT_TZ) -> Tuple[int, int]:
    """ISO 8601 (year, week) of ``instant`` in ``tz``."""
    iso = to_local(instant, tz).isocalendar()
    return iso[0], iso[1]


class Clock:
    """Source of the current instant and of local day buckets."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)

    def day_of(self, instant: Optional[datetime] = None, tz: Optional[str] = DEFAULT_TZ) -> str:
        """
        Local day bucket of ``instant`` (default: now) in ``tz``.

        Args:
            instant: Naive-UTC or aware datetime
            tz: IANA time zone name, UTC when missing

        Returns:
            Day bucket as ``YYYY-MM-DD``
        """
        if instant is None:
            instant = self.now()
        return format_day(to_local(instant, tz).date())

    def hours_until_local_midnight(self, tz: Optional[str] = DEFAULT_TZ) -> float:
        local = to_local(self.now(), tz)
        midnight = datetime.combine(local.date() + timedelta(days=1), time.min)
        return (midnight - local.replace(tzinfo=None)).total_seconds() / 3600


class FixedClock(Clock):
    """Clock pinned to a given instant; ``advance`` moves it forward."""

    def __init__(self, instant: datetime):
        self._now = to_naive_utc(instant)

    def now(self) -> datetime:
        return self._now

    def set(self, instant: datetime) -> None:
        self._now = to_naive_utc(instant)

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now
