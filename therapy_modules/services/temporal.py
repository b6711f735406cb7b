"""Week-start normalization in the reference civil timezone."""
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from therapy_modules.core.config import get_settings


@lru_cache(maxsize=16)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def reference_zone(tz_name: str | None = None) -> ZoneInfo:
    return _zone(tz_name or get_settings().reference_timezone)


def _require_aware(instant: datetime) -> None:
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("instant must be timezone-aware")


def local_date(instant: datetime, tz_name: str | None = None) -> date:
    """Civil date of ``instant`` in the reference zone."""
    _require_aware(instant)
    return instant.astimezone(reference_zone(tz_name)).date()


def week_start(instant: datetime, tz_name: str | None = None) -> datetime:
    """
    Monday 00:00 local time of the week containing ``instant``, as a UTC instant.

    The result depends only on the absolute instant, never on the host
    timezone, and ``week_start(week_start(t)) == week_start(t)``.
    """
    zone = reference_zone(tz_name)
    monday = local_date(instant, tz_name)
    monday -= timedelta(days=monday.weekday())
    return datetime.combine(monday, time.min, tzinfo=zone).astimezone(timezone.utc)


def days_elapsed_in_week(now: datetime, tz_name: str | None = None) -> int:
    """Days from Monday to today inclusive, clamped to 1..7."""
    today = local_date(now, tz_name)
    return max(1, min(7, today.weekday() + 1))
