"""
Company-local calendar helpers.

Every aggregation is anchored to the company's IANA timezone, never to
UTC days. All instants returned here are UTC-aware so they compare
consistently against stored ``created_at`` values on every backend.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import settings

logger = logging.getLogger(__name__)

DAY_NAMES = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")


@lru_cache(maxsize=256)
def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the zone for *name*, falling back to the configured default.

    Unknown identifiers never raise: dashboards stay available and the
    problem is logged once per distinct name.
    """
    candidate = (name or "").strip() or settings.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "Unknown timezone %r, falling back to %s", candidate, settings.DEFAULT_TIMEZONE
        )
    try:
        return ZoneInfo(settings.DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.error("Default timezone %r is invalid, using UTC", settings.DEFAULT_TIMEZONE)
        return ZoneInfo("UTC")


def ensure_utc(dt: datetime | None) -> datetime:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt is None:
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def now_in(tz_name: str | None) -> datetime:
    return datetime.now(timezone.utc).astimezone(resolve_timezone(tz_name))


def today(tz_name: str | None) -> date:
    """Current company-local calendar date."""
    return now_in(tz_name).date()


def local_date(instant: datetime, tz_name: str | None) -> date:
    """Company-local calendar date of a stored instant."""
    return ensure_utc(instant).astimezone(resolve_timezone(tz_name)).date()


def as_local_date(value: date | datetime | None, tz_name: str | None) -> date:
    if value is None:
        return today(tz_name)
    if isinstance(value, datetime):
        return local_date(value, tz_name)
    return value


def day_range(tz_name: str | None, day: date | datetime | None = None) -> tuple[datetime, datetime]:
    """UTC start and end instants of the company-local day containing *day*.

    A ``date`` is taken as a company-local calendar date; a ``datetime``
    is first converted to the company zone. The end is the last
    representable microsecond of the day, so callers filter with ``<=``.
    """
    tz = resolve_timezone(tz_name)
    local_day = as_local_date(day, tz_name)
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    next_start = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start.astimezone(timezone.utc),
        (next_start - timedelta(microseconds=1)).astimezone(timezone.utc),
    )


def last_n_days_range(n: int, tz_name: str | None) -> tuple[datetime, datetime]:
    """From the start of the local day *n* days ago up to now."""
    start, _ = day_range(tz_name, today(tz_name) - timedelta(days=n))
    return start, datetime.now(timezone.utc)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar date in ``[start, end]``."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def day_name(day: date) -> str:
    return DAY_NAMES[day.weekday()]


def parse_work_days(work_days: str | None) -> set[str]:
    return {d.strip().upper() for d in (work_days or "").split(",") if d.strip()}
