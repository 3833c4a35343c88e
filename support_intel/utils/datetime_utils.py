"""
Date/time helpers

Week definition: Friday 17:00 to the next Friday 17:00 in the reporting
timezone (Asia/Kolkata by default). All returned datetimes are timezone-aware.
"""
from datetime import datetime, timedelta, timezone as dt_timezone, tzinfo
from typing import Optional, Tuple, Union

from dateutil import parser as date_parser
from dateutil import tz

WEEK_END_WEEKDAY = 4  # Friday (Monday=0)
WEEK_END_HOUR = 17
WEEK_END_MINUTE = 0


def utc_now() -> datetime:
    return datetime.now(dt_timezone.utc)


def get_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name, falling back to UTC for unknown names"""
    zone = tz.gettz(name)
    return zone if zone is not None else dt_timezone.utc


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt_timezone.utc)
    return value


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as returned by Freshdesk

    Args:
        value: ISO string, datetime or None

    Returns:
        Timezone-aware datetime, or None for empty input

    Raises:
        ValueError: If the string is not a valid ISO-8601 timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    return ensure_aware(date_parser.isoparse(value))


def format_iso(value: datetime) -> str:
    """Format as UTC ISO-8601 with a trailing Z (Freshdesk query format)"""
    return ensure_aware(value).astimezone(dt_timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def start_of_year(now: datetime, zone: tzinfo) -> datetime:
    local = ensure_aware(now).astimezone(zone)
    return datetime(local.year, 1, 1, tzinfo=zone)


def week_boundaries(reference: datetime, zone: tzinfo) -> Tuple[datetime, datetime]:
    """
    Get the reporting week that contains the reference time

    Args:
        reference: Any point in time
        zone: Reporting timezone

    Returns:
        (week_start, week_end) where week_start is the most recent
        Friday 17:00 at or before the reference and week_end is one week later
    """
    local = ensure_aware(reference).astimezone(zone)
    days_back = (local.weekday() - WEEK_END_WEEKDAY) % 7
    candidate = (local - timedelta(days=days_back)).replace(
        hour=WEEK_END_HOUR, minute=WEEK_END_MINUTE, second=0, microsecond=0
    )
    if candidate > local:
        candidate -= timedelta(days=7)
    # Rebuild from the wall clock so DST offsets stay correct
    week_start = datetime(
        candidate.year, candidate.month, candidate.day,
        WEEK_END_HOUR, WEEK_END_MINUTE, tzinfo=zone
    )
    next_day = week_start + timedelta(days=7)
    week_end = datetime(
        next_day.year, next_day.month, next_day.day,
        WEEK_END_HOUR, WEEK_END_MINUTE, tzinfo=zone
    )
    return week_start, week_end


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    for day in (value.day, 30, 29, 28):
        try:
            return value.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    raise ValueError(f"Cannot add {months} months to {value.isoformat()}")


def next_weekly_occurrence(
    now: datetime,
    zone: tzinfo,
    weekday: int = WEEK_END_WEEKDAY,
    hour: int = 16,
    minute: int = 30
) -> datetime:
    """Next wall-clock occurrence of weekday/hour/minute strictly after now"""
    local = ensure_aware(now).astimezone(zone)
    days_ahead = (weekday - local.weekday()) % 7
    day = (local + timedelta(days=days_ahead)).date()
    candidate = datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)
    if candidate <= local:
        day = day + timedelta(days=7)
        candidate = datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)
    return candidate


def next_daily_occurrence(now: datetime, zone: tzinfo, hour: int, minute: int = 0) -> datetime:
    """Next wall-clock hour/minute in zone strictly after now"""
    local = ensure_aware(now).astimezone(zone)
    candidate = datetime(local.year, local.month, local.day, hour, minute, tzinfo=zone)
    if candidate <= local:
        day = local.date() + timedelta(days=1)
        candidate = datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)
    return candidate
