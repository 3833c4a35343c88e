"""
Date range parsing for date-range metrics
"""
from datetime import datetime, timedelta, tzinfo
from typing import NamedTuple, Optional

from support_intel.utils.datetime_utils import ensure_aware, parse_timestamp, utc_now
from support_intel.utils.errors import ValidationError

MAX_RANGE_DAYS = 400


class DateRange(NamedTuple):
    start: datetime
    end: datetime

    def display(self, zone: tzinfo) -> str:
        fmt = "%a, %d %b %Y %H:%M"
        start = self.start.astimezone(zone).strftime(fmt)
        end = self.end.astimezone(zone).strftime(fmt)
        return f"{start} to {end}"


def default_week_range(zone: tzinfo, now: Optional[datetime] = None) -> DateRange:
    """Monday 00:00 to Friday 16:30 of the current week in the given timezone"""
    local = ensure_aware(now or utc_now()).astimezone(zone)
    monday = local.date() - timedelta(days=local.weekday())
    friday = monday + timedelta(days=4)
    return DateRange(
        start=datetime(monday.year, monday.month, monday.day, tzinfo=zone),
        end=datetime(friday.year, friday.month, friday.day, 16, 30, tzinfo=zone),
    )


def parse_date_range(
    start: Optional[str],
    end: Optional[str],
    zone: tzinfo,
    now: Optional[datetime] = None
) -> DateRange:
    """
    Parse a caller-supplied date range

    Args:
        start: ISO-8601 start, or None for the default week
        end: ISO-8601 end, or None for the default week
        zone: Reporting timezone used for the default week
        now: Reference time for the default week

    Returns:
        Validated DateRange

    Raises:
        ValidationError: On unparseable dates, start after end, or a range
            longer than MAX_RANGE_DAYS
    """
    if not start or not end:
        return default_week_range(zone, now)

    try:
        start_dt = parse_timestamp(start)
        end_dt = parse_timestamp(end)
    except (ValueError, OverflowError) as e:
        raise ValidationError(
            "Invalid date format. Use ISO 8601 format (YYYY-MM-DDTHH:mm:ss)",
            context={"start": start, "end": end, "reason": str(e)}
        )

    if start_dt > end_dt:
        raise ValidationError("start must be before end", context={"start": start, "end": end})

    if end_dt - start_dt > timedelta(days=MAX_RANGE_DAYS):
        raise ValidationError(
            f"Date range cannot exceed {MAX_RANGE_DAYS} days",
            context={"start": start, "end": end}
        )

    return DateRange(start=start_dt, end=end_dt)
