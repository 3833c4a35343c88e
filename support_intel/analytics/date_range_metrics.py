"""
Date range metrics

Statistics over the tickets created within an arbitrary window.
Deterministic for identical input apart from `computed_at`.
"""
from datetime import datetime, tzinfo
from typing import Mapping, Optional, Sequence

from support_intel.analytics.aggregations import (
    average_resolution_hours,
    company_breakdown,
    count_created_between,
    group_breakdown,
    priority_breakdown,
    status_breakdown,
    tags_analysis,
)
from support_intel.models.metrics import DateRangeInfo, DateRangeMetrics
from support_intel.models.ticket import TicketRecord
from support_intel.utils.date_range import DateRange
from support_intel.utils.datetime_utils import get_timezone, utc_now


def compute_date_range_metrics(
    tickets: Sequence[TicketRecord],
    start: datetime,
    end: datetime,
    groups: Optional[Mapping[int, str]] = None,
    companies: Optional[Mapping[int, str]] = None,
    now: Optional[datetime] = None,
    display_timezone: Optional[tzinfo] = None
) -> DateRangeMetrics:
    """
    Compute metrics for tickets created in [start, end]

    Args:
        tickets: Candidate tickets; those created outside the window are ignored
        start: Window start (inclusive)
        end: Window end (inclusive)
        groups: Group id -> name labels
        companies: Company id -> name labels
        now: computed_at timestamp (current UTC time if None)
        display_timezone: Timezone for the human readable range (Asia/Kolkata if None)

    Returns:
        Immutable DateRangeMetrics
    """
    in_window = [t for t in tickets if start <= t.created_at <= end]
    statuses = status_breakdown(in_window)
    companies_ranked = company_breakdown(in_window, companies)
    zone = display_timezone or get_timezone("Asia/Kolkata")

    return DateRangeMetrics(
        date_range=DateRangeInfo(
            start_date=start,
            end_date=end,
            display_range=DateRange(start, end).display(zone),
        ),
        computed_at=now or utc_now(),
        total_tickets=len(in_window),
        tickets_created=count_created_between(in_window, start, end),
        tickets_resolved=statuses.resolved,
        tickets_closed=statuses.closed,
        tickets_open=statuses.open,
        tickets_pending=statuses.pending,
        priority_breakdown=priority_breakdown(in_window),
        status_breakdown=statuses,
        escalated_tickets=sum(1 for t in in_window if t.is_escalated),
        group_breakdown=group_breakdown(in_window, groups),
        company_breakdown=companies_ranked,
        top_company=companies_ranked[0] if companies_ranked else None,
        average_resolution_time_hours=average_resolution_hours(in_window),
        tags_analysis=tags_analysis(in_window),
    )
