"""
Weekly metrics calculator

Computes the weekly report from the tickets of one reporting week
(Friday 17:00 to Friday 17:00). The caller chooses the ticket collection;
`tickets_created` additionally checks creation time against the window.
"""
from datetime import datetime
from typing import Mapping, Optional, Sequence

from support_intel.analytics.aggregations import (
    average_resolution_hours,
    count_created_between,
    priority_breakdown,
    resolution_by_group,
    status_breakdown,
    tags_analysis,
    top_company,
)
from support_intel.models.metrics import (
    OpenPendingCounts,
    ProductSupportCounts,
    UnresolvedSnapshot,
    WeeklyMetrics,
)
from support_intel.models.ticket import TicketRecord, TicketStatus
from support_intel.utils.datetime_utils import utc_now

SUPPORT_ENGINEERS_GROUP_NAME = "Support Engineers"
PRODUCT_SUPPORT_GROUP_NAME = "Product Support"
MARKED_FOR_RELEASE_TYPE = "Marked for release"


def _find_group_id(groups: Optional[Mapping[int, str]], name: str) -> Optional[int]:
    for group_id, group_name in (groups or {}).items():
        if group_name == name:
            return group_id
    return None


def compute_unresolved_snapshot(
    tickets: Sequence[TicketRecord],
    groups: Optional[Mapping[int, str]] = None,
    support_engineers_group: str = SUPPORT_ENGINEERS_GROUP_NAME,
    product_support_group: str = PRODUCT_SUPPORT_GROUP_NAME,
    marked_for_release_type: str = MARKED_FOR_RELEASE_TYPE
) -> UnresolvedSnapshot:
    """Open and pending backlog of the two support tiers; unknown groups count zero"""
    se_id = _find_group_id(groups, support_engineers_group)
    ps_id = _find_group_id(groups, product_support_group)

    se = {"open": 0, "pending": 0}
    ps = {"open": 0, "pending": 0, "marked_for_release": 0}

    for ticket in tickets:
        if ticket.group_id is None:
            continue
        if ticket.group_id == se_id:
            if ticket.status == TicketStatus.OPEN:
                se["open"] += 1
            elif ticket.status == TicketStatus.PENDING:
                se["pending"] += 1
        if ticket.group_id == ps_id:
            if ticket.status == TicketStatus.OPEN:
                ps["open"] += 1
            elif ticket.status == TicketStatus.PENDING:
                ps["pending"] += 1
            if ticket.ticket_type == marked_for_release_type:
                ps["marked_for_release"] += 1

    return UnresolvedSnapshot(
        support_engineers=OpenPendingCounts(**se),
        product_support=ProductSupportCounts(**ps),
    )


def compute_weekly_metrics(
    snapshot_id: str,
    week_start: datetime,
    week_end: datetime,
    tickets: Sequence[TicketRecord],
    groups: Optional[Mapping[int, str]] = None,
    companies: Optional[Mapping[int, str]] = None,
    now: Optional[datetime] = None,
    support_engineers_group: str = SUPPORT_ENGINEERS_GROUP_NAME,
    product_support_group: str = PRODUCT_SUPPORT_GROUP_NAME,
    marked_for_release_type: str = MARKED_FOR_RELEASE_TYPE
) -> WeeklyMetrics:
    """
    Compute weekly metrics

    Args:
        snapshot_id: Weekly snapshot id the metrics belong to
        week_start: Window start (inclusive)
        week_end: Window end (inclusive)
        tickets: Tickets of the week
        groups: Group id -> name labels
        companies: Company id -> name labels
        now: computed_at timestamp (current UTC time if None)

    Returns:
        Immutable WeeklyMetrics
    """
    tickets = list(tickets)
    statuses = status_breakdown(tickets)

    return WeeklyMetrics(
        snapshot_id=snapshot_id,
        week_start_date=week_start,
        week_end_date=week_end,
        computed_at=now or utc_now(),
        total_tickets=len(tickets),
        tickets_created=count_created_between(tickets, week_start, week_end),
        tickets_resolved=statuses.resolved,
        tickets_closed=statuses.closed,
        tickets_open=statuses.open,
        tickets_pending=statuses.pending,
        priority_breakdown=priority_breakdown(tickets),
        resolution_by_group=resolution_by_group(tickets, groups),
        customer_with_max_tickets=top_company(tickets, companies),
        unresolved_snapshot=compute_unresolved_snapshot(
            tickets,
            groups,
            support_engineers_group=support_engineers_group,
            product_support_group=product_support_group,
            marked_for_release_type=marked_for_release_type,
        ),
        average_resolution_time_hours=average_resolution_hours(tickets),
        tags_analysis=tags_analysis(tickets),
    )
