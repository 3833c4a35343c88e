"""
Shared ticket aggregations

Pure functions over TicketRecord collections. Unknown status or priority
codes match no bucket. Reductions that pick a "top" entry break ties
deterministically: highest count first, then lowest id (companies) or
alphabetical order (tags).
"""
from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from support_intel.models.metrics import (
    CompanyTicketCount,
    GroupBreakdown,
    GroupResolution,
    PriorityBreakdown,
    StatusBreakdown,
    TagCount,
    TagsAnalysis,
)
from support_intel.models.ticket import Priority, TERMINAL_STATUSES, TicketRecord, TicketStatus

TOP_TAGS_LIMIT = 10


def group_label(groups: Optional[Mapping[int, str]], group_id: int) -> str:
    return (groups or {}).get(group_id) or f"Group {group_id}"


def company_label(companies: Optional[Mapping[int, str]], company_id: int) -> str:
    return (companies or {}).get(company_id) or f"Company {company_id}"


def count_created_between(tickets: Iterable[TicketRecord], start: datetime, end: datetime) -> int:
    """Tickets created in [start, end], inclusive on both ends"""
    return sum(1 for t in tickets if start <= t.created_at <= end)


def status_breakdown(tickets: Iterable[TicketRecord]) -> StatusBreakdown:
    counts = Counter(t.status for t in tickets)
    return StatusBreakdown(
        open=counts[TicketStatus.OPEN],
        pending=counts[TicketStatus.PENDING],
        resolved=counts[TicketStatus.RESOLVED],
        closed=counts[TicketStatus.CLOSED],
    )


def priority_breakdown(tickets: Iterable[TicketRecord]) -> PriorityBreakdown:
    counts = Counter(t.priority for t in tickets)
    return PriorityBreakdown(
        urgent=counts[Priority.URGENT],
        high=counts[Priority.HIGH],
        medium=counts[Priority.MEDIUM],
        low=counts[Priority.LOW],
    )


def _group_stats(tickets: Iterable[TicketRecord]) -> Dict[int, Dict[str, int]]:
    stats: Dict[int, Dict[str, int]] = {}
    for ticket in tickets:
        if ticket.group_id is None:
            continue
        entry = stats.setdefault(ticket.group_id, {"total": 0, "resolved": 0, "open": 0, "pending": 0})
        entry["total"] += 1
        if ticket.status in TERMINAL_STATUSES:
            entry["resolved"] += 1
        elif ticket.status == TicketStatus.OPEN:
            entry["open"] += 1
        elif ticket.status == TicketStatus.PENDING:
            entry["pending"] += 1
    return stats


def resolution_by_group(
    tickets: Iterable[TicketRecord],
    groups: Optional[Mapping[int, str]] = None
) -> List[GroupResolution]:
    """Per-group resolved (resolved + closed), open and pending counts, ordered by group id"""
    stats = _group_stats(tickets)
    return [
        GroupResolution(
            group_id=group_id,
            group_name=group_label(groups, group_id),
            tickets_resolved=entry["resolved"],
            tickets_open=entry["open"],
            tickets_pending=entry["pending"],
        )
        for group_id, entry in sorted(stats.items())
    ]


def group_breakdown(
    tickets: Iterable[TicketRecord],
    groups: Optional[Mapping[int, str]] = None
) -> List[GroupBreakdown]:
    """Per-group totals, ordered by ticket count descending then group id"""
    stats = _group_stats(tickets)
    ordered = sorted(stats.items(), key=lambda item: (-item[1]["total"], item[0]))
    return [
        GroupBreakdown(
            group_id=group_id,
            group_name=group_label(groups, group_id),
            ticket_count=entry["total"],
            resolved=entry["resolved"],
            open=entry["open"],
            pending=entry["pending"],
        )
        for group_id, entry in ordered
    ]


def company_breakdown(
    tickets: Iterable[TicketRecord],
    companies: Optional[Mapping[int, str]] = None
) -> List[CompanyTicketCount]:
    """Ticket counts per company, highest count first, ties by lowest company id"""
    counts = Counter(t.company_id for t in tickets if t.company_id is not None)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        CompanyTicketCount(
            company_id=company_id,
            company_name=company_label(companies, company_id),
            ticket_count=count,
        )
        for company_id, count in ordered
    ]


def top_company(
    tickets: Iterable[TicketRecord],
    companies: Optional[Mapping[int, str]] = None
) -> Optional[CompanyTicketCount]:
    breakdown = company_breakdown(tickets, companies)
    return breakdown[0] if breakdown else None


def average_resolution_hours(tickets: Iterable[TicketRecord]) -> Optional[float]:
    """
    Mean of (updated_at - created_at) in hours over resolved and closed tickets

    Returns:
        None when there are no resolved or closed tickets. The mean is not
        rounded; short resolutions stay above zero.
    """
    durations = [t.resolution_hours for t in tickets if t.is_resolved_or_closed]
    if not durations:
        return None
    return sum(durations) / len(durations)


def tags_analysis(tickets: Sequence[TicketRecord], limit: int = TOP_TAGS_LIMIT) -> TagsAnalysis:
    """Tag usage with the `limit` most frequent tags"""
    counts: Counter = Counter()
    with_tags = 0
    for ticket in tickets:
        if ticket.tags:
            with_tags += 1
            counts.update(ticket.tags)

    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return TagsAnalysis(
        tickets_with_tags=with_tags,
        tickets_without_tags=len(tickets) - with_tags,
        tag_breakdown=[TagCount(tag=tag, count=count) for tag, count in ordered],
    )
