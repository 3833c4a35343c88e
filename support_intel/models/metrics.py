"""
Metrics models produced by the aggregation engine

All models are frozen and serialise with camelCase keys:

    metrics.model_dump(mode="json", by_alias=True)

Numeric results that cannot be computed are None (serialised as null),
never omitted.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MetricsModel(BaseModel):
    """Base for immutable, camelCase-serialised metrics objects"""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PriorityBreakdown(MetricsModel):
    urgent: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class StatusBreakdown(MetricsModel):
    open: int = 0
    pending: int = 0
    resolved: int = 0
    closed: int = 0


class GroupResolution(MetricsModel):
    """Per-group resolution counts; resolved includes closed tickets"""
    group_id: int
    group_name: str
    tickets_resolved: int = 0
    tickets_open: int = 0
    tickets_pending: int = 0


class GroupBreakdown(MetricsModel):
    group_id: int
    group_name: str
    ticket_count: int = 0
    resolved: int = 0
    open: int = 0
    pending: int = 0


class CompanyTicketCount(MetricsModel):
    company_id: int
    company_name: str
    ticket_count: int


class TagCount(MetricsModel):
    tag: str
    count: int


class TagsAnalysis(MetricsModel):
    tickets_with_tags: int = 0
    tickets_without_tags: int = 0
    tag_breakdown: List[TagCount] = Field(default_factory=list)


class OpenPendingCounts(MetricsModel):
    open: int = 0
    pending: int = 0


class ProductSupportCounts(OpenPendingCounts):
    marked_for_release: int = 0


class UnresolvedSnapshot(MetricsModel):
    """Open backlog of the two support tiers at compute time"""
    support_engineers: OpenPendingCounts = Field(default_factory=OpenPendingCounts)
    product_support: ProductSupportCounts = Field(default_factory=ProductSupportCounts)


class WeeklyMetrics(MetricsModel):
    snapshot_id: str
    week_start_date: datetime
    week_end_date: datetime
    computed_at: datetime
    total_tickets: int
    tickets_created: int
    tickets_resolved: int
    tickets_closed: int
    tickets_open: int
    tickets_pending: int
    priority_breakdown: PriorityBreakdown
    resolution_by_group: List[GroupResolution]
    customer_with_max_tickets: Optional[CompanyTicketCount]
    unresolved_snapshot: UnresolvedSnapshot
    average_resolution_time_hours: Optional[float]
    tags_analysis: TagsAnalysis


class DateRangeInfo(MetricsModel):
    start_date: datetime
    end_date: datetime
    display_range: str


class DateRangeMetrics(MetricsModel):
    date_range: DateRangeInfo
    computed_at: datetime
    total_tickets: int
    tickets_created: int
    tickets_resolved: int
    tickets_closed: int
    tickets_open: int
    tickets_pending: int
    priority_breakdown: PriorityBreakdown
    status_breakdown: StatusBreakdown
    escalated_tickets: int
    group_breakdown: List[GroupBreakdown]
    company_breakdown: List[CompanyTicketCount]
    top_company: Optional[CompanyTicketCount]
    average_resolution_time_hours: Optional[float]
    tags_analysis: TagsAnalysis


class EngineerHoursInput(MetricsModel):
    """Hand-entered weekly hours for one engineer"""
    engineer_name: str
    total_hours_worked: float
    week_snapshot_id: str


class DerivedEngineerMetrics(MetricsModel):
    engineer_name: str
    week_snapshot_id: str
    total_hours_worked: float
    tickets_resolved: int
    average_time_per_ticket_hours: Optional[float]
    computed_at: datetime
    computed_at: datetime
