"""
Pydantic models for the Support Intelligence Pipeline
"""

from support_intel.models.ticket import (
    TicketStatus,
    Priority,
    TicketRecord,
    GroupRecord,
    CompanyRecord,
)
from support_intel.models.metrics import (
    PriorityBreakdown,
    StatusBreakdown,
    GroupResolution,
    GroupBreakdown,
    CompanyTicketCount,
    TagCount,
    TagsAnalysis,
    UnresolvedSnapshot,
    WeeklyMetrics,
    DateRangeInfo,
    DateRangeMetrics,
    EngineerHoursInput,
    DerivedEngineerMetrics,
)
from support_intel.models.snapshot import (
    SnapshotCategory,
    Snapshot,
    SnapshotWriteResult,
    IngestionJobResult,
)

__all__ = [
    # Tickets
    "TicketStatus",
    "Priority",
    "TicketRecord",
    "GroupRecord",
    "CompanyRecord",

    # Metrics
    "PriorityBreakdown",
    "StatusBreakdown",
    "GroupResolution",
    "GroupBreakdown",
    "CompanyTicketCount",
    "TagCount",
    "TagsAnalysis",
    "UnresolvedSnapshot",
    "WeeklyMetrics",
    "DateRangeInfo",
    "DateRangeMetrics",
    "EngineerHoursInput",
    "DerivedEngineerMetrics",

    # Snapshots / jobs
    "SnapshotCategory",
    "Snapshot",
    "SnapshotWriteResult",
    "IngestionJobResult",
]
