"""
Metrics aggregation engine (pure, synchronous, no I/O)
"""
from support_intel.analytics.weekly_metrics import compute_weekly_metrics, compute_unresolved_snapshot
from support_intel.analytics.date_range_metrics import compute_date_range_metrics
from support_intel.analytics.engineer_metrics import compute_engineer_metrics, validate_engineer_hours_input

__all__ = [
    "compute_weekly_metrics",
    "compute_unresolved_snapshot",
    "compute_date_range_metrics",
    "compute_engineer_metrics",
    "validate_engineer_hours_input",
]
