"""
Engineer productivity metrics
"""
import math
from datetime import datetime
from typing import Any, Mapping, Optional

from support_intel.models.metrics import DerivedEngineerMetrics, EngineerHoursInput
from support_intel.utils.datetime_utils import utc_now


def _field(raw: Mapping[str, Any], camel: str, snake: str) -> Any:
    return raw[camel] if camel in raw else raw.get(snake)


def validate_engineer_hours_input(raw: Any) -> Optional[EngineerHoursInput]:
    """
    Validate hand-entered engineer hours

    Accepts camelCase or snake_case keys. Rejects non-mapping input, blank
    names, non-numeric or negative hours and blank snapshot ids.

    Returns:
        EngineerHoursInput with trimmed strings, or None when invalid
    """
    if not isinstance(raw, Mapping):
        return None

    name = _field(raw, "engineerName", "engineer_name")
    hours = _field(raw, "totalHoursWorked", "total_hours_worked")
    snapshot_id = _field(raw, "weekSnapshotId", "week_snapshot_id")

    if not isinstance(name, str) or not name.strip():
        return None
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        return None
    if not math.isfinite(hours) or hours < 0:
        return None
    if not isinstance(snapshot_id, str) or not snapshot_id.strip():
        return None

    return EngineerHoursInput(
        engineer_name=name.strip(),
        total_hours_worked=float(hours),
        week_snapshot_id=snapshot_id.strip(),
    )


def compute_engineer_metrics(
    hours_input: EngineerHoursInput,
    tickets_resolved: int,
    now: Optional[datetime] = None
) -> DerivedEngineerMetrics:
    """
    Derive per-engineer metrics

    Args:
        hours_input: Validated hours input
        tickets_resolved: Tickets the engineer resolved that week
        now: computed_at timestamp (current UTC time if None)

    Returns:
        DerivedEngineerMetrics; average_time_per_ticket_hours is None when
        no tickets were resolved
    """
    average = None
    if tickets_resolved > 0:
        average = hours_input.total_hours_worked / tickets_resolved

    return DerivedEngineerMetrics(
        engineer_name=hours_input.engineer_name,
        week_snapshot_id=hours_input.week_snapshot_id,
        total_hours_worked=hours_input.total_hours_worked,
        tickets_resolved=tickets_resolved,
        average_time_per_ticket_hours=average,
        computed_at=now or utc_now(),
    )
