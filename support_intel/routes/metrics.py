"""
Metrics and snapshot API routes
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from support_intel.analytics.date_range_metrics import compute_date_range_metrics
from support_intel.analytics.engineer_metrics import compute_engineer_metrics, validate_engineer_hours_input
from support_intel.models.snapshot import Snapshot, SnapshotCategory
from support_intel.pipeline import Pipeline, get_pipeline
from support_intel.utils.date_range import parse_date_range
from support_intel.utils.datetime_utils import get_timezone
from support_intel.utils.errors import AppError
from support_intel.utils.logger import get_logger

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])
logger = get_logger(__name__)


@router.get("/date-range")
async def get_date_range_metrics(
    start: Optional[str] = Query(None, description="ISO start (default: Monday 00:00 this week)"),
    end: Optional[str] = Query(None, description="ISO end (default: Friday 16:30 this week)"),
    pipeline: Pipeline = Depends(get_pipeline)
) -> Dict[str, Any]:
    """
    Compute metrics for tickets created in a date range

    Metrics:
    - Created / resolved / closed / open / pending counts
    - Priority, status, group and company breakdowns
    - Average resolution time (null when nothing was resolved)
    - Top 10 tags
    """
    zone = get_timezone(pipeline.settings.timezone)
    try:
        date_range = parse_date_range(start, end, zone)
        tickets = pipeline.ticket_repository.list_created_between(date_range.start, date_range.end)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    metrics = compute_date_range_metrics(
        tickets,
        date_range.start,
        date_range.end,
        groups=pipeline.label_cache.groups,
        companies=pipeline.label_cache.companies,
        display_timezone=zone,
    )
    return metrics.to_json_dict()


@router.post("/engineer")
async def get_engineer_metrics(
    hours: Dict[str, Any] = Body(..., description="{engineerName, totalHoursWorked, weekSnapshotId}"),
    tickets_resolved: int = Query(..., ge=0)
) -> Dict[str, Any]:
    """Derive average hours per resolved ticket for one engineer"""
    hours_input = validate_engineer_hours_input(hours)
    if hours_input is None:
        raise HTTPException(
            status_code=400,
            detail="Invalid engineer hours: name and snapshot id are required, hours must be a non-negative number"
        )
    return compute_engineer_metrics(hours_input, tickets_resolved).to_json_dict()


@router.get("/snapshots", response_model=List[Snapshot])
async def list_snapshots(
    category: SnapshotCategory = Query(SnapshotCategory.WEEKLY),
    limit: int = Query(52, ge=1, le=500),
    pipeline: Pipeline = Depends(get_pipeline)
):
    """List snapshots of a category, newest first"""
    try:
        return pipeline.snapshot_writer.list(category, limit=limit)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/snapshots/{snapshot_id}", response_model=Snapshot)
async def get_snapshot(snapshot_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    """Get a single snapshot by id"""
    try:
        snapshot = pipeline.snapshot_writer.get(snapshot_id)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"Snapshot {snapshot_id} not found")
    return snapshot
