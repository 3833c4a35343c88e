"""
Synchronization API Routes

Provides endpoints for syncing Freshdesk tickets into the ticket store:
- Bulk year-to-date reload
- Incremental sync from the watermark
- Weekly ingestion (incremental sync + weekly snapshot)
- Sync status monitoring
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel

from support_intel.models.snapshot import IngestionJobResult
from support_intel.pipeline import Pipeline, get_pipeline
from support_intel.utils.datetime_utils import format_iso
from support_intel.utils.errors import AppError
from support_intel.utils.logger import get_logger

router = APIRouter(prefix="/api/v1/sync", tags=["sync"])
logger = get_logger(__name__)


# Pydantic Models
class SyncTriggerResponse(BaseModel):
    """Sync trigger result"""
    accepted: bool
    mode: str
    message: str


class SyncStatus(BaseModel):
    """Current sync status"""
    sync_in_progress: bool = False
    current_mode: Optional[str] = None
    watermark: Optional[str] = None
    total_tickets: int = 0
    last_batch: Optional[Dict[str, Any]] = None
    last_job: Optional[IngestionJobResult] = None
    urgent_monitor_running: bool = False
    urgent_monitor_state: str = "idle"
    notified_tickets: int = 0


def _ensure_idle(pipeline: Pipeline) -> None:
    if pipeline.sync_service.is_running:
        mode = pipeline.sync_service.current_mode
        raise HTTPException(
            status_code=409,
            detail=f"Sync already in progress ({mode.value if mode else 'unknown'})"
        )


async def incremental_sync_task(pipeline: Pipeline) -> None:
    """Background task: incremental sync with upsert, no snapshot"""
    try:
        await pipeline.sync_service.run_incremental(
            lambda batch: pipeline.ticket_repository.upsert_many(batch.tickets)
        )
    except AppError as e:
        logger.error(f"Incremental sync failed: {e}")


@router.post("/tickets/bulk", response_model=SyncTriggerResponse)
async def sync_tickets_bulk(
    background_tasks: BackgroundTasks,
    pipeline: Pipeline = Depends(get_pipeline)
):
    """
    Reload every ticket created this year (replaces the ticket table)

    Returns 409 if a sync is already running.
    """
    _ensure_idle(pipeline)
    background_tasks.add_task(pipeline.weekly_job.run_bulk_reload)
    logger.info("Bulk reload accepted")
    return SyncTriggerResponse(accepted=True, mode="bulk", message="Bulk reload started")


@router.post("/tickets/incremental", response_model=SyncTriggerResponse)
async def sync_tickets_incremental(
    background_tasks: BackgroundTasks,
    pipeline: Pipeline = Depends(get_pipeline)
):
    """
    Fetch tickets updated since the watermark and upsert them

    Returns 409 if a sync is already running.
    """
    _ensure_idle(pipeline)
    background_tasks.add_task(incremental_sync_task, pipeline)
    logger.info("Incremental sync accepted")
    return SyncTriggerResponse(accepted=True, mode="incremental", message="Incremental sync started")


@router.post("/weekly", response_model=SyncTriggerResponse)
async def run_weekly_ingestion(
    background_tasks: BackgroundTasks,
    force_refresh: bool = Query(False, description="Replace today's weekly snapshot if it exists"),
    pipeline: Pipeline = Depends(get_pipeline)
):
    """Run the weekly ingestion job now"""
    _ensure_idle(pipeline)
    background_tasks.add_task(pipeline.weekly_job.execute, force_refresh)
    logger.info(f"Weekly ingestion accepted (force_refresh={force_refresh})")
    return SyncTriggerResponse(accepted=True, mode="weekly", message="Weekly ingestion started")


@router.get("/status", response_model=SyncStatus)
async def get_sync_status(pipeline: Pipeline = Depends(get_pipeline)):
    """
    Get current sync status

    Returns:
        - Whether a sync is running and which mode
        - Stored watermark
        - Stored ticket count
        - Last sync batch and last ingestion job
        - Urgent monitor status
    """
    try:
        watermark = pipeline.sync_service.current_watermark()
        total_tickets = pipeline.ticket_repository.count()
    except AppError as e:
        logger.error(f"Failed to read sync status: {e}")
        raise HTTPException(status_code=e.status_code, detail=e.message)

    mode = pipeline.sync_service.current_mode
    return SyncStatus(
        sync_in_progress=pipeline.sync_service.is_running,
        current_mode=mode.value if mode else None,
        watermark=format_iso(watermark) if watermark else None,
        total_tickets=total_tickets,
        last_batch=pipeline.sync_service.last_batch_summary,
        last_job=pipeline.weekly_job.last_result,
        urgent_monitor_running=pipeline.urgent_monitor.is_running,
        urgent_monitor_state=pipeline.urgent_monitor.state.value,
        notified_tickets=pipeline.urgent_monitor.notified_count,
    )
