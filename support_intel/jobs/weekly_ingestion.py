"""
Weekly ingestion job

Runs every Friday 16:30 (reporting timezone), shortly before the week closes:
1. Incremental ticket sync, upserted into the ticket table
2. Watermark committed once the upsert succeeded
3. Group/company labels refreshed when stale
4. Weekly metrics computed for the current week
5. Weekly snapshot written (idempotent per day)

run_bulk_reload() replaces the ticket table with a fresh year-to-date walk.
"""
import random
import time
from datetime import datetime
from typing import Callable, Optional

from support_intel.analytics.weekly_metrics import compute_weekly_metrics
from support_intel.config import Settings, get_settings
from support_intel.models.snapshot import IngestionJobResult, SnapshotCategory
from support_intel.repositories.snapshot_repository import SnapshotWriter
from support_intel.repositories.ticket_repository import TicketRepository
from support_intel.services.freshdesk import FreshdeskClient
from support_intel.services.label_cache import LabelCache
from support_intel.services.ticket_sync import SyncBatch, TicketSyncService
from support_intel.utils.datetime_utils import format_iso, get_timezone, utc_now, week_boundaries
from support_intel.utils.errors import AppError, to_error_message
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)


def create_job_id(now: Optional[datetime] = None) -> str:
    """job_{epoch ms}_{random suffix}"""
    millis = int((now or utc_now()).timestamp() * 1000)
    suffix = "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=7))
    return f"job_{millis}_{suffix}"


class WeeklyIngestionJob:
    """Incremental sync + weekly snapshot"""

    def __init__(
        self,
        client: FreshdeskClient,
        sync_service: TicketSyncService,
        ticket_repository: TicketRepository,
        label_cache: LabelCache,
        snapshot_writer: SnapshotWriter,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.settings = settings or get_settings()
        self.client = client
        self.sync_service = sync_service
        self.ticket_repository = ticket_repository
        self.label_cache = label_cache
        self.snapshot_writer = snapshot_writer
        self.clock = clock
        self.timezone = get_timezone(self.settings.timezone)
        self.last_result: Optional[IngestionJobResult] = None

    def _finish(
        self,
        job_id: str,
        started_at: datetime,
        started_monotonic: float,
        **fields
    ) -> IngestionJobResult:
        result = IngestionJobResult(
            job_id=job_id,
            started_at=started_at,
            completed_at=self.clock(),
            duration_ms=int((time.monotonic() - started_monotonic) * 1000),
            **fields
        )
        self.last_result = result
        return result

    async def execute(self, force_refresh: bool = False) -> IngestionJobResult:
        """
        Run one weekly ingestion

        Args:
            force_refresh: Replace today's weekly snapshot if it already exists

        Returns:
            IngestionJobResult; failures are reported with success=False
        """
        started_at = self.clock()
        started_monotonic = time.monotonic()
        job_id = create_job_id(started_at)
        week_start, week_end = week_boundaries(started_at, self.timezone)
        snapshot_id = self.snapshot_writer.snapshot_id_for(SnapshotCategory.WEEKLY)

        logger.info(
            f"Weekly ingestion {job_id} started for week "
            f"{format_iso(week_start)} - {format_iso(week_end)} (snapshot {snapshot_id})"
        )

        try:
            batch = await self.sync_service.run_incremental(self._persist_incremental)
            await self.label_cache.refresh_if_stale(self.client)

            week_tickets = self.ticket_repository.list_created_between(week_start, week_end)
            metrics = compute_weekly_metrics(
                snapshot_id,
                week_start,
                week_end,
                week_tickets,
                groups=self.label_cache.groups,
                companies=self.label_cache.companies,
                now=self.clock(),
                support_engineers_group=self.settings.support_engineers_group,
                product_support_group=self.settings.product_support_group,
                marked_for_release_type=self.settings.marked_for_release_type,
            )
            write = self.snapshot_writer.write(
                SnapshotCategory.WEEKLY,
                metrics.to_json_dict(),
                force_refresh=force_refresh
            )
        except AppError as e:
            logger.error(f"Weekly ingestion {job_id} failed: {e}")
            return self._finish(
                job_id, started_at, started_monotonic,
                success=False, snapshot_id=snapshot_id, error=to_error_message(e)
            )

        result = self._finish(
            job_id, started_at, started_monotonic,
            success=True,
            snapshot_id=write.snapshot_id,
            tickets_ingested=len(batch.tickets),
            groups_ingested=len(self.label_cache.groups),
            companies_ingested=len(self.label_cache.companies),
            snapshot_already_existed=write.already_exists,
        )
        logger.info(
            f"Weekly ingestion {job_id} completed: {result.tickets_ingested} tickets, "
            f"{len(week_tickets)} in week, {result.duration_ms}ms"
        )
        return result

    def _persist_incremental(self, batch: SyncBatch) -> int:
        return self.ticket_repository.upsert_many(batch.tickets)

    def _persist_bulk(self, batch: SyncBatch) -> int:
        return self.ticket_repository.replace_all(batch.tickets)

    async def run_bulk_reload(self) -> IngestionJobResult:
        """Replace the ticket table with every ticket created this year"""
        started_at = self.clock()
        started_monotonic = time.monotonic()
        job_id = create_job_id(started_at)
        logger.info(f"Bulk reload {job_id} started")

        try:
            batch = await self.sync_service.run_bulk(self._persist_bulk)
            self.label_cache.invalidate()
            await self.label_cache.refresh_if_stale(self.client)
        except AppError as e:
            logger.error(f"Bulk reload {job_id} failed: {e}")
            return self._finish(
                job_id, started_at, started_monotonic,
                success=False, error=to_error_message(e)
            )

        result = self._finish(
            job_id, started_at, started_monotonic,
            success=True,
            tickets_ingested=len(batch.tickets),
            groups_ingested=len(self.label_cache.groups),
            companies_ingested=len(self.label_cache.companies),
        )
        logger.info(f"Bulk reload {job_id} completed: {result.tickets_ingested} tickets, {result.duration_ms}ms")
        return result
