"""
Ticket sync strategies

- Bulk reload: every ticket updated since Jan 1 (reporting timezone),
  filtered to tickets created this year. Ignores the watermark.
- Incremental sync: tickets updated since the stored watermark, fetched
  with a slower inter-page delay.

Strategies only fetch. Persisting the batch is the caller's job; the
watermark is committed after the caller has persisted it. run_bulk() and
run_incremental() bundle fetch, persist and commit under the sync lock.
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, ConfigDict

from support_intel.config import Settings, get_settings
from support_intel.models.ticket import TicketRecord
from support_intel.repositories.config_repository import WATERMARK_KEY, SystemConfigRepository
from support_intel.services.freshdesk import FreshdeskClient
from support_intel.utils.datetime_utils import format_iso, get_timezone, start_of_year, utc_now
from support_intel.utils.errors import SyncInProgressError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)


class SyncMode(str, Enum):
    BULK = "bulk"
    INCREMENTAL = "incremental"


class SyncBatch(BaseModel):
    """Tickets fetched by one sync run"""
    model_config = ConfigDict(frozen=True)

    mode: SyncMode
    since: datetime
    started_at: datetime
    completed_at: datetime
    tickets: List[TicketRecord]

    @property
    def duration_ms(self) -> int:
        return int((self.completed_at - self.started_at).total_seconds() * 1000)


class TicketSyncService:
    """Bulk and incremental ticket sync with a single in-flight run"""

    def __init__(
        self,
        client: FreshdeskClient,
        config_repository: SystemConfigRepository,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        settings = settings or get_settings()
        self.client = client
        self.config_repository = config_repository
        self.clock = clock
        self.timezone = get_timezone(settings.timezone)
        self.bulk_page_delay = settings.bulk_page_delay_seconds
        self.incremental_page_delay = settings.incremental_page_delay_seconds
        self._lock = asyncio.Lock()
        self.current_mode: Optional[SyncMode] = None
        self.last_batch_summary: Optional[dict] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def exclusive(self, mode: SyncMode):
        """
        Hold the sync lock for one run

        Raises:
            SyncInProgressError: If another run is in flight
        """
        if self._lock.locked():
            raise SyncInProgressError(
                f"Cannot start {mode.value} sync: {self.current_mode.value if self.current_mode else 'another'} sync in progress"
            )
        async with self._lock:
            self.current_mode = mode
            try:
                yield
            finally:
                self.current_mode = None

    def current_watermark(self) -> Optional[datetime]:
        return self.config_repository.get_datetime(WATERMARK_KEY)

    def commit_watermark(self, batch: SyncBatch) -> bool:
        """
        Advance the watermark to the batch start time

        Call only after the batch is durably persisted.

        Returns:
            True if the watermark moved, False if the stored value is already later
        """
        current = self.current_watermark()
        if current is not None and batch.started_at <= current:
            logger.warning(
                f"Watermark not moved: batch started {format_iso(batch.started_at)}, "
                f"stored watermark is {format_iso(current)}"
            )
            return False
        self.config_repository.set_datetime(WATERMARK_KEY, batch.started_at)
        logger.info(f"Watermark advanced to {format_iso(batch.started_at)}")
        return True

    async def bulk_reload(self) -> SyncBatch:
        """Fetch every ticket created since the start of the current year"""
        started_at = self.clock()
        since = start_of_year(started_at, self.timezone)
        logger.info(f"Starting bulk reload from {format_iso(since)}")

        tickets = await self.client.fetch_tickets_updated_since(since, page_delay=self.bulk_page_delay)
        # Tickets updated this year but created earlier belong to previous years
        this_year = [t for t in tickets if t.created_at >= since]

        batch = SyncBatch(
            mode=SyncMode.BULK,
            since=since,
            started_at=started_at,
            completed_at=self.clock(),
            tickets=this_year,
        )
        logger.info(
            f"Bulk reload fetched {len(tickets)} tickets, {len(this_year)} created this year "
            f"({batch.duration_ms}ms)"
        )
        return batch

    async def incremental_sync(self) -> SyncBatch:
        """Fetch tickets updated since the watermark (start of year when unset)"""
        started_at = self.clock()
        watermark = self.current_watermark()
        if watermark is None:
            since = start_of_year(started_at, self.timezone)
            logger.info(f"No watermark stored, incremental sync starts at {format_iso(since)}")
        else:
            since = watermark
            logger.info(f"Starting incremental sync from watermark {format_iso(since)}")

        tickets = await self.client.fetch_tickets_updated_since(since, page_delay=self.incremental_page_delay)

        batch = SyncBatch(
            mode=SyncMode.INCREMENTAL,
            since=since,
            started_at=started_at,
            completed_at=self.clock(),
            tickets=tickets,
        )
        logger.info(f"Incremental sync fetched {len(tickets)} tickets ({batch.duration_ms}ms)")
        return batch

    def _remember(self, batch: SyncBatch, persisted: Any) -> None:
        self.last_batch_summary = {
            "mode": batch.mode.value,
            "since": format_iso(batch.since),
            "started_at": format_iso(batch.started_at),
            "completed_at": format_iso(batch.completed_at),
            "tickets": len(batch.tickets),
            "persisted": persisted,
        }

    async def run_bulk(self, persist: Callable[[SyncBatch], Any]) -> SyncBatch:
        """Bulk reload, then persist under the sync lock"""
        async with self.exclusive(SyncMode.BULK):
            batch = await self.bulk_reload()
            persisted = persist(batch)
            self._remember(batch, persisted)
            return batch

    async def run_incremental(self, persist: Callable[[SyncBatch], Any]) -> SyncBatch:
        """Incremental sync, persist, then commit the watermark under the sync lock"""
        async with self.exclusive(SyncMode.INCREMENTAL):
            batch = await self.incremental_sync()
            persisted = persist(batch)
            self.commit_watermark(batch)
            self._remember(batch, persisted)
            return batch
