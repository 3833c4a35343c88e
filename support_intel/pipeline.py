"""
Pipeline wiring

Builds one instance of every component from Settings. The FastAPI app and
scripts use get_pipeline(); tests build their own with build_pipeline().
"""
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Callable, List, Optional

from support_intel.config import Settings, get_settings
from support_intel.jobs.daily_snapshot_refresh import (
    DailySnapshotRefresh,
    http_json_source,
    sync_performance_source,
)
from support_intel.jobs.retention_sweep import SnapshotRetentionSweep
from support_intel.jobs.scheduler import IntervalJob
from support_intel.jobs.urgent_ticket_monitor import UrgentTicketMonitor
from support_intel.jobs.weekly_ingestion import WeeklyIngestionJob
from support_intel.jobs.weekly_report_notifier import WeeklyReportNotifier
from support_intel.models.snapshot import SnapshotCategory
from support_intel.repositories.config_repository import SystemConfigRepository
from support_intel.repositories.document_store import DocumentStore, create_document_store
from support_intel.repositories.snapshot_repository import SnapshotWriter
from support_intel.repositories.ticket_repository import TicketRepository
from support_intel.services.credentials import ConfigStoreCredentialsProvider, StaticCredentialsProvider
from support_intel.services.discord_notifier import DiscordNotifier
from support_intel.services.freshdesk import FreshdeskClient
from support_intel.services.label_cache import LabelCache
from support_intel.services.ticket_sync import TicketSyncService
from support_intel.utils.datetime_utils import (
    get_timezone,
    next_daily_occurrence,
    next_weekly_occurrence,
    utc_now,
)
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

TICKETS_TABLE = "ytd_tickets"
SNAPSHOTS_TABLE = "snapshots"
SYSTEM_CONFIG_TABLE = "system_config"

DAY_SECONDS = 24 * 3600.0
WEEK_SECONDS = 7 * DAY_SECONDS


@dataclass
class Pipeline:
    settings: Settings
    client: FreshdeskClient
    ticket_repository: TicketRepository
    config_repository: SystemConfigRepository
    snapshot_writer: SnapshotWriter
    label_cache: LabelCache
    sync_service: TicketSyncService
    weekly_job: WeeklyIngestionJob
    weekly_report: WeeklyReportNotifier
    performance_refresh: DailySnapshotRefresh
    retention_sweep: SnapshotRetentionSweep
    urgent_monitor: UrgentTicketMonitor
    telemetry_refresh: Optional[DailySnapshotRefresh] = None
    clock: Callable[[], datetime] = utc_now
    scheduled_jobs: List[IntervalJob] = field(default_factory=list)

    def build_schedule(self) -> List[IntervalJob]:
        """
        Build the wall-clock aligned jobs (not started)

        - weekly ingestion: Friday 16:30, then every weekly_sync_interval_seconds
        - weekly report notification: Friday weekly_report_hour:00
        - sync performance / telemetry refresh: daily at daily_refresh_hour:00
        - snapshot retention sweep: daily at retention_sweep_hour:00
        """
        settings = self.settings
        zone = get_timezone(settings.timezone)
        now = self.clock()

        def delay_until(moment: datetime) -> float:
            return (moment - now).total_seconds()

        daily_refresh_at = next_daily_occurrence(now, zone, settings.daily_refresh_hour)
        jobs = [
            IntervalJob(
                "weekly-ingestion",
                self.weekly_job.execute,
                settings.weekly_sync_interval_seconds,
                initial_delay_seconds=delay_until(next_weekly_occurrence(now, zone))
            ),
            IntervalJob(
                "weekly-report-notification",
                self.weekly_report.run,
                WEEK_SECONDS,
                initial_delay_seconds=delay_until(
                    next_weekly_occurrence(now, zone, hour=settings.weekly_report_hour, minute=0)
                )
            ),
            IntervalJob(
                "daily-sync-performance-refresh",
                self.performance_refresh.run,
                DAY_SECONDS,
                initial_delay_seconds=delay_until(daily_refresh_at)
            ),
            IntervalJob(
                "snapshot-retention-sweep",
                self.retention_sweep.run,
                DAY_SECONDS,
                initial_delay_seconds=delay_until(
                    next_daily_occurrence(now, zone, settings.retention_sweep_hour)
                )
            ),
        ]
        if self.telemetry_refresh is not None:
            jobs.append(IntervalJob(
                "daily-telemetry-refresh",
                self.telemetry_refresh.run,
                DAY_SECONDS,
                initial_delay_seconds=delay_until(daily_refresh_at)
            ))
        return jobs

    def start_scheduler(self) -> None:
        """Start the urgent monitor and the scheduled jobs on the running loop"""
        self.scheduled_jobs = self.build_schedule()
        for job in self.scheduled_jobs:
            job.start()
        self.urgent_monitor.start()
        logger.info(f"Scheduler started with {len(self.scheduled_jobs)} jobs")

    def stop_scheduler(self) -> None:
        self.urgent_monitor.stop()
        for job in self.scheduled_jobs:
            job.stop()
        logger.info("Scheduler stopped")


def build_pipeline(
    settings: Optional[Settings] = None,
    tickets_store: Optional[DocumentStore] = None,
    snapshots_store: Optional[DocumentStore] = None,
    config_store: Optional[DocumentStore] = None,
    client: Optional[FreshdeskClient] = None,
    notifier: Optional[DiscordNotifier] = None,
    clock: Callable[[], datetime] = utc_now
) -> Pipeline:
    """
    Wire all pipeline components

    Args:
        settings: Settings (cached settings if None)
        tickets_store / snapshots_store / config_store: Stores (configured backend if None)
        client: Freshdesk client (built from settings if None)
        notifier: Notification channel (Discord webhook from settings if None)
        clock: Time source shared by all components

    Returns:
        Pipeline
    """
    settings = settings or get_settings()

    config_repository = SystemConfigRepository(
        config_store or create_document_store(SYSTEM_CONFIG_TABLE, settings)
    )
    ticket_repository = TicketRepository(
        tickets_store or create_document_store(TICKETS_TABLE, settings)
    )
    snapshot_writer = SnapshotWriter(
        snapshots_store or create_document_store(SNAPSHOTS_TABLE, settings),
        clock=clock,
        retention_months=settings.snapshot_retention_months
    )

    if client is None:
        credentials = ConfigStoreCredentialsProvider(
            config_repository,
            fallback=StaticCredentialsProvider(settings)
        )
        client = FreshdeskClient(credentials=credentials, settings=settings)

    label_cache = LabelCache(ttl_seconds=settings.label_cache_ttl_seconds, clock=clock)
    sync_service = TicketSyncService(client, config_repository, settings=settings, clock=clock)
    weekly_job = WeeklyIngestionJob(
        client,
        sync_service,
        ticket_repository,
        label_cache,
        snapshot_writer,
        settings=settings,
        clock=clock
    )
    performance_refresh = DailySnapshotRefresh(
        SnapshotCategory.PERFORMANCE,
        sync_performance_source(
            ticket_repository,
            label_cache,
            get_timezone(settings.timezone),
            clock=clock
        ),
        snapshot_writer
    )
    telemetry_refresh = None
    if settings.telemetry_source_url:
        telemetry_refresh = DailySnapshotRefresh(
            SnapshotCategory.TELEMETRY,
            http_json_source(
                settings.telemetry_source_url,
                timeout_seconds=settings.telemetry_source_timeout_seconds
            ),
            snapshot_writer
        )

    notifier = notifier or DiscordNotifier(settings=settings)
    urgent_monitor = UrgentTicketMonitor(
        client,
        notifier,
        settings=settings,
        clock=clock
    )

    return Pipeline(
        settings=settings,
        client=client,
        ticket_repository=ticket_repository,
        config_repository=config_repository,
        snapshot_writer=snapshot_writer,
        label_cache=label_cache,
        sync_service=sync_service,
        weekly_job=weekly_job,
        weekly_report=WeeklyReportNotifier(snapshot_writer, notifier, clock=clock),
        performance_refresh=performance_refresh,
        retention_sweep=SnapshotRetentionSweep(snapshot_writer),
        urgent_monitor=urgent_monitor,
        telemetry_refresh=telemetry_refresh,
        clock=clock,
    )


@lru_cache()
def get_pipeline() -> Pipeline:
    """Get cached pipeline instance"""
    return build_pipeline()
