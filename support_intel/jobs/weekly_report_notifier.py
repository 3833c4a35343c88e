"""
Weekly report notification

Runs Friday 17:00 in the reporting timezone, half an hour after weekly
ingestion. Announces today's weekly snapshot on Discord, or raises an
urgent alert when the snapshot was not written.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from support_intel.models.snapshot import Snapshot, SnapshotCategory
from support_intel.repositories.snapshot_repository import SnapshotWriter
from support_intel.services.discord_notifier import DiscordNotifier, NotificationField, NotificationMessage
from support_intel.utils.datetime_utils import utc_now
from support_intel.utils.errors import AppError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

REPORT_FOOTER = "Support Intelligence Dashboard"
READY_COLOR = 0x419372
MISSING_COLOR = 0xFF0000


def format_hours(value: Optional[float]) -> str:
    return f"{value:.2f} h" if value is not None else "n/a"


class WeeklyReportNotifier:
    """Posts the weekly report summary for today's weekly snapshot"""

    def __init__(
        self,
        snapshot_writer: SnapshotWriter,
        notifier: DiscordNotifier,
        clock: Callable[[], datetime] = utc_now
    ):
        self.snapshot_writer = snapshot_writer
        self.notifier = notifier
        self.clock = clock

    def build_ready_message(self, snapshot: Snapshot) -> NotificationMessage:
        payload: Dict[str, Any] = snapshot.payload
        top_company = payload.get("customerWithMaxTickets") or {}
        return NotificationMessage(
            title="📊 Weekly Report Ready",
            description="The weekly support data has been synced. Please review the weekly report.",
            color=READY_COLOR,
            fields=[
                NotificationField(name="🗂 Snapshot", value=snapshot.snapshot_id),
                NotificationField(name="🎫 Tickets", value=str(payload.get("totalTickets", 0))),
                NotificationField(name="✅ Resolved", value=str(payload.get("ticketsResolved", 0))),
                NotificationField(name="🔒 Closed", value=str(payload.get("ticketsClosed", 0))),
                NotificationField(
                    name="⏱ Avg Resolution",
                    value=format_hours(payload.get("averageResolutionTimeHours"))
                ),
                NotificationField(name="🏢 Top Customer", value=top_company.get("companyName") or "n/a"),
            ],
            footer=REPORT_FOOTER,
            timestamp=self.clock(),
            mention=None,
        )

    def build_missing_message(self, snapshot_id: str) -> NotificationMessage:
        return NotificationMessage(
            title="🚨 URGENT: Weekly Snapshot Missing",
            description=(
                f"Weekly snapshot **{snapshot_id}** was not written. "
                "Check the weekly ingestion logs and trigger it manually."
            ),
            color=MISSING_COLOR,
            footer=REPORT_FOOTER,
            timestamp=self.clock(),
        )

    async def run(self) -> bool:
        """
        Send the weekly report notification

        Returns:
            True if a notification was delivered
        """
        snapshot_id = self.snapshot_writer.snapshot_id_for(SnapshotCategory.WEEKLY)
        try:
            snapshot = self.snapshot_writer.get(snapshot_id)
        except AppError as e:
            logger.error(f"Could not read weekly snapshot {snapshot_id}: {e}")
            snapshot = None

        if snapshot is None:
            logger.warning(f"Weekly snapshot {snapshot_id} missing, sending urgent alert")
            message = self.build_missing_message(snapshot_id)
        else:
            message = self.build_ready_message(snapshot)

        sent = await self.notifier.send(message)
        if sent:
            logger.info(f"Weekly report notification sent for {snapshot_id}")
        return sent
