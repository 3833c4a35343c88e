"""
Urgent Ticket Monitor

Polls Freshdesk for recently created urgent tickets and sends one Discord
alert per ticket.

States: IDLE -> POLLING -> NOTIFYING -> IDLE, and STOPPED after stop().

The trailing search window is only a safety margin for search-index lag.
Deduplication is done by the bounded notified-ticket set, which lives for
the life of the process.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from support_intel.config import Settings, get_settings
from support_intel.jobs.scheduler import IntervalJob
from support_intel.models.ticket import (
    Priority,
    TERMINAL_STATUSES,
    priority_label,
    status_label,
)
from support_intel.services.discord_notifier import DiscordNotifier, NotificationField, NotificationMessage
from support_intel.services.freshdesk import FreshdeskClient
from support_intel.utils.bounded_set import BoundedOrderedSet
from support_intel.utils.datetime_utils import get_timezone, parse_timestamp, utc_now
from support_intel.utils.errors import AppError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

ALERT_TITLE = "🚨 URGENT TICKET ALERT"
ALERT_FOOTER = "Freshdesk Urgent Ticket Monitor"


class MonitorState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    NOTIFYING = "notifying"
    STOPPED = "stopped"


class UrgentTicketMonitor:
    """Polling loop with a bounded notified-ticket set"""

    def __init__(
        self,
        client: FreshdeskClient,
        notifier: DiscordNotifier,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        settings = settings or get_settings()
        self.client = client
        self.notifier = notifier
        self.clock = clock
        self.poll_interval = settings.urgent_poll_interval_seconds
        self.lookback_days = settings.urgent_lookback_days
        self.timezone = get_timezone(settings.timezone)
        self.notified = BoundedOrderedSet(settings.notified_ticket_limit)
        self.state = MonitorState.IDLE
        self._stopped = False
        self._job: Optional[IntervalJob] = None

    @property
    def is_running(self) -> bool:
        return self._job is not None and self._job.is_running

    @property
    def notified_count(self) -> int:
        return len(self.notified)

    def start(self) -> None:
        """Poll once now and then every poll_interval seconds"""
        if self.is_running:
            logger.warning("Urgent ticket monitor already running")
            return
        self._stopped = False
        self.state = MonitorState.IDLE
        self._job = IntervalJob(
            "urgent-ticket-monitor",
            self.poll_once,
            self.poll_interval,
            run_immediately=True
        )
        self._job.start()
        logger.info(f"Urgent ticket monitor started (every {self.poll_interval}s)")

    def stop(self) -> None:
        """Cancel the schedule; a poll in progress is allowed to finish"""
        if self._job is not None:
            self._job.stop()
        self._stopped = True
        self.state = MonitorState.STOPPED
        logger.info("Urgent ticket monitor stopped")

    def clear_notified(self) -> None:
        self.notified.clear()
        logger.info("Cleared notified ticket set")

    def build_query(self) -> str:
        since = (self.clock() - timedelta(days=self.lookback_days)).astimezone(self.timezone).date()
        return f"priority:{int(Priority.URGENT)} AND created_at:>'{since.isoformat()}'"

    def build_message(self, ticket: Dict[str, Any], domain: str) -> NotificationMessage:
        ticket_url = f"https://{domain}/a/tickets/{ticket['id']}"

        created_display = "Unknown"
        try:
            created = parse_timestamp(ticket.get("created_at"))
        except (ValueError, OverflowError):
            created = None
        if created is not None:
            created_display = created.astimezone(self.timezone).strftime("%d %b %Y, %I:%M %p")

        requester = ticket.get("requester") or {}
        return NotificationMessage(
            title=ALERT_TITLE,
            description=ticket.get("subject") or "",
            fields=[
                NotificationField(name="🎫 Ticket ID", value=f"#{ticket['id']}"),
                NotificationField(name="⚡ Priority", value=priority_label(ticket.get("priority") or 0).title()),
                NotificationField(name="📊 Status", value=status_label(ticket.get("status") or 0).title()),
                NotificationField(name="👤 Requester", value=requester.get("name") or "Unknown"),
                NotificationField(name="🕐 Created", value=created_display),
                NotificationField(name="🔗 Link", value=f"[View Ticket]({ticket_url})", inline=False),
            ],
            footer=ALERT_FOOTER,
            timestamp=self.clock(),
        )

    async def poll_once(self) -> int:
        """
        Run one poll cycle

        Returns:
            Number of notifications sent in this cycle
        """
        if self._stopped:
            logger.debug("Monitor stopped, skipping poll")
            return 0

        self.state = MonitorState.POLLING
        sent = 0
        try:
            try:
                result = await self.client.search_tickets(self.build_query())
                # Resolved once per poll; links in every alert share it
                domain = self.client.credentials.current().domain
            except AppError as e:
                logger.error(f"Urgent ticket poll failed: {e}")
                return 0

            tickets = result.get("results", [])
            logger.info(f"Urgent ticket poll found {len(tickets)} tickets (total={result.get('total', 0)})")

            for ticket in tickets:
                ticket_id = ticket.get("id")
                if ticket_id is None or self.notified.contains(ticket_id):
                    continue
                if ticket.get("status") in TERMINAL_STATUSES:
                    continue

                self.state = MonitorState.NOTIFYING
                if await self.notifier.send(self.build_message(ticket, domain)):
                    self.notified.add(ticket_id)
                    sent += 1
                    logger.info(f"Urgent ticket #{ticket_id} notified")
                else:
                    logger.warning(f"Urgent ticket #{ticket_id} not notified, will retry next poll")
                self.state = MonitorState.POLLING

            evicted = self.notified.evict_to_bound()
            if evicted:
                logger.info(f"Evicted {evicted} oldest ids from notified set")
        finally:
            self.state = MonitorState.STOPPED if self._stopped else MonitorState.IDLE

        return sent
