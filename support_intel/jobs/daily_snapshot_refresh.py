"""
Daily snapshot refresh

Pulls a payload from an analytics source and stores it as today's snapshot
with force refresh, so the morning run always wins over earlier manual
writes. Used for the telemetry (rft) and sync performance categories.
"""
from datetime import datetime, timedelta, tzinfo
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from support_intel.analytics.date_range_metrics import compute_date_range_metrics
from support_intel.models.snapshot import SnapshotCategory, SnapshotWriteResult
from support_intel.repositories.snapshot_repository import SnapshotWriter
from support_intel.repositories.ticket_repository import TicketRepository
from support_intel.services.label_cache import LabelCache
from support_intel.utils.datetime_utils import utc_now
from support_intel.utils.errors import AppError, JobExecutionError, RequestError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

PayloadSource = Callable[[], Awaitable[Dict[str, Any]]]


class DailySnapshotRefresh:
    """Fetch-and-write job for one snapshot category"""

    def __init__(
        self,
        category: SnapshotCategory,
        source: PayloadSource,
        writer: SnapshotWriter,
        force_refresh: bool = True
    ):
        self.category = SnapshotCategory(category)
        self.source = source
        self.writer = writer
        self.force_refresh = force_refresh

    async def run(self) -> Optional[SnapshotWriteResult]:
        """
        Refresh today's snapshot

        Returns:
            Write result, or None when the source or the store failed

        Raises:
            JobExecutionError: If the source raised an unclassified error
        """
        logger.info(f"Starting daily {self.category.value} snapshot refresh")
        try:
            payload = await self.source()
            result = self.writer.write(self.category, payload, force_refresh=self.force_refresh)
        except AppError as e:
            logger.error(f"Daily {self.category.value} snapshot refresh failed: {e}")
            return None
        except Exception as e:
            raise JobExecutionError(
                f"Daily {self.category.value} snapshot source failed: {type(e).__name__}: {e}",
                context={"category": self.category.value}
            ) from e

        logger.info(f"Daily {self.category.value} snapshot refresh completed: {result.snapshot_id}")
        return result


def sync_performance_source(
    ticket_repository: TicketRepository,
    label_cache: LabelCache,
    zone: tzinfo,
    days: int = 7,
    clock: Callable[[], datetime] = utc_now
) -> PayloadSource:
    """
    Build a payload source summarising the trailing `days` of stored tickets

    Payload shape: {"dateRange": {...}, "totals": {...}, "byGroup": [...]}
    """
    async def source() -> Dict[str, Any]:
        end = clock()
        start = end - timedelta(days=days)
        metrics = compute_date_range_metrics(
            ticket_repository.list_all(),
            start,
            end,
            groups=label_cache.groups,
            companies=label_cache.companies,
            now=end,
            display_timezone=zone,
        ).to_json_dict()
        return {
            "dateRange": metrics["dateRange"],
            "totals": {
                "totalTickets": metrics["totalTickets"],
                "ticketsResolved": metrics["ticketsResolved"],
                "ticketsClosed": metrics["ticketsClosed"],
                "ticketsOpen": metrics["ticketsOpen"],
                "ticketsPending": metrics["ticketsPending"],
                "escalatedTickets": metrics["escalatedTickets"],
                "averageResolutionTimeHours": metrics["averageResolutionTimeHours"],
            },
            "byGroup": metrics["groupBreakdown"],
        }

    return source


def http_json_source(
    url: str,
    timeout_seconds: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> PayloadSource:
    """
    Build a payload source that GETs a pre-aggregated JSON object

    Used for the telemetry (rft) snapshot, whose figures come from an
    external analytics service. Expected shape:
    {"totals": {...}, "byOrganisation": [...]}

    Raises (from the returned source):
        RequestError: On transport failure, a non-2xx status or a body that
            is not a JSON object
    """
    async def source() -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=timeout_seconds, transport=transport) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise RequestError(f"Telemetry source unreachable: {type(e).__name__}: {e}", endpoint=url) from e

        if not response.is_success:
            raise RequestError(
                f"Telemetry source error: {response.status_code}",
                endpoint=url,
                upstream_status=response.status_code
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise RequestError(f"Telemetry source returned invalid JSON: {e}", endpoint=url) from e
        if not isinstance(payload, dict):
            raise RequestError("Telemetry source must return a JSON object", endpoint=url)
        return payload

    return source
