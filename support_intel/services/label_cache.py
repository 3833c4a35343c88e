"""
Group and company label cache

Display names change rarely, so labels are refreshed from Freshdesk only
when the cache is older than its TTL. The `groups` and `companies` maps
feed the metrics engine, which synthesises missing labels ("Group 42").
"""
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, Optional

from support_intel.models.ticket import CompanyRecord, GroupRecord
from support_intel.services.freshdesk import FreshdeskClient
from support_intel.utils.datetime_utils import utc_now
from support_intel.utils.errors import RequestError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)


class LabelCache:
    """
    In-memory group/company name cache with TTL.

    Features:
    - Injected clock for deterministic expiry
    - Refresh failures keep the previous labels
    """

    def __init__(self, ttl_seconds: int = 3600, clock: Callable[[], datetime] = utc_now):
        self.cache_ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock
        self.groups: Dict[int, str] = {}
        self.companies: Dict[int, str] = {}
        self.loaded_at: Optional[datetime] = None

    def is_stale(self) -> bool:
        if self.loaded_at is None:
            return True
        return self.clock() - self.loaded_at >= self.cache_ttl

    def load(self, groups: Iterable[GroupRecord], companies: Iterable[CompanyRecord]) -> None:
        self.groups = {g.id: g.name for g in groups}
        self.companies = {c.id: c.name for c in companies}
        self.loaded_at = self.clock()
        logger.debug(f"Label cache loaded: {len(self.groups)} groups, {len(self.companies)} companies")

    def invalidate(self) -> None:
        self.loaded_at = None

    async def refresh_if_stale(self, client: FreshdeskClient) -> bool:
        """
        Reload labels from Freshdesk when the TTL has passed

        Returns:
            True if labels were reloaded
        """
        if not self.is_stale():
            logger.debug("Label cache fresh, skipping refresh")
            return False

        try:
            groups = await client.fetch_groups()
            companies = await client.fetch_companies()
        except RequestError as e:
            logger.warning(f"Could not refresh group/company labels, keeping cached labels: {e}")
            return False

        self.load(groups, companies)
        logger.info(f"Refreshed labels: {len(groups)} groups, {len(companies)} companies")
        return True
