"""
Freshdesk API Client

Provides rate-limited Freshdesk API access for:
- Single requests with pacing, 429 handling and linear retry backoff
- Offset-page walks (groups, companies)
- Time-window ticket walks (tickets updated since a timestamp)
- Ticket search (urgent ticket monitor)
"""
import asyncio
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from support_intel.config import Settings, get_settings
from support_intel.models.ticket import CompanyRecord, GroupRecord, TicketRecord
from support_intel.services.credentials import CredentialsProvider, StaticCredentialsProvider
from support_intel.utils.datetime_utils import format_iso
from support_intel.utils.errors import RateLimitExceededError, RequestError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

# Freshdesk rejects page numbers above this on list endpoints
MAX_PAGES_PER_WINDOW = 300


class FreshdeskClient:
    """
    Freshdesk API integration with pacing, retry logic and error handling
    """

    def __init__(
        self,
        credentials: Optional[CredentialsProvider] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize client

        Args:
            credentials: Provider queried before every request (static settings if None)
            settings: Settings instance (cached settings if None)
            transport: Optional httpx transport, used by tests
        """
        settings = settings or get_settings()
        self.credentials = credentials or StaticCredentialsProvider(settings)
        self.headers = {
            "Content-Type": "application/json"
        }
        self.timeout = settings.freshdesk_timeout_seconds
        self.max_retries = settings.max_retries
        self.retry_delay = settings.retry_delay_seconds
        self.rate_limit_delay = settings.rate_limit_delay_seconds
        self.default_retry_after = settings.default_retry_after_seconds
        self.max_rate_limit_waits = settings.max_rate_limit_waits
        self.page_size = settings.page_size
        self.transport = transport
        self._last_request_at: Optional[float] = None

    async def _pace(self) -> None:
        """Keep at least rate_limit_delay seconds between consecutive requests"""
        if self._last_request_at is not None:
            elapsed = time.monotonic() - self._last_request_at
            remaining = self.rate_limit_delay - elapsed
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_request_at = time.monotonic()

    async def _backoff(self, attempt: int) -> None:
        await asyncio.sleep(self.retry_delay * attempt)

    def _retry_after(self, response: httpx.Response) -> float:
        value = response.headers.get("Retry-After")
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return self.default_retry_after
        return max(seconds, 0.0)

    async def execute(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
        json: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Make a Freshdesk request with pacing and retry logic

        Args:
            endpoint: API endpoint relative to /api/v2 (e.g. "tickets")
            params: Query parameters
            method: HTTP method
            json: JSON body

        Returns:
            Decoded JSON response (None for an empty body)

        Raises:
            RequestError: After max_retries failed attempts
            RateLimitExceededError: When 429 responses never stop
            ConfigurationError: When no credentials are configured
        """
        endpoint = endpoint.lstrip("/")
        attempt = 0
        rate_limit_waits = 0
        last_error = ""
        last_status: Optional[int] = None

        while attempt < self.max_retries:
            credentials = self.credentials.current()
            url = f"{credentials.base_url}/{endpoint}"

            await self._pace()
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        auth=(credentials.api_key, "X"),
                        headers=self.headers,
                        params=params,
                        json=json
                    )
            except httpx.HTTPError as e:
                response = None
                last_status = None
                last_error = f"{type(e).__name__}: {e}"

            if response is not None and response.status_code == 429:
                rate_limit_waits += 1
                if rate_limit_waits > self.max_rate_limit_waits:
                    logger.error(f"Rate limit never lifted for {endpoint} after {rate_limit_waits - 1} waits")
                    raise RateLimitExceededError(
                        f"Freshdesk kept rate limiting {endpoint}",
                        endpoint=endpoint,
                        upstream_status=429
                    )
                wait_time = self._retry_after(response)
                logger.warning(f"Rate limited on {endpoint}, waiting {wait_time}s (Retry-After)")
                await asyncio.sleep(wait_time)
                continue

            if response is not None:
                rate_limit_waits = 0
                if response.is_success:
                    if not response.content:
                        return None
                    try:
                        return response.json()
                    except ValueError as e:
                        last_status = response.status_code
                        last_error = f"Invalid JSON response: {e}"
                else:
                    last_status = response.status_code
                    last_error = f"Freshdesk API error: {response.status_code} - {response.text[:500]}"

            attempt += 1
            if attempt < self.max_retries:
                logger.warning(
                    f"Request to {endpoint} failed (attempt {attempt}/{self.max_retries}), "
                    f"retrying in {self.retry_delay * attempt}s: {last_error}"
                )
                await self._backoff(attempt)

        logger.error(f"Request to {endpoint} failed after {self.max_retries} attempts: {last_error}")
        raise RequestError(
            f"Request to {endpoint} failed after {self.max_retries} attempts: {last_error}",
            endpoint=endpoint,
            upstream_status=last_status
        )

    async def fetch_all_pages(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        page_delay: float = 0.0
    ) -> List[Dict[str, Any]]:
        """
        Walk an offset-paginated endpoint from page 1 until a short page

        Args:
            endpoint: List endpoint (e.g. "groups")
            params: Extra query parameters
            page_delay: Extra delay between pages in seconds

        Returns:
            All items in request order

        Raises:
            RequestError: If any page fails; no partial result is returned
        """
        items: List[Dict[str, Any]] = []
        page = 1

        while True:
            page_params = dict(params or {})
            page_params.update({"per_page": self.page_size, "page": page})

            logger.info(f"Fetching {endpoint} (page={page}, per_page={self.page_size})")
            page_items = await self.execute(endpoint, params=page_params)
            if page_items is None:
                page_items = []
            if not isinstance(page_items, list):
                raise RequestError(f"Expected a list from {endpoint}", endpoint=endpoint)
            if not all(isinstance(item, dict) for item in page_items):
                raise RequestError(f"Expected a list of objects from {endpoint}", endpoint=endpoint)

            items.extend(page_items)

            # Short page means last page
            if len(page_items) < self.page_size:
                break

            page += 1
            if page_delay > 0:
                await asyncio.sleep(page_delay)

        logger.info(f"Fetched {len(items)} items from {endpoint} in {page} page(s)")
        return items

    async def fetch_tickets_updated_since(
        self,
        since: datetime,
        page_delay: float = 0.0
    ) -> List[TicketRecord]:
        """
        Fetch every ticket updated at or after `since`

        Pages are ordered by updated_at ascending. When a window reaches
        Freshdesk's page cap, the walk restarts from page 1 with the window
        moved to the last seen updated_at; duplicates keep the newest version.

        Args:
            since: Window start (inclusive)
            page_delay: Extra delay between pages in seconds

        Returns:
            Tickets in the order first seen

        Raises:
            RequestError: If any page fails or a ticket payload is malformed
        """
        tickets: Dict[int, TicketRecord] = {}
        window_start = since

        while True:
            params = {
                "updated_since": format_iso(window_start),
                "include": "description",
                "order_by": "updated_at",
                "order_type": "asc",
            }
            page = 1
            window_exhausted = False
            last_updated: Optional[datetime] = None

            while page <= MAX_PAGES_PER_WINDOW:
                logger.info(
                    f"Fetching tickets (updated_since={params['updated_since']}, page={page}, "
                    f"per_page={self.page_size})"
                )
                raw_tickets = await self.execute(
                    "tickets",
                    params={**params, "per_page": self.page_size, "page": page}
                )
                raw_tickets = raw_tickets or []
                if not isinstance(raw_tickets, list):
                    raise RequestError("Expected a list from tickets", endpoint="tickets")

                for raw in raw_tickets:
                    if not isinstance(raw, dict):
                        raise RequestError(
                            f"Malformed ticket payload: expected an object, got {type(raw).__name__}",
                            endpoint="tickets"
                        )
                    try:
                        ticket = TicketRecord.from_freshdesk(raw)
                    except PydanticValidationError as e:
                        raise RequestError(
                            f"Malformed ticket payload (id={raw.get('id')}): {e.error_count()} errors",
                            endpoint="tickets"
                        ) from e
                    tickets[ticket.id] = ticket
                    last_updated = ticket.updated_at

                if len(raw_tickets) < self.page_size:
                    window_exhausted = True
                    break

                page += 1
                if page_delay > 0:
                    await asyncio.sleep(page_delay)

            if window_exhausted:
                break

            if last_updated is None or last_updated <= window_start:
                raise RequestError(
                    f"Ticket window starting {format_iso(window_start)} did not advance",
                    endpoint="tickets"
                )
            logger.info(f"Page cap reached, moving ticket window to {format_iso(last_updated)}")
            window_start = last_updated
            if page_delay > 0:
                await asyncio.sleep(page_delay)

        logger.info(f"Successfully fetched total {len(tickets)} tickets updated since {format_iso(since)}")
        return list(tickets.values())

    async def fetch_groups(self) -> List[GroupRecord]:
        """Fetch all agent groups"""
        raw_groups = await self.fetch_all_pages("groups")
        return [GroupRecord(id=g["id"], name=g.get("name") or f"Group {g['id']}") for g in raw_groups]

    async def fetch_companies(self) -> List[CompanyRecord]:
        """Fetch all companies"""
        raw_companies = await self.fetch_all_pages("companies")
        return [
            CompanyRecord(id=c["id"], name=c.get("name") or f"Company {c['id']}")
            for c in raw_companies
        ]

    async def search_tickets(self, query: str) -> Dict[str, Any]:
        """
        Run a Freshdesk ticket search (first result page)

        Args:
            query: Search query without the surrounding quotes,
                e.g. "priority:4 AND created_at:>'2025-01-01'"

        Returns:
            {"total": int, "results": [ticket dicts]}
        """
        logger.info(f"Searching tickets: {query}")
        result = await self.execute("search/tickets", params={"query": f'"{query}"'})
        if not isinstance(result, dict):
            return {"total": 0, "results": []}
        return {
            "total": result.get("total", 0),
            "results": result.get("results") or [],
        }
