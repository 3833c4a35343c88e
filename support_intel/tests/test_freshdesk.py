"""
Unit tests for Freshdesk API Client

Tests:
- Authentication and URL construction
- Retry logic with linear backoff
- 429 handling with Retry-After
- Credential refresh per request
- Offset pagination
- Time-window ticket walk
- Ticket search
"""
import base64
import time
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, call, patch

import httpx
import pytest

from support_intel.services.credentials import FreshdeskCredentials
from support_intel.services.freshdesk import FreshdeskClient
from support_intel.utils.errors import RateLimitExceededError, RequestError


class RecordingHandler:
    """httpx.MockTransport handler replaying a list of responses"""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_client(settings, handler, credentials=None) -> FreshdeskClient:
    return FreshdeskClient(
        credentials=credentials,
        settings=settings,
        transport=httpx.MockTransport(handler)
    )


class TestExecute:
    """Test execute() request handling"""

    @pytest.mark.asyncio
    async def test_successful_request(self, settings):
        """Test JSON body is returned and basic auth uses api_key:X"""
        handler = RecordingHandler([httpx.Response(200, json={"id": 1, "subject": "Test ticket"})])
        client = make_client(settings, handler)

        result = await client.execute("tickets/1")

        assert result == {"id": 1, "subject": "Test ticket"}
        request = handler.requests[0]
        assert str(request.url) == "https://acme.freshdesk.com/api/v2/tickets/1"
        expected = base64.b64encode(b"test-api-key:X").decode()
        assert request.headers["authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self, settings):
        """Test 204 responses decode to None"""
        client = make_client(settings, RecordingHandler([httpx.Response(204)]))

        assert await client.execute("tickets/1", method="DELETE") is None

    @pytest.mark.asyncio
    async def test_retry_on_server_error(self, settings):
        """Test two 500s then success waits with linear backoff"""
        handler = RecordingHandler([
            httpx.Response(500, text="boom"),
            httpx.Response(500, text="boom"),
            httpx.Response(200, json=[{"id": 1}]),
        ])
        client = make_client(settings, handler)

        with patch.object(client, "_backoff", new_callable=AsyncMock) as mock_backoff:
            result = await client.execute("tickets")

        assert result == [{"id": 1}]
        assert len(handler.requests) == 3
        assert mock_backoff.await_args_list == [call(1), call(2)]

    @pytest.mark.asyncio
    async def test_backoff_is_linear(self, settings):
        """Test backoff sleeps retry_delay * attempt"""
        client = make_client(settings, RecordingHandler([httpx.Response(200, json={})]))

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await client._backoff(3)

        mock_sleep.assert_awaited_once_with(6.0)

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, settings):
        """Test RequestError after max_retries failed attempts"""
        handler = RecordingHandler([httpx.Response(503, text="unavailable")])
        client = make_client(settings, handler)

        with patch.object(client, "_backoff", new_callable=AsyncMock) as mock_backoff:
            with pytest.raises(RequestError) as exc_info:
                await client.execute("tickets")

        assert len(handler.requests) == 5
        assert mock_backoff.await_count == 4
        assert exc_info.value.endpoint == "tickets"
        assert exc_info.value.upstream_status == 503
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_retry_on_transport_error(self, settings):
        """Test connection errors are retried"""
        handler = RecordingHandler([
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json={"ok": True}),
        ])
        client = make_client(settings, handler)

        with patch.object(client, "_backoff", new_callable=AsyncMock):
            result = await client.execute("groups")

        assert result == {"ok": True}
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_invalid_json_is_retried(self, settings):
        """Test an undecodable success body counts as a failed attempt"""
        handler = RecordingHandler([
            httpx.Response(200, content=b"<html>", headers={"Content-Type": "text/html"}),
            httpx.Response(200, json=[]),
        ])
        client = make_client(settings, handler)

        with patch.object(client, "_backoff", new_callable=AsyncMock) as mock_backoff:
            result = await client.execute("groups")

        assert result == []
        assert mock_backoff.await_count == 1


class TestRateLimiting:
    """Test 429 handling and request pacing"""

    @pytest.mark.asyncio
    async def test_rate_limit_waits_retry_after(self, settings):
        """Test Retry-After header is honoured"""
        handler = RecordingHandler([
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json={"id": 1}),
        ])
        client = make_client(settings, handler)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await client.execute("tickets/1")

        assert result == {"id": 1}
        assert call(3.0) in mock_sleep.await_args_list

    @pytest.mark.asyncio
    async def test_rate_limit_default_wait(self, settings):
        """Test missing Retry-After falls back to 60 seconds"""
        handler = RecordingHandler([
            httpx.Response(429),
            httpx.Response(200, json={"id": 1}),
        ])
        client = make_client(settings, handler)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await client.execute("tickets/1")

        assert call(60.0) in mock_sleep.await_args_list

    @pytest.mark.asyncio
    async def test_rate_limit_does_not_consume_retries(self, settings):
        """Test 429 responses do not count against max_retries"""
        settings.max_retries = 2
        handler = RecordingHandler([
            httpx.Response(429, headers={"Retry-After": "1"}),
            httpx.Response(429, headers={"Retry-After": "1"}),
            httpx.Response(429, headers={"Retry-After": "1"}),
            httpx.Response(500),
            httpx.Response(200, json={"id": 1}),
        ])
        client = make_client(settings, handler)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await client.execute("tickets/1")

        assert result == {"id": 1}
        assert len(handler.requests) == 5

    @pytest.mark.asyncio
    async def test_rate_limit_never_lifts(self, settings):
        """Test RateLimitExceededError after max_rate_limit_waits"""
        settings.max_rate_limit_waits = 3
        handler = RecordingHandler([httpx.Response(429, headers={"Retry-After": "1"})])
        client = make_client(settings, handler)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(RateLimitExceededError) as exc_info:
                await client.execute("tickets")

        assert len(handler.requests) == 4
        assert exc_info.value.upstream_status == 429

    @pytest.mark.asyncio
    async def test_pacing_between_requests(self, settings):
        """Test consecutive requests are spaced by rate_limit_delay"""
        settings.rate_limit_delay_seconds = 0.2
        client = make_client(settings, RecordingHandler([httpx.Response(200, json={})]))
        client._last_request_at = time.monotonic()

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await client.execute("groups")

        mock_sleep.assert_awaited_once()
        waited = mock_sleep.await_args.args[0]
        assert 0 < waited <= 0.2

    @pytest.mark.asyncio
    async def test_no_pacing_on_first_request(self, settings):
        """Test the first request is not delayed"""
        settings.rate_limit_delay_seconds = 0.2
        client = make_client(settings, RecordingHandler([httpx.Response(200, json={})]))

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await client.execute("groups")

        mock_sleep.assert_not_awaited()


class TestCredentials:
    """Test credentials are read before every request"""

    @pytest.mark.asyncio
    async def test_credentials_refreshed_per_request(self, settings):
        """Test updated credentials apply to the next request"""
        provider = MagicMock()
        provider.current.side_effect = [
            FreshdeskCredentials(domain="old.freshdesk.com", api_key="old-key"),
            FreshdeskCredentials(domain="new.freshdesk.com", api_key="new-key"),
        ]
        handler = RecordingHandler([httpx.Response(200, json={})])
        client = make_client(settings, handler, credentials=provider)

        await client.execute("groups")
        await client.execute("groups")

        assert handler.requests[0].url.host == "old.freshdesk.com"
        assert handler.requests[1].url.host == "new.freshdesk.com"
        expected = base64.b64encode(b"new-key:X").decode()
        assert handler.requests[1].headers["authorization"] == f"Basic {expected}"


class TestFetchAllPages:
    """Test offset pagination"""

    @pytest.mark.asyncio
    async def test_stops_on_short_page(self, settings):
        """Test walk ends at the first page shorter than page_size"""
        settings.page_size = 2
        client = make_client(settings, RecordingHandler([httpx.Response(200, json=[])]))

        with patch.object(client, "execute", new_callable=AsyncMock) as mock_execute:
            mock_execute.side_effect = [[{"id": 1}, {"id": 2}], [{"id": 3}]]
            items = await client.fetch_all_pages("groups")

        assert [i["id"] for i in items] == [1, 2, 3]
        assert mock_execute.await_count == 2
        assert mock_execute.await_args_list[1].kwargs["params"] == {"per_page": 2, "page": 2}

    @pytest.mark.asyncio
    async def test_empty_last_page(self, settings):
        """Test an exact multiple of page_size ends on an empty page"""
        settings.page_size = 2
        client = make_client(settings, RecordingHandler([httpx.Response(200, json=[])]))

        with patch.object(client, "execute", new_callable=AsyncMock) as mock_execute:
            mock_execute.side_effect = [[{"id": 1}, {"id": 2}], []]
            items = await client.fetch_all_pages("companies")

        assert len(items) == 2
        assert mock_execute.await_count == 2

    @pytest.mark.asyncio
    async def test_page_failure_propagates(self, settings):
        """Test a failing page fails the whole walk"""
        settings.page_size = 2
        client = make_client(settings, RecordingHandler([httpx.Response(200, json=[])]))

        with patch.object(client, "execute", new_callable=AsyncMock) as mock_execute:
            mock_execute.side_effect = [
                [{"id": 1}, {"id": 2}],
                RequestError("page 2 failed", endpoint="groups"),
            ]
            with pytest.raises(RequestError):
                await client.fetch_all_pages("groups")

    @pytest.mark.asyncio
    async def test_non_list_page_rejected(self, settings):
        """Test an object where a list is expected raises RequestError"""
        client = make_client(settings, RecordingHandler([httpx.Response(200, json={"error": "x"})]))

        with pytest.raises(RequestError):
            await client.fetch_all_pages("groups")

    @pytest.mark.asyncio
    async def test_non_object_items_rejected(self, settings):
        client = make_client(settings, RecordingHandler([httpx.Response(200, json=[{"id": 1}, "oops"])]))

        with pytest.raises(RequestError):
            await client.fetch_groups()

    @pytest.mark.asyncio
    async def test_fetch_groups_names(self, settings):
        """Test group records fall back to a synthetic name"""
        handler = RecordingHandler([httpx.Response(200, json=[{"id": 7, "name": "Billing"}, {"id": 8}])])
        client = make_client(settings, handler)

        groups = await client.fetch_groups()

        assert [(g.id, g.name) for g in groups] == [(7, "Billing"), (8, "Group 8")]


class TestFetchTicketsUpdatedSince:
    """Test the updated_at window walk"""

    @pytest.mark.asyncio
    async def test_request_parameters(self, settings, raw_ticket):
        """Test window parameters and parsed ticket records"""
        handler = RecordingHandler([httpx.Response(200, json=[raw_ticket(1), raw_ticket(2)])])
        client = make_client(settings, handler)
        since = datetime(2025, 1, 1, tzinfo=timezone.utc)

        tickets = await client.fetch_tickets_updated_since(since)

        assert [t.id for t in tickets] == [1, 2]
        params = handler.requests[0].url.params
        assert params["updated_since"] == "2025-01-01T00:00:00Z"
        assert params["order_by"] == "updated_at"
        assert params["order_type"] == "asc"
        assert params["include"] == "description"
        assert params["page"] == "1"
        assert params["per_page"] == "100"

    @pytest.mark.asyncio
    async def test_page_delay(self, settings, raw_ticket):
        """Test page_delay is slept between pages"""
        settings.page_size = 2
        client = make_client(settings, RecordingHandler([httpx.Response(200, json=[])]))

        with patch.object(client, "execute", new_callable=AsyncMock) as mock_execute, \
                patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            mock_execute.side_effect = [[raw_ticket(1), raw_ticket(2)], [raw_ticket(3)]]
            tickets = await client.fetch_tickets_updated_since(
                datetime(2025, 1, 1, tzinfo=timezone.utc), page_delay=0.5
            )

        assert len(tickets) == 3
        mock_sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_window_moves_at_page_cap(self, settings, raw_ticket):
        """Test the window restarts from the last updated_at and dedupes"""
        settings.page_size = 2
        client = make_client(settings, RecordingHandler([httpx.Response(200, json=[])]))
        pages = [
            [raw_ticket(1, updated_at="2025-01-02T00:00:00Z"), raw_ticket(2, updated_at="2025-01-03T00:00:00Z")],
            [raw_ticket(3, updated_at="2025-01-04T00:00:00Z"), raw_ticket(4, updated_at="2025-01-05T00:00:00Z")],
            # second window repeats ticket 4, with a newer status
            [raw_ticket(4, status=4, updated_at="2025-01-05T00:00:00Z"), raw_ticket(5, updated_at="2025-01-06T00:00:00Z")],
            [],
        ]

        with patch("support_intel.services.freshdesk.MAX_PAGES_PER_WINDOW", 2), \
                patch.object(client, "execute", new_callable=AsyncMock) as mock_execute:
            mock_execute.side_effect = pages
            tickets = await client.fetch_tickets_updated_since(datetime(2025, 1, 1, tzinfo=timezone.utc))

        assert [t.id for t in tickets] == [1, 2, 3, 4, 5]
        assert next(t for t in tickets if t.id == 4).status == 4
        second_window = mock_execute.await_args_list[2].kwargs["params"]
        assert second_window["updated_since"] == "2025-01-05T00:00:00Z"
        assert second_window["page"] == 1

    @pytest.mark.asyncio
    async def test_malformed_ticket_raises(self, settings, raw_ticket):
        """Test a ticket without created_at fails the fetch"""
        broken = raw_ticket(1)
        broken["created_at"] = None
        client = make_client(settings, RecordingHandler([httpx.Response(200, json=[broken])]))

        with pytest.raises(RequestError):
            await client.fetch_tickets_updated_since(datetime(2025, 1, 1, tzinfo=timezone.utc))

    @pytest.mark.asyncio
    async def test_non_object_ticket_raises(self, settings):
        """Test a page item that is not an object fails with RequestError"""
        client = make_client(settings, RecordingHandler([httpx.Response(200, json=["oops"])]))

        with pytest.raises(RequestError) as exc_info:
            await client.fetch_tickets_updated_since(datetime(2025, 1, 1, tzinfo=timezone.utc))

        assert exc_info.value.endpoint == "tickets"

    @pytest.mark.asyncio
    async def test_non_list_ticket_page_raises(self, settings):
        client = make_client(settings, RecordingHandler([httpx.Response(200, json={"error": "x"})]))

        with pytest.raises(RequestError):
            await client.fetch_tickets_updated_since(datetime(2025, 1, 1, tzinfo=timezone.utc))


class TestSearchTickets:
    """Test ticket search"""

    @pytest.mark.asyncio
    async def test_query_is_quoted(self, settings, raw_ticket):
        """Test the query is wrapped in double quotes"""
        handler = RecordingHandler([httpx.Response(200, json={"total": 1, "results": [raw_ticket(9)]})])
        client = make_client(settings, handler)

        result = await client.search_tickets("priority:4 AND created_at:>'2025-03-11'")

        assert result["total"] == 1
        assert result["results"][0]["id"] == 9
        assert handler.requests[0].url.path == "/api/v2/search/tickets"
        assert handler.requests[0].url.params["query"] == "\"priority:4 AND created_at:>'2025-03-11'\""

    @pytest.mark.asyncio
    async def test_unexpected_body(self, settings):
        """Test a non-object body yields an empty result"""
        client = make_client(settings, RecordingHandler([httpx.Response(200, json=[])]))

        assert await client.search_tickets("priority:4") == {"total": 0, "results": []}
