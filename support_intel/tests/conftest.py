"""
pytest configuration and shared fixtures
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from support_intel.config import Settings
from support_intel.models.ticket import TicketRecord
from support_intel.repositories.config_repository import SystemConfigRepository
from support_intel.repositories.document_store import MemoryDocumentStore
from support_intel.repositories.snapshot_repository import SnapshotWriter
from support_intel.repositories.ticket_repository import TicketRepository


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "requires_supabase: mark test as requiring a Supabase project"
    )


class FakeClock:
    """Controllable time source"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment, with no pacing delay"""
    return Settings(
        _env_file=None,
        freshdesk_domain="acme.freshdesk.com",
        freshdesk_api_key="test-api-key",
        storage_backend="memory",
        rate_limit_delay_seconds=0.0,
        retry_delay_seconds=2.0,
        max_retries=5,
        default_retry_after_seconds=60.0,
        max_rate_limit_waits=50,
        page_size=100,
        bulk_page_delay_seconds=0.0,
        incremental_page_delay_seconds=0.5,
        discord_webhook_url="https://discord.example/api/webhooks/1/abc",
        timezone="Asia/Kolkata",
    )


@pytest.fixture
def clock() -> FakeClock:
    # Wednesday 2025-03-12 10:00 UTC
    return FakeClock(datetime(2025, 3, 12, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def raw_ticket():
    """Factory for Freshdesk ticket payloads"""
    def _make(
        ticket_id: int,
        status: Any = 2,
        priority: Any = 1,
        created_at: str = "2025-03-10T10:00:00Z",
        updated_at: Optional[str] = None,
        group_id: Optional[int] = None,
        company_id: Optional[int] = None,
        tags: Optional[List[str]] = None,
        ticket_type: Optional[str] = None,
        is_escalated: bool = False,
        **extra
    ) -> Dict[str, Any]:
        payload = {
            "id": ticket_id,
            "subject": f"Ticket {ticket_id}",
            "description": f"<div>Description {ticket_id}</div>",
            "description_text": f"Description {ticket_id}",
            "status": status,
            "priority": priority,
            "type": ticket_type,
            "group_id": group_id,
            "company_id": company_id,
            "responder_id": None,
            "requester_id": 900 + ticket_id,
            "created_at": created_at,
            "updated_at": updated_at or created_at,
            "tags": tags or [],
            "is_escalated": is_escalated,
        }
        payload.update(extra)
        return payload

    return _make


@pytest.fixture
def make_ticket(raw_ticket):
    """Factory for TicketRecord instances"""
    def _make(ticket_id: int, **kwargs) -> TicketRecord:
        return TicketRecord.from_freshdesk(raw_ticket(ticket_id, **kwargs))

    return _make


@pytest.fixture
def ticket_store() -> MemoryDocumentStore:
    return MemoryDocumentStore("ytd_tickets")


@pytest.fixture
def snapshot_store() -> MemoryDocumentStore:
    return MemoryDocumentStore("snapshots")


@pytest.fixture
def config_store() -> MemoryDocumentStore:
    return MemoryDocumentStore("system_config")


@pytest.fixture
def ticket_repository(ticket_store) -> TicketRepository:
    return TicketRepository(ticket_store)


@pytest.fixture
def config_repository(config_store) -> SystemConfigRepository:
    return SystemConfigRepository(config_store)


@pytest.fixture
def snapshot_writer(snapshot_store, clock) -> SnapshotWriter:
    return SnapshotWriter(snapshot_store, clock=clock)
