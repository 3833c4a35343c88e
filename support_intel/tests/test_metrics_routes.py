"""
Tests for metrics and snapshot endpoints
"""
import pytest
from fastapi.testclient import TestClient

from support_intel.main import app
from support_intel.models.snapshot import SnapshotCategory
from support_intel.pipeline import build_pipeline, get_pipeline
from support_intel.repositories.document_store import MemoryDocumentStore
from support_intel.services.discord_notifier import DiscordNotifier


@pytest.fixture
def pipeline(settings, clock, make_ticket):
    pipeline = build_pipeline(
        settings=settings,
        tickets_store=MemoryDocumentStore("ytd_tickets"),
        snapshots_store=MemoryDocumentStore("snapshots"),
        config_store=MemoryDocumentStore("system_config"),
        notifier=DiscordNotifier(webhook_url="", settings=settings),
        clock=clock,
    )
    pipeline.ticket_repository.upsert_many([
        make_ticket(1, company_id=100, created_at="2025-03-03T00:00:00Z"),
        make_ticket(2, company_id=100, status=4, created_at="2025-03-04T00:00:00Z",
                    updated_at="2025-03-04T08:00:00Z"),
        make_ticket(3, created_at="2025-03-20T00:00:00Z"),
    ])
    return pipeline


@pytest.fixture
def client(pipeline):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestDateRangeEndpoint:
    """Test GET /api/v1/metrics/date-range"""

    def test_date_range_metrics(self, client):
        response = client.get(
            "/api/v1/metrics/date-range",
            params={"start": "2025-03-01T00:00:00Z", "end": "2025-03-08T00:00:00Z"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["totalTickets"] == 2
        assert data["ticketsResolved"] == 1
        assert data["averageResolutionTimeHours"] == 8.0
        assert data["topCompany"]["companyName"] == "Company 100"

    def test_invalid_date(self, client):
        response = client.get("/api/v1/metrics/date-range", params={"start": "yesterday", "end": "today"})

        assert response.status_code == 400
        assert "Invalid date format" in response.json()["detail"]

    def test_reversed_range(self, client):
        response = client.get(
            "/api/v1/metrics/date-range",
            params={"start": "2025-03-08T00:00:00Z", "end": "2025-03-01T00:00:00Z"}
        )

        assert response.status_code == 400


class TestEngineerEndpoint:
    """Test POST /api/v1/metrics/engineer"""

    def test_engineer_metrics(self, client):
        response = client.post(
            "/api/v1/metrics/engineer",
            params={"tickets_resolved": 8},
            json={"engineerName": " Priya ", "totalHoursWorked": 40, "weekSnapshotId": "snapshot_20250314"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["engineerName"] == "Priya"
        assert data["averageTimePerTicketHours"] == 5.0

    def test_zero_resolved(self, client):
        response = client.post(
            "/api/v1/metrics/engineer",
            params={"tickets_resolved": 0},
            json={"engineerName": "Priya", "totalHoursWorked": 40, "weekSnapshotId": "snapshot_20250314"}
        )

        assert response.status_code == 200
        assert response.json()["averageTimePerTicketHours"] is None

    def test_invalid_hours(self, client):
        response = client.post(
            "/api/v1/metrics/engineer",
            params={"tickets_resolved": 3},
            json={"engineerName": "Priya", "totalHoursWorked": -5, "weekSnapshotId": "snapshot_20250314"}
        )

        assert response.status_code == 400


class TestSnapshotEndpoints:
    """Test snapshot listing and lookup"""

    def test_list_and_get(self, client, pipeline, clock):
        pipeline.snapshot_writer.write(SnapshotCategory.WEEKLY, {"totalTickets": 2})
        clock.advance(days=7)
        pipeline.snapshot_writer.write(SnapshotCategory.WEEKLY, {"totalTickets": 5})

        listed = client.get("/api/v1/metrics/snapshots", params={"category": "snapshot"}).json()
        single = client.get("/api/v1/metrics/snapshots/snapshot_20250312").json()

        assert [s["snapshot_id"] for s in listed] == ["snapshot_20250319", "snapshot_20250312"]
        assert single["payload"] == {"totalTickets": 2}

    def test_snapshot_not_found(self, client):
        response = client.get("/api/v1/metrics/snapshots/snapshot_20200101")

        assert response.status_code == 404

    def test_invalid_category(self, client):
        response = client.get("/api/v1/metrics/snapshots", params={"category": "weekly"})

        assert response.status_code == 422
