"""
Tests for ticket and system config repositories and credential providers
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from support_intel.repositories.config_repository import (
    FRESHDESK_API_KEY_KEY,
    FRESHDESK_DOMAIN_KEY,
    WATERMARK_KEY,
)
from support_intel.services.credentials import (
    ConfigStoreCredentialsProvider,
    FreshdeskCredentials,
    StaticCredentialsProvider,
)
from support_intel.utils.errors import ConfigurationError, StorageError


class TestTicketRepository:
    """Test ytd ticket persistence"""

    def test_replace_all(self, ticket_repository, make_ticket):
        """Test bulk reload replaces every stored ticket"""
        ticket_repository.replace_all([make_ticket(1), make_ticket(2)])

        written = ticket_repository.replace_all([make_ticket(3)])

        assert written == 1
        assert [t.id for t in ticket_repository.list_all()] == [3]

    def test_replace_all_dedupes(self, ticket_repository, make_ticket):
        """Test the last version of a repeated ticket wins"""
        ticket_repository.replace_all([make_ticket(1, status=2), make_ticket(1, status=5)])

        tickets = ticket_repository.list_all()
        assert len(tickets) == 1
        assert tickets[0].status == 5

    def test_upsert_many(self, ticket_repository, make_ticket):
        """Test incremental upsert updates by id and keeps the rest"""
        ticket_repository.replace_all([make_ticket(1), make_ticket(2)])

        ticket_repository.upsert_many([make_ticket(2, status=4), make_ticket(3)])

        tickets = {t.id: t for t in ticket_repository.list_all()}
        assert sorted(tickets) == [1, 2, 3]
        assert tickets[2].status == 4

    def test_round_trip_preserves_fields(self, ticket_repository, make_ticket):
        """Test stored documents read back as equal records"""
        ticket = make_ticket(7, priority=4, group_id=11, company_id=21, tags=["billing"], ticket_type="Incident")
        ticket_repository.upsert_many([ticket])

        assert ticket_repository.list_all() == [ticket]

    def test_list_created_between_inclusive(self, ticket_repository, make_ticket):
        ticket_repository.upsert_many([
            make_ticket(1, created_at="2025-03-01T00:00:00Z"),
            make_ticket(2, created_at="2025-03-05T12:00:00Z"),
            make_ticket(3, created_at="2025-03-08T00:00:00Z"),
        ])

        tickets = ticket_repository.list_created_between(
            datetime(2025, 3, 1, tzinfo=timezone.utc),
            datetime(2025, 3, 5, 12, 0, tzinfo=timezone.utc),
        )

        assert sorted(t.id for t in tickets) == [1, 2]

    def test_unreadable_documents_skipped(self, ticket_repository, ticket_store, make_ticket):
        ticket_repository.upsert_many([make_ticket(1)])
        ticket_store.put("broken", {"id": "not-a-number"})

        assert [t.id for t in ticket_repository.list_all()] == [1]
        assert ticket_repository.count() == 2

    def test_clear(self, ticket_repository, make_ticket):
        ticket_repository.upsert_many([make_ticket(1), make_ticket(2)])

        assert ticket_repository.clear() == 2
        assert ticket_repository.count() == 0


class TestSystemConfigRepository:
    """Test key/value config documents"""

    def test_value_round_trip(self, config_repository, config_store):
        config_repository.set_value(FRESHDESK_DOMAIN_KEY, "acme.freshdesk.com")

        assert config_repository.get_value(FRESHDESK_DOMAIN_KEY) == "acme.freshdesk.com"
        assert config_store.get(FRESHDESK_DOMAIN_KEY) == {"value": "acme.freshdesk.com"}

    def test_datetime_round_trip(self, config_repository, config_store):
        value = datetime(2025, 3, 12, 10, 0, tzinfo=timezone.utc)

        config_repository.set_datetime(WATERMARK_KEY, value)

        assert config_store.get(WATERMARK_KEY) == {"value": "2025-03-12T10:00:00Z"}
        assert config_repository.get_datetime(WATERMARK_KEY) == value

    def test_missing_datetime(self, config_repository):
        assert config_repository.get_datetime(WATERMARK_KEY) is None

    def test_invalid_datetime(self, config_repository):
        config_repository.set_value(WATERMARK_KEY, "yesterday-ish")

        assert config_repository.get_datetime(WATERMARK_KEY) is None


class TestCredentialProviders:
    """Test Freshdesk credential resolution"""

    def test_static_provider(self, settings):
        credentials = StaticCredentialsProvider(settings).current()

        assert credentials == FreshdeskCredentials("acme.freshdesk.com", "test-api-key")
        assert credentials.base_url == "https://acme.freshdesk.com/api/v2"

    def test_static_provider_missing_key(self, settings):
        settings.freshdesk_api_key = ""

        with pytest.raises(ConfigurationError):
            StaticCredentialsProvider(settings).current()

    def test_config_store_overrides_settings(self, settings, config_repository):
        """Test credentials saved at runtime take precedence"""
        config_repository.set_value(FRESHDESK_DOMAIN_KEY, "other.freshdesk.com")
        config_repository.set_value(FRESHDESK_API_KEY_KEY, "other-key")
        provider = ConfigStoreCredentialsProvider(config_repository, StaticCredentialsProvider(settings))

        assert provider.current() == FreshdeskCredentials("other.freshdesk.com", "other-key")

    def test_partial_config_falls_back(self, settings, config_repository):
        config_repository.set_value(FRESHDESK_DOMAIN_KEY, "other.freshdesk.com")
        provider = ConfigStoreCredentialsProvider(config_repository, StaticCredentialsProvider(settings))

        assert provider.current().domain == "acme.freshdesk.com"

    def test_store_failure_falls_back(self, settings):
        repository = MagicMock()
        repository.get_value.side_effect = StorageError("unreachable")
        provider = ConfigStoreCredentialsProvider(repository, StaticCredentialsProvider(settings))

        assert provider.current().api_key == "test-api-key"
