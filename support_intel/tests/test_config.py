"""
Test configuration management
"""
from support_intel.config import Settings, get_settings


def test_settings_singleton():
    """Test settings returns same instance"""
    settings1 = get_settings()
    settings2 = get_settings()
    assert settings1 is settings2


def test_settings_defaults(monkeypatch):
    """Test default values"""
    for name in ("FASTAPI_PORT", "LOG_LEVEL", "MAX_RETRIES", "RATE_LIMIT_DELAY_SECONDS", "TIMEZONE"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.fastapi_port == 8000
    assert settings.log_level == "INFO"
    assert settings.max_retries == 5
    assert settings.rate_limit_delay_seconds == 0.2
    assert settings.page_size == 100
    assert settings.notified_ticket_limit == 1000
    assert settings.timezone == "Asia/Kolkata"


def test_settings_from_environment(monkeypatch):
    """Test environment variables override defaults (case insensitive)"""
    monkeypatch.setenv("FRESHDESK_DOMAIN", "acme.freshdesk.com")
    monkeypatch.setenv("max_retries", "3")
    monkeypatch.setenv("STORAGE_BACKEND", "memory")

    settings = Settings(_env_file=None)

    assert settings.freshdesk_domain == "acme.freshdesk.com"
    assert settings.max_retries == 3
    assert settings.storage_backend == "memory"
    assert settings.FRESHDESK_BASE_URL == "https://acme.freshdesk.com/api/v2"
