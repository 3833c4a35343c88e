"""
Support Intelligence Pipeline - Configuration Management
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    fastapi_env: str = "development"
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000

    # Freshdesk
    freshdesk_domain: str = ""
    freshdesk_api_key: str = ""
    freshdesk_timeout_seconds: float = 30.0

    # Rate limiting / retries
    rate_limit_delay_seconds: float = 0.2
    max_retries: int = 5
    retry_delay_seconds: float = 2.0
    default_retry_after_seconds: float = 60.0
    max_rate_limit_waits: int = 50

    # Pagination
    page_size: int = 100
    bulk_page_delay_seconds: float = 0.0
    incremental_page_delay_seconds: float = 0.5

    # Supabase
    storage_backend: str = "supabase"  # supabase | memory
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Notifications
    discord_webhook_url: str = ""

    # Urgent ticket monitor
    urgent_poll_interval_seconds: float = 120.0
    urgent_lookback_days: int = 1
    notified_ticket_limit: int = 1000

    # Labels
    label_cache_ttl_seconds: int = 3600

    # Scheduler
    enable_scheduler: bool = False
    weekly_sync_interval_seconds: float = 7 * 24 * 3600.0
    timezone: str = "Asia/Kolkata"
    daily_refresh_hour: int = 9
    weekly_report_hour: int = 17
    retention_sweep_hour: int = 0

    # Snapshots
    snapshot_retention_months: int = 13
    telemetry_source_url: str = ""  # JSON endpoint for the daily rft snapshot; disabled if empty
    telemetry_source_timeout_seconds: float = 30.0

    # Weekly report groups
    support_engineers_group: str = "Support Engineers"
    product_support_group: str = "Product Support"
    marked_for_release_type: str = "Marked for release"

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @property
    def FRESHDESK_BASE_URL(self) -> str:
        """Freshdesk API base URL for the static domain"""
        return f"https://{self.freshdesk_domain}/api/v2"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
