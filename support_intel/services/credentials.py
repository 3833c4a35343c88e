"""
Freshdesk credential providers

The client asks its provider for credentials before every request, so
credentials changed at runtime take effect without a restart.
"""
from typing import NamedTuple, Optional

from support_intel.config import Settings, get_settings
from support_intel.repositories.config_repository import (
    FRESHDESK_API_KEY_KEY,
    FRESHDESK_DOMAIN_KEY,
    SystemConfigRepository,
)
from support_intel.utils.errors import ConfigurationError, StorageError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)


class FreshdeskCredentials(NamedTuple):
    domain: str
    api_key: str

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}/api/v2"


class CredentialsProvider:
    """Interface: current() -> FreshdeskCredentials"""

    def current(self) -> FreshdeskCredentials:
        raise NotImplementedError


class StaticCredentialsProvider(CredentialsProvider):
    """Credentials from environment settings"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def current(self) -> FreshdeskCredentials:
        if not self.settings.freshdesk_domain or not self.settings.freshdesk_api_key:
            raise ConfigurationError("FRESHDESK_DOMAIN and FRESHDESK_API_KEY must be set")
        return FreshdeskCredentials(
            domain=self.settings.freshdesk_domain,
            api_key=self.settings.freshdesk_api_key,
        )


class ConfigStoreCredentialsProvider(CredentialsProvider):
    """
    Credentials from the system config store, falling back to static settings

    The fallback is used when either value is missing or the store is
    unreachable.
    """

    def __init__(self, config_repository: SystemConfigRepository, fallback: CredentialsProvider):
        self.config_repository = config_repository
        self.fallback = fallback

    def current(self) -> FreshdeskCredentials:
        try:
            domain = self.config_repository.get_value(FRESHDESK_DOMAIN_KEY)
            api_key = self.config_repository.get_value(FRESHDESK_API_KEY_KEY)
        except StorageError as e:
            logger.warning(f"Could not read Freshdesk credentials from config store, using static settings: {e}")
            return self.fallback.current()

        if domain and api_key:
            return FreshdeskCredentials(domain=domain, api_key=api_key)

        return self.fallback.current()
