"""
System configuration repository

Small key/value settings that change at runtime without a restart:
- Incremental sync watermark (ytd_last_sync_timestamp)
- Freshdesk credentials entered through the settings screen
"""
from datetime import datetime
from typing import Any, Optional

from support_intel.repositories.document_store import DocumentStore
from support_intel.utils.datetime_utils import format_iso, parse_timestamp
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

WATERMARK_KEY = "ytd_last_sync_timestamp"
FRESHDESK_DOMAIN_KEY = "freshdesk_domain"
FRESHDESK_API_KEY_KEY = "freshdesk_api_key"


class SystemConfigRepository:
    """Repository for system_config documents ({"value": ...} per key)"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_value(self, key: str) -> Optional[Any]:
        document = self.store.get(key)
        if document is None:
            return None
        return document.get("value")

    def set_value(self, key: str, value: Any) -> None:
        self.store.put(key, {"value": value})
        logger.debug(f"Set system config {key}")

    def get_datetime(self, key: str) -> Optional[datetime]:
        """Read an ISO timestamp value; unparseable values are treated as absent"""
        raw = self.get_value(key)
        if not raw:
            return None
        try:
            return parse_timestamp(raw)
        except (ValueError, OverflowError) as e:
            logger.warning(f"Ignoring invalid timestamp in system config {key}={raw!r}: {e}")
            return None

    def set_datetime(self, key: str, value: datetime) -> None:
        self.set_value(key, format_iso(value))
