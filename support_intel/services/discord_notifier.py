"""
Discord webhook notification channel
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from support_intel.config import Settings, get_settings
from support_intel.utils.datetime_utils import utc_now
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

BOT_USERNAME = "Freshdesk Alert Bot"


class NotificationField(BaseModel):
    name: str
    value: str
    inline: bool = True


class NotificationMessage(BaseModel):
    """Structured message rendered as a single Discord embed"""
    title: str
    description: str = ""
    color: int = 0xFF0000
    fields: List[NotificationField] = Field(default_factory=list)
    footer: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    mention: Optional[str] = "@here"

    def to_discord_payload(self) -> Dict[str, Any]:
        embed: Dict[str, Any] = {
            "title": self.title,
            "description": self.description[:4096],
            "color": self.color,
            "fields": [f.model_dump() for f in self.fields],
            "timestamp": self.timestamp.isoformat(),
        }
        if self.footer:
            embed["footer"] = {"text": self.footer}

        payload: Dict[str, Any] = {
            "username": BOT_USERNAME,
            "embeds": [embed],
        }
        if self.mention:
            payload["content"] = self.mention
        return payload


class DiscordNotifier:
    """Posts messages to a Discord webhook; failures are logged, never raised"""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        settings = settings or get_settings()
        self.webhook_url = webhook_url if webhook_url is not None else settings.discord_webhook_url
        self.transport = transport
        self.timeout = timeout

    async def send(self, message: NotificationMessage) -> bool:
        """
        Send one message

        Args:
            message: Message to post

        Returns:
            True if Discord accepted the message
        """
        if not self.webhook_url:
            logger.warning(f"Discord webhook URL not configured, skipping notification: {message.title}")
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json=message.to_discord_payload())
        except httpx.HTTPError as e:
            logger.error(f"Discord notification failed: {type(e).__name__}: {e}")
            return False

        if not response.is_success:
            logger.error(f"Discord notification failed: {response.status_code} - {response.text[:200]}")
            return False

        logger.info(f"Discord notification sent: {message.title}")
        return True
