"""
Business Logic Services
"""
from .freshdesk import FreshdeskClient
from .ticket_sync import TicketSyncService
from .discord_notifier import DiscordNotifier

__all__ = [
    "FreshdeskClient",
    "TicketSyncService",
    "DiscordNotifier",
]
