"""
Ticket Repository for the year-to-date ticket table

Features:
- Replace-all reload (bulk sync)
- Upsert by ticket id (incremental sync)
- Creation-window queries for the metrics engine
"""
from datetime import datetime
from typing import Iterable, List

from pydantic import ValidationError as PydanticValidationError

from support_intel.models.ticket import TicketRecord
from support_intel.repositories.document_store import DEFAULT_BATCH_SIZE, DocumentStore
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)


class TicketRepository:
    """Repository for ytd_tickets documents keyed by Freshdesk ticket id"""

    def __init__(self, store: DocumentStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    @staticmethod
    def _key(ticket: TicketRecord) -> str:
        return str(ticket.id)

    def replace_all(self, tickets: Iterable[TicketRecord]) -> int:
        """
        Replace the whole table with the given tickets

        Args:
            tickets: Complete ticket set from a bulk reload

        Returns:
            Number of tickets written
        """
        # Last version wins when the same id appears twice in one walk
        unique = {self._key(t): t for t in tickets}
        deleted = self.store.delete_all()
        written = self.store.insert_many(
            ((key, ticket.to_document()) for key, ticket in unique.items()),
            batch_size=self.batch_size
        )
        logger.info(f"Replaced ticket table: deleted {deleted}, inserted {written}")
        return written

    def upsert_many(self, tickets: Iterable[TicketRecord]) -> int:
        """Insert new tickets and replace existing ones by id"""
        unique = {self._key(t): t for t in tickets}
        written = self.store.upsert_many(
            ((key, ticket.to_document()) for key, ticket in unique.items()),
            batch_size=self.batch_size
        )
        logger.info(f"Upserted {written} tickets")
        return written

    def list_all(self) -> List[TicketRecord]:
        tickets = []
        for key, document in self.store.list_all():
            try:
                tickets.append(TicketRecord.model_validate(document))
            except PydanticValidationError as e:
                logger.warning(f"Skipping unreadable ticket document {key}: {e.error_count()} errors")
        return tickets

    def list_created_between(self, start: datetime, end: datetime) -> List[TicketRecord]:
        """Tickets whose creation time falls in [start, end]"""
        return [t for t in self.list_all() if start <= t.created_at <= end]

    def count(self) -> int:
        return len(self.store.list_all())

    def clear(self) -> int:
        deleted = self.store.delete_all()
        logger.info(f"Cleared {deleted} tickets")
        return deleted
