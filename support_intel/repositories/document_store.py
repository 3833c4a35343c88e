"""
Key-addressable document stores

Features:
- Point lookups and insert-or-replace writes
- Bulk delete-all / insert-many for full-table reloads
- Supabase backend (one row per document: id text primary key, data jsonb)
- In-memory backend for local runs and tests
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

from support_intel.config import Settings, get_settings
from support_intel.utils.errors import ConfigurationError, StorageError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

Document = Dict[str, Any]

DEFAULT_BATCH_SIZE = 100
LIST_PAGE_SIZE = 1000


class DocumentStore(ABC):
    """Durable store contract used by the repositories"""

    table_name: str

    @abstractmethod
    def get(self, key: str) -> Optional[Document]:
        """Return the document stored under key, or None"""

    @abstractmethod
    def put(self, key: str, document: Document) -> None:
        """Insert or replace the document stored under key"""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the document stored under key (no-op when absent)"""

    @abstractmethod
    def delete_all(self) -> int:
        """Delete every document; returns the number deleted when known"""

    @abstractmethod
    def insert_many(self, items: Iterable[Tuple[str, Document]], batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        """Insert documents in batches; returns the number written"""

    @abstractmethod
    def upsert_many(self, items: Iterable[Tuple[str, Document]], batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        """Insert or replace documents in batches; returns the number written"""

    @abstractmethod
    def list_all(self, prefix: Optional[str] = None) -> List[Tuple[str, Document]]:
        """All (key, document) pairs ordered by key, optionally filtered by key prefix"""


def _batches(items: List[Tuple[str, Document]], batch_size: int):
    for start in range(0, len(items), batch_size):
        yield items[start:start + batch_size]


class MemoryDocumentStore(DocumentStore):
    """Process-local store with the same semantics as the Supabase store"""

    def __init__(self, table_name: str = "documents"):
        self.table_name = table_name
        self._documents: Dict[str, Document] = {}

    def get(self, key: str) -> Optional[Document]:
        document = self._documents.get(key)
        return dict(document) if document is not None else None

    def put(self, key: str, document: Document) -> None:
        self._documents[key] = dict(document)

    def delete(self, key: str) -> None:
        self._documents.pop(key, None)

    def delete_all(self) -> int:
        count = len(self._documents)
        self._documents.clear()
        return count

    def insert_many(self, items: Iterable[Tuple[str, Document]], batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        items = list(items)
        duplicates = [key for key, _ in items if key in self._documents]
        if duplicates:
            raise StorageError(
                f"Duplicate keys in {self.table_name}",
                context={"keys": duplicates[:10]}
            )
        for key, document in items:
            self._documents[key] = dict(document)
        return len(items)

    def upsert_many(self, items: Iterable[Tuple[str, Document]], batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        count = 0
        for key, document in items:
            self._documents[key] = dict(document)
            count += 1
        return count

    def list_all(self, prefix: Optional[str] = None) -> List[Tuple[str, Document]]:
        return [
            (key, dict(self._documents[key]))
            for key in sorted(self._documents)
            if prefix is None or key.startswith(prefix)
        ]


class SupabaseDocumentStore(DocumentStore):
    """Document store backed by a Supabase (PostgREST) table"""

    def __init__(self, table_name: str, supabase_client=None, settings: Optional[Settings] = None):
        """
        Initialize store with Supabase client

        Args:
            table_name: Table with `id` (text, primary key) and `data` (jsonb) columns
            supabase_client: Supabase client instance (uses default if None)
            settings: Settings used to build the default client
        """
        if supabase_client is None:
            settings = settings or get_settings()
            if not settings.supabase_url or not settings.supabase_service_role_key:
                raise ConfigurationError(
                    "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for the supabase storage backend"
                )
            from supabase import create_client
            self.client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key
            )
        else:
            self.client = supabase_client

        self.table_name = table_name
        logger.info(f"SupabaseDocumentStore initialized for table: {self.table_name}")

    def _table(self):
        return self.client.table(self.table_name)

    def get(self, key: str) -> Optional[Document]:
        try:
            response = self._table().select("data").eq("id", key).limit(1).execute()
        except Exception as e:
            logger.error(f"Failed to read {self.table_name}/{key}: {e}")
            raise StorageError(f"Failed to read {key}", context={"table": self.table_name}) from e

        if not response.data:
            return None
        return response.data[0]["data"]

    def put(self, key: str, document: Document) -> None:
        try:
            self._table().upsert({"id": key, "data": document}).execute()
            logger.debug(f"Stored {self.table_name}/{key}")
        except Exception as e:
            logger.error(f"Failed to write {self.table_name}/{key}: {e}")
            raise StorageError(f"Failed to write {key}", context={"table": self.table_name}) from e

    def delete(self, key: str) -> None:
        try:
            self._table().delete().eq("id", key).execute()
        except Exception as e:
            logger.error(f"Failed to delete {self.table_name}/{key}: {e}")
            raise StorageError(f"Failed to delete {key}", context={"table": self.table_name}) from e

    def delete_all(self) -> int:
        try:
            # PostgREST refuses unfiltered deletes
            response = self._table().delete().neq("id", "").execute()
        except Exception as e:
            logger.error(f"Failed to clear {self.table_name}: {e}")
            raise StorageError("Failed to clear table", context={"table": self.table_name}) from e

        deleted = len(response.data or [])
        logger.info(f"Deleted {deleted} rows from {self.table_name}")
        return deleted

    def _write_batches(self, items: Iterable[Tuple[str, Document]], batch_size: int, upsert: bool) -> int:
        rows = [{"id": key, "data": document} for key, document in items]
        written = 0
        for batch in _batches(rows, batch_size):
            try:
                query = self._table().upsert(batch) if upsert else self._table().insert(batch)
                query.execute()
            except Exception as e:
                logger.error(
                    f"Failed to write batch to {self.table_name} "
                    f"(written so far: {written}/{len(rows)}): {e}"
                )
                raise StorageError(
                    "Batch write failed",
                    context={"table": self.table_name, "written": written}
                ) from e
            written += len(batch)
            logger.debug(f"Wrote batch to {self.table_name}: {written}/{len(rows)}")
        return written

    def insert_many(self, items: Iterable[Tuple[str, Document]], batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        return self._write_batches(items, batch_size, upsert=False)

    def upsert_many(self, items: Iterable[Tuple[str, Document]], batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        return self._write_batches(items, batch_size, upsert=True)

    def list_all(self, prefix: Optional[str] = None) -> List[Tuple[str, Document]]:
        results: List[Tuple[str, Document]] = []
        offset = 0
        while True:
            try:
                query = self._table().select("id, data")
                if prefix is not None:
                    query = query.like("id", f"{prefix}%")
                response = query.order("id").range(offset, offset + LIST_PAGE_SIZE - 1).execute()
            except Exception as e:
                logger.error(f"Failed to list {self.table_name}: {e}")
                raise StorageError("Failed to list documents", context={"table": self.table_name}) from e

            rows = response.data or []
            # LIKE treats "_" as a wildcard, so re-check the prefix
            results.extend(
                (row["id"], row["data"]) for row in rows
                if prefix is None or row["id"].startswith(prefix)
            )
            if len(rows) < LIST_PAGE_SIZE:
                break
            offset += LIST_PAGE_SIZE

        return results


def create_document_store(table_name: str, settings: Optional[Settings] = None, supabase_client=None) -> DocumentStore:
    """Build the configured store backend for a table"""
    settings = settings or get_settings()
    backend = settings.storage_backend.lower()
    if backend == "memory":
        return MemoryDocumentStore(table_name)
    if backend == "supabase":
        return SupabaseDocumentStore(table_name, supabase_client=supabase_client, settings=settings)
    raise ConfigurationError(f"Unknown storage backend: {settings.storage_backend}")
