"""
Snapshot Repository

Writes immutable, dated snapshots with at-most-one-write-per-day semantics:

- Existing snapshot, no force refresh -> idempotent skip, nothing written
- Missing snapshot, or force refresh  -> payload written (insert-or-replace)

The same writer serves every SnapshotCategory.
"""
import re
from datetime import date, datetime, timezone as dt_timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from support_intel.models.snapshot import Snapshot, SnapshotCategory, SnapshotWriteResult
from support_intel.repositories.document_store import DocumentStore
from support_intel.utils.datetime_utils import add_months, ensure_aware, utc_now
from support_intel.utils.errors import ValidationError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

SNAPSHOT_ID_PATTERN = re.compile(r"^(?P<category>[a-z_]+)_(?P<year>\d{4})(?P<month>\d{2})(?P<day>\d{2})$")


def generate_snapshot_id(category: SnapshotCategory, day: date) -> str:
    """
    Build the snapshot id for a category and calendar day

    Example:
        >>> generate_snapshot_id(SnapshotCategory.WEEKLY, date(2025, 12, 19))
        'snapshot_20251219'
    """
    return f"{SnapshotCategory(category).value}_{day:%Y%m%d}"


def parse_snapshot_id(snapshot_id: str) -> Tuple[SnapshotCategory, date]:
    """
    Split a snapshot id into its category and calendar day

    Raises:
        ValidationError: If the id is malformed or the category unknown
    """
    match = SNAPSHOT_ID_PATTERN.match(snapshot_id or "")
    if not match:
        raise ValidationError(f"Invalid snapshot id: {snapshot_id!r}")
    try:
        category = SnapshotCategory(match.group("category"))
        day = date(int(match.group("year")), int(match.group("month")), int(match.group("day")))
    except ValueError as e:
        raise ValidationError(f"Invalid snapshot id: {snapshot_id!r}", context={"reason": str(e)})
    return category, day


class SnapshotWriter:
    """
    Idempotent snapshot persistence.

    The clock is injected so the calendar day (UTC) is controllable in tests.
    Concurrent writers in separate processes can both pass the existence
    check; the second write then replaces the first with an equivalent payload.
    """

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], datetime] = utc_now,
        retention_months: int = 13
    ):
        self.store = store
        self.clock = clock
        self.retention_months = retention_months

    def _today(self) -> date:
        return ensure_aware(self.clock()).astimezone(dt_timezone.utc).date()

    def snapshot_id_for(self, category: SnapshotCategory) -> str:
        """Id today's write for the category would use"""
        return generate_snapshot_id(category, self._today())

    def write(
        self,
        category: SnapshotCategory,
        payload: Dict[str, Any],
        force_refresh: bool = False
    ) -> SnapshotWriteResult:
        """
        Persist a payload as today's snapshot for the category

        Args:
            category: Snapshot category
            payload: JSON-serialisable metric payload
            force_refresh: Replace today's snapshot if it already exists

        Returns:
            SnapshotWriteResult with already_exists=True for an idempotent skip
        """
        category = SnapshotCategory(category)
        snapshot_id = self.snapshot_id_for(category)

        existing = self.store.get(snapshot_id)
        if existing is not None and not force_refresh:
            logger.warning(f"Snapshot {snapshot_id} already exists - idempotent skip")
            return SnapshotWriteResult(
                snapshot_id=snapshot_id,
                already_exists=True,
                snapshot=Snapshot.from_document(existing),
            )

        if existing is not None:
            logger.info(f"Force refresh: replacing snapshot {snapshot_id}")

        fetched_at = ensure_aware(self.clock())
        snapshot = Snapshot(
            snapshot_id=snapshot_id,
            category=category,
            fetched_at=fetched_at,
            expires_at=add_months(fetched_at, self.retention_months),
            payload=dict(payload),
        )
        # Fully built before the single durable write
        self.store.put(snapshot_id, snapshot.to_document())
        logger.info(f"Wrote snapshot {snapshot_id}")

        return SnapshotWriteResult(snapshot_id=snapshot_id, already_exists=False, snapshot=snapshot)

    def get(self, snapshot_id: str) -> Optional[Snapshot]:
        document = self.store.get(snapshot_id)
        return Snapshot.from_document(document) if document is not None else None

    def list(self, category: SnapshotCategory, limit: int = 52) -> List[Snapshot]:
        """Snapshots of a category, newest first"""
        category = SnapshotCategory(category)
        snapshots = []
        for key, document in self.store.list_all(prefix=f"{category.value}_"):
            try:
                key_category, _ = parse_snapshot_id(key)
            except ValidationError:
                logger.warning(f"Ignoring document with malformed snapshot id: {key}")
                continue
            if key_category == category:
                snapshots.append(Snapshot.from_document(document))
        snapshots.sort(key=lambda s: s.snapshot_id, reverse=True)
        return snapshots[:limit]

    def latest(self, category: SnapshotCategory) -> Optional[Snapshot]:
        snapshots = self.list(category, limit=1)
        return snapshots[0] if snapshots else None

    def delete_expired(self, category: SnapshotCategory) -> int:
        """Remove snapshots past their retention date"""
        category = SnapshotCategory(category)
        now = ensure_aware(self.clock())
        removed = 0
        for snapshot in self.list(category, limit=10_000):
            if snapshot.expires_at is not None and ensure_aware(snapshot.expires_at) <= now:
                self.store.delete(snapshot.snapshot_id)
                removed += 1
        if removed:
            logger.info(f"Deleted {removed} expired {category.value} snapshots")
        return removed
