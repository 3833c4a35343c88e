"""
Snapshot retention sweep

Deletes snapshots of every category whose 13-month expiresAt has passed.
Scheduled once a day; a failing category is logged and the sweep moves on.
"""
from typing import Dict

from support_intel.models.snapshot import SnapshotCategory
from support_intel.repositories.snapshot_repository import SnapshotWriter
from support_intel.utils.errors import AppError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)


class SnapshotRetentionSweep:

    def __init__(self, snapshot_writer: SnapshotWriter):
        self.snapshot_writer = snapshot_writer

    async def run(self) -> Dict[str, int]:
        """
        Returns:
            Number of snapshots removed per category value
        """
        removed: Dict[str, int] = {}
        for category in SnapshotCategory:
            try:
                removed[category.value] = self.snapshot_writer.delete_expired(category)
            except AppError as e:
                logger.error(f"Retention sweep failed for {category.value} snapshots: {e}")
        logger.info(f"Retention sweep completed: {removed}")
        return removed
