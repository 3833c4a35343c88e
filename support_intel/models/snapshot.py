"""
Snapshot and job result models
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SnapshotCategory(str, Enum):
    """Snapshot id prefixes, one snapshot per category per calendar day"""
    TELEMETRY = "rft"
    PERFORMANCE = "sync_perf"
    WEEKLY = "snapshot"


class Snapshot(BaseModel):
    """Immutable dated aggregate as stored in the snapshot table"""
    model_config = ConfigDict(frozen=True)

    snapshot_id: str
    category: SnapshotCategory
    fetched_at: datetime
    expires_at: Optional[datetime] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    def to_document(self) -> Dict[str, Any]:
        """Stored shape: {snapshotId, category, fetchedAt, expiresAt, payload}"""
        return {
            "snapshotId": self.snapshot_id,
            "category": self.category.value,
            "fetchedAt": self.fetched_at.isoformat(),
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "payload": dict(self.payload),
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Snapshot":
        return cls(
            snapshot_id=document["snapshotId"],
            category=SnapshotCategory(document["category"]),
            fetched_at=document["fetchedAt"],
            expires_at=document.get("expiresAt"),
            payload=document.get("payload") or {},
        )


class SnapshotWriteResult(BaseModel):
    """Outcome of SnapshotWriter.write; an idempotent skip is still a success"""
    snapshot_id: str
    already_exists: bool
    snapshot: Snapshot


class IngestionJobResult(BaseModel):
    """Result of one scheduled or on-demand ingestion run"""
    job_id: str
    success: bool
    snapshot_id: Optional[str] = None
    tickets_ingested: int = 0
    groups_ingested: int = 0
    companies_ingested: int = 0
    snapshot_already_existed: bool = False
    started_at: datetime
    completed_at: datetime
    duration_ms: int
    error: Optional[str] = None
