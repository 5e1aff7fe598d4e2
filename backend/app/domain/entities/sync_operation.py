"""Domain entities for sync runs — the audit record and the run summary."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class OperationStatus(str, Enum):
    """Final state of an audited operation."""

    COMPLETED = "completed"
    FAILED = "failed"


class OperationType(str, Enum):
    """Kinds of audited operations."""

    SYNC = "sync"
    EMBED = "embed"
    WEBHOOK_ITEM_CREATED = "webhook_collection_item_created"
    WEBHOOK_ITEM_CHANGED = "webhook_collection_item_changed"
    WEBHOOK_ITEM_DELETED = "webhook_collection_item_deleted"
    WEBHOOK_ITEM_UNPUBLISHED = "webhook_collection_item_unpublished"


@dataclass
class SyncOperationRecord:
    """Append-only audit row — one per orchestrator run or change notification."""

    owner_id: str
    operation_type: OperationType
    status: OperationStatus
    affected_items: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    id: str | None = None


@dataclass
class ContentSyncResult:
    """Summary of one sync run, returned to the caller as data."""

    success: bool = False
    sites_processed: int = 0
    collections_processed: int = 0
    items_processed: int = 0
    chunks_created: int = 0
    chunks_embedded: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    def summary(self) -> dict[str, int]:
        """Counts stored in the audit record's ``affected_items``."""
        return {
            "sites_processed": self.sites_processed,
            "collections_processed": self.collections_processed,
            "items_processed": self.items_processed,
            "chunks_created": self.chunks_created,
            "chunks_embedded": self.chunks_embedded,
            "error_count": len(self.errors),
        }
