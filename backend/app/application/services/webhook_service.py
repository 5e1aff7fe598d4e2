"""Webhook service — applies Webflow change notifications to stored content.

Created/changed items trigger a full sync of the owning account; deleted or
unpublished items remove their documents (chunks cascade). Each notification
writes one audit record named after the event.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.application.interfaces.content_repository import ContentRepository
from app.application.interfaces.sync_operation_repository import SyncOperationRepository
from app.application.services.content_hash_store import ContentHashStore
from app.application.services.content_sync_service import ContentSyncService
from app.domain.entities.sync_operation import (
    ContentSyncResult,
    OperationStatus,
    OperationType,
    SyncOperationRecord,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "webflow-webhook-signature"
EVENT_HEADER = "webflow-webhook-event"
MAX_PAYLOAD_BYTES = 10 * 1024 * 1024

SUPPORTED_EVENTS: dict[str, OperationType] = {
    "collection_item_created": OperationType.WEBHOOK_ITEM_CREATED,
    "collection_item_changed": OperationType.WEBHOOK_ITEM_CHANGED,
    "collection_item_deleted": OperationType.WEBHOOK_ITEM_DELETED,
    "collection_item_unpublished": OperationType.WEBHOOK_ITEM_UNPUBLISHED,
}
_SYNC_EVENTS = frozenset({"collection_item_created", "collection_item_changed"})


def compute_signature(payload: bytes, secret: str) -> str:
    """Hex SHA-256 of the raw body followed by the shared secret."""
    digest = hashlib.sha256()
    digest.update(payload)
    digest.update(secret.encode("utf-8"))
    return digest.hexdigest()


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """Check a notification signature in constant time.

    With no secret configured verification is skipped. With a secret, a
    missing signature is rejected. An optional ``sha256=`` prefix is ignored.
    """
    if not secret:
        logger.warning("Webhook signature verification skipped (no secret configured)")
        return True
    if not signature:
        return False
    candidate = signature.strip().removeprefix("sha256=").lower()
    return hmac.compare_digest(candidate, compute_signature(payload, secret))


@dataclass
class WebhookPayload:
    """The parts of a Webflow item notification this service needs.

    Accepts both the legacy flat body (``_id``, ``site``, ``name``) and the
    v2 envelope (``payload.id``, ``payload.siteId``, ``payload.fieldData``).
    """

    item_id: str
    site_id: str
    item_name: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, body: dict[str, Any]) -> "WebhookPayload":
        data = body.get("payload") if isinstance(body.get("payload"), dict) else body
        field_data = data.get("fieldData") if isinstance(data.get("fieldData"), dict) else {}
        return cls(
            item_id=str(data.get("_id") or data.get("id") or ""),
            site_id=str(data.get("site") or data.get("siteId") or ""),
            item_name=str(data.get("name") or field_data.get("name") or ""),
            raw=body,
        )


@dataclass
class WebhookOutcome:
    """What happened for one notification."""

    event: str
    item_id: str
    handled: bool
    owner_id: str | None = None
    message: str = ""
    deleted_records: int = 0
    sync_result: ContentSyncResult | None = None


class WebhookService:
    """Application service routing change notifications to sync or deletion."""

    def __init__(
        self,
        content_repository: ContentRepository,
        operation_repository: SyncOperationRepository,
        sync_service: ContentSyncService,
    ):
        self._content_repo = content_repository
        self._operation_repo = operation_repository
        self._hash_store = ContentHashStore(content_repository)
        self._sync_service = sync_service

    @staticmethod
    def is_supported(event: str | None) -> bool:
        return event in SUPPORTED_EVENTS

    async def handle(self, event: str, payload: WebhookPayload) -> WebhookOutcome:
        """Apply one notification.

        Notifications for sites no owner has synced are ignored. Failures
        write a failed audit record and propagate.
        """
        if event not in SUPPORTED_EVENTS:
            raise ValueError(f"Unsupported webhook event: {event}")

        owner_id = await self._content_repo.find_owner_by_site(payload.site_id) if payload.site_id else None
        if owner_id is None:
            logger.warning("No owner found for site %s, ignoring %s", payload.site_id, event)
            return WebhookOutcome(
                event=event,
                item_id=payload.item_id,
                handled=False,
                message="No owner found for site",
            )

        logger.info("Processing %s for owner %s, item %s", event, owner_id, payload.item_id)
        started_at = datetime.now(timezone.utc)
        try:
            if event in _SYNC_EVENTS:
                return await self._handle_upsert(owner_id, event, payload)
            return await self._handle_delete(owner_id, event, payload, started_at)
        except Exception as exc:
            logger.error("Failed to handle %s for item %s: %s", event, payload.item_id, exc)
            await self._operation_repo.create(
                SyncOperationRecord(
                    owner_id=owner_id,
                    operation_type=SUPPORTED_EVENTS[event],
                    status=OperationStatus.FAILED,
                    affected_items=self._item_summary(payload),
                    error=str(exc),
                    started_at=started_at,
                    completed_at=datetime.now(timezone.utc),
                )
            )
            raise

    async def _handle_upsert(
        self, owner_id: str, event: str, payload: WebhookPayload
    ) -> WebhookOutcome:
        # Webflow item payloads do not identify the collection reliably, so
        # the whole account is re-synced; unchanged items cost one hash lookup.
        result = await self._sync_service.sync_owner_content(owner_id)
        affected = self._item_summary(payload)
        affected["sync_triggered"] = True
        affected["sync_result"] = {
            "success": result.success,
            "items_processed": result.items_processed,
            "chunks_created": result.chunks_created,
        }
        await self._operation_repo.create(
            SyncOperationRecord(
                owner_id=owner_id,
                operation_type=SUPPORTED_EVENTS[event],
                status=OperationStatus.COMPLETED if result.success else OperationStatus.FAILED,
                affected_items=affected,
                started_at=result.started_at,
                completed_at=result.completed_at,
            )
        )
        return WebhookOutcome(
            event=event,
            item_id=payload.item_id,
            handled=True,
            owner_id=owner_id,
            message="Sync triggered",
            sync_result=result,
        )

    async def _handle_delete(
        self, owner_id: str, event: str, payload: WebhookPayload, started_at: datetime
    ) -> WebhookOutcome:
        if not payload.item_id:
            raise ValueError("Notification payload has no item id")
        deleted = await self._hash_store.delete_source_item(owner_id, payload.item_id)
        affected = self._item_summary(payload)
        affected["deleted_records"] = deleted
        await self._operation_repo.create(
            SyncOperationRecord(
                owner_id=owner_id,
                operation_type=SUPPORTED_EVENTS[event],
                status=OperationStatus.COMPLETED,
                affected_items=affected,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            )
        )
        return WebhookOutcome(
            event=event,
            item_id=payload.item_id,
            handled=True,
            owner_id=owner_id,
            message=f"Deleted {deleted} record(s)",
            deleted_records=deleted,
        )

    @staticmethod
    def _item_summary(payload: WebhookPayload) -> dict[str, Any]:
        return {
            "item_id": payload.item_id,
            "site_id": payload.site_id,
            "item_name": payload.item_name,
        }
