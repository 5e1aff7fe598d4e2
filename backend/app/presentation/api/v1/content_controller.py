"""Content API controller — sync runs, connection storage, webhooks and search."""

import json
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.application.interfaces.content_repository import ContentStats
from app.application.schemas.content import (
    ConnectionRequest,
    ConnectionResponse,
    ContentStatsResponse,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    SyncOperationResponse,
    SyncRequest,
    SyncResponse,
    SyncResultResponse,
    SyncStatusResponse,
    WebhookInfoResponse,
    WebhookResponse,
)
from app.application.services import ContentSearchService, ContentSyncService, WebhookService
from app.application.services.webhook_service import (
    EVENT_HEADER,
    MAX_PAYLOAD_BYTES,
    SIGNATURE_HEADER,
    SUPPORTED_EVENTS,
    WebhookPayload,
    verify_signature,
)
from app.domain.entities.source_connection import SourceConnection, as_utc
from app.domain.entities.sync_operation import ContentSyncResult, SyncOperationRecord
from app.domain.exceptions import ConnectionInvalidError
from app.infrastructure.database.repositories import SQLAlchemySourceConnectionRepository
from app.infrastructure.dependencies import (
    get_content_sync_service,
    get_owner_id,
    get_search_service,
    get_source_connection_repository,
    get_webhook_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/content", tags=["Content"])


# ── Helpers ──────────────────────────────────────────────────────────


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _result_to_response(result: ContentSyncResult) -> SyncResultResponse:
    return SyncResultResponse(
        success=result.success,
        sites_processed=result.sites_processed,
        collections_processed=result.collections_processed,
        items_processed=result.items_processed,
        chunks_created=result.chunks_created,
        chunks_embedded=result.chunks_embedded,
        errors=result.errors,
        duration_ms=result.duration_ms,
        started_at=result.started_at.isoformat(),
        completed_at=_iso(result.completed_at),
    )


def operation_to_response(record: SyncOperationRecord) -> SyncOperationResponse:
    """Map an audit record to its API response (shared with the embeddings API)."""
    return SyncOperationResponse(
        id=record.id,
        operation_type=record.operation_type.value,
        status=record.status.value,
        affected_items=record.affected_items,
        error=record.error,
        started_at=record.started_at.isoformat(),
        completed_at=_iso(record.completed_at),
    )


def stats_to_response(stats: ContentStats) -> ContentStatsResponse:
    """Map storage counters to their API response (shared with the embeddings API)."""
    return ContentStatsResponse(
        documents=stats.documents,
        chunks=stats.chunks,
        embedded_chunks=stats.embedded_chunks,
        embedding_coverage=stats.embedding_coverage,
        total_tokens=stats.total_tokens,
        average_chunk_length=stats.average_chunk_length,
        oldest_document=_iso(stats.oldest_document),
        newest_document=_iso(stats.newest_document),
    )


def _connection_to_response(connection: SourceConnection) -> ConnectionResponse:
    return ConnectionResponse(
        owner_id=connection.owner_id,
        scope=connection.scope,
        expires_at=_iso(connection.expires_at),
        is_expired=connection.is_expired,
        updated_at=connection.updated_at.isoformat(),
    )


# ── Sync ─────────────────────────────────────────────────────────────


@router.get("/sync", response_model=SyncStatusResponse)
async def get_sync_status(
    owner_id: str = Depends(get_owner_id),
    service: ContentSyncService = Depends(get_content_sync_service),
) -> SyncStatusResponse:
    """Connection validity, last completed sync and stored content counters."""
    sync_status = await service.get_sync_status(owner_id)
    return SyncStatusResponse(
        owner_id=sync_status.owner_id,
        connected=sync_status.connected,
        connection_error=sync_status.connection_error,
        is_running=sync_status.is_running,
        last_sync=operation_to_response(sync_status.last_sync) if sync_status.last_sync else None,
        stats=stats_to_response(sync_status.stats),
    )


@router.post("/sync", response_model=SyncResponse)
async def trigger_sync(
    request: SyncRequest,
    owner_id: str = Depends(get_owner_id),
    service: ContentSyncService = Depends(get_content_sync_service),
):
    """Run a full sync for the owner, or clear their synced content.

    An unusable connection is answered with 400; the failed audit record is
    still committed.
    """
    if request.action == "clear":
        cleared = await service.clear_owner_content(owner_id)
        return SyncResponse(
            action="clear",
            message=f"Cleared {cleared} document(s)",
            cleared_documents=cleared,
        )

    cleared = await service.clear_owner_content(owner_id) if request.clear_first else 0
    try:
        result = await service.sync_owner_content(owner_id)
    except ConnectionInvalidError as exc:
        logger.warning("Sync rejected for owner %s: %s", owner_id, exc.reason)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": f"Content source connection invalid: {exc.reason}"},
        )

    message = "Sync completed" if result.success else "Sync finished without processing any content"
    if result.errors:
        message += f" with {len(result.errors)} error(s)"
    return SyncResponse(
        action="sync",
        message=message,
        cleared_documents=cleared,
        result=_result_to_response(result),
    )


# ── Connection ───────────────────────────────────────────────────────


@router.put("/connection", response_model=ConnectionResponse)
async def save_connection(
    request: ConnectionRequest,
    owner_id: str = Depends(get_owner_id),
    repository: SQLAlchemySourceConnectionRepository = Depends(get_source_connection_repository),
) -> ConnectionResponse:
    """Store (or replace) the owner's Webflow access token."""
    expires_at = None
    if request.expires_at:
        try:
            expires_at = as_utc(datetime.fromisoformat(request.expires_at))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid expires_at timestamp: {request.expires_at}",
            )
    connection = await repository.save(
        SourceConnection(
            owner_id=owner_id,
            access_token=request.access_token,
            scope=request.scope,
            expires_at=expires_at,
        )
    )
    return _connection_to_response(connection)


@router.get("/connection", response_model=ConnectionResponse)
async def get_connection(
    owner_id: str = Depends(get_owner_id),
    repository: SQLAlchemySourceConnectionRepository = Depends(get_source_connection_repository),
) -> ConnectionResponse:
    """Return the stored connection without its token."""
    connection = await repository.get_by_owner(owner_id)
    if connection is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No connection stored")
    return _connection_to_response(connection)


@router.delete("/connection", status_code=status.HTTP_204_NO_CONTENT)
async def delete_connection(
    owner_id: str = Depends(get_owner_id),
    repository: SQLAlchemySourceConnectionRepository = Depends(get_source_connection_repository),
) -> None:
    """Forget the owner's access token; synced content is kept."""
    deleted = await repository.delete(owner_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No connection stored")


# ── Webhook ──────────────────────────────────────────────────────────


@router.post("/webhook", response_model=WebhookResponse)
async def receive_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
):
    """Apply a Webflow item notification.

    Checks run in order: payload size (413), event type (400), signature
    (401), JSON body (400). Notifications for unknown sites are acknowledged
    without changes.
    """
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_PAYLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Payload too large")

    body = await request.body()
    if len(body) > MAX_PAYLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Payload too large")

    event = request.headers.get(EVENT_HEADER)
    if not service.is_supported(event):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unsupported event type: {event}")

    secret = get_settings().webflow_webhook_secret
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), secret):
        logger.warning("Rejected %s notification with an invalid signature", event)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")
    if not isinstance(data, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    payload = WebhookPayload.from_dict(data)
    try:
        outcome = await service.handle(event, payload)
    except Exception as exc:
        logger.exception("Webhook %s for item %s failed", event, payload.item_id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": f"Webhook processing failed: {exc}"},
        )

    return WebhookResponse(
        success=True,
        event=outcome.event,
        item_id=outcome.item_id,
        message=outcome.message,
        owner_id=outcome.owner_id,
        deleted_records=outcome.deleted_records,
        sync_result=_result_to_response(outcome.sync_result) if outcome.sync_result else None,
    )


@router.get("/webhook", response_model=WebhookInfoResponse)
async def get_webhook_info(request: Request) -> WebhookInfoResponse:
    """Describe how to register the webhook endpoint with Webflow."""
    return WebhookInfoResponse(
        endpoint=str(request.url),
        supported_events=list(SUPPORTED_EVENTS),
        signature_header=SIGNATURE_HEADER,
        event_header=EVENT_HEADER,
        signature_verification=bool(get_settings().webflow_webhook_secret),
        max_payload_bytes=MAX_PAYLOAD_BYTES,
    )


# ── Search ───────────────────────────────────────────────────────────


@router.post("/search", response_model=SearchResponse)
async def search_content(
    request: SearchRequest,
    owner_id: str = Depends(get_owner_id),
    service: ContentSearchService = Depends(get_search_service),
) -> SearchResponse:
    """Semantic search over the owner's embedded chunks."""
    try:
        results = await service.search(
            owner_id,
            request.query,
            limit=request.limit,
            threshold=request.threshold,
            collection_id=request.collection_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    items = [
        SearchResultItem(
            chunk_id=r.chunk.id,
            document_id=r.document_id,
            title=r.title,
            collection_id=r.collection_id,
            collection_name=r.collection_name,
            slug=r.slug,
            chunk_index=r.chunk.chunk_index,
            content=r.chunk.content,
            similarity=r.similarity,
        )
        for r in results
    ]
    return SearchResponse(query=request.query, results=items, total=len(items))
