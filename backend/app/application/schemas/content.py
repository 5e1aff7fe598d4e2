"""Pydantic schemas for the content sync, connection, webhook and search API."""

from typing import Any, Literal

from pydantic import BaseModel, Field


# ── Sync Schemas ─────────────────────────────────────────────────────


class SyncRequest(BaseModel):
    """Request body for triggering a sync or clearing synced content."""

    action: Literal["sync", "clear"] = "sync"
    clear_first: bool = False


class SyncResultResponse(BaseModel):
    """Summary of one sync run."""

    success: bool
    sites_processed: int
    collections_processed: int
    items_processed: int
    chunks_created: int
    chunks_embedded: int
    errors: list[str]
    duration_ms: int
    started_at: str
    completed_at: str | None = None


class SyncResponse(BaseModel):
    """Response of POST /content/sync."""

    action: str
    message: str
    cleared_documents: int = 0
    result: SyncResultResponse | None = None


class SyncOperationResponse(BaseModel):
    """One audit record."""

    id: str | None
    operation_type: str
    status: str
    affected_items: dict[str, Any]
    error: str | None = None
    started_at: str
    completed_at: str | None = None


class ContentStatsResponse(BaseModel):
    """Storage counters for an owner."""

    documents: int
    chunks: int
    embedded_chunks: int
    embedding_coverage: float
    total_tokens: int
    average_chunk_length: int
    oldest_document: str | None = None
    newest_document: str | None = None


class SyncStatusResponse(BaseModel):
    """Response of GET /content/sync."""

    owner_id: str
    connected: bool
    connection_error: str | None = None
    is_running: bool
    last_sync: SyncOperationResponse | None = None
    stats: ContentStatsResponse


# ── Connection Schemas ───────────────────────────────────────────────


class ConnectionRequest(BaseModel):
    """Request body for storing an owner's Webflow access token."""

    access_token: str = Field(min_length=1)
    scope: str = ""
    expires_at: str | None = None


class ConnectionResponse(BaseModel):
    """Stored connection, without the token."""

    owner_id: str
    scope: str
    expires_at: str | None = None
    is_expired: bool
    updated_at: str


# ── Webhook Schemas ──────────────────────────────────────────────────


class WebhookResponse(BaseModel):
    """Response of POST /content/webhook."""

    success: bool
    event: str
    item_id: str
    message: str
    owner_id: str | None = None
    deleted_records: int = 0
    sync_result: SyncResultResponse | None = None


class WebhookInfoResponse(BaseModel):
    """Response of GET /content/webhook."""

    endpoint: str
    supported_events: list[str]
    signature_header: str
    event_header: str
    signature_verification: bool
    max_payload_bytes: int


# ── Search Schemas ───────────────────────────────────────────────────


class SearchRequest(BaseModel):
    """Request body for a semantic content search."""

    query: str = Field(min_length=1, max_length=2000)
    limit: int = Field(default=10, ge=1, le=50)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    collection_id: str | None = None


class SearchResultItem(BaseModel):
    """One matching chunk."""

    chunk_id: str | None
    document_id: str
    title: str
    collection_id: str
    collection_name: str
    slug: str
    chunk_index: int
    content: str
    similarity: float


class SearchResponse(BaseModel):
    """Response of POST /content/search."""

    query: str
    results: list[SearchResultItem]
    total: int
