from .content import (
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
from .embeddings import (
    BatchResultResponse,
    EmbeddingCapabilitiesResponse,
    EmbeddingStatusResponse,
    GenerateEmbeddingsRequest,
    GenerateEmbeddingsResponse,
    PendingEmbeddingsRequest,
    PendingEmbeddingsResponse,
    ValidationReportResponse,
)

__all__ = [
    "ConnectionRequest",
    "ConnectionResponse",
    "ContentStatsResponse",
    "SearchRequest",
    "SearchResponse",
    "SearchResultItem",
    "SyncOperationResponse",
    "SyncRequest",
    "SyncResponse",
    "SyncResultResponse",
    "SyncStatusResponse",
    "WebhookInfoResponse",
    "WebhookResponse",
    "BatchResultResponse",
    "EmbeddingCapabilitiesResponse",
    "EmbeddingStatusResponse",
    "GenerateEmbeddingsRequest",
    "GenerateEmbeddingsResponse",
    "PendingEmbeddingsRequest",
    "PendingEmbeddingsResponse",
    "ValidationReportResponse",
]
