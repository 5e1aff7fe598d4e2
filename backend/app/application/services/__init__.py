from .batch_embedding_service import BatchEmbeddingService
from .chunker import TextChunker
from .content_extractor import ContentExtractor
from .content_hash_store import ContentHashStore, compute_content_hash
from .content_sync_service import ContentSyncService, SyncStatus
from .rate_limiter import RateLimiter
from .search_service import ContentSearchService
from .sync_lock import OwnerLockRegistry
from .token_counter import TokenCounter
from .webhook_service import WebhookOutcome, WebhookPayload, WebhookService

__all__ = [
    "BatchEmbeddingService",
    "TextChunker",
    "ContentExtractor",
    "ContentHashStore",
    "compute_content_hash",
    "ContentSyncService",
    "SyncStatus",
    "RateLimiter",
    "ContentSearchService",
    "OwnerLockRegistry",
    "TokenCounter",
    "WebhookOutcome",
    "WebhookPayload",
    "WebhookService",
]
