from .content_repository import ContentRepository, ContentStats, VectorSearchResult
from .content_source import ContentSource, ContentSourceFactory
from .embedding_provider import EmbeddingProvider, EmbeddingResponse
from .source_connection_repository import SourceConnectionRepository
from .sync_operation_repository import SyncOperationRepository

__all__ = [
    "ContentRepository",
    "ContentStats",
    "VectorSearchResult",
    "ContentSource",
    "ContentSourceFactory",
    "EmbeddingProvider",
    "EmbeddingResponse",
    "SourceConnectionRepository",
    "SyncOperationRepository",
]
