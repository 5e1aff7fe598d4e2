from .content_chunk import ContentChunk, TextChunk
from .content_document import ContentDocument
from .embedding_batch import (
    BatchProgress,
    EmbeddingBatchResult,
    EmbeddingFailure,
    EmbeddingResult,
    TextValidationReport,
)
from .source_connection import SourceConnection
from .source_item import ItemPage, Site, SourceCollection, SourceItem
from .sync_operation import (
    ContentSyncResult,
    OperationStatus,
    OperationType,
    SyncOperationRecord,
)

__all__ = [
    "ContentChunk",
    "TextChunk",
    "ContentDocument",
    "BatchProgress",
    "EmbeddingBatchResult",
    "EmbeddingFailure",
    "EmbeddingResult",
    "TextValidationReport",
    "SourceConnection",
    "ItemPage",
    "Site",
    "SourceCollection",
    "SourceItem",
    "ContentSyncResult",
    "OperationStatus",
    "OperationType",
    "SyncOperationRecord",
]
