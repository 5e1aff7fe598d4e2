from .content_models import (
    ContentChunkModel,
    ContentDocumentModel,
    SourceConnectionModel,
    SyncOperationModel,
)

__all__ = [
    "ContentChunkModel",
    "ContentDocumentModel",
    "SourceConnectionModel",
    "SyncOperationModel",
]
