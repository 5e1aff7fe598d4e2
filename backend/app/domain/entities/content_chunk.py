"""Domain entities for content chunks — token-bounded fragments with vector embeddings."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class TextChunk:
    """A chunk produced by the chunker, before it is persisted."""

    text: str
    token_count: int
    chunk_index: int


@dataclass
class ContentChunk:
    """A stored fragment of a ContentDocument's normalized text.

    Chunks are exclusively owned by their document: they are replaced as a
    whole whenever the document's content hash changes and are deleted with
    the document. ``embedding`` stays ``None`` until the batch embedding
    client has produced a vector for it.
    """

    document_id: str
    owner_id: str
    chunk_index: int
    content: str
    token_count: int
    embedding: list[float] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
