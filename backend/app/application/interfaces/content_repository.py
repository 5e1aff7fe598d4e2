"""Abstract repository interface (port) for content documents, chunks and vector search."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.domain.entities.content_chunk import ContentChunk
from app.domain.entities.content_document import ContentDocument


@dataclass
class VectorSearchResult:
    """A single result from a vector similarity search."""

    chunk: ContentChunk
    similarity: float  # 0.0 – 1.0 (cosine similarity)
    document_id: str
    title: str
    collection_id: str
    collection_name: str
    slug: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ContentStats:
    """Storage counters for one owner's synced content."""

    documents: int = 0
    chunks: int = 0
    embedded_chunks: int = 0
    total_tokens: int = 0
    average_chunk_length: int = 0
    oldest_document: datetime | None = None
    newest_document: datetime | None = None

    @property
    def embedding_coverage(self) -> float:
        """Percentage of chunks that carry a vector."""
        if self.chunks == 0:
            return 0.0
        return round(self.embedded_chunks / self.chunks * 100, 2)


class ContentRepository(ABC):
    """Port for content document/chunk persistence — implemented in the infrastructure layer."""

    @abstractmethod
    def savepoint(self) -> AbstractAsyncContextManager[Any]:
        """Open a nested transaction; leaving it with an exception rolls back only its writes."""
        ...

    @abstractmethod
    async def get_by_hash(self, owner_id: str, content_hash: str) -> ContentDocument | None:
        """Return the owner's document with this content hash, if any."""
        ...

    @abstractmethod
    async def upsert_document(self, document: ContentDocument) -> ContentDocument:
        """Insert, or update by ``(owner_id, source_item_id)``, and return the stored row."""
        ...

    @abstractmethod
    async def replace_chunks(
        self, document_id: str, chunks: list[ContentChunk]
    ) -> list[ContentChunk]:
        """Delete every chunk of the document, then insert ``chunks``. Returns them with IDs."""
        ...

    @abstractmethod
    async def delete_by_source_item(self, owner_id: str, source_item_id: str) -> int:
        """Delete the owner's documents for a remote item (chunks cascade). Returns count."""
        ...

    @abstractmethod
    async def delete_all_for_owner(self, owner_id: str) -> int:
        """Delete all of an owner's documents (chunks cascade). Returns count."""
        ...

    @abstractmethod
    async def find_owner_by_site(self, site_id: str) -> str | None:
        """Return the owner whose synced documents came from this site."""
        ...

    @abstractmethod
    async def chunks_without_embedding(self, owner_id: str, limit: int = 500) -> list[ContentChunk]:
        """Return the owner's chunks whose vector is still NULL, oldest first."""
        ...

    @abstractmethod
    async def update_chunk_embeddings(self, embeddings: dict[str, list[float]]) -> int:
        """Store vectors keyed by chunk ID. Returns number of rows updated."""
        ...

    @abstractmethod
    async def get_stats(self, owner_id: str) -> ContentStats:
        """Return document/chunk/embedding counters for an owner."""
        ...

    @abstractmethod
    async def search_similar(
        self,
        owner_id: str,
        query_embedding: list[float],
        *,
        limit: int = 10,
        threshold: float = 0.0,
        collection_id: str | None = None,
    ) -> list[VectorSearchResult]:
        """Find the owner's chunks most similar to the query embedding.

        Returns:
            List of VectorSearchResult ordered by descending similarity,
            excluding results below ``threshold``.
        """
        ...
