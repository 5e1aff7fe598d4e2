"""Content hash store — idempotent document upserts and replace-in-place chunk storage."""

import hashlib
import logging

from app.application.interfaces.content_repository import ContentRepository
from app.domain.entities.content_chunk import ContentChunk, TextChunk
from app.domain.entities.content_document import ContentDocument
from app.domain.entities.source_item import SourceCollection, SourceItem

logger = logging.getLogger(__name__)


def compute_content_hash(text: str) -> str:
    """SHA-256 hex digest of the normalized document text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ContentHashStore:
    """Application service deduplicating documents by ``(owner_id, content_hash)``.

    An unchanged document costs one lookup and no provider calls: callers
    only re-chunk and re-embed when ``upsert_document`` reports ``is_new``.
    """

    def __init__(self, content_repository: ContentRepository):
        self._repo = content_repository

    async def upsert_document(
        self,
        owner_id: str,
        collection: SourceCollection,
        item: SourceItem,
        text: str,
    ) -> tuple[ContentDocument, bool]:
        """Store the item's document unless identical content already exists.

        Returns:
            ``(document, is_new)``. ``is_new`` is False when the owner already
            has a document with the same content hash; that document is
            returned unchanged.
        """
        content_hash = compute_content_hash(text)

        existing = await self._repo.get_by_hash(owner_id, content_hash)
        if existing is not None:
            logger.debug(
                "Unchanged content for item %s (document %s)", item.id, existing.id
            )
            return existing, False

        document = ContentDocument(
            owner_id=owner_id,
            source_item_id=item.id,
            collection_id=collection.id,
            collection_name=collection.name,
            title=item.name.strip() or "Untitled",
            content_hash=content_hash,
            slug=item.slug,
            site_id=collection.site_id,
            last_published=item.last_published,
            metadata={
                "collection_slug": collection.slug,
                "content_length": len(text),
            },
        )
        stored = await self._repo.upsert_document(document)
        logger.debug("Stored document %s for item %s", stored.id, item.id)
        return stored, True

    async def replace_chunks(
        self, document: ContentDocument, chunks: list[TextChunk]
    ) -> list[ContentChunk]:
        """Replace every chunk of ``document`` with ``chunks``."""
        if not document.id:
            raise ValueError("Cannot store chunks for a document without an ID")

        rows = [
            ContentChunk(
                document_id=document.id,
                owner_id=document.owner_id,
                chunk_index=chunk.chunk_index,
                content=chunk.text,
                token_count=chunk.token_count,
                metadata={"title": document.title, "collection_name": document.collection_name},
            )
            for chunk in chunks
        ]
        return await self._repo.replace_chunks(document.id, rows)

    async def store_embeddings(self, embeddings: dict[str, list[float]]) -> int:
        """Write vectors back to their chunks, keyed by chunk ID."""
        if not embeddings:
            return 0
        return await self._repo.update_chunk_embeddings(embeddings)

    async def delete_source_item(self, owner_id: str, source_item_id: str) -> int:
        """Remove the documents of an item the remote source reported as gone."""
        count = await self._repo.delete_by_source_item(owner_id, source_item_id)
        logger.info("Deleted %d document(s) for item %s (owner=%s)", count, source_item_id, owner_id)
        return count

    async def clear_owner_content(self, owner_id: str) -> int:
        """Remove every document (and chunk) of an owner."""
        count = await self._repo.delete_all_for_owner(owner_id)
        logger.info("Cleared %d document(s) for owner %s", count, owner_id)
        return count
