"""SQLAlchemy implementation of ContentRepository — PostgreSQL upserts and pgvector search."""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.content_repository import (
    ContentRepository,
    ContentStats,
    VectorSearchResult,
)
from app.domain.entities.content_chunk import ContentChunk
from app.domain.entities.content_document import ContentDocument
from app.infrastructure.database.models.content_models import (
    ContentChunkModel,
    ContentDocumentModel,
)

logger = logging.getLogger(__name__)

# Columns overwritten when an item's content changes.
_UPSERT_COLUMNS = (
    "site_id",
    "collection_id",
    "collection_name",
    "title",
    "slug",
    "last_published",
    "content_hash",
    "metadata",
)


class PgContentRepository(ContentRepository):
    """Concrete content repository backed by PostgreSQL + pgvector."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self._session.begin_nested():
            yield

    async def get_by_hash(self, owner_id: str, content_hash: str) -> ContentDocument | None:
        result = await self._session.execute(
            select(ContentDocumentModel)
            .where(ContentDocumentModel.owner_id == owner_id)
            .where(ContentDocumentModel.content_hash == content_hash)
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def upsert_document(self, document: ContentDocument) -> ContentDocument:
        """INSERT … ON CONFLICT (owner_id, source_item_id) DO UPDATE.

        Concurrent inserts of the same item collapse onto one row; the
        returned document always carries the surviving row's ID.
        """
        table = ContentDocumentModel.__table__
        stmt = pg_insert(table).values(
            id=document.id or str(uuid.uuid4()),
            owner_id=document.owner_id,
            site_id=document.site_id,
            collection_id=document.collection_id,
            collection_name=document.collection_name,
            source_item_id=document.source_item_id,
            title=document.title,
            slug=document.slug,
            last_published=document.last_published,
            content_hash=document.content_hash,
            metadata=document.metadata,
        )
        set_ = {name: stmt.excluded[name] for name in _UPSERT_COLUMNS}
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.owner_id, table.c.source_item_id],
            set_=set_,
        ).returning(table.c.id, table.c.created_at, table.c.updated_at)

        row = (await self._session.execute(stmt)).one()
        document.id = row.id
        document.created_at = row.created_at
        document.updated_at = row.updated_at
        return document

    async def replace_chunks(
        self, document_id: str, chunks: list[ContentChunk]
    ) -> list[ContentChunk]:
        deleted = await self._session.execute(
            delete(ContentChunkModel).where(ContentChunkModel.document_id == document_id)
        )
        if deleted.rowcount:
            logger.debug("Removed %d stale chunks of document %s", deleted.rowcount, document_id)

        models = []
        for chunk in chunks:
            chunk.id = chunk.id or str(uuid.uuid4())
            chunk.document_id = document_id
            models.append(
                ContentChunkModel(
                    id=chunk.id,
                    document_id=document_id,
                    owner_id=chunk.owner_id,
                    chunk_index=chunk.chunk_index,
                    content=chunk.content,
                    token_count=chunk.token_count,
                    embedding=chunk.embedding,
                    metadata_=chunk.metadata,
                )
            )
        self._session.add_all(models)
        await self._session.flush()
        return chunks

    async def delete_by_source_item(self, owner_id: str, source_item_id: str) -> int:
        result = await self._session.execute(
            delete(ContentDocumentModel)
            .where(ContentDocumentModel.owner_id == owner_id)
            .where(ContentDocumentModel.source_item_id == source_item_id)
        )
        return result.rowcount

    async def delete_all_for_owner(self, owner_id: str) -> int:
        result = await self._session.execute(
            delete(ContentDocumentModel).where(ContentDocumentModel.owner_id == owner_id)
        )
        return result.rowcount

    async def find_owner_by_site(self, site_id: str) -> str | None:
        result = await self._session.execute(
            select(ContentDocumentModel.owner_id)
            .where(ContentDocumentModel.site_id == site_id)
            .order_by(ContentDocumentModel.updated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def chunks_without_embedding(self, owner_id: str, limit: int = 500) -> list[ContentChunk]:
        result = await self._session.execute(
            select(ContentChunkModel)
            .where(ContentChunkModel.owner_id == owner_id)
            .where(ContentChunkModel.embedding.is_(None))
            .order_by(ContentChunkModel.created_at.asc(), ContentChunkModel.chunk_index.asc())
            .limit(limit)
        )
        return [self._chunk_to_domain(m) for m in result.scalars().all()]

    async def update_chunk_embeddings(self, embeddings: dict[str, list[float]]) -> int:
        updated = 0
        for chunk_id, vector in embeddings.items():
            result = await self._session.execute(
                update(ContentChunkModel)
                .where(ContentChunkModel.id == chunk_id)
                .values(embedding=vector)
            )
            updated += result.rowcount
        return updated

    async def get_stats(self, owner_id: str) -> ContentStats:
        doc_row = (
            await self._session.execute(
                select(
                    func.count(ContentDocumentModel.id),
                    func.min(ContentDocumentModel.created_at),
                    func.max(ContentDocumentModel.updated_at),
                ).where(ContentDocumentModel.owner_id == owner_id)
            )
        ).one()
        chunk_row = (
            await self._session.execute(
                select(
                    func.count(ContentChunkModel.id),
                    func.count(ContentChunkModel.embedding),
                    func.coalesce(func.sum(ContentChunkModel.token_count), 0),
                    func.coalesce(func.avg(func.length(ContentChunkModel.content)), 0),
                ).where(ContentChunkModel.owner_id == owner_id)
            )
        ).one()
        return ContentStats(
            documents=doc_row[0],
            chunks=chunk_row[0],
            embedded_chunks=chunk_row[1],
            total_tokens=int(chunk_row[2]),
            average_chunk_length=int(round(float(chunk_row[3]))),
            oldest_document=doc_row[1],
            newest_document=doc_row[2],
        )

    async def search_similar(
        self,
        owner_id: str,
        query_embedding: list[float],
        *,
        limit: int = 10,
        threshold: float = 0.0,
        collection_id: str | None = None,
    ) -> list[VectorSearchResult]:
        """Nearest chunks by cosine distance, scoped to the owner.

        ``1 - (embedding <=> query)`` gives cosine similarity (0-1).
        """
        distance = ContentChunkModel.embedding.cosine_distance(query_embedding)
        query = (
            select(ContentChunkModel, ContentDocumentModel, (1 - distance).label("similarity"))
            .join(ContentDocumentModel, ContentDocumentModel.id == ContentChunkModel.document_id)
            .where(ContentChunkModel.owner_id == owner_id)
            .where(ContentChunkModel.embedding.is_not(None))
            .where(distance <= 1 - threshold)
        )
        if collection_id:
            query = query.where(ContentDocumentModel.collection_id == collection_id)
        query = query.order_by(distance).limit(limit)

        rows = (await self._session.execute(query)).all()
        return [
            VectorSearchResult(
                chunk=self._chunk_to_domain(chunk_model, with_embedding=False),
                similarity=float(similarity),
                document_id=doc_model.id,
                title=doc_model.title,
                collection_id=doc_model.collection_id,
                collection_name=doc_model.collection_name,
                slug=doc_model.slug,
                metadata=doc_model.metadata_ or {},
            )
            for chunk_model, doc_model, similarity in rows
        ]

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: ContentDocumentModel) -> ContentDocument:
        return ContentDocument(
            id=model.id,
            owner_id=model.owner_id,
            source_item_id=model.source_item_id,
            collection_id=model.collection_id,
            collection_name=model.collection_name,
            title=model.title,
            content_hash=model.content_hash,
            slug=model.slug or "",
            site_id=model.site_id or "",
            last_published=model.last_published,
            metadata=model.metadata_ or {},
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _chunk_to_domain(model: ContentChunkModel, with_embedding: bool = True) -> ContentChunk:
        embedding = None
        if with_embedding and model.embedding is not None:
            embedding = [float(v) for v in model.embedding]
        return ContentChunk(
            id=model.id,
            document_id=model.document_id,
            owner_id=model.owner_id,
            chunk_index=model.chunk_index,
            content=model.content,
            token_count=model.token_count,
            embedding=embedding,
            metadata=model.metadata_ or {},
            created_at=model.created_at,
        )
