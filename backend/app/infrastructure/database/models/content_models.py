"""SQLAlchemy ORM models for synced content, chunk vectors, audit records and connections."""

import uuid

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from app.infrastructure.database.base import Base

EMBEDDING_DIMENSIONS = 1536  # text-embedding-3-small (HNSW max: 2000)


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class ContentDocumentModel(Base):
    """One normalized CMS item, deduplicated per owner by content hash."""

    __tablename__ = "content_documents"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    owner_id = Column(String(255), nullable=False, index=True)
    site_id = Column(String(64), nullable=False, server_default="", index=True)
    collection_id = Column(String(64), nullable=False)
    collection_name = Column(String(255), nullable=False, server_default="")
    source_item_id = Column(String(64), nullable=False)
    title = Column(String(500), nullable=False, server_default="")
    slug = Column(String(500), nullable=False, server_default="")
    last_published = Column(DateTime(timezone=True), nullable=True)
    content_hash = Column(String(64), nullable=False)
    metadata_ = Column("metadata", JSONB, nullable=False, server_default="{}")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("owner_id", "source_item_id", name="uq_document_owner_item"),
        Index("idx_documents_owner_hash", "owner_id", "content_hash"),
    )


class ContentChunkModel(Base):
    """A token-bounded fragment of a document, with its embedding vector.

    Chunks are replaced as a whole when their document's hash changes and
    are removed with the document (ON DELETE CASCADE). The embedding stays
    NULL until an embedding run fills it in.
    """

    __tablename__ = "content_chunks"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    document_id = Column(
        String(36),
        ForeignKey("content_documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_id = Column(String(255), nullable=False, index=True)
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    token_count = Column(Integer, nullable=False, default=0)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=True)
    metadata_ = Column("metadata", JSONB, nullable=False, server_default="{}")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_chunk_document_index"),
        Index("idx_content_chunks_embedding_hnsw", embedding, postgresql_using="hnsw",
              postgresql_ops={"embedding": "vector_cosine_ops"}),
    )


class SyncOperationModel(Base):
    """Append-only audit row: one per sync run, embedding run or change notification."""

    __tablename__ = "sync_operations"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    owner_id = Column(String(255), nullable=False)
    operation_type = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False)  # "completed" | "failed"
    affected_items = Column(JSONB, nullable=False, server_default="{}")
    error = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_operations_owner_started", "owner_id", "started_at"),
    )


class SourceConnectionModel(Base):
    """An owner's Webflow access token."""

    __tablename__ = "source_connections"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    owner_id = Column(String(255), nullable=False, unique=True)
    access_token = Column(Text, nullable=False)
    scope = Column(Text, nullable=False, server_default="")
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
