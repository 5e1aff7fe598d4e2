"""Content sync service — walks sites → collections → items and keeps stored content current.

This is an application service that coordinates, per item:
1. Extracting normalized text (ContentExtractor)
2. Deduplicating by content hash (ContentHashStore)
3. Chunking changed documents and replacing their chunks (TextChunker)
4. Embedding the new chunks inline (BatchEmbeddingService, optional)

Failures are collected into the run's ``errors`` list at the smallest
possible scope: an item failure skips that item, a page failure ends that
collection. Only an unusable connection aborts the run. Every run writes
exactly one SyncOperationRecord.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.application.interfaces.content_repository import ContentRepository, ContentStats
from app.application.interfaces.content_source import ContentSource, ContentSourceFactory
from app.application.interfaces.source_connection_repository import SourceConnectionRepository
from app.application.interfaces.sync_operation_repository import SyncOperationRepository
from app.application.services.batch_embedding_service import BatchEmbeddingService
from app.application.services.chunker import TextChunker
from app.application.services.content_extractor import ContentExtractor
from app.application.services.content_hash_store import ContentHashStore
from app.application.services.rate_limiter import RateLimiter
from app.application.services.sync_lock import OwnerLockRegistry
from app.domain.entities.content_chunk import ContentChunk
from app.domain.entities.source_connection import SourceConnection
from app.domain.entities.source_item import Site, SourceCollection, SourceItem
from app.domain.entities.sync_operation import (
    ContentSyncResult,
    OperationStatus,
    OperationType,
    SyncOperationRecord,
)
from app.domain.exceptions import ConnectionInvalidError, ContentSourceError
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("ContentSync")

DEFAULT_PAGE_SIZE = 25
_PAGE_DELAY_SECONDS = 0.1
_AUDIT_ERROR_LIMIT = 20
_AUTH_FAILURE_STATUSES = frozenset({401, 403})


@dataclass
class SyncStatus:
    """What the owner needs to know before/after triggering a sync."""

    owner_id: str
    connected: bool
    connection_error: str | None = None
    is_running: bool = False
    last_sync: SyncOperationRecord | None = None
    stats: ContentStats = field(default_factory=ContentStats)


class ContentSyncService:
    """Application service orchestrating one owner's content sync run."""

    def __init__(
        self,
        *,
        connection_repository: SourceConnectionRepository,
        content_repository: ContentRepository,
        operation_repository: SyncOperationRepository,
        source_factory: ContentSourceFactory,
        rate_limiter: RateLimiter,
        chunker: TextChunker,
        extractor: ContentExtractor | None = None,
        embedding_service: BatchEmbeddingService | None = None,
        lock_registry: OwnerLockRegistry | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        embed_on_sync: bool = True,
        page_delay: float = _PAGE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._connection_repo = connection_repository
        self._content_repo = content_repository
        self._operation_repo = operation_repository
        self._source_factory = source_factory
        self._rate_limiter = rate_limiter
        self._chunker = chunker
        self._extractor = extractor or ContentExtractor()
        self._hash_store = ContentHashStore(content_repository)
        self._embedding_service = embedding_service
        self._locks = lock_registry or OwnerLockRegistry()
        self._page_size = page_size
        self._embed_on_sync = embed_on_sync
        self._page_delay = page_delay
        self._sleep = sleep

    @property
    def embeds_inline(self) -> bool:
        return self._embed_on_sync and self._embedding_service is not None

    # ── Entry points ────────────────────────────────────────────────

    async def sync_owner_content(self, owner_id: str) -> ContentSyncResult:
        """Run a full sync for one owner.

        A second call for the same owner waits until the first finishes.

        Raises:
            ConnectionInvalidError: the stored connection is missing, expired
                or rejected. A failed audit record is written first.
        """
        async with self._locks.hold(owner_id):
            return await self._run(owner_id)

    async def clear_owner_content(self, owner_id: str) -> int:
        """Delete all of an owner's synced documents and chunks."""
        async with self._locks.hold(owner_id):
            return await self._hash_store.clear_owner_content(owner_id)

    async def get_sync_status(self, owner_id: str) -> SyncStatus:
        """Connection validity, last completed sync and storage counters."""
        status = SyncStatus(owner_id=owner_id, connected=True, is_running=self._locks.is_locked(owner_id))
        try:
            await self._validate_connection(owner_id)
        except ConnectionInvalidError as exc:
            status.connected = False
            status.connection_error = exc.reason
        status.last_sync = await self._operation_repo.get_last_completed(owner_id, OperationType.SYNC)
        status.stats = await self._content_repo.get_stats(owner_id)
        return status

    # ── Run ─────────────────────────────────────────────────────────

    async def _run(self, owner_id: str) -> ContentSyncResult:
        result = ContentSyncResult()
        start = time.monotonic()
        plog.separator(f"Sync {owner_id}")
        plog.step_start(PipelineStage.SYNC, "Starting content sync", owner=owner_id)

        fatal: ConnectionInvalidError | None = None
        try:
            source = await self._open_source(owner_id)
            sites = await self._list_sites(owner_id, source)
            for site in sites:
                with plog.timed_step(PipelineStage.SITE, site.name or site.id, site_id=site.id):
                    await self._sync_site(owner_id, source, site, result)
        except ConnectionInvalidError as exc:
            fatal = exc
            result.errors.append(str(exc))
            plog.step_error(PipelineStage.SYNC, "Connection unusable, sync aborted", error=exc)
        except Exception as exc:
            result.errors.append(f"Sync failed: {exc}")
            plog.step_error(PipelineStage.SYNC, "Sync aborted", error=exc)
            logger.exception("Unexpected sync failure for owner %s", owner_id)

        result.success = fatal is None and (
            result.sites_processed > 0 or result.items_processed > 0
        )
        result.completed_at = datetime.now(timezone.utc)
        result.duration_ms = int((time.monotonic() - start) * 1000)

        await self._record_run(owner_id, result)

        if result.success:
            plog.step_complete(PipelineStage.COMPLETE, "Sync finished", duration_ms=result.duration_ms)
        plog.stats(**result.summary())

        if fatal is not None:
            raise fatal
        return result

    async def _sync_site(
        self, owner_id: str, source: ContentSource, site: Site, result: ContentSyncResult
    ) -> None:
        try:
            collections = await self._rate_limiter.execute(
                owner_id, lambda: source.list_collections(site.id)
            )
        except Exception as exc:
            result.errors.append(f"Site {site.name} ({site.id}): listing collections failed: {exc}")
            plog.step_error(PipelineStage.SITE, f"Could not list collections of {site.name}", error=exc)
            return

        for collection in collections:
            if not collection.site_id:
                collection.site_id = site.id
            if await self._sync_collection(owner_id, source, collection, result):
                result.collections_processed += 1
        result.sites_processed += 1

    async def _sync_collection(
        self,
        owner_id: str,
        source: ContentSource,
        collection: SourceCollection,
        result: ContentSyncResult,
    ) -> bool:
        """Page through a collection. Returns False when a page fetch failed."""
        plog.step_start(PipelineStage.COLLECTION, collection.name, collection_id=collection.id)
        offset = 0
        items_seen = 0
        while True:
            try:
                page = await self._rate_limiter.execute(
                    owner_id,
                    lambda: source.list_items(collection.id, limit=self._page_size, offset=offset),
                )
            except Exception as exc:
                result.errors.append(
                    f"Collection {collection.name} ({collection.id}): "
                    f"page fetch failed at offset {offset}: {exc}"
                )
                plog.step_error(
                    PipelineStage.COLLECTION, f"Page fetch failed for {collection.name}", error=exc
                )
                return False

            for item in page.items:
                await self._sync_item(owner_id, collection, item, result)
            items_seen += len(page.items)
            plog.detail(f"offset {offset}: {len(page.items)} items", collection=collection.name)

            if not page.has_more or not page.items:
                break
            offset += len(page.items)
            await self._sleep(self._page_delay)

        plog.step_complete(PipelineStage.COLLECTION, collection.name, items=items_seen)
        return True

    async def _sync_item(
        self,
        owner_id: str,
        collection: SourceCollection,
        item: SourceItem,
        result: ContentSyncResult,
    ) -> None:
        try:
            text = self._extractor.extract(item)
            if not self._extractor.has_usable_content(text):
                plog.detail(f"Skipping item {item.id}: no content")
                return

            chunks: list[ContentChunk] = []
            async with self._content_repo.savepoint():
                document, is_new = await self._hash_store.upsert_document(
                    owner_id, collection, item, text
                )
                if is_new:
                    chunks = await self._hash_store.replace_chunks(
                        document, self._chunker.chunk(text)
                    )
        except Exception as exc:
            result.errors.append(f"Item {item.id} in {collection.name}: {exc}")
            plog.step_warning(PipelineStage.ITEM, f"Item {item.id} failed: {exc}")
            return

        result.items_processed += 1
        result.chunks_created += len(chunks)
        if chunks:
            plog.step_complete(PipelineStage.CHUNK, f"{item.name or item.id}: {len(chunks)} chunk(s)")
            if self.embeds_inline:
                await self._embed_chunks(owner_id, item, chunks, result)

    async def _embed_chunks(
        self,
        owner_id: str,
        item: SourceItem,
        chunks: list[ContentChunk],
        result: ContentSyncResult,
    ) -> None:
        """Embed freshly stored chunks; failed ones keep a NULL vector for a later run."""
        if self._embedding_service is None:
            return
        try:
            batch = await self._embedding_service.embed_batch(
                [chunk.content for chunk in chunks], owner_id=owner_id
            )
            vectors = {
                chunks[embedded.index].id: embedded.embedding
                for embedded in batch.embeddings
                if chunks[embedded.index].id
            }
            if vectors:
                async with self._content_repo.savepoint():
                    result.chunks_embedded += await self._hash_store.store_embeddings(vectors)
        except Exception as exc:
            result.errors.append(f"Embedding failed for item {item.id}: {exc}")
            plog.step_warning(PipelineStage.EMBED, f"Embedding failed for item {item.id}: {exc}")
            return

        if batch.failures:
            result.errors.append(
                f"Embedding failed for {len(batch.failures)} chunk(s) of item {item.id}: "
                f"{batch.failures[0].error}"
            )

    # ── Connection ──────────────────────────────────────────────────

    async def _validate_connection(self, owner_id: str) -> SourceConnection:
        connection = await self._connection_repo.get_by_owner(owner_id)
        if connection is None:
            raise ConnectionInvalidError(owner_id, "no content source connection found")
        if not connection.bearer_token:
            raise ConnectionInvalidError(owner_id, "stored access token is empty")
        if connection.is_expired:
            raise ConnectionInvalidError(owner_id, "access token has expired, re-authorization required")
        return connection

    async def _open_source(self, owner_id: str) -> ContentSource:
        connection = await self._validate_connection(owner_id)
        return self._source_factory.for_connection(connection)

    async def _list_sites(self, owner_id: str, source: ContentSource) -> list[Site]:
        try:
            sites = await self._rate_limiter.execute(owner_id, source.authenticated_sites)
        except ContentSourceError as exc:
            if exc.status_code in _AUTH_FAILURE_STATUSES:
                raise ConnectionInvalidError(
                    owner_id, f"access token rejected by {exc.provider} ({exc.status_code})"
                ) from exc
            raise
        plog.detail(f"{len(sites)} site(s) authorized")
        return sites

    # ── Audit ───────────────────────────────────────────────────────

    async def _record_run(self, owner_id: str, result: ContentSyncResult) -> None:
        affected = dict(result.summary())
        affected["errors"] = result.errors[:_AUDIT_ERROR_LIMIT]
        record = SyncOperationRecord(
            owner_id=owner_id,
            operation_type=OperationType.SYNC,
            status=OperationStatus.COMPLETED if result.success else OperationStatus.FAILED,
            affected_items=affected,
            error=None if result.success else "; ".join(result.errors[:3]) or "No content was synced",
            started_at=result.started_at,
            completed_at=result.completed_at,
        )
        await self._operation_repo.create(record)
        plog.step_complete(PipelineStage.AUDIT, f"Audit record written ({record.status.value})")
