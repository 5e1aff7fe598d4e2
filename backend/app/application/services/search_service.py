"""Content search — embeds a query and returns the owner's nearest chunks."""

import logging

from app.application.interfaces.content_repository import ContentRepository, VectorSearchResult
from app.application.services.batch_embedding_service import BatchEmbeddingService

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 50
DEFAULT_SIMILARITY_THRESHOLD = 0.7


class ContentSearchService:
    """Cosine nearest-neighbour search over stored chunk vectors."""

    def __init__(
        self,
        embedding_service: BatchEmbeddingService,
        content_repository: ContentRepository,
    ):
        self._embedding_service = embedding_service
        self._content_repo = content_repository

    async def search(
        self,
        owner_id: str,
        query: str,
        *,
        limit: int = DEFAULT_SEARCH_LIMIT,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        collection_id: str | None = None,
    ) -> list[VectorSearchResult]:
        query = query.strip()
        if not query:
            raise ValueError("Search query cannot be empty")

        embedding = await self._embedding_service.embed_query(owner_id, query)
        results = await self._content_repo.search_similar(
            owner_id,
            embedding,
            limit=min(max(limit, 1), MAX_SEARCH_LIMIT),
            threshold=threshold,
            collection_id=collection_id,
        )
        logger.info(
            "Search for owner %s returned %d result(s) (threshold=%.2f)",
            owner_id, len(results), threshold,
        )
        return results
