"""Unit tests for ContentSearchService."""

import pytest

from app.application.interfaces import VectorSearchResult
from app.application.services.rate_limiter import RateLimiter
from app.application.services.batch_embedding_service import BatchEmbeddingService
from app.application.services.search_service import MAX_SEARCH_LIMIT, ContentSearchService
from app.domain.entities import ContentChunk

from fakes import FakeContentRepository, FakeEmbeddingProvider, SleepRecorder


class RecordingSearchRepository(FakeContentRepository):
    def __init__(self):
        super().__init__()
        self.searches: list[dict] = []

    async def search_similar(self, owner_id, query_embedding, *, limit=10, threshold=0.0, collection_id=None):
        self.searches.append({
            "owner_id": owner_id,
            "embedding": query_embedding,
            "limit": limit,
            "threshold": threshold,
            "collection_id": collection_id,
        })
        chunk = ContentChunk(
            document_id="doc-1", owner_id=owner_id, chunk_index=0,
            content="matching text", token_count=2, id="c0",
        )
        return [
            VectorSearchResult(
                chunk=chunk, similarity=0.91, document_id="doc-1", title="Post",
                collection_id="col-a", collection_name="Collection A",
            )
        ]


def _service(repo: FakeContentRepository, provider: FakeEmbeddingProvider) -> ContentSearchService:
    limiter = RateLimiter(100, 60.0, sleep=SleepRecorder())
    embeddings = BatchEmbeddingService(provider, limiter, sleep=SleepRecorder())
    return ContentSearchService(embeddings, repo)


@pytest.mark.asyncio
async def test_search_embeds_query_and_scopes_to_owner():
    repo = RecordingSearchRepository()
    provider = FakeEmbeddingProvider()

    results = await _service(repo, provider).search(
        "owner-1", "  pricing plans  ", threshold=0.5, collection_id="col-a"
    )

    assert provider.calls == [["pricing plans"]]
    assert repo.searches == [{
        "owner_id": "owner-1",
        "embedding": [13.0, 13.0, 13.0],
        "limit": 10,
        "threshold": 0.5,
        "collection_id": "col-a",
    }]
    assert [r.chunk.id for r in results] == ["c0"]
    assert results[0].similarity == 0.91


@pytest.mark.asyncio
async def test_search_limit_is_clamped():
    repo = RecordingSearchRepository()
    service = _service(repo, FakeEmbeddingProvider())

    await service.search("owner-1", "q", limit=1000)
    await service.search("owner-1", "q", limit=0)

    assert [s["limit"] for s in repo.searches] == [MAX_SEARCH_LIMIT, 1]


@pytest.mark.asyncio
async def test_blank_query_is_rejected_without_provider_call():
    provider = FakeEmbeddingProvider()

    with pytest.raises(ValueError):
        await _service(RecordingSearchRepository(), provider).search("owner-1", "   ")

    assert provider.calls == []
