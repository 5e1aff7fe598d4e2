"""Unit tests for the BatchEmbeddingService."""

import pytest

from app.application.interfaces import EmbeddingResponse
from app.application.services.batch_embedding_service import (
    BatchEmbeddingService,
    estimate_tokens,
    is_retryable_error,
)
from app.application.services.rate_limiter import RateLimiter
from app.domain.entities import BatchProgress, ContentChunk, OperationStatus, OperationType
from app.domain.exceptions import EmbeddingProviderError, RateLimitExceededError

from fakes import (
    FakeContentRepository,
    FakeEmbeddingProvider,
    FakeSyncOperationRepository,
    SleepRecorder,
)


def _unavailable() -> EmbeddingProviderError:
    return EmbeddingProviderError("openai", 503, "service unavailable")


def _invalid_key() -> EmbeddingProviderError:
    return EmbeddingProviderError(
        "openai", 401, "Incorrect API key provided", code="invalid_api_key", retryable=False
    )


def _service(provider, sleep=None, limiter_ladder=(1.0,), **kwargs) -> BatchEmbeddingService:
    limiter = RateLimiter(1000, 60.0, backoff_ladder=limiter_ladder, sleep=SleepRecorder())
    return BatchEmbeddingService(provider, limiter, sleep=sleep or SleepRecorder(), **kwargs)


class ShortProvider(FakeEmbeddingProvider):
    """Drops the last vector of every response."""

    async def generate_embeddings(self, texts, *, model=None, dimensions=None) -> EmbeddingResponse:
        response = await super().generate_embeddings(texts, model=model, dimensions=dimensions)
        response.vectors = response.vectors[:-1]
        return response


# ── Helpers ──


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_is_retryable_error():
    assert is_retryable_error(_unavailable())
    assert not is_retryable_error(_invalid_key())
    assert is_retryable_error(RateLimitExceededError("owner-1", 3))
    assert not is_retryable_error(RuntimeError("insufficient_quota for this org"))
    assert is_retryable_error(RuntimeError("connection reset"))


# ── Validation ──


def test_validate_texts_counts_and_warns():
    service = _service(FakeEmbeddingProvider())

    report = service.validate_texts(["", "abc", "x" * 40000])

    assert report.is_valid is True
    assert report.valid_texts == 1
    assert report.empty_texts == 1
    assert report.oversized_texts == 1
    assert report.total_estimated_tokens == 1
    assert report.estimated_batches == 1
    assert "Text too long: 10000 tokens (max: 8191)" in report.warnings
    assert "1 empty texts will be skipped" in report.warnings


def test_validate_texts_flags_high_cost():
    service = _service(FakeEmbeddingProvider(), cost_per_token=1.0)

    report = service.validate_texts(["a" * 8])

    assert report.estimated_cost == 2.0
    assert "High estimated cost: $2.00" in report.warnings


def test_validate_texts_with_nothing_usable():
    report = _service(FakeEmbeddingProvider()).validate_texts(["", "   "])
    assert report.is_valid is False
    assert report.estimated_batches == 0


# ── embed_batch ──


@pytest.mark.asyncio
async def test_blank_inputs_are_skipped_and_indices_preserved():
    provider = FakeEmbeddingProvider()
    service = _service(provider)

    result = await service.embed_batch(
        ["hello world", "", "  ", "second valid text"], owner_id="owner-1"
    )

    assert [e.index for e in result.embeddings] == [0, 3]
    assert result.failures == []
    assert provider.calls == [["hello world", "second valid text"]]
    assert result.total_tokens == 5
    assert result.total_cost == pytest.approx(5 * 0.00000002)
    assert [e.token_count for e in result.embeddings] == [3, 3]
    assert result.success_rate == 100.0
    assert result.batches_processed == 1


@pytest.mark.asyncio
async def test_all_blank_inputs_make_no_calls():
    provider = FakeEmbeddingProvider()
    result = await _service(provider).embed_batch(["", " "], owner_id="owner-1")

    assert provider.calls == []
    assert result.embeddings == [] and result.failures == []


@pytest.mark.asyncio
async def test_batches_run_sequentially_with_progress():
    provider = FakeEmbeddingProvider()
    sleep = SleepRecorder()
    service = _service(provider, sleep=sleep)
    progress: list[BatchProgress] = []

    result = await service.embed_batch(
        [f"text {i}" for i in range(5)],
        owner_id="owner-1",
        batch_size=2,
        on_progress=progress.append,
    )

    assert [len(call) for call in provider.calls] == [2, 2, 1]
    assert result.batches_processed == 3
    assert [p.current_batch for p in progress] == [1, 2, 3]
    assert [p.processed_texts for p in progress] == [2, 4, 5]
    assert progress[-1].total_batches == 3
    assert progress[-1].successful_embeddings == 5
    assert progress[-1].estimated_time_remaining_ms == 0
    assert sleep.delays == [0.1, 0.1]


@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    provider = FakeEmbeddingProvider(failures=[_unavailable()])
    sleep = SleepRecorder()

    result = await _service(provider, sleep=sleep).embed_batch(["one", "two"], owner_id="owner-1")

    assert len(provider.calls) == 2
    assert [e.index for e in result.embeddings] == [0, 1]
    assert result.failures == []
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_terminal_failure_is_not_retried():
    provider = FakeEmbeddingProvider(failures=[_invalid_key()])
    sleep = SleepRecorder()

    result = await _service(provider, sleep=sleep).embed_batch(["one", "two"], owner_id="owner-1")

    assert len(provider.calls) == 1
    assert sleep.delays == []
    assert [(f.index, f.retry_count) for f in result.failures] == [(0, 0), (1, 0)]
    assert "Incorrect API key" in result.failures[0].error
    assert result.success_rate == 0.0


@pytest.mark.asyncio
async def test_retries_are_bounded():
    provider = FakeEmbeddingProvider(failures=[_unavailable() for _ in range(5)])
    sleep = SleepRecorder()

    result = await _service(provider, sleep=sleep).embed_batch(
        ["one"], owner_id="owner-1", max_retries=2
    )

    assert len(provider.calls) == 3
    assert sleep.delays == [1.0, 2.0]
    assert result.failures[0].retry_count == 2
    assert "service unavailable" in result.failures[0].error


@pytest.mark.asyncio
async def test_every_input_is_reported_exactly_once():
    provider = FakeEmbeddingProvider(failures=[_invalid_key()])
    texts = ["a one", "b two", "", "c three", "d four"]

    result = await _service(provider).embed_batch(texts, owner_id="owner-1", batch_size=2)

    assert sorted(f.index for f in result.failures) == [0, 1]
    assert sorted(e.index for e in result.embeddings) == [3, 4]
    assert result.success_rate == 50.0
    assert result.batches_processed == 2


@pytest.mark.asyncio
async def test_vector_count_mismatch_becomes_failure():
    result = await _service(ShortProvider()).embed_batch(
        ["one", "two"], owner_id="owner-1", max_retries=1
    )

    assert result.embeddings == []
    assert [f.retry_count for f in result.failures] == [1, 1]
    assert "Expected 2 vectors, got 1" in result.failures[0].error


@pytest.mark.asyncio
async def test_provider_throttling_goes_through_rate_limiter():
    throttled = EmbeddingProviderError("openai", 429, "Rate limit reached")
    provider = FakeEmbeddingProvider(failures=[throttled, throttled])

    result = await _service(provider, limiter_ladder=(1.0,)).embed_batch(
        ["one"], owner_id="owner-1", max_retries=0
    )

    assert len(provider.calls) == 2
    assert "Rate limit exceeded" in result.failures[0].error


# ── Query / pending / stats / health ──


@pytest.mark.asyncio
async def test_embed_query():
    service = _service(FakeEmbeddingProvider())
    assert await service.embed_query("owner-1", "  hello  ") == [5.0, 5.0, 5.0]
    with pytest.raises(ValueError):
        await service.embed_query("owner-1", "   ")


@pytest.mark.asyncio
async def test_embed_pending_chunks_stores_vectors_and_audits():
    repo = FakeContentRepository()
    ops = FakeSyncOperationRepository()
    repo.chunks["doc-1"] = [
        ContentChunk(document_id="doc-1", owner_id="owner-1", chunk_index=0,
                     content="already done", token_count=2, embedding=[0.0, 0.0, 0.0], id="c0"),
        ContentChunk(document_id="doc-1", owner_id="owner-1", chunk_index=1,
                     content="needs vector", token_count=2, id="c1"),
        ContentChunk(document_id="doc-1", owner_id="owner-1", chunk_index=2,
                     content="also pending", token_count=2, id="c2"),
    ]
    service = _service(FakeEmbeddingProvider(), content_repository=repo, operation_repository=ops)

    result = await service.embed_pending_chunks("owner-1")

    assert len(result.embeddings) == 2
    assert all(chunk.embedding is not None for chunk in repo.all_chunks())
    assert len(ops.records) == 1
    record = ops.records[0]
    assert record.operation_type == OperationType.EMBED
    assert record.status == OperationStatus.COMPLETED
    assert record.affected_items["chunks_embedded"] == 2


@pytest.mark.asyncio
async def test_embed_pending_chunks_with_nothing_pending():
    ops = FakeSyncOperationRepository()
    service = _service(
        FakeEmbeddingProvider(), content_repository=FakeContentRepository(), operation_repository=ops
    )

    result = await service.embed_pending_chunks("owner-1")

    assert result.embeddings == []
    assert ops.records == []


@pytest.mark.asyncio
async def test_get_embedding_stats():
    repo = FakeContentRepository()
    repo.chunks["doc-1"] = [
        ContentChunk(document_id="doc-1", owner_id="owner-1", chunk_index=0,
                     content="x", token_count=4, embedding=[1.0], id="c0"),
        ContentChunk(document_id="doc-1", owner_id="owner-1", chunk_index=1,
                     content="y", token_count=6, id="c1"),
    ]
    service = _service(
        FakeEmbeddingProvider(), content_repository=repo, operation_repository=FakeSyncOperationRepository()
    )

    stats, recent = await service.get_embedding_stats("owner-1")

    assert stats.chunks == 2
    assert stats.embedded_chunks == 1
    assert stats.embedding_coverage == 50.0
    assert stats.total_tokens == 10
    assert recent == []


@pytest.mark.asyncio
async def test_check_health():
    healthy = await _service(FakeEmbeddingProvider()).check_health()
    assert healthy["is_working"] is True
    assert healthy["dimensions"] == 3
    assert healthy["model"] == "fake-embedding-model"

    broken = await _service(FakeEmbeddingProvider(failures=[_invalid_key()])).check_health()
    assert broken["is_working"] is False
    assert "Incorrect API key" in broken["error"]


@pytest.mark.asyncio
async def test_results_keep_the_caller_text_and_provider_gets_it_stripped():
    provider = FakeEmbeddingProvider(failures=[_invalid_key()])
    service = _service(provider)

    failed = await service.embed_batch(["  padded one  "], owner_id="owner-1")
    embedded = await service.embed_batch(["  padded two  "], owner_id="owner-1")

    assert provider.calls == [["padded one"], ["padded two"]]
    assert failed.failures[0].text == "  padded one  "
    assert embedded.embeddings[0].text == "  padded two  "
    assert embedded.embeddings[0].embedding == [10.0, 10.0, 10.0]
