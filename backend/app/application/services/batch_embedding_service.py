"""Batch embedding service — rate-limited, retrying, progress-reporting embedding runs.

This is an application service that coordinates:
1. Filtering blank inputs while remembering their original positions
2. Sending sequential provider-sized batches through the RateLimiter
3. Retrying transient failures on a short backoff ladder
4. Aggregating vectors, failures, token usage and cost into one result
"""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from app.application.interfaces.content_repository import ContentRepository, ContentStats
from app.application.interfaces.embedding_provider import EmbeddingProvider, EmbeddingResponse
from app.application.interfaces.sync_operation_repository import SyncOperationRepository
from app.application.services.rate_limiter import RateLimiter
from app.domain.entities.embedding_batch import (
    BatchProgress,
    EmbeddingBatchResult,
    EmbeddingFailure,
    EmbeddingResult,
    TextValidationReport,
)
from app.domain.entities.sync_operation import (
    OperationStatus,
    OperationType,
    SyncOperationRecord,
)
from app.domain.exceptions import EmbeddingProviderError, RateLimitExceededError
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("Embeddings")

# ── Provider constants ──────────────────────────────────────────────
DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0)
DEFAULT_COST_PER_TOKEN = 0.00000002  # text-embedding-3-small, $0.02 / 1M tokens
MAX_INPUT_TOKENS = 8191
HIGH_COST_WARNING_USD = 1.0
_INTER_BATCH_DELAY_SECONDS = 0.1
_HEALTH_PROBE_TEXT = "This is a test for the OpenAI embedding service."

# Error markers that no amount of retrying will fix.
_TERMINAL_MARKERS = (
    "insufficient_quota",
    "invalid_api_key",
    "model_not_found",
    "invalid_request",
)

ProgressCallback = Callable[[BatchProgress], None]


def estimate_tokens(text: str) -> int:
    """Rough token estimate (4 characters ≈ 1 token for English text)."""
    return math.ceil(len(text) / 4)


def is_retryable_error(exc: BaseException) -> bool:
    """Classify a batch failure as transient (retry) or terminal (give up)."""
    if isinstance(exc, RateLimitExceededError):
        return True
    if isinstance(exc, EmbeddingProviderError):
        return exc.retryable
    message = str(exc).lower()
    if any(marker in message for marker in _TERMINAL_MARKERS):
        return False
    # Unknown failures (network hiccups, odd payloads) get another try.
    return True


class BatchEmbeddingService:
    """Application service for turning text lists into embedding vectors.

    Batches run strictly one after another. Every non-blank input ends up
    in exactly one of ``embeddings`` or ``failures`` of the returned
    EmbeddingBatchResult, tagged with its index in the caller's list.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        rate_limiter: RateLimiter,
        *,
        content_repository: ContentRepository | None = None,
        operation_repository: SyncOperationRepository | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        cost_per_token: float = DEFAULT_COST_PER_TOKEN,
        inter_batch_delay: float = _INTER_BATCH_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._provider = embedding_provider
        self._rate_limiter = rate_limiter
        self._content_repo = content_repository
        self._operation_repo = operation_repository
        self._batch_size = batch_size
        self._max_retries = max_retries
        self._retry_delays = tuple(retry_delays) or DEFAULT_RETRY_DELAYS
        self._cost_per_token = cost_per_token
        self._inter_batch_delay = inter_batch_delay
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self._provider.model

    @property
    def dimensions(self) -> int:
        return self._provider.dimensions

    @property
    def cost_per_token(self) -> float:
        return self._cost_per_token

    # ── Estimation ──────────────────────────────────────────────────

    def estimate_cost(self, token_count: int) -> float:
        """Estimated USD cost for embedding ``token_count`` tokens."""
        return token_count * self._cost_per_token

    def validate_texts(
        self, texts: Sequence[Any], batch_size: int | None = None
    ) -> TextValidationReport:
        """Pre-flight check: count usable, blank and oversized inputs and estimate cost."""
        valid = empty = oversized = 0
        total_tokens = 0
        warnings: list[str] = []

        for text in texts:
            if not isinstance(text, str) or not text.strip():
                empty += 1
                continue
            tokens = estimate_tokens(text)
            if tokens > MAX_INPUT_TOKENS:
                oversized += 1
                warnings.append(f"Text too long: {tokens} tokens (max: {MAX_INPUT_TOKENS})")
                continue
            valid += 1
            total_tokens += tokens

        estimated_cost = self.estimate_cost(total_tokens)
        size = batch_size or self._batch_size
        estimated_batches = math.ceil(valid / size) if valid else 0

        if empty:
            warnings.append(f"{empty} empty texts will be skipped")
        if oversized:
            warnings.append(f"{oversized} texts exceed token limit and will fail")
        if estimated_cost > HIGH_COST_WARNING_USD:
            warnings.append(f"High estimated cost: ${estimated_cost:.2f}")

        return TextValidationReport(
            is_valid=valid > 0,
            valid_texts=valid,
            empty_texts=empty,
            oversized_texts=oversized,
            total_estimated_tokens=total_tokens,
            estimated_cost=estimated_cost,
            estimated_batches=estimated_batches,
            warnings=warnings,
        )

    # ── Embedding ───────────────────────────────────────────────────

    async def embed_batch(
        self,
        texts: Sequence[str],
        *,
        owner_id: str,
        batch_size: int | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        max_retries: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> EmbeddingBatchResult:
        """Embed ``texts`` in sequential batches.

        Blank inputs are skipped and reported nowhere; every other input is
        reported once, as an EmbeddingResult or an EmbeddingFailure.
        """
        size = batch_size or self._batch_size
        retries = self._max_retries if max_retries is None else max_retries
        if size <= 0:
            raise ValueError("batch_size must be positive")

        survivors = [
            (index, text)
            for index, text in enumerate(texts)
            if isinstance(text, str) and text.strip()
        ]
        result = EmbeddingBatchResult()
        if not survivors:
            logger.info("No non-blank texts to embed (owner=%s)", owner_id)
            return result

        batches = [survivors[i : i + size] for i in range(0, len(survivors), size)]
        total_batches = len(batches)
        plog.step_start(
            PipelineStage.EMBED,
            f"Embedding {len(survivors)} texts in {total_batches} batch(es)",
            owner=owner_id,
        )

        start = time.monotonic()
        processed = 0
        for batch_number, batch in enumerate(batches, start=1):
            batch_texts = [text.strip() for _, text in batch]
            response, error, retry_count = await self._embed_with_retry(
                owner_id, batch_texts, model=model, dimensions=dimensions, max_retries=retries
            )

            if response is not None:
                self._record_success(result, batch, response)
            else:
                plog.step_warning(
                    PipelineStage.EMBED,
                    f"Batch {batch_number}/{total_batches} failed after {retry_count} retries: {error}",
                )
                result.failures.extend(
                    EmbeddingFailure(
                        text=text,
                        index=index,
                        error=error or "Unknown batch error",
                        retry_count=retry_count,
                    )
                    for index, text in batch
                )
            result.batches_processed += 1
            processed += len(batch)

            if on_progress is not None:
                elapsed_ms = (time.monotonic() - start) * 1000
                remaining = total_batches - batch_number
                on_progress(
                    BatchProgress(
                        total_texts=len(survivors),
                        processed_texts=processed,
                        current_batch=batch_number,
                        total_batches=total_batches,
                        successful_embeddings=len(result.embeddings),
                        failed_embeddings=len(result.failures),
                        total_cost=result.total_cost,
                        total_tokens=result.total_tokens,
                        estimated_time_remaining_ms=int(elapsed_ms / batch_number * remaining),
                    )
                )

            if batch_number < total_batches:
                await self._sleep(self._inter_batch_delay)

        result.processing_time_ms = int((time.monotonic() - start) * 1000)
        result.success_rate = round(len(result.embeddings) / len(survivors) * 100, 2)

        plog.step_complete(
            PipelineStage.EMBED,
            f"{len(result.embeddings)}/{len(survivors)} embedded, {len(result.failures)} failed",
            cost=f"${result.total_cost:.6f}",
            duration_ms=result.processing_time_ms,
        )
        return result

    async def embed_query(self, owner_id: str, text: str) -> list[float]:
        """Embed a single search query; failures propagate to the caller."""
        if not text.strip():
            raise ValueError("Query text cannot be empty")
        response = await self._rate_limiter.execute(
            owner_id, lambda: self._provider.generate_embeddings([text.strip()])
        )
        if not response.vectors:
            raise EmbeddingProviderError("openai", 502, "Provider returned no vector for query")
        return response.vectors[0]

    async def embed_pending_chunks(
        self,
        owner_id: str,
        *,
        limit: int = 500,
        on_progress: ProgressCallback | None = None,
    ) -> EmbeddingBatchResult:
        """Embed the owner's stored chunks that still lack a vector and store the vectors."""
        if self._content_repo is None:
            raise RuntimeError("embed_pending_chunks requires a content repository")

        started_at = _utcnow()
        chunks = await self._content_repo.chunks_without_embedding(owner_id, limit=limit)
        if not chunks:
            logger.info("No pending chunks for owner %s", owner_id)
            return EmbeddingBatchResult()

        result = await self.embed_batch(
            [chunk.content for chunk in chunks], owner_id=owner_id, on_progress=on_progress
        )
        vectors = {
            chunks[item.index].id: item.embedding
            for item in result.embeddings
            if chunks[item.index].id
        }
        stored = await self._content_repo.update_chunk_embeddings(vectors) if vectors else 0

        if self._operation_repo is not None:
            await self._operation_repo.create(
                SyncOperationRecord(
                    owner_id=owner_id,
                    operation_type=OperationType.EMBED,
                    status=OperationStatus.COMPLETED if stored or not result.failures else OperationStatus.FAILED,
                    affected_items={
                        "chunks_found": len(chunks),
                        "chunks_embedded": stored,
                        "failures": len(result.failures),
                        "total_tokens": result.total_tokens,
                        "total_cost": result.total_cost,
                    },
                    error=result.failures[0].error if result.failures and not stored else None,
                    started_at=started_at,
                    completed_at=_utcnow(),
                )
            )
        return result

    async def get_embedding_stats(
        self, owner_id: str, recent_limit: int = 10
    ) -> tuple[ContentStats, list[SyncOperationRecord]]:
        """Storage/coverage counters plus the owner's most recent audit records."""
        if self._content_repo is None:
            raise RuntimeError("get_embedding_stats requires a content repository")
        stats = await self._content_repo.get_stats(owner_id)
        recent: list[SyncOperationRecord] = []
        if self._operation_repo is not None:
            recent = await self._operation_repo.get_recent(owner_id, limit=recent_limit)
        return stats, recent

    async def check_health(self) -> dict[str, Any]:
        """Embed a fixed probe text and report whether the provider works."""
        try:
            response = await self._provider.generate_embeddings([_HEALTH_PROBE_TEXT])
        except Exception as exc:
            logger.warning("Embedding health check failed: %s", exc)
            return {
                "is_working": False,
                "model": self.model,
                "dimensions": self.dimensions,
                "test_cost": 0.0,
                "error": str(exc),
            }
        return {
            "is_working": True,
            "model": self.model,
            "dimensions": len(response.vectors[0]) if response.vectors else 0,
            "test_cost": self.estimate_cost(response.total_tokens),
        }

    # ── Internals ───────────────────────────────────────────────────

    async def _embed_with_retry(
        self,
        owner_id: str,
        texts: list[str],
        *,
        model: str | None,
        dimensions: int | None,
        max_retries: int,
    ) -> tuple[EmbeddingResponse | None, str | None, int]:
        """Call the provider until it succeeds, fails terminally or retries run out.

        Returns ``(response, None, retries)`` on success and
        ``(None, last_error, retries)`` on failure.
        """
        retry_count = 0
        while True:
            try:
                response = await self._rate_limiter.execute(
                    owner_id,
                    lambda: self._provider.generate_embeddings(
                        texts, model=model, dimensions=dimensions
                    ),
                )
                if len(response.vectors) != len(texts):
                    raise EmbeddingProviderError(
                        "openai",
                        502,
                        f"Expected {len(texts)} vectors, got {len(response.vectors)}",
                    )
                return response, None, retry_count
            except Exception as exc:
                if not is_retryable_error(exc) or retry_count >= max_retries:
                    return None, str(exc), retry_count
                delay = self._retry_delays[min(retry_count, len(self._retry_delays) - 1)]
                logger.warning(
                    "Embedding batch failed (%s), retry %d/%d in %.1fs",
                    exc, retry_count + 1, max_retries, delay,
                )
                await self._sleep(delay)
                retry_count += 1

    def _record_success(
        self,
        result: EmbeddingBatchResult,
        batch: list[tuple[int, str]],
        response: EmbeddingResponse,
    ) -> None:
        # The provider reports usage per request only, so it is split evenly.
        batch_tokens = response.total_tokens or response.prompt_tokens
        batch_cost = self.estimate_cost(batch_tokens)
        per_text_tokens = math.ceil(batch_tokens / len(batch))
        per_text_cost = batch_cost / len(batch)

        for (index, text), vector in zip(batch, response.vectors, strict=True):
            result.embeddings.append(
                EmbeddingResult(
                    text=text,
                    embedding=vector,
                    index=index,
                    token_count=per_text_tokens,
                    cost=per_text_cost,
                )
            )
        result.total_tokens += batch_tokens
        result.total_cost += batch_cost


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
