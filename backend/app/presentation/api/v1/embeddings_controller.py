"""Embeddings API controller — batch generation, pending-chunk backfill and status."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.config import get_settings
from app.application.schemas.embeddings import (
    BatchResultResponse,
    EmbeddingCapabilitiesResponse,
    EmbeddingFailureResponse,
    EmbeddingItemResponse,
    EmbeddingStatusResponse,
    GenerateEmbeddingsRequest,
    GenerateEmbeddingsResponse,
    PendingEmbeddingsRequest,
    PendingEmbeddingsResponse,
    ValidationReportResponse,
)
from app.application.services import BatchEmbeddingService
from app.application.services.batch_embedding_service import MAX_INPUT_TOKENS
from app.domain.entities.embedding_batch import EmbeddingBatchResult, TextValidationReport
from app.infrastructure.dependencies import get_embedding_service, get_owner_id
from app.presentation.api.v1.content_controller import operation_to_response, stats_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/embeddings", tags=["Embeddings"])


# ── Helpers ──────────────────────────────────────────────────────────


def _report_to_response(report: TextValidationReport) -> ValidationReportResponse:
    return ValidationReportResponse(
        is_valid=report.is_valid,
        valid_texts=report.valid_texts,
        empty_texts=report.empty_texts,
        oversized_texts=report.oversized_texts,
        total_estimated_tokens=report.total_estimated_tokens,
        estimated_cost=report.estimated_cost,
        estimated_batches=report.estimated_batches,
        warnings=report.warnings,
    )


def _batch_to_response(result: EmbeddingBatchResult) -> BatchResultResponse:
    return BatchResultResponse(
        embeddings=[
            EmbeddingItemResponse(
                index=e.index,
                embedding=e.embedding,
                token_count=e.token_count,
                cost=e.cost,
            )
            for e in result.embeddings
        ],
        failures=[
            EmbeddingFailureResponse(
                index=f.index,
                text=f.text,
                error=f.error,
                retry_count=f.retry_count,
            )
            for f in result.failures
        ],
        total_cost=result.total_cost,
        total_tokens=result.total_tokens,
        batches_processed=result.batches_processed,
        processing_time_ms=result.processing_time_ms,
        success_rate=result.success_rate,
    )


# ── Endpoints ────────────────────────────────────────────────────────


@router.post("/generate", response_model=GenerateEmbeddingsResponse)
async def generate_embeddings(
    request: GenerateEmbeddingsRequest,
    owner_id: str = Depends(get_owner_id),
    service: BatchEmbeddingService = Depends(get_embedding_service),
) -> GenerateEmbeddingsResponse:
    """Embed caller-supplied texts.

    The request is validated first: nothing usable → 400, estimated cost over
    the configured ceiling → 400. With ``estimate_only`` only the validation
    report is returned.
    """
    report = service.validate_texts(request.texts, request.batch_size)
    if not report.is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "No valid texts to embed", "warnings": report.warnings},
        )

    validation = _report_to_response(report)
    if request.estimate_only:
        return GenerateEmbeddingsResponse(estimate_only=True, validation=validation)

    max_cost = get_settings().embedding_max_cost_per_request
    if report.estimated_cost > max_cost:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Estimated cost ${report.estimated_cost:.4f} exceeds "
                f"the per-request limit of ${max_cost:.2f}"
            ),
        )

    result = await service.embed_batch(
        request.texts,
        owner_id=owner_id,
        batch_size=request.batch_size,
        model=request.model,
        dimensions=request.dimensions,
        max_retries=request.max_retries,
    )
    logger.info(
        "Generated %d embedding(s) for owner %s (%d failed, $%.6f)",
        len(result.embeddings), owner_id, len(result.failures), result.total_cost,
    )
    return GenerateEmbeddingsResponse(
        estimate_only=False,
        validation=validation,
        result=_batch_to_response(result),
    )


@router.get("/generate", response_model=EmbeddingCapabilitiesResponse)
async def get_capabilities(
    service: BatchEmbeddingService = Depends(get_embedding_service),
) -> EmbeddingCapabilitiesResponse:
    """Model, limits and pricing, plus a live provider health probe."""
    settings = get_settings()
    return EmbeddingCapabilitiesResponse(
        model=service.model,
        dimensions=service.dimensions,
        max_input_tokens=MAX_INPUT_TOKENS,
        default_batch_size=settings.embedding_batch_size,
        max_retries=settings.embedding_max_retries,
        cost_per_token=service.cost_per_token,
        max_cost_per_request=settings.embedding_max_cost_per_request,
        service=await service.check_health(),
    )


@router.post("/pending", response_model=PendingEmbeddingsResponse)
async def embed_pending_chunks(
    request: PendingEmbeddingsRequest,
    owner_id: str = Depends(get_owner_id),
    service: BatchEmbeddingService = Depends(get_embedding_service),
) -> PendingEmbeddingsResponse:
    """Embed stored chunks that have no vector yet."""
    result = await service.embed_pending_chunks(owner_id, limit=request.limit)
    return PendingEmbeddingsResponse(
        chunks_embedded=len(result.embeddings),
        failures=len(result.failures),
        total_tokens=result.total_tokens,
        total_cost=result.total_cost,
        success_rate=result.success_rate,
        processing_time_ms=result.processing_time_ms,
    )


@router.get("/status", response_model=EmbeddingStatusResponse)
async def get_embedding_status(
    owner_id: str = Depends(get_owner_id),
    service: BatchEmbeddingService = Depends(get_embedding_service),
) -> EmbeddingStatusResponse:
    """Embedding coverage and the owner's recent audited operations."""
    stats, recent = await service.get_embedding_stats(owner_id)
    return EmbeddingStatusResponse(
        owner_id=owner_id,
        stats=stats_to_response(stats),
        recent_operations=[operation_to_response(r) for r in recent],
    )
