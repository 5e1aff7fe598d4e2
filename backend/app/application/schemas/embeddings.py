"""Pydantic schemas for the embeddings API."""

from pydantic import BaseModel, Field

from app.application.schemas.content import ContentStatsResponse, SyncOperationResponse


class GenerateEmbeddingsRequest(BaseModel):
    """Request body for POST /embeddings/generate."""

    texts: list[str] = Field(min_length=1, max_length=10000)
    batch_size: int = Field(default=100, ge=1, le=2048)
    model: str | None = None
    dimensions: int | None = Field(default=None, ge=1, le=3072)
    max_retries: int = Field(default=3, ge=0, le=10)
    estimate_only: bool = False


class ValidationReportResponse(BaseModel):
    """Pre-flight estimate for a text list."""

    is_valid: bool
    valid_texts: int
    empty_texts: int
    oversized_texts: int
    total_estimated_tokens: int
    estimated_cost: float
    estimated_batches: int
    warnings: list[str]


class EmbeddingItemResponse(BaseModel):
    """One embedded text."""

    index: int
    embedding: list[float]
    token_count: int
    cost: float


class EmbeddingFailureResponse(BaseModel):
    """One text that could not be embedded."""

    index: int
    text: str
    error: str
    retry_count: int


class BatchResultResponse(BaseModel):
    """Outcome of an embedding run."""

    embeddings: list[EmbeddingItemResponse]
    failures: list[EmbeddingFailureResponse]
    total_cost: float
    total_tokens: int
    batches_processed: int
    processing_time_ms: int
    success_rate: float


class GenerateEmbeddingsResponse(BaseModel):
    """Response of POST /embeddings/generate."""

    estimate_only: bool
    validation: ValidationReportResponse
    result: BatchResultResponse | None = None


class EmbeddingCapabilitiesResponse(BaseModel):
    """Response of GET /embeddings/generate."""

    model: str
    dimensions: int
    max_input_tokens: int
    default_batch_size: int
    max_retries: int
    cost_per_token: float
    max_cost_per_request: float
    service: dict


class PendingEmbeddingsRequest(BaseModel):
    """Request body for POST /embeddings/pending."""

    limit: int = Field(default=500, ge=1, le=5000)


class PendingEmbeddingsResponse(BaseModel):
    """Response of POST /embeddings/pending."""

    chunks_embedded: int
    failures: int
    total_tokens: int
    total_cost: float
    success_rate: float
    processing_time_ms: int


class EmbeddingStatusResponse(BaseModel):
    """Response of GET /embeddings/status."""

    owner_id: str
    stats: ContentStatsResponse
    recent_operations: list[SyncOperationResponse]
