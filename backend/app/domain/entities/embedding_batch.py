"""Domain entities for batch embedding runs — ephemeral, never persisted."""

from dataclasses import dataclass, field


@dataclass
class EmbeddingResult:
    """A successfully embedded text.

    ``token_count`` and ``cost`` are the batch totals divided evenly across
    the batch's texts: the provider only reports usage per request.
    """

    text: str
    embedding: list[float]
    index: int  # position in the caller's input list
    token_count: int
    cost: float


@dataclass
class EmbeddingFailure:
    """A text that could not be embedded after all retries."""

    text: str
    index: int  # position in the caller's input list
    error: str
    retry_count: int


@dataclass
class EmbeddingBatchResult:
    """Aggregate outcome of one ``embed_batch`` call."""

    embeddings: list[EmbeddingResult] = field(default_factory=list)
    failures: list[EmbeddingFailure] = field(default_factory=list)
    total_cost: float = 0.0
    total_tokens: int = 0
    batches_processed: int = 0
    processing_time_ms: int = 0
    success_rate: float = 0.0  # percentage of non-blank inputs embedded


@dataclass(frozen=True)
class BatchProgress:
    """Snapshot handed to the progress observer after every batch."""

    total_texts: int
    processed_texts: int
    current_batch: int
    total_batches: int
    successful_embeddings: int
    failed_embeddings: int
    total_cost: float
    total_tokens: int
    estimated_time_remaining_ms: int | None = None


@dataclass
class TextValidationReport:
    """Pre-flight check of a text list: counts, token and cost estimates."""

    is_valid: bool
    valid_texts: int
    empty_texts: int
    oversized_texts: int
    total_estimated_tokens: int
    estimated_cost: float
    estimated_batches: int
    warnings: list[str] = field(default_factory=list)
