"""FastAPI dependency injection — wires infrastructure to application layer."""

from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.application.services import (
    BatchEmbeddingService,
    ContentSearchService,
    ContentSyncService,
    OwnerLockRegistry,
    RateLimiter,
    TextChunker,
    TokenCounter,
    WebhookService,
)
from app.infrastructure.database.session import get_db_session
from app.infrastructure.database.repositories import (
    PgContentRepository,
    SQLAlchemySourceConnectionRepository,
    SQLAlchemySyncOperationRepository,
)
from app.infrastructure.openai import OpenAIEmbeddingProvider
from app.infrastructure.webflow import WebflowClientFactory


# ── Process-scoped singletons ────────────────────────────────────────


@lru_cache
def get_token_counter() -> TokenCounter:
    """Token counter for the configured embedding model (loaded once)."""
    return TokenCounter(get_settings().embedding_model)


@lru_cache
def get_webflow_rate_limiter() -> RateLimiter:
    """Per-owner limiter guarding the Webflow API."""
    settings = get_settings()
    return RateLimiter(
        settings.webflow_rate_limit_requests,
        settings.webflow_rate_limit_window_seconds,
        backoff_ladder=settings.rate_limit_backoff_seconds,
        name="webflow",
    )


@lru_cache
def get_embedding_rate_limiter() -> RateLimiter:
    """Per-owner limiter guarding the embeddings API."""
    settings = get_settings()
    return RateLimiter(
        settings.embedding_rate_limit_requests,
        settings.embedding_rate_limit_window_seconds,
        backoff_ladder=settings.rate_limit_backoff_seconds,
        name="embeddings",
    )


@lru_cache
def get_sync_lock_registry() -> OwnerLockRegistry:
    """Shared per-owner sync lease."""
    return OwnerLockRegistry()


# ── Request-scoped ───────────────────────────────────────────────────


async def get_owner_id(x_owner_id: str = Header(default="")) -> str:
    """The tenant every request is scoped to, from the ``X-Owner-Id`` header."""
    owner_id = x_owner_id.strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Owner-Id header is required",
        )
    return owner_id


def _build_embedding_service(
    settings: Settings, session: AsyncSession, *, required: bool
) -> BatchEmbeddingService | None:
    """Build the embedding service, or None when no API key is configured and it is optional.

    Raises:
        ConfigurationError: ``required`` is set and the OpenAI key is missing or invalid.
    """
    if not required and not settings.openai_api_key.strip():
        return None
    provider = OpenAIEmbeddingProvider(
        api_key=settings.require_openai_api_key(),
        base_url=settings.openai_base_url,
        model=settings.embedding_model,
        model_dimensions=settings.embedding_dimensions,
        timeout=settings.openai_timeout_seconds,
    )
    return BatchEmbeddingService(
        provider,
        get_embedding_rate_limiter(),
        content_repository=PgContentRepository(session),
        operation_repository=SQLAlchemySyncOperationRepository(session),
        batch_size=settings.embedding_batch_size,
        max_retries=settings.embedding_max_retries,
        cost_per_token=settings.embedding_cost_per_token,
    )


def _build_sync_service(settings: Settings, session: AsyncSession) -> ContentSyncService:
    return ContentSyncService(
        connection_repository=SQLAlchemySourceConnectionRepository(session),
        content_repository=PgContentRepository(session),
        operation_repository=SQLAlchemySyncOperationRepository(session),
        source_factory=WebflowClientFactory(
            base_url=settings.webflow_api_base_url,
            timeout=settings.webflow_timeout_seconds,
        ),
        rate_limiter=get_webflow_rate_limiter(),
        chunker=TextChunker(
            get_token_counter(),
            max_tokens=settings.chunk_max_tokens,
            min_chunk_tokens=settings.chunk_min_tokens,
        ),
        embedding_service=_build_embedding_service(settings, session, required=False),
        lock_registry=get_sync_lock_registry(),
        page_size=settings.sync_page_size,
        embed_on_sync=settings.embed_on_sync,
    )


async def get_content_sync_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[ContentSyncService, None]:
    """Provides a ContentSyncService; inline embedding is enabled when OpenAI is configured."""
    yield _build_sync_service(get_settings(), session)


async def get_webhook_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[WebhookService, None]:
    """Provides a WebhookService wired to the sync service of the same session."""
    settings = get_settings()
    yield WebhookService(
        PgContentRepository(session),
        SQLAlchemySyncOperationRepository(session),
        _build_sync_service(settings, session),
    )


async def get_embedding_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[BatchEmbeddingService, None]:
    """Provides a BatchEmbeddingService; raises ConfigurationError without an OpenAI key."""
    yield _build_embedding_service(get_settings(), session, required=True)


async def get_search_service(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[ContentSearchService, None]:
    """Provides a ContentSearchService backed by pgvector."""
    embedding_service = _build_embedding_service(get_settings(), session, required=True)
    yield ContentSearchService(embedding_service, PgContentRepository(session))


async def get_source_connection_repository(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[SQLAlchemySourceConnectionRepository, None]:
    """Provides the connection repository for token storage endpoints."""
    yield SQLAlchemySourceConnectionRepository(session)
