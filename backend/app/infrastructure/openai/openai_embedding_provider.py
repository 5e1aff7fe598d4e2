"""OpenAI embedding provider — calls the /embeddings endpoint.

Uses the same httpx client pattern as the other outbound adapters.
Default model: text-embedding-3-small (1536 dimensions).
"""

import logging
from typing import Any

import httpx

from app.application.interfaces.embedding_provider import EmbeddingProvider, EmbeddingResponse
from app.domain.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)

_PROVIDER = "openai"

# Error codes that retrying cannot fix, whatever the HTTP status.
_TERMINAL_CODES = frozenset({
    "insufficient_quota",
    "invalid_api_key",
    "model_not_found",
    "invalid_request_error",
})
_TERMINAL_STATUSES = frozenset({400, 401, 403, 404, 422})


def is_retryable_status(status_code: int, code: str | None) -> bool:
    """Timeouts, throttling and 5xx are transient; auth, quota and bad input are not."""
    if code in _TERMINAL_CODES:
        return False
    if status_code in _TERMINAL_STATUSES:
        return False
    return status_code in (408, 409, 429) or status_code >= 500


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Infrastructure adapter — generates embeddings via the OpenAI /embeddings API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "text-embedding-3-small",
        model_dimensions: int = 1536,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._dimensions = model_dimensions
        self._timeout = timeout
        self._http_client = http_client

    @property
    def model(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def generate_embeddings(
        self,
        texts: list[str],
        *,
        model: str | None = None,
        dimensions: int | None = None,
    ) -> EmbeddingResponse:
        """Generate embeddings for a batch of texts, returned in input order."""
        if not texts:
            return EmbeddingResponse(vectors=[])

        url = f"{self._base_url}/embeddings"
        payload: dict[str, Any] = {
            "model": model or self._model,
            "input": texts,
            "dimensions": dimensions or self._dimensions,
            "encoding_format": "float",
        }

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await client.post(url, headers=self._get_headers(), json=payload)
            except httpx.TimeoutException as exc:
                raise EmbeddingProviderError(_PROVIDER, 408, f"Request timed out: {exc}") from exc
            except httpx.TransportError as exc:
                raise EmbeddingProviderError(_PROVIDER, 503, f"Network error: {exc}") from exc

            if response.status_code != 200:
                self._raise_provider_error(response)

            data = response.json()
            embeddings_data = data.get("data", [])

            # Sort by index to ensure correct ordering
            embeddings_data.sort(key=lambda x: x.get("index", 0))
            vectors = [item["embedding"] for item in embeddings_data]
            usage = data.get("usage") or {}

            logger.debug(
                "Generated %d embeddings (model=%s, dims=%d, tokens=%s)",
                len(vectors),
                payload["model"],
                len(vectors[0]) if vectors else 0,
                usage.get("total_tokens"),
            )
            return EmbeddingResponse(
                vectors=vectors,
                prompt_tokens=int(usage.get("prompt_tokens", 0)),
                total_tokens=int(usage.get("total_tokens", 0)),
            )

        finally:
            if should_close:
                await client.aclose()

    def _raise_provider_error(self, response: httpx.Response) -> None:
        """Raise EmbeddingProviderError from a non-200 httpx Response."""
        code: str | None = None
        try:
            error = response.json().get("error") or {}
            message = error.get("message") or response.text
            code = error.get("code") or error.get("type")
        except Exception:
            message = response.text[:500]

        retryable = is_retryable_status(response.status_code, code)
        logger.error(
            "Embedding API error %d (%s, retryable=%s): %s",
            response.status_code, code, retryable, message,
        )
        raise EmbeddingProviderError(
            provider=_PROVIDER,
            status_code=response.status_code,
            message=message,
            code=code,
            retryable=retryable,
        )
