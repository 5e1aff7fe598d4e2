"""Abstract interface (port) for embedding generation."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class EmbeddingResponse:
    """Vectors for one provider request plus the usage the provider reported."""

    vectors: list[list[float]]
    prompt_tokens: int = 0
    total_tokens: int = 0


class EmbeddingProvider(ABC):
    """Port for generating text embeddings — implemented in the infrastructure layer."""

    @abstractmethod
    async def generate_embeddings(
        self,
        texts: list[str],
        *,
        model: str | None = None,
        dimensions: int | None = None,
    ) -> EmbeddingResponse:
        """Generate embedding vectors for a batch of texts.

        Args:
            texts: List of text strings to embed.
            model: Override for the provider's default model.
            dimensions: Override for the provider's default dimensionality.

        Returns:
            EmbeddingResponse with one vector per input text, in input order.

        Raises:
            EmbeddingProviderError: the provider rejected or failed the request.
        """
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        """Return the default model identifier."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Return the dimensionality of the embedding vectors produced by this provider."""
        ...
