"""Domain-specific exceptions — framework-independent."""


class ConfigurationError(Exception):
    """Raised when required configuration (API keys, credentials) is missing or invalid."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConnectionInvalidError(Exception):
    """Raised when an owner's content source connection cannot be used."""

    def __init__(self, owner_id: str, reason: str):
        self.owner_id = owner_id
        self.reason = reason
        super().__init__(f"Content source connection invalid: {reason}")


class ContentSourceError(Exception):
    """Raised when the remote content source returns an error.

    Provider-agnostic — the Webflow adapter raises it, other CMS adapters can too.
    """

    def __init__(self, provider: str, status_code: int, message: str):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{provider}] {status_code}: {message}")


class ContentSourceThrottledError(ContentSourceError):
    """Raised when the content source signals throttling (HTTP 429)."""

    def __init__(self, provider: str, message: str = "rate limit exceeded", retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(provider, 429, message)


class EmbeddingProviderError(Exception):
    """Raised when the embedding provider fails a request.

    ``retryable`` separates transient failures (timeouts, 5xx, rate limits)
    from terminal ones (quota exhausted, invalid key, malformed request).
    """

    def __init__(
        self,
        provider: str,
        status_code: int,
        message: str,
        *,
        code: str | None = None,
        retryable: bool = True,
    ):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        self.code = code
        self.retryable = retryable
        super().__init__(f"[{provider}] {status_code}: {message}")


class RateLimitExceededError(Exception):
    """Raised when a rate-limited call is still throttled after the whole backoff ladder."""

    def __init__(self, owner_id: str, attempts: int):
        self.owner_id = owner_id
        self.attempts = attempts
        super().__init__(
            f"Rate limit exceeded for owner '{owner_id}' after {attempts} attempts"
        )


class TokenEncoderError(RuntimeError):
    """Raised when the token encoder for the embedding model cannot be loaded."""
