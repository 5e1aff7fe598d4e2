"""Token counting for the target embedding model, backed by tiktoken."""

import logging

import tiktoken

from app.domain.exceptions import TokenEncoderError

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"  # text-embedding-3-small / -large / ada-002


class TokenCounter:
    """Counts tokens using the encoding that matches an embedding model.

    The encoder is loaded once at construction; a failure there is fatal
    and surfaces as TokenEncoderError.
    """

    def __init__(self, model: str = "text-embedding-3-small"):
        self._model = model
        try:
            try:
                self._encoding = tiktoken.encoding_for_model(model)
            except KeyError:
                logger.info("No tiktoken mapping for %s, using %s", model, DEFAULT_ENCODING)
                self._encoding = tiktoken.get_encoding(DEFAULT_ENCODING)
        except Exception as exc:
            raise TokenEncoderError(f"Token encoder initialization failed for {model}: {exc}") from exc

    @property
    def encoding_name(self) -> str:
        return self._encoding.name

    def count(self, text: str) -> int:
        """Return the number of tokens ``text`` encodes to."""
        if not text:
            return 0
        return len(self._encoding.encode(text, disallowed_special=()))
