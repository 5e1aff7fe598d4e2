"""Token-aware text chunker with paragraph → sentence → word fallback and overlap.

Chunks favor semantic boundaries: paragraphs are packed together until the
next one would overflow ``max_tokens``; the next chunk is then seeded with
the last words of the emitted one so retrieval keeps cross-chunk context.
Paragraphs that are too large on their own are packed sentence by sentence
with a wider overlap, and sentences that are still too large are cut into
word windows.
"""

import logging
import re
from typing import Protocol

from app.domain.entities.content_chunk import TextChunk

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1500
DEFAULT_MIN_CHUNK_TOKENS = 50
DEFAULT_PARAGRAPH_OVERLAP_WORDS = 20
DEFAULT_SENTENCE_OVERLAP_WORDS = 30

_PARAGRAPH_SEP = "\n\n"
_SENTENCE_SEP = " "

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_INLINE_WS_RE = re.compile(r"[ \t\r\f\v]+")
_EXTRA_NEWLINES_RE = re.compile(r"\n{3,}")


class SupportsTokenCount(Protocol):
    def count(self, text: str) -> int: ...


def normalize_text(text: str) -> str:
    """Collapse inline whitespace while keeping paragraph breaks."""
    lines = [_INLINE_WS_RE.sub(" ", line).strip() for line in text.split("\n")]
    return _EXTRA_NEWLINES_RE.sub("\n\n", "\n".join(lines)).strip()


def tail_words(text: str, count: int) -> str:
    """Return the last ``count`` whitespace-separated words of ``text``."""
    if count <= 0:
        return ""
    return " ".join(text.split()[-count:])


class _ChunkBuilder:
    """Accumulates pieces into chunks for a single ``chunk()`` call."""

    def __init__(self, counter: SupportsTokenCount, max_tokens: int):
        self._counter = counter
        self._max_tokens = max_tokens
        self._current = ""
        self._fresh = False  # current holds more than the overlap seed
        self.emitted: list[str] = []

    def add(self, piece: str, separator: str, overlap_words: int) -> None:
        candidate = self._join(piece, separator)
        if self._counter.count(candidate) > self._max_tokens:
            if self._fresh:
                self.flush(overlap_words)
            candidate = self._join(piece, separator)
            if self._counter.count(candidate) > self._max_tokens:
                # The overlap seed itself would break the token bound.
                candidate = piece
        self._current = candidate
        self._fresh = True

    def flush(self, overlap_words: int) -> None:
        """Emit the current chunk and reseed with its tail words."""
        text = self._current.strip()
        if self._fresh and text:
            self.emitted.append(text)
            self._current = tail_words(text, overlap_words)
        self._fresh = False

    def finish(self) -> list[str]:
        text = self._current.strip()
        if self._fresh and text:
            self.emitted.append(text)
        self._current = ""
        self._fresh = False
        return self.emitted

    def _join(self, piece: str, separator: str) -> str:
        if not self._current:
            return piece
        return f"{self._current}{separator}{piece}"


class TextChunker:
    """Splits normalized document text into ordered, token-bounded chunks."""

    def __init__(
        self,
        token_counter: SupportsTokenCount,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        min_chunk_tokens: int = DEFAULT_MIN_CHUNK_TOKENS,
        paragraph_overlap_words: int = DEFAULT_PARAGRAPH_OVERLAP_WORDS,
        sentence_overlap_words: int = DEFAULT_SENTENCE_OVERLAP_WORDS,
    ):
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        self._counter = token_counter
        self._max_tokens = max_tokens
        self._min_chunk_tokens = min_chunk_tokens
        self._paragraph_overlap = paragraph_overlap_words
        self._sentence_overlap = sentence_overlap_words

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    def chunk(self, text: str) -> list[TextChunk]:
        """Split ``text`` into chunks indexed 0..n-1 in emission order."""
        stripped = text.strip()
        if not stripped:
            return []

        total_tokens = self._counter.count(stripped)
        if total_tokens <= self._max_tokens:
            return [TextChunk(text=stripped, token_count=total_tokens, chunk_index=0)]

        builder = _ChunkBuilder(self._counter, self._max_tokens)
        for paragraph in _PARAGRAPH_SPLIT_RE.split(normalize_text(stripped)):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            if self._counter.count(paragraph) > self._max_tokens:
                builder.flush(self._paragraph_overlap)
                self._add_long_paragraph(builder, paragraph)
            else:
                builder.add(paragraph, _PARAGRAPH_SEP, self._paragraph_overlap)

        chunks: list[TextChunk] = []
        dropped = 0
        for chunk_text in builder.finish():
            tokens = self._counter.count(chunk_text)
            if tokens < self._min_chunk_tokens:
                dropped += 1
                continue
            chunks.append(TextChunk(text=chunk_text, token_count=tokens, chunk_index=len(chunks)))

        if dropped:
            logger.debug("Dropped %d chunk(s) under %d tokens", dropped, self._min_chunk_tokens)
        return chunks

    def _add_long_paragraph(self, builder: _ChunkBuilder, paragraph: str) -> None:
        for sentence in _SENTENCE_SPLIT_RE.split(paragraph):
            sentence = sentence.strip()
            if not sentence:
                continue
            if self._counter.count(sentence) > self._max_tokens:
                pieces = self._word_windows(sentence)
            else:
                pieces = [sentence]
            for piece in pieces:
                builder.add(piece, _SENTENCE_SEP, self._sentence_overlap)

    def _word_windows(self, sentence: str) -> list[str]:
        """Cut a sentence with no usable boundaries into max-token word windows."""
        windows: list[str] = []
        window: list[str] = []
        for word in sentence.split():
            # A word can encode to fewer tokens after a space than on its own.
            if window and self._counter.count(" ".join([*window, word])) > self._max_tokens:
                windows.append(" ".join(window))
                window = []
            window.append(word)
        if window:
            windows.append(" ".join(window))
        return windows
