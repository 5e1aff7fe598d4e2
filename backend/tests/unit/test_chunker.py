"""Unit tests for the TextChunker (word-count tokens keep the arithmetic visible)."""

import pytest

from app.application.services.chunker import TextChunker, normalize_text, tail_words

from fakes import WordCounter


def _words(prefix: str, count: int) -> str:
    return " ".join(f"{prefix}{i}" for i in range(1, count + 1))


def _chunker(**kwargs) -> TextChunker:
    kwargs.setdefault("min_chunk_tokens", 1)
    return TextChunker(WordCounter(), **kwargs)


def _assert_well_formed(chunks, max_tokens: int) -> None:
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    for chunk in chunks:
        assert chunk.text
        assert chunk.token_count <= max_tokens


# ── Helpers ──


def test_normalize_text_keeps_paragraph_breaks():
    assert normalize_text("a   b\t c\n\n\n\nd  e ") == "a b c\n\nd e"


def test_tail_words():
    assert tail_words("one two three four", 2) == "three four"
    assert tail_words("one two", 5) == "one two"
    assert tail_words("one two", 0) == ""


# ── Chunking ──


def test_empty_text_yields_no_chunks():
    assert _chunker(max_tokens=10).chunk("   \n  ") == []


def test_short_text_is_a_single_stripped_chunk():
    chunks = _chunker(max_tokens=10).chunk("  hello   world  ")

    assert len(chunks) == 1
    assert chunks[0].text == "hello   world"
    assert chunks[0].chunk_index == 0
    assert chunks[0].token_count == 2


def test_single_chunk_ignores_min_chunk_tokens():
    chunks = TextChunker(WordCounter(), max_tokens=10, min_chunk_tokens=50).chunk("tiny text")
    assert [c.text for c in chunks] == ["tiny text"]


def test_paragraphs_are_packed_with_overlap():
    text = "\n\n".join([_words("a", 4), _words("b", 4), _words("c", 4)])

    chunks = _chunker(max_tokens=10, paragraph_overlap_words=2).chunk(text)

    assert [c.text for c in chunks] == [
        f"{_words('a', 4)}\n\n{_words('b', 4)}",
        f"b3 b4\n\n{_words('c', 4)}",
    ]
    _assert_well_formed(chunks, 10)


def test_overlap_is_dropped_when_it_would_break_the_bound():
    text = "\n\n".join([_words("a", 8), _words("b", 8)])

    chunks = _chunker(max_tokens=10, paragraph_overlap_words=5).chunk(text)

    assert [c.text for c in chunks] == [_words("a", 8), _words("b", 8)]
    _assert_well_formed(chunks, 10)


def test_long_paragraph_falls_back_to_sentences():
    paragraph = " ".join(f"{_words(s, 5)}." for s in ("x", "y", "z"))

    chunks = _chunker(max_tokens=8, sentence_overlap_words=0).chunk(paragraph)

    assert [c.text for c in chunks] == [f"{_words(s, 5)}." for s in ("x", "y", "z")]
    _assert_well_formed(chunks, 8)


def test_sentence_chunks_carry_overlap():
    paragraph = " ".join(f"{_words(s, 4)}." for s in ("x", "y", "z"))

    chunks = _chunker(max_tokens=6, sentence_overlap_words=2).chunk(paragraph)

    assert chunks[0].text == "x1 x2 x3 x4."
    assert chunks[1].text == "x3 x4. y1 y2 y3 y4."
    _assert_well_formed(chunks, 6)


def test_oversized_sentence_is_cut_into_word_windows():
    chunks = _chunker(max_tokens=10).chunk(_words("w", 25))

    assert [c.token_count for c in chunks] == [10, 10, 5]
    assert chunks[0].text.startswith("w1 ")
    assert chunks[-1].text.endswith("w25")
    _assert_well_formed(chunks, 10)


def test_chunks_below_minimum_are_dropped_and_indices_stay_gap_free():
    text = "\n\n".join([_words("a", 9), _words("b", 9), _words("c", 2)])

    chunks = TextChunker(
        WordCounter(), max_tokens=10, min_chunk_tokens=3, paragraph_overlap_words=0
    ).chunk(text)

    assert [c.text for c in chunks] == [_words("a", 9), _words("b", 9)]
    _assert_well_formed(chunks, 10)


def test_every_word_survives_chunking():
    paragraphs = [_words(p, n) for p, n in (("a", 3), ("b", 12), ("c", 7), ("d", 4))]
    text = "\n\n".join(paragraphs)

    chunks = _chunker(max_tokens=8, paragraph_overlap_words=0, sentence_overlap_words=0).chunk(text)

    emitted = " ".join(c.text for c in chunks).split()
    assert emitted == text.split()
    _assert_well_formed(chunks, 8)


def test_invalid_max_tokens():
    with pytest.raises(ValueError):
        TextChunker(WordCounter(), max_tokens=0)


class LeadingSpaceCounter:
    """Words after a space cost one token; the first word of a text costs two."""

    def count(self, text: str) -> int:
        words = len(text.split())
        if words and not text.startswith(" "):
            words += 1
        return words


def test_word_windows_respect_the_bound_on_the_joined_text():
    chunks = TextChunker(LeadingSpaceCounter(), max_tokens=10, min_chunk_tokens=1).chunk(_words("w", 25))

    assert [c.token_count for c in chunks] == [10, 10, 8]
    assert " ".join(c.text for c in chunks).split() == _words("w", 25).split()
    _assert_well_formed(chunks, 10)
