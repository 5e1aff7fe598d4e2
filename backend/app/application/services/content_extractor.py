"""Content extractor — turns a raw CMS item into one normalized plain-text document."""

import html
import re

from app.domain.entities.source_item import SourceItem

# Items whose extracted text is shorter than this carry no usable content.
MIN_CONTENT_LENGTH = 20

# Minimum cleaned length for a single field to be worth keeping.
_MIN_FIELD_LENGTH = 20

# Body-like fields, scanned in this order before anything else.
PRIORITY_FIELDS: tuple[str, ...] = (
    "content",
    "body",
    "description",
    "text",
    "excerpt",
    "summary",
    "main-content",
    "post-content",
    "article-content",
)

# Already represented by the title line, or pure identifiers.
_EXCLUDED_FIELDS = frozenset({"name", "slug"})

_IDENTIFIER_TOKENS = frozenset({"id", "ids", "uuid", "guid", "ref", "reference"})
_LINK_TOKENS = frozenset({"url", "urls", "link", "links", "href", "uri", "src"})
_TIMESTAMP_TOKENS = frozenset({
    "created", "updated", "published", "modified", "date", "time", "timestamp",
})

_KEY_SPLIT_RE = re.compile(r"[-_\s.]+")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_TAG_RE = re.compile(r"<[^>]*>")
_ENTITY_RE = re.compile(r"&[#a-zA-Z0-9]+;")
_WHITESPACE_RE = re.compile(r"\s+")
_URL_VALUE_RE = re.compile(r"^(https?://|mailto:|www\.)", re.IGNORECASE)


def clean_html(value: str) -> str:
    """Strip tags and entities from an HTML-ish string and collapse whitespace."""
    text = _TAG_RE.sub(" ", value)
    text = html.unescape(text)
    # Anything html.unescape could not resolve is dropped.
    text = _ENTITY_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _key_tokens(key: str) -> set[str]:
    return {t for t in _KEY_SPLIT_RE.split(_CAMEL_RE.sub("-", key).lower()) if t}


def is_supplementary_field(key: str, value: str) -> bool:
    """Decide whether a non-priority string field carries readable content.

    Rejects the priority and title fields, identifier/URL/timestamp-looking
    keys, URL-looking values and values at or below the length threshold.
    """
    lowered = key.lower()
    if lowered in PRIORITY_FIELDS or lowered in _EXCLUDED_FIELDS:
        return False
    if len(value) <= _MIN_FIELD_LENGTH:
        return False

    tokens = _key_tokens(key)
    if tokens & (_IDENTIFIER_TOKENS | _LINK_TOKENS | _TIMESTAMP_TOKENS):
        return False
    if _URL_VALUE_RE.match(value.strip()):
        return False
    return True


class ContentExtractor:
    """Builds the normalized text of a CMS item.

    Output order: title line, priority body fields (fixed order), then the
    remaining readable fields in the item's own key order as
    ``"{key}: {value}"``. Parts are separated by blank lines so the chunker
    sees them as paragraphs.
    """

    def extract(self, item: SourceItem) -> str:
        parts: list[str] = []

        if item.name.strip():
            parts.append(f"Title: {clean_html(item.name)}")

        for field_name in PRIORITY_FIELDS:
            raw = item.get_str(field_name)
            if not raw:
                continue
            cleaned = clean_html(raw)
            if len(cleaned) > _MIN_FIELD_LENGTH:
                parts.append(cleaned)

        for key, raw in item.string_fields():
            if not is_supplementary_field(key, raw):
                continue
            cleaned = clean_html(raw)
            if len(cleaned) > _MIN_FIELD_LENGTH:
                parts.append(f"{key}: {cleaned}")

        return "\n\n".join(parts)

    @staticmethod
    def has_usable_content(text: str) -> bool:
        return len(text.strip()) >= MIN_CONTENT_LENGTH
