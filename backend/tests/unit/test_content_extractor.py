"""Unit tests for the ContentExtractor."""

from app.application.services.content_extractor import (
    ContentExtractor,
    clean_html,
    is_supplementary_field,
)
from app.domain.entities import SourceItem


def test_clean_html_strips_tags_and_entities():
    assert clean_html("<p>Fish &amp; <b>chips</b></p>&nbsp;&bogus;") == "Fish & chips"


def test_extract_orders_title_priority_then_supplementary_fields():
    item = SourceItem(
        id="item-1",
        fields={
            "name": "Hello <b>World</b>",
            "slug": "hello-world",
            "summary": "<p>A short summary that is long enough.</p>",
            "author-bio": "Writes about distributed systems a lot.",
            "body": "<p>Body text &amp; more content here ok.</p>",
            "external-url": "https://example.com/some/very/long/path",
            "published-date": "2024-01-01T00:00:00Z and some padding",
            "short": "tiny",
            "views": 1200,
        },
    )

    text = ContentExtractor().extract(item)

    assert text == (
        "Title: Hello World\n\n"
        "Body text & more content here ok.\n\n"
        "A short summary that is long enough.\n\n"
        "author-bio: Writes about distributed systems a lot."
    )


def test_extract_skips_short_priority_fields():
    item = SourceItem(id="item-2", fields={"name": "Post", "content": "<p>too short</p>"})
    assert ContentExtractor().extract(item) == "Title: Post"


def test_extract_without_title():
    item = SourceItem(id="item-3", fields={"description": "A description of reasonable length."})
    assert ContentExtractor().extract(item) == "A description of reasonable length."


def test_has_usable_content_threshold():
    assert not ContentExtractor.has_usable_content("Title: Post")
    assert not ContentExtractor.has_usable_content("   ")
    assert ContentExtractor.has_usable_content("x" * 20)


def test_supplementary_field_rules():
    long_value = "A perfectly readable sentence about things."
    assert is_supplementary_field("author-bio", long_value)
    assert not is_supplementary_field("body", long_value)
    assert not is_supplementary_field("name", long_value)
    assert not is_supplementary_field("author-id", long_value)
    assert not is_supplementary_field("heroImageUrl", long_value)
    assert not is_supplementary_field("createdOn", long_value)
    assert not is_supplementary_field("notes", "https://example.com/a/long/link/path")
    assert not is_supplementary_field("notes", "short")
