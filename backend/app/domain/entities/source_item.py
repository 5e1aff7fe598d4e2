"""Domain entities for the remote content source hierarchy: sites → collections → items."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Site:
    """A site exposed by the authenticated content source account."""

    id: str
    name: str
    short_name: str = ""


@dataclass
class SourceCollection:
    """A CMS collection inside a site."""

    id: str
    name: str
    slug: str = ""
    site_id: str = ""


@dataclass
class SourceItem:
    """A raw CMS item with an arbitrary field schema.

    Field values come straight from the remote API and may be HTML strings,
    numbers, references or missing entirely. Use the accessors instead of
    indexing ``fields`` directly.
    """

    id: str
    fields: dict[str, Any] = field(default_factory=dict)
    last_published: datetime | None = None

    @property
    def name(self) -> str:
        return self.get_str("name")

    @property
    def slug(self) -> str:
        return self.get_str("slug")

    def get_str(self, key: str, default: str = "") -> str:
        """Return the field as a string, or ``default`` when missing or not a string."""
        value = self.fields.get(key)
        if isinstance(value, str):
            return value
        return default

    def string_fields(self) -> Iterator[tuple[str, str]]:
        """Yield ``(key, value)`` for every string-valued field, in source key order."""
        for key, value in self.fields.items():
            if isinstance(value, str):
                yield key, value


@dataclass
class ItemPage:
    """One page of items from a collection listing."""

    items: list[SourceItem]
    has_more: bool
    offset: int = 0
    total: int | None = None
