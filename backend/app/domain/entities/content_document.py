"""Domain entity for content documents — one normalized unit of remote content."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class ContentDocument:
    """A remote CMS item after extraction, identified by ``(owner_id, source_item_id)``.

    ``content_hash`` is the SHA-256 of the normalized text. A later sync that
    produces the same hash for the same owner treats the document as
    unchanged and skips re-chunking and re-embedding.
    """

    owner_id: str
    source_item_id: str
    collection_id: str
    collection_name: str
    title: str
    content_hash: str
    slug: str = ""
    site_id: str = ""
    last_published: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
