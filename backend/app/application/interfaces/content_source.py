"""Abstract interface (port) for a remote content source (sites → collections → items)."""

from abc import ABC, abstractmethod

from app.domain.entities.source_connection import SourceConnection
from app.domain.entities.source_item import ItemPage, Site, SourceCollection


class ContentSource(ABC):
    """Port for reading a CMS account — implemented in the infrastructure layer.

    Implementations raise ContentSourceThrottledError when the remote API
    throttles, and ContentSourceError for every other non-success response.
    """

    @abstractmethod
    async def authenticated_sites(self) -> list[Site]:
        """List the sites the connection's token can read."""
        ...

    @abstractmethod
    async def list_collections(self, site_id: str) -> list[SourceCollection]:
        """List the CMS collections of a site."""
        ...

    @abstractmethod
    async def list_items(
        self, collection_id: str, *, limit: int = 25, offset: int = 0
    ) -> ItemPage:
        """Fetch one page of items from a collection, in remote order."""
        ...


class ContentSourceFactory(ABC):
    """Builds a ContentSource bound to one owner's stored connection."""

    @abstractmethod
    def for_connection(self, connection: SourceConnection) -> ContentSource:
        ...
