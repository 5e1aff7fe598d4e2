"""Abstract repository interface (port) for stored content source connections."""

from abc import ABC, abstractmethod

from app.domain.entities.source_connection import SourceConnection


class SourceConnectionRepository(ABC):
    """Port for owner → access token storage."""

    @abstractmethod
    async def get_by_owner(self, owner_id: str) -> SourceConnection | None:
        """Retrieve the owner's connection, if one is stored."""
        ...

    @abstractmethod
    async def save(self, connection: SourceConnection) -> SourceConnection:
        """Create or replace the owner's connection."""
        ...

    @abstractmethod
    async def delete(self, owner_id: str) -> bool:
        """Delete the owner's connection. Returns True if one existed."""
        ...
