"""Abstract repository interface (port) for the sync operation audit log."""

from abc import ABC, abstractmethod

from app.domain.entities.sync_operation import OperationType, SyncOperationRecord


class SyncOperationRepository(ABC):
    """Port for append-only audit records — implemented in the infrastructure layer."""

    @abstractmethod
    async def create(self, record: SyncOperationRecord) -> SyncOperationRecord:
        """Persist a new audit record and return it with the generated ID."""
        ...

    @abstractmethod
    async def get_recent(self, owner_id: str, limit: int = 10) -> list[SyncOperationRecord]:
        """Retrieve the owner's audit records, most recent first."""
        ...

    @abstractmethod
    async def get_last_completed(
        self, owner_id: str, operation_type: OperationType = OperationType.SYNC
    ) -> SyncOperationRecord | None:
        """Retrieve the owner's most recent completed record of a type."""
        ...
