"""SQLAlchemy implementation of the SyncOperationRepository."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.sync_operation_repository import SyncOperationRepository
from app.domain.entities.sync_operation import (
    OperationStatus,
    OperationType,
    SyncOperationRecord,
)
from app.infrastructure.database.models.content_models import SyncOperationModel


class SQLAlchemySyncOperationRepository(SyncOperationRepository):
    """Concrete audit log repository backed by PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, record: SyncOperationRecord) -> SyncOperationRecord:
        if not record.id:
            record.id = str(uuid.uuid4())

        model = SyncOperationModel(
            id=record.id,
            owner_id=record.owner_id,
            operation_type=record.operation_type.value,
            status=record.status.value,
            affected_items=record.affected_items,
            error=record.error,
            started_at=record.started_at,
            completed_at=record.completed_at,
        )
        self._session.add(model)
        await self._session.flush()
        return record

    async def get_recent(self, owner_id: str, limit: int = 10) -> list[SyncOperationRecord]:
        result = await self._session.execute(
            select(SyncOperationModel)
            .where(SyncOperationModel.owner_id == owner_id)
            .order_by(SyncOperationModel.started_at.desc())
            .limit(limit)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def get_last_completed(
        self, owner_id: str, operation_type: OperationType = OperationType.SYNC
    ) -> SyncOperationRecord | None:
        result = await self._session.execute(
            select(SyncOperationModel)
            .where(SyncOperationModel.owner_id == owner_id)
            .where(SyncOperationModel.operation_type == operation_type.value)
            .where(SyncOperationModel.status == OperationStatus.COMPLETED.value)
            .order_by(SyncOperationModel.started_at.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: SyncOperationModel) -> SyncOperationRecord:
        return SyncOperationRecord(
            id=model.id,
            owner_id=model.owner_id,
            operation_type=OperationType(model.operation_type),
            status=OperationStatus(model.status),
            affected_items=model.affected_items or {},
            error=model.error,
            started_at=model.started_at,
            completed_at=model.completed_at,
        )
