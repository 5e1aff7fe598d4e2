"""SQLAlchemy implementation of the SourceConnectionRepository."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.source_connection_repository import SourceConnectionRepository
from app.domain.entities.source_connection import SourceConnection
from app.infrastructure.database.models.content_models import SourceConnectionModel


class SQLAlchemySourceConnectionRepository(SourceConnectionRepository):
    """Concrete connection repository backed by PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_owner(self, owner_id: str) -> SourceConnection | None:
        model = await self._get_model(owner_id)
        return self._to_domain(model) if model else None

    async def save(self, connection: SourceConnection) -> SourceConnection:
        model = await self._get_model(connection.owner_id)
        now = datetime.now(timezone.utc)
        if model is None:
            connection.id = connection.id or str(uuid.uuid4())
            model = SourceConnectionModel(
                id=connection.id,
                owner_id=connection.owner_id,
                access_token=connection.access_token,
                scope=connection.scope,
                expires_at=connection.expires_at,
                created_at=connection.created_at,
                updated_at=now,
            )
            self._session.add(model)
        else:
            model.access_token = connection.access_token
            model.scope = connection.scope
            model.expires_at = connection.expires_at
            model.updated_at = now
            connection.id = model.id
            connection.created_at = model.created_at
        connection.updated_at = now
        await self._session.flush()
        return connection

    async def delete(self, owner_id: str) -> bool:
        model = await self._get_model(owner_id)
        if model is None:
            return False
        await self._session.delete(model)
        await self._session.flush()
        return True

    async def _get_model(self, owner_id: str) -> SourceConnectionModel | None:
        result = await self._session.execute(
            select(SourceConnectionModel).where(SourceConnectionModel.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: SourceConnectionModel) -> SourceConnection:
        return SourceConnection(
            id=model.id,
            owner_id=model.owner_id,
            access_token=model.access_token,
            scope=model.scope or "",
            expires_at=model.expires_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
