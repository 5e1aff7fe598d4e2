from .content_repository import PgContentRepository
from .source_connection_repository import SQLAlchemySourceConnectionRepository
from .sync_operation_repository import SQLAlchemySyncOperationRepository

__all__ = [
    "PgContentRepository",
    "SQLAlchemySourceConnectionRepository",
    "SQLAlchemySyncOperationRepository",
]
