"""Database module for SQLAlchemy models and session management."""

from lease_agent.database.base import (
    Base,
    DatabaseClient,
    async_session_maker,
    close_database,
    db_client,
    engine,
    init_database,
)
from lease_agent.database.models import (
    AuditEntryRecord,
    LeaseDocumentRecord,
    LeaseRequestRecord,
    WorkflowStepRecord,
)

__all__ = [
    "Base",
    "DatabaseClient",
    "async_session_maker",
    "close_database",
    "db_client",
    "engine",
    "init_database",
    "AuditEntryRecord",
    "LeaseDocumentRecord",
    "LeaseRequestRecord",
    "WorkflowStepRecord",
]
