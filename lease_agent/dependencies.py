"""Centralized dependency injection for the FastAPI application.

The store, the lock registry and the progression engine are process-wide: the
in-memory store holds the data and the registry enforces one writer per request,
so every HTTP request must see the same instances.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from lease_agent.config import settings
from lease_agent.core.exceptions import ConfigurationError
from lease_agent.repositories.lease_request_store import InMemoryLeaseRequestStore, LeaseRequestStore
from lease_agent.services.extraction_agent import ExtractionAgentClient
from lease_agent.services.lease_request_service import LeaseRequestService
from lease_agent.services.workflow.progression_engine import StepProgressionEngine
from lease_agent.utils.logging import get_logger

LOGGER = get_logger(__name__)


@lru_cache
def get_lease_request_store() -> LeaseRequestStore:
    """Build the store selected by WORKFLOW_STORE_BACKEND."""
    backend = settings.store_backend
    if backend == "memory":
        return InMemoryLeaseRequestStore()
    if backend == "sql":
        from lease_agent.database.base import async_session_maker
        from lease_agent.repositories.lease_request_repository import SqlLeaseRequestStore

        return SqlLeaseRequestStore(async_session_maker)
    raise ConfigurationError(f"Unknown store backend: {backend}")


@lru_cache
def get_progression_engine() -> StepProgressionEngine:
    return StepProgressionEngine(get_lease_request_store())


def get_extraction_agent_client() -> ExtractionAgentClient:
    return ExtractionAgentClient()


def get_lease_request_service(
    engine: Annotated[StepProgressionEngine, Depends(get_progression_engine)],
    agent_client: Annotated[ExtractionAgentClient, Depends(get_extraction_agent_client)],
) -> LeaseRequestService:
    """Get lease request service instance.

    Args:
        engine: Shared progression engine
        agent_client: Extraction agent HTTP client

    Returns:
        LeaseRequestService: Service for lease request operations
    """
    return LeaseRequestService(engine, agent_client=agent_client)
