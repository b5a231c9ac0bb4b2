"""Persistence contract for lease request aggregates, plus the in-process implementation."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from lease_agent.core.exceptions import (
    ConcurrentTransitionError,
    LeaseRequestNotFound,
    PersistenceFailure,
)
from lease_agent.models.lease_request import AuditEntry, LeaseRequest
from lease_agent.models.workflow import WorkflowStatus
from lease_agent.utils.logging import get_logger

LOGGER = get_logger(__name__)


class LeaseRequestStore(ABC):
    """Store contract.

    Every operation is atomic for a single request. ``save`` commits the whole
    aggregate only if the stored version still equals ``expected_version`` and returns
    the committed copy with its version bumped. Audit entries are never edited or
    removed once stored.
    """

    @abstractmethod
    async def create(self, request: LeaseRequest) -> LeaseRequest:
        pass

    @abstractmethod
    async def get(self, request_id: str) -> LeaseRequest:
        """Raises LeaseRequestNotFound for unknown ids."""
        pass

    @abstractmethod
    async def save(self, request: LeaseRequest, expected_version: int) -> LeaseRequest:
        pass

    @abstractmethod
    async def append_audit(self, request_id: str, entry: AuditEntry) -> AuditEntry:
        pass

    @abstractmethod
    async def list(
        self,
        status: Optional[WorkflowStatus] = None,
        search: Optional[str] = None,
    ) -> List[LeaseRequest]:
        """Requests newest first, filtered by exact status and free-text search."""
        pass


class InMemoryLeaseRequestStore(LeaseRequestStore):
    """Dictionary-backed store. Hands out deep copies so callers never alias stored state."""

    def __init__(self) -> None:
        self._requests: Dict[str, LeaseRequest] = {}

    async def create(self, request: LeaseRequest) -> LeaseRequest:
        if request.id in self._requests:
            raise PersistenceFailure(f"Lease request {request.id} already exists")
        stored = request.model_copy(deep=True)
        self._requests[stored.id] = stored
        LOGGER.debug("Lease request stored", extra={"request_id": stored.id})
        return stored.model_copy(deep=True)

    async def get(self, request_id: str) -> LeaseRequest:
        stored = self._requests.get(request_id)
        if stored is None:
            raise LeaseRequestNotFound(request_id)
        return stored.model_copy(deep=True)

    async def save(self, request: LeaseRequest, expected_version: int) -> LeaseRequest:
        stored = self._requests.get(request.id)
        if stored is None:
            raise LeaseRequestNotFound(request.id)
        if stored.version != expected_version:
            raise ConcurrentTransitionError(
                f"Lease request {request.id} changed (version {stored.version}, "
                f"expected {expected_version})",
                request_id=request.id,
            )
        committed = request.model_copy(deep=True, update={"version": expected_version + 1})
        self._requests[committed.id] = committed
        return committed.model_copy(deep=True)

    async def append_audit(self, request_id: str, entry: AuditEntry) -> AuditEntry:
        stored = self._requests.get(request_id)
        if stored is None:
            raise LeaseRequestNotFound(request_id)
        stored.audit_trail.append(entry)
        stored.version += 1
        return entry

    async def list(
        self,
        status: Optional[WorkflowStatus] = None,
        search: Optional[str] = None,
    ) -> List[LeaseRequest]:
        matches = [
            request.model_copy(deep=True)
            for request in self._requests.values()
            if (status is None or request.status == status) and request.matches_search(search)
        ]
        return sorted(matches, key=lambda request: request.created_at, reverse=True)
