"""Append-only audit trail recording."""

from datetime import datetime
from typing import Callable, Optional

from lease_agent.models.lease_request import SYSTEM_ACTOR, AuditEntry, LeaseRequest, utcnow
from lease_agent.repositories.lease_request_store import LeaseRequestStore
from lease_agent.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AuditRecorder:
    """Creates immutable audit entries.

    ``record`` appends straight through the store. ``stamp`` adds the entry to an
    aggregate that is about to be committed, so a transition and its audit entry are
    persisted together.
    """

    def __init__(self, store: LeaseRequestStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or utcnow

    def build(
        self,
        action: str,
        performed_by: str = SYSTEM_ACTOR,
        details: str = "",
        step_number: Optional[int] = None,
        confidence_score: Optional[float] = None,
        sla_breached: Optional[bool] = None,
    ) -> AuditEntry:
        return AuditEntry(
            timestamp=self.clock(),
            action=action,
            performed_by=performed_by or SYSTEM_ACTOR,
            details=details,
            step_number=step_number,
            confidence_score=confidence_score,
            sla_breached=sla_breached,
        )

    async def record(
        self,
        request_id: str,
        action: str,
        performed_by: str = SYSTEM_ACTOR,
        details: str = "",
        step_number: Optional[int] = None,
        confidence_score: Optional[float] = None,
        sla_breached: Optional[bool] = None,
    ) -> AuditEntry:
        """Append an entry to a request's trail.

        Raises:
            LeaseRequestNotFound: If the request does not exist
            PersistenceFailure: If the store rejects the append
        """
        entry = self.build(
            action,
            performed_by=performed_by,
            details=details,
            step_number=step_number,
            confidence_score=confidence_score,
            sla_breached=sla_breached,
        )
        stored = await self.store.append_audit(request_id, entry)
        LOGGER.info(
            f"Audit entry recorded: {action}",
            extra={"request_id": request_id, "audit_id": stored.id, "step_number": step_number},
        )
        return stored

    def stamp(
        self,
        request: LeaseRequest,
        action: str,
        performed_by: str = SYSTEM_ACTOR,
        details: str = "",
        step_number: Optional[int] = None,
        confidence_score: Optional[float] = None,
        sla_breached: Optional[bool] = None,
    ) -> AuditEntry:
        entry = self.build(
            action,
            performed_by=performed_by,
            details=details,
            step_number=step_number,
            confidence_score=confidence_score,
            sla_breached=sla_breached,
        )
        request.audit_trail.append(entry)
        return entry
