"""Lease request service: submission, extraction dispatch and queries."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from lease_agent.config import settings
from lease_agent.core.exceptions import ValidationError
from lease_agent.models.lease_request import (
    SYSTEM_ACTOR,
    AuditEntry,
    LeaseDocument,
    LeaseRequest,
    LeaseRequestCreate,
)
from lease_agent.models.workflow import WorkflowStatus, parse_workflow_status
from lease_agent.services.base_service import BaseService
from lease_agent.services.extraction_agent import AgentDocument, ExtractionAgentClient
from lease_agent.services.workflow.progression_engine import StepProgressionEngine
from lease_agent.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class Submission:
    """A stored request plus the documents to hand to the extraction agent."""

    request: LeaseRequest
    agent_documents: List[AgentDocument] = field(default_factory=list)


def parse_create_payload(payload: Any) -> LeaseRequestCreate:
    """Validate raw creation input.

    Raises:
        ValidationError: If any field is invalid
    """
    if isinstance(payload, LeaseRequestCreate):
        return payload
    try:
        return LeaseRequestCreate.model_validate(payload)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        raise ValidationError(f"Invalid lease request: {problems}", original_error=e) from e


class LeaseRequestService(BaseService):
    """Coordinates the store, the progression engine and the extraction agent.

    Workflow steps and status are never touched here; every transition goes
    through the engine.
    """

    def __init__(
        self,
        engine: StepProgressionEngine,
        agent_client: Optional[ExtractionAgentClient] = None,
        complete_initiation_on_submit: Optional[bool] = None,
        agent_enabled: Optional[bool] = None,
    ):
        super().__init__()
        self.engine = engine
        self.store = engine.store
        self.agent_client = agent_client or ExtractionAgentClient()
        self.complete_initiation_on_submit = (
            complete_initiation_on_submit
            if complete_initiation_on_submit is not None
            else settings.workflow.complete_initiation_on_submit
        )
        self.agent_enabled = agent_enabled if agent_enabled is not None else settings.agent.enabled

    async def run(self, *args, **kwargs) -> Any:
        """Route to the handler for ``action``."""
        action = kwargs.get("action")

        if action == "create":
            return await self._create(kwargs["payload"])
        elif action == "get":
            return await self._get(kwargs["request_id"])
        elif action == "list":
            return await self._list(kwargs.get("status"), kwargs.get("search"))
        elif action == "stats":
            return await self._stats()
        elif action == "dispatch_extraction":
            return await self._dispatch_extraction(kwargs["request_id"], kwargs.get("documents"))
        else:
            raise ValidationError(f"Unknown action: {action}")

    def validate(self, *args, **kwargs):
        action = kwargs.get("action")

        if action == "create" and not isinstance(kwargs.get("payload"), LeaseRequestCreate):
            raise ValidationError("payload must be a validated LeaseRequestCreate")
        elif action in ("get", "dispatch_extraction"):
            request_id = kwargs.get("request_id")
            if not request_id or not str(request_id).strip():
                raise ValidationError("request_id is required")

    async def execute_create(self, payload: Any) -> Submission:
        """Validate, store and initialize a new lease request.

        Nothing is stored when validation fails.

        Raises:
            ValidationError: If the payload is invalid
        """
        return await self.execute(action="create", payload=parse_create_payload(payload))

    async def execute_get(self, request_id: str) -> LeaseRequest:
        return await self.execute(action="get", request_id=request_id)

    async def execute_list(
        self,
        status: Optional[WorkflowStatus | str] = None,
        search: Optional[str] = None,
    ) -> List[LeaseRequest]:
        """List requests by exact status and free-text search.

        Raises:
            UnknownStatusError: If status is not a workflow status
        """
        parsed = parse_workflow_status(status) if status else None
        return await self.execute(action="list", status=parsed, search=search)

    async def execute_stats(self) -> Dict[str, int]:
        return await self.execute(action="stats")

    async def execute_dispatch_extraction(
        self,
        request_id: str,
        documents: Optional[List[AgentDocument]] = None,
    ) -> Optional[int]:
        """Send a request's documents to the extraction agent.

        Returns the agent's HTTP status, or None when the agent is disabled.

        Raises:
            AgentUnavailable: If the agent cannot be reached
        """
        return await self.execute(action="dispatch_extraction", request_id=request_id, documents=documents)

    async def annotate(
        self,
        request_id: str,
        action: str,
        performed_by: str = SYSTEM_ACTOR,
        details: str = "",
        step_number: Optional[int] = None,
        confidence_score: Optional[float] = None,
        sla_breached: Optional[bool] = None,
    ) -> AuditEntry:
        if not action or not action.strip():
            raise ValidationError("Audit action is required")
        return await self.engine.annotate(
            request_id,
            action,
            performed_by=performed_by,
            details=details,
            step_number=step_number,
            confidence_score=confidence_score,
            sla_breached=sla_breached,
        )

    async def _create(self, payload: LeaseRequestCreate) -> Submission:
        documents = [
            LeaseDocument(
                name=doc.name,
                type=doc.type,
                url=doc.url,
                size=doc.size,
                mime_type=doc.mime_type,
            )
            for doc in payload.documents
        ]
        request = LeaseRequest(
            **payload.model_dump(exclude={"documents"}),
            documents=documents,
        )
        agent_documents = [
            AgentDocument.from_document(document, source.content)
            for document, source in zip(documents, payload.documents)
        ]

        submitter = payload.requestor_email or SYSTEM_ACTOR
        stored = await self.engine.submit(
            request,
            performed_by=submitter,
            complete_initiation=self.complete_initiation_on_submit,
            notes="Lease request submitted with metadata and documents",
        )
        self.logger.info(
            "Lease request created",
            extra={"request_id": stored.id, "tenant_name": stored.tenant_name, "documents": len(documents)},
        )
        return Submission(request=stored, agent_documents=agent_documents)

    async def _get(self, request_id: str) -> LeaseRequest:
        return await self.engine.guarded(self.store.get(request_id), "get")

    async def _list(self, status: Optional[WorkflowStatus], search: Optional[str]) -> List[LeaseRequest]:
        return await self.engine.guarded(self.store.list(status=status, search=search), "list")

    async def _stats(self) -> Dict[str, int]:
        requests = await self._list(None, None)
        stats = {"total": len(requests), "completed": 0, "pending_review": 0, "processing": 0, "failed": 0}
        for request in requests:
            if request.status == WorkflowStatus.COMPLETED:
                stats["completed"] += 1
            elif request.status == WorkflowStatus.FAILED:
                stats["failed"] += 1
            elif request.status == WorkflowStatus.PENDING_REVIEW:
                stats["pending_review"] += 1
            else:
                stats["processing"] += 1
        return stats

    async def _dispatch_extraction(
        self,
        request_id: str,
        documents: Optional[List[AgentDocument]],
    ) -> Optional[int]:
        if not self.agent_enabled:
            self.logger.info("Extraction agent disabled, dispatch skipped", extra={"request_id": request_id})
            return None

        if documents is None:
            request = await self._get(request_id)
            documents = [AgentDocument.from_document(document) for document in request.documents]

        return await self.agent_client.submit(request_id, documents)
