"""Lease request aggregate and its creation input."""

import re
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lease_agent.models.workflow import (
    TERMINAL_STATUSES,
    TOTAL_STEPS,
    DocumentType,
    StepStatus,
    WorkflowStatus,
    WorkflowStepInstance,
)

SYSTEM_ACTOR = "system"

# Format-only checks, no checksum.
ABN_PATTERN = re.compile(r"^\d{2}\s\d{3}\s\d{3}\s\d{3}$")
ACN_PATTERN = re.compile(r"^\d{3}\s\d{3}\s\d{3}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_request_id() -> str:
    return f"LR{uuid.uuid4().hex[:8].upper()}"


def new_document_id() -> str:
    return f"doc-{uuid.uuid4().hex[:8]}"


def new_audit_id() -> str:
    return f"audit-{uuid.uuid4().hex[:8]}"


class LeaseDocument(BaseModel):
    id: str = Field(default_factory=new_document_id)
    name: str
    type: DocumentType = DocumentType.OTHER
    url: Optional[str] = None
    uploaded_at: datetime = Field(default_factory=utcnow)
    size: int = Field(default=0, ge=0)
    mime_type: Optional[str] = None
    extracted_data: Optional[dict[str, Any]] = None
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class AuditEntry(BaseModel):
    """Write-once timeline entry."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_audit_id)
    timestamp: datetime = Field(default_factory=utcnow)
    action: str
    performed_by: str = SYSTEM_ACTOR
    details: str = ""
    step_number: Optional[int] = Field(default=None, ge=1, le=TOTAL_STEPS)
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    sla_breached: Optional[bool] = None


class LeaseRequest(BaseModel):
    """Lease request aggregate.

    ``workflow_steps`` and ``status`` are owned by the progression engine; ``version``
    is maintained by the store for optimistic concurrency checks.
    """

    id: str = Field(default_factory=new_request_id)
    property_id: str
    property_address: str
    tenant_name: str
    tenant_abn: Optional[str] = None
    tenant_acn: Optional[str] = None
    requestor_email: Optional[str] = None
    contact_phone: Optional[str] = None
    special_conditions: Optional[str] = None
    lease_term: int = Field(..., ge=1)
    commencement_date: date
    rent_amount: float = Field(..., gt=0)
    security_deposit: float = Field(default=0.0, ge=0)
    status: WorkflowStatus = WorkflowStatus.INITIATED
    documents: list[LeaseDocument] = Field(default_factory=list)
    workflow_steps: list[WorkflowStepInstance] = Field(default_factory=list)
    audit_trail: list[AuditEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_initialized(self) -> bool:
        return bool(self.workflow_steps)

    def step(self, step_number: int) -> WorkflowStepInstance:
        for step in self.workflow_steps:
            if step.step_number == step_number:
                return step
        raise KeyError(step_number)

    def active_steps(self) -> list[WorkflowStepInstance]:
        return [step for step in self.workflow_steps if step.is_active]

    def active_step(self) -> Optional[WorkflowStepInstance]:
        active = self.active_steps()
        return active[0] if active else None

    def document(self, document_id: str) -> Optional[LeaseDocument]:
        return next((doc for doc in self.documents if doc.id == document_id), None)

    def completed_step_count(self) -> int:
        return sum(1 for step in self.workflow_steps if step.status == StepStatus.COMPLETED)

    def matches_search(self, term: Optional[str]) -> bool:
        """Case-insensitive match on tenant name, property address or id."""
        if not term:
            return True
        needle = term.strip().lower()
        return (
            needle in self.tenant_name.lower()
            or needle in self.property_address.lower()
            or needle in self.id.lower()
        )


class LeaseDocumentCreate(BaseModel):
    """Document attached at submission. ``content`` is the raw (base64) payload for the agent."""

    name: str = Field(..., min_length=1)
    type: DocumentType = DocumentType.OTHER
    url: Optional[str] = None
    size: int = Field(default=0, ge=0)
    mime_type: Optional[str] = None
    content: Optional[str] = None


class LeaseRequestCreate(BaseModel):
    property_id: str
    property_address: str
    tenant_name: str
    tenant_abn: Optional[str] = None
    tenant_acn: Optional[str] = None
    requestor_email: Optional[str] = None
    contact_phone: Optional[str] = None
    special_conditions: Optional[str] = None
    lease_term: int = Field(..., ge=1, description="Lease term in months")
    commencement_date: date
    rent_amount: float = Field(..., gt=0)
    security_deposit: float = Field(default=0.0, ge=0)
    documents: list[LeaseDocumentCreate] = Field(..., min_length=1)

    @field_validator("tenant_name", "property_id", "property_address")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            raise ValueError("must not be empty")
        return candidate

    @field_validator("tenant_abn", "tenant_acn", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("tenant_abn")
    @classmethod
    def _abn_format(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not ABN_PATTERN.match(value):
            raise ValueError("ABN must be in format: XX XXX XXX XXX")
        return value

    @field_validator("tenant_acn")
    @classmethod
    def _acn_format(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not ACN_PATTERN.match(value):
            raise ValueError("ACN must be in format: XXX XXX XXX")
        return value


class ExtractionResult(BaseModel):
    """Per-document report from the extraction agent."""

    document_id: str
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    extracted_data: dict[str, Any] = Field(default_factory=dict)
    step_number: Optional[int] = Field(default=None, ge=1, le=TOTAL_STEPS)
