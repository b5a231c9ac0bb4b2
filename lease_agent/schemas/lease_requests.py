from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from lease_agent.models.lease_request import AuditEntry, LeaseDocument, LeaseRequest
from lease_agent.models.workflow import (
    TOTAL_STEPS,
    StepOutcome,
    WorkflowStatus,
    WorkflowStepInstance,
    status_label,
)
from lease_agent.services.workflow.progression_engine import ExtractionOutcome, progress_percent


class AdvanceStepRequest(BaseModel):
    """Request body for completing or failing the active step."""

    outcome: StepOutcome = Field(..., description="success or failure")
    notes: Optional[str] = Field(None, description="Free-text notes stored on the step")
    performed_by: str = Field(default="system", min_length=1, description="Actor identity")


class ReviewResolutionRequest(BaseModel):
    """Request body for resolving a review. Omit approved_data to reject."""

    resolver: str = Field(..., min_length=1, description="Reviewer identity")
    approved_data: Optional[Dict[str, Any]] = Field(
        None, description="Corrected data accepted by the reviewer; null rejects the step"
    )


class ExtractionResultRequest(BaseModel):
    """Per-document result reported by the extraction agent."""

    document_id: str = Field(..., min_length=1)
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    step_number: Optional[int] = Field(
        None, ge=1, le=TOTAL_STEPS, description="Step the run was started for; defaults to document extraction"
    )


class AuditAnnotationRequest(BaseModel):
    """External audit annotation, e.g. an SLA breach."""

    action: str = Field(..., min_length=1)
    performed_by: str = Field(default="system", min_length=1)
    details: str = ""
    step_number: Optional[int] = Field(None, ge=1, le=TOTAL_STEPS)
    confidence_score: Optional[float] = Field(None, ge=0.0, le=1.0)
    sla_breached: Optional[bool] = None


class LeaseRequestResponse(BaseModel):
    """Full lease request with derived progress and display label."""

    id: str
    property_id: str
    property_address: str
    tenant_name: str
    tenant_abn: Optional[str] = None
    tenant_acn: Optional[str] = None
    requestor_email: Optional[str] = None
    contact_phone: Optional[str] = None
    special_conditions: Optional[str] = None
    lease_term: int
    commencement_date: date
    rent_amount: float
    security_deposit: float
    status: WorkflowStatus
    status_label: str
    progress_percent: float = Field(..., ge=0, le=100)
    documents: List[LeaseDocument]
    workflow_steps: List[WorkflowStepInstance]
    audit_trail: List[AuditEntry]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, request: LeaseRequest) -> "LeaseRequestResponse":
        return cls(
            **request.model_dump(exclude={"version"}),
            status_label=status_label(request.status),
            progress_percent=progress_percent(request),
        )


class LeaseRequestSummary(BaseModel):
    """Row of the request list."""

    id: str
    tenant_name: str
    property_address: str
    status: WorkflowStatus
    status_label: str
    progress_percent: float
    rent_amount: float
    commencement_date: date
    document_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, request: LeaseRequest) -> "LeaseRequestSummary":
        return cls(
            id=request.id,
            tenant_name=request.tenant_name,
            property_address=request.property_address,
            status=request.status,
            status_label=status_label(request.status),
            progress_percent=progress_percent(request),
            rent_amount=request.rent_amount,
            commencement_date=request.commencement_date,
            document_count=len(request.documents),
            created_at=request.created_at,
            updated_at=request.updated_at,
        )


class RequestStatsResponse(BaseModel):
    total: int
    completed: int
    pending_review: int
    processing: int
    failed: int


class ExtractionOutcomeResponse(BaseModel):
    """What the engine did with an extraction result."""

    request_id: str
    applied: bool
    review_triggered: bool
    auto_advanced: bool
    stale: bool
    message: Optional[str] = None
    status: WorkflowStatus
    progress_percent: float

    @classmethod
    def from_outcome(cls, outcome: ExtractionOutcome) -> "ExtractionOutcomeResponse":
        return cls(
            request_id=outcome.request.id,
            applied=outcome.applied,
            review_triggered=outcome.review_triggered,
            auto_advanced=outcome.auto_advanced,
            stale=outcome.stale_signal is not None,
            message=outcome.stale_signal.message if outcome.stale_signal else None,
            status=outcome.request.status,
            progress_percent=progress_percent(outcome.request),
        )


class ExtractionDispatchResponse(BaseModel):
    request_id: str
    dispatched: bool
    agent_status_code: Optional[int] = None


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    error: str = Field(..., description="Error type/code")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Additional error details")


class HealthCheckResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    version: str
    service: str
    store_backend: str
