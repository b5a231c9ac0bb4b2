"""Workflow vocabularies, status mapping tables and step records."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from lease_agent.core.exceptions import InvalidStepNumber, UnknownStatusError

TOTAL_STEPS = 12


class WorkflowStatus(str, Enum):
    """Coarse request status, mirroring the active step."""

    INITIATED = "initiated"
    DOCUMENT_EXTRACTION = "document_extraction"
    VALIDATION_REVIEW = "validation_review"
    SPACE_VALIDATION = "space_validation"
    BP_CHECK = "bp_check"
    ASIC_VALIDATION = "asic_validation"
    SHELL_CREATION = "shell_creation"
    DEPOSIT_INVOICE = "deposit_invoice"
    ABSTRACT_VERIFICATION = "abstract_verification"
    CLAUSE_FINALISATION = "clause_finalisation"
    ACTIVATION = "activation"
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING_REVIEW = "pending_review"


class StepStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REVIEW_REQUIRED = "review_required"


class StepOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class DocumentType(str, Enum):
    SOLICITOR_INSTRUCTIONS = "solicitor_instructions"
    ASIC_EXTRACT = "asic_extract"
    LEASE_AGREEMENT = "lease_agreement"
    PROPERTY_PLAN = "property_plan"
    OTHER = "other"


TERMINAL_STATUSES = frozenset({WorkflowStatus.COMPLETED, WorkflowStatus.FAILED})
ACTIVE_STEP_STATUSES = frozenset({StepStatus.PROCESSING, StepStatus.REVIEW_REQUIRED})
FINISHED_STEP_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.FAILED})

# Request status while the given step is the active one.
STEP_WORKFLOW_STATUS: dict[int, WorkflowStatus] = {
    1: WorkflowStatus.INITIATED,
    2: WorkflowStatus.DOCUMENT_EXTRACTION,
    3: WorkflowStatus.VALIDATION_REVIEW,
    4: WorkflowStatus.SPACE_VALIDATION,
    5: WorkflowStatus.BP_CHECK,
    6: WorkflowStatus.ASIC_VALIDATION,
    7: WorkflowStatus.SHELL_CREATION,
    8: WorkflowStatus.DEPOSIT_INVOICE,
    9: WorkflowStatus.ABSTRACT_VERIFICATION,
    10: WorkflowStatus.CLAUSE_FINALISATION,
    11: WorkflowStatus.ACTIVATION,
    12: WorkflowStatus.ACTIVATION,
}

STATUS_LABELS: dict[WorkflowStatus, str] = {
    WorkflowStatus.INITIATED: "Initiated",
    WorkflowStatus.DOCUMENT_EXTRACTION: "Processing Documents",
    WorkflowStatus.VALIDATION_REVIEW: "Pending Review",
    WorkflowStatus.SPACE_VALIDATION: "Validating Space",
    WorkflowStatus.BP_CHECK: "Business Partner Check",
    WorkflowStatus.ASIC_VALIDATION: "ASIC Validation",
    WorkflowStatus.SHELL_CREATION: "Creating Lease",
    WorkflowStatus.DEPOSIT_INVOICE: "Processing Invoice",
    WorkflowStatus.ABSTRACT_VERIFICATION: "Verifying Abstract",
    WorkflowStatus.CLAUSE_FINALISATION: "Finalizing Clauses",
    WorkflowStatus.ACTIVATION: "Activating Lease",
    WorkflowStatus.COMPLETED: "Completed",
    WorkflowStatus.FAILED: "Failed",
    WorkflowStatus.PENDING_REVIEW: "Requires Review",
}


def parse_workflow_status(value: Any) -> WorkflowStatus:
    """Coerce a wire string into a WorkflowStatus.

    Raises:
        UnknownStatusError: If the value is not part of the vocabulary
    """
    if isinstance(value, WorkflowStatus):
        return value
    try:
        return WorkflowStatus(value)
    except ValueError as e:
        raise UnknownStatusError(f"Unknown workflow status: {value!r}", original_error=e) from e


def parse_step_status(value: Any) -> StepStatus:
    if isinstance(value, StepStatus):
        return value
    try:
        return StepStatus(value)
    except ValueError as e:
        raise UnknownStatusError(f"Unknown step status: {value!r}", original_error=e) from e


def status_label(value: Any) -> str:
    """Display label for a workflow status. Unknown statuses are an error."""
    return STATUS_LABELS[parse_workflow_status(value)]


def check_step_number(step_number: int) -> int:
    if not isinstance(step_number, int) or isinstance(step_number, bool):
        raise InvalidStepNumber(step_number)
    if step_number < 1 or step_number > TOTAL_STEPS:
        raise InvalidStepNumber(step_number)
    return step_number


def status_for_step(step_number: int) -> WorkflowStatus:
    return STEP_WORKFLOW_STATUS[check_step_number(step_number)]


class WorkflowStepTemplate(BaseModel):
    """Immutable catalog entry."""

    model_config = ConfigDict(frozen=True)

    step_number: int = Field(..., ge=1, le=TOTAL_STEPS)
    name: str
    description: str


class WorkflowStepInstance(BaseModel):
    """Per-request progress record for one catalog step."""

    step_number: int = Field(..., ge=1, le=TOTAL_STEPS)
    name: str
    description: str = ""
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    requires_review: bool = False
    corrected_data: Optional[dict[str, Any]] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STEP_STATUSES

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STEP_STATUSES
