"""Domain models for lease requests and their workflow."""

from lease_agent.models.lease_request import (
    SYSTEM_ACTOR,
    AuditEntry,
    ExtractionResult,
    LeaseDocument,
    LeaseDocumentCreate,
    LeaseRequest,
    LeaseRequestCreate,
)
from lease_agent.models.workflow import (
    TOTAL_STEPS,
    DocumentType,
    StepOutcome,
    StepStatus,
    WorkflowStatus,
    WorkflowStepInstance,
    WorkflowStepTemplate,
    status_for_step,
    status_label,
)

__all__ = [
    "SYSTEM_ACTOR",
    "TOTAL_STEPS",
    "AuditEntry",
    "DocumentType",
    "ExtractionResult",
    "LeaseDocument",
    "LeaseDocumentCreate",
    "LeaseRequest",
    "LeaseRequestCreate",
    "StepOutcome",
    "StepStatus",
    "WorkflowStatus",
    "WorkflowStepInstance",
    "WorkflowStepTemplate",
    "status_for_step",
    "status_label",
]
