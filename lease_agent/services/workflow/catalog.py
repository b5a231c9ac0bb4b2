"""Fixed 12-step lease processing template."""

from typing import Tuple

from lease_agent.models.workflow import (
    TOTAL_STEPS,
    StepStatus,
    WorkflowStepInstance,
    WorkflowStepTemplate,
    check_step_number,
)

WORKFLOW_STEPS: Tuple[WorkflowStepTemplate, ...] = (
    WorkflowStepTemplate(
        step_number=1,
        name="Request Initiation",
        description="Initial lease request submitted with metadata and documents",
    ),
    WorkflowStepTemplate(
        step_number=2,
        name="Document Extraction",
        description="AI extraction of key data fields from uploaded documents",
    ),
    WorkflowStepTemplate(
        step_number=3,
        name="Validation & Exceptions",
        description="Human review of low-confidence extracted data",
    ),
    WorkflowStepTemplate(
        step_number=4,
        name="Usage Type & Unit Check",
        description="Verification of space details and usage type in SAP RE-FX",
    ),
    WorkflowStepTemplate(
        step_number=5,
        name="Business Partner Check",
        description="Identification or creation of tenant Business Partner in SAP",
    ),
    WorkflowStepTemplate(
        step_number=6,
        name="ASIC Validation",
        description="Compliance check against ASIC records for tenant entity",
    ),
    WorkflowStepTemplate(
        step_number=7,
        name="Shell Lease Creation",
        description="Creation of initial lease contract in SAP using validated inputs",
    ),
    WorkflowStepTemplate(
        step_number=8,
        name="Deposit Invoice",
        description="Generation and issuance of lease deposit invoice",
    ),
    WorkflowStepTemplate(
        step_number=9,
        name="Lease Abstract Verification",
        description="Comparison of SAP lease abstracts before and after data entry",
    ),
    WorkflowStepTemplate(
        step_number=10,
        name="Clause Finalisation",
        description="Completion of specific lease clause entries",
    ),
    WorkflowStepTemplate(
        step_number=11,
        name="Lease Activation",
        description="Setting the lease to active status in SAP",
    ),
    WorkflowStepTemplate(
        step_number=12,
        name="Audit & Notification",
        description="Final logging, SLA tracking, and requestor notification",
    ),
)

assert len(WORKFLOW_STEPS) == TOTAL_STEPS

# Step that extraction agent results belong to by default.
EXTRACTION_STEP_NUMBER = 2


def workflow_steps() -> Tuple[WorkflowStepTemplate, ...]:
    """Return the ordered step templates."""
    return WORKFLOW_STEPS


def get_step_template(step_number: int) -> WorkflowStepTemplate:
    """Look up a template by step number.

    Raises:
        InvalidStepNumber: If step_number is outside 1..12
    """
    return WORKFLOW_STEPS[check_step_number(step_number) - 1]


def materialize_steps() -> list[WorkflowStepInstance]:
    """Fresh pending instances for every catalog entry, in step order."""
    return [
        WorkflowStepInstance(
            step_number=template.step_number,
            name=template.name,
            description=template.description,
            status=StepStatus.PENDING,
        )
        for template in WORKFLOW_STEPS
    ]
