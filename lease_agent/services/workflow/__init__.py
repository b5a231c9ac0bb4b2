"""Workflow step catalog, progression engine and audit recording."""

from lease_agent.services.workflow.audit_recorder import AuditRecorder
from lease_agent.services.workflow.catalog import (
    EXTRACTION_STEP_NUMBER,
    WORKFLOW_STEPS,
    get_step_template,
    workflow_steps,
)
from lease_agent.services.workflow.concurrency import RequestLockRegistry
from lease_agent.services.workflow.confidence_gate import CONFIDENCE_THRESHOLD
from lease_agent.services.workflow.progression_engine import (
    ExtractionOutcome,
    StepProgressionEngine,
    progress_percent,
)

__all__ = [
    "AuditRecorder",
    "CONFIDENCE_THRESHOLD",
    "EXTRACTION_STEP_NUMBER",
    "ExtractionOutcome",
    "RequestLockRegistry",
    "StepProgressionEngine",
    "WORKFLOW_STEPS",
    "get_step_template",
    "progress_percent",
    "workflow_steps",
]
