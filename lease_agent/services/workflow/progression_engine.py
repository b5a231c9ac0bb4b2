"""Step progression engine.

Owns every mutation of a lease request's workflow steps and status. Each operation:

1. takes the per-request writer slot (fails fast on contention),
2. loads the aggregate and works on a deep copy,
3. checks preconditions before touching anything,
4. applies the transition and stamps exactly one audit entry,
5. commits the copy with an optimistic version check.

A rejected or timed-out operation therefore leaves the stored request untouched.
New requests go through ``submit``, which builds the initialized aggregate and stores it
with a single ``create``.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

from lease_agent.config import settings
from lease_agent.core.exceptions import (
    AlreadyInitialized,
    AlreadyTerminal,
    AppError,
    DocumentNotFound,
    OutOfOrderTransition,
    PersistenceFailure,
    PersistenceTimeout,
    ReviewPending,
    StaleSignal,
    ValidationError,
)
from lease_agent.models.lease_request import SYSTEM_ACTOR, AuditEntry, LeaseRequest, utcnow
from lease_agent.models.workflow import (
    TOTAL_STEPS,
    StepOutcome,
    StepStatus,
    WorkflowStatus,
    WorkflowStepInstance,
    check_step_number,
    status_for_step,
)
from lease_agent.repositories.lease_request_store import LeaseRequestStore
from lease_agent.services.workflow.audit_recorder import AuditRecorder
from lease_agent.services.workflow.catalog import EXTRACTION_STEP_NUMBER, materialize_steps
from lease_agent.services.workflow.concurrency import RequestLockRegistry
from lease_agent.services.workflow.confidence_gate import evaluate
from lease_agent.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


def progress_percent(request: LeaseRequest) -> float:
    """Completed steps over the fixed step count, as a percentage. Failed steps never count."""
    return request.completed_step_count() / TOTAL_STEPS * 100


@dataclass
class ExtractionOutcome:
    """What happened to one extraction result."""

    request: LeaseRequest
    applied: bool
    review_triggered: bool = False
    auto_advanced: bool = False
    stale_signal: Optional[StaleSignal] = None


class StepProgressionEngine:
    """Sole writer of workflow steps and request status."""

    def __init__(
        self,
        store: LeaseRequestStore,
        audit_recorder: Optional[AuditRecorder] = None,
        locks: Optional[RequestLockRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
        operation_timeout: Optional[float] = None,
        auto_advance_on_confidence: Optional[bool] = None,
    ):
        self.store = store
        self.clock = clock or utcnow
        self.audit = audit_recorder or AuditRecorder(store, clock=self.clock)
        self.locks = locks or RequestLockRegistry()
        self.operation_timeout = (
            operation_timeout
            if operation_timeout is not None
            else settings.workflow.operation_timeout_seconds
        )
        self.auto_advance_on_confidence = (
            auto_advance_on_confidence
            if auto_advance_on_confidence is not None
            else settings.workflow.auto_advance_on_confidence
        )
        self.logger = LOGGER

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    async def guarded(self, operation: Awaitable[T], what: str, timeout: Optional[float] = None) -> T:
        """Await a store operation under the operation timeout, mapping failures to PersistenceFailure."""
        limit = timeout if timeout is not None else self.operation_timeout
        try:
            return await asyncio.wait_for(operation, timeout=limit)
        except asyncio.TimeoutError as e:
            self.logger.error(
                f"Store operation timed out: {what}",
                extra={"operation": what, "timeout_seconds": limit},
            )
            raise PersistenceTimeout(
                f"Store operation '{what}' exceeded {limit}s", original_error=e
            ) from e
        except AppError:
            raise
        except Exception as e:
            self.logger.error(
                f"Store operation failed: {what}: {str(e)}",
                exc_info=True,
                extra={"operation": what},
            )
            raise PersistenceFailure(f"Store operation '{what}' failed: {str(e)}", original_error=e) from e

    async def _load(self, request_id: str, timeout: Optional[float]) -> LeaseRequest:
        return await self.guarded(self.store.get(request_id), "get", timeout)

    async def _commit(self, working: LeaseRequest, expected_version: int, timeout: Optional[float]) -> LeaseRequest:
        working.updated_at = self.clock()
        return await self.guarded(self.store.save(working, expected_version), "save", timeout)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def initialize(
        self,
        request_id: str,
        performed_by: str = SYSTEM_ACTOR,
        timeout: Optional[float] = None,
    ) -> list[WorkflowStepInstance]:
        """Materialize the 12 steps with step 1 processing.

        Raises:
            AlreadyInitialized: If the request already has workflow steps
        """
        async with self.locks.hold(request_id):
            request = await self._load(request_id, timeout)
            working = request.model_copy(deep=True)
            self._apply_initialize(working, performed_by)
            saved = await self._commit(working, request.version, timeout)

        self.logger.info(
            "Workflow initialized",
            extra={"request_id": request_id, "step_number": 1},
        )
        return saved.workflow_steps

    async def submit(
        self,
        request: LeaseRequest,
        performed_by: str = SYSTEM_ACTOR,
        complete_initiation: bool = False,
        notes: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> LeaseRequest:
        """Store a new request with its workflow already initialized.

        The steps, the initiation audit entry and, with ``complete_initiation``, the
        completion of step 1 are persisted in the single ``create`` call, so a failed
        submission stores nothing.

        Raises:
            AlreadyInitialized: If the request already has workflow steps
            PersistenceFailure: If the store rejects the request
        """
        working = request.model_copy(deep=True)
        self._apply_initialize(working, performed_by)
        if complete_initiation:
            self._apply_advance(working, 1, StepOutcome.SUCCESS, notes, performed_by)
        working.updated_at = self.clock()

        stored = await self.guarded(self.store.create(working), "create", timeout)
        self.logger.info(
            "Lease request submitted",
            extra={
                "request_id": stored.id,
                "status": stored.status.value,
                "documents": len(stored.documents),
            },
        )
        return stored

    async def advance(
        self,
        request_id: str,
        step_number: int,
        outcome: StepOutcome | str,
        notes: Optional[str] = None,
        performed_by: str = SYSTEM_ACTOR,
        timeout: Optional[float] = None,
    ) -> LeaseRequest:
        """Complete or fail the active step.

        Raises:
            InvalidStepNumber: If step_number is outside 1..12
            AlreadyTerminal: If the request is completed or failed
            OutOfOrderTransition: If step_number is not the active step
            ReviewPending: If the active step is waiting for review
        """
        check_step_number(step_number)
        outcome = self._parse_outcome(outcome)

        async with self.locks.hold(request_id):
            request = await self._load(request_id, timeout)
            working = request.model_copy(deep=True)
            self._apply_advance(working, step_number, outcome, notes, performed_by)
            saved = await self._commit(working, request.version, timeout)

        self.logger.info(
            f"Step {step_number} {outcome.value}",
            extra={
                "request_id": request_id,
                "step_number": step_number,
                "outcome": outcome.value,
                "status": saved.status.value,
            },
        )
        return saved

    async def record_extraction_result(
        self,
        request_id: str,
        document_id: str,
        confidence_score: float,
        extracted_data: Optional[dict[str, Any]] = None,
        step_number: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> ExtractionOutcome:
        """Store a document's extraction result and run the confidence gate on the active step.

        Results belong to the extraction step unless ``step_number`` names another one.
        A result for a step that is not the active one is a late signal: it is logged
        and returned as ``stale_signal`` without changing anything. Only the extraction
        step is ever completed on confidence alone.

        Raises:
            ValidationError: If the confidence score is outside [0, 1]
            DocumentNotFound: If the document does not belong to the request
            OutOfOrderTransition: If the request has no workflow steps and the result names no step
            AlreadyTerminal: If the request is finished and the result names no step
        """
        if not 0.0 <= confidence_score <= 1.0:
            raise ValidationError(f"Confidence score {confidence_score} is outside [0, 1]")
        if step_number is not None:
            check_step_number(step_number)
        target_number = step_number if step_number is not None else EXTRACTION_STEP_NUMBER

        async with self.locks.hold(request_id):
            request = await self._load(request_id, timeout)
            if request.document(document_id) is None:
                raise DocumentNotFound(request_id, document_id)

            if step_number is None:
                if not request.is_initialized:
                    raise OutOfOrderTransition(
                        f"Lease request {request_id} has no workflow steps",
                        request_id=request_id,
                    )
                if request.is_terminal:
                    raise AlreadyTerminal(
                        f"Lease request {request_id} is {request.status.value}",
                        request_id=request_id,
                    )

            active = request.active_step()
            active_number = active.step_number if active else None
            if target_number != active_number:
                signal = StaleSignal(request_id, document_id, target_number, active_number)
                self.logger.warning(
                    f"Discarded late extraction result: {signal.message}",
                    extra={
                        "request_id": request_id,
                        "document_id": document_id,
                        "step_number": target_number,
                        "active_step_number": active_number,
                    },
                )
                return ExtractionOutcome(request=request, applied=False, stale_signal=signal)

            working = request.model_copy(deep=True)
            document = working.document(document_id)
            document.confidence_score = confidence_score
            document.extracted_data = dict(extracted_data or {})

            step = working.step(active.step_number)
            decision = evaluate(confidence_score, working.documents)
            review_triggered = False
            auto_advanced = False

            if decision.review_required:
                step.status = StepStatus.REVIEW_REQUIRED
                step.requires_review = True
                step.confidence_score = confidence_score
                working.status = WorkflowStatus.PENDING_REVIEW
                self.audit.stamp(
                    working,
                    "Review required",
                    details=f"{decision.reason} for document {document.name}",
                    step_number=step.step_number,
                    confidence_score=confidence_score,
                )
                review_triggered = True
            elif decision.all_passed and step.status == StepStatus.PROCESSING:
                step.confidence_score = decision.lowest_score
                if self.auto_advance_on_confidence and step.step_number == EXTRACTION_STEP_NUMBER:
                    self._apply_advance(
                        working,
                        step.step_number,
                        StepOutcome.SUCCESS,
                        "All documents passed the confidence threshold",
                        SYSTEM_ACTOR,
                    )
                    auto_advanced = True

            saved = await self._commit(working, request.version, timeout)

        if review_triggered:
            self.logger.warning(
                "Low extraction confidence, step sent to review",
                extra={
                    "request_id": request_id,
                    "document_id": document_id,
                    "step_number": active.step_number,
                    "confidence_score": confidence_score,
                },
            )
        else:
            self.logger.info(
                "Extraction result recorded",
                extra={
                    "request_id": request_id,
                    "document_id": document_id,
                    "step_number": active.step_number,
                    "confidence_score": confidence_score,
                    "auto_advanced": auto_advanced,
                },
            )
        return ExtractionOutcome(
            request=saved,
            applied=True,
            review_triggered=review_triggered,
            auto_advanced=auto_advanced,
        )

    async def resolve_review(
        self,
        request_id: str,
        step_number: int,
        resolver: str,
        approved_data: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> LeaseRequest:
        """Close a review episode.

        Any ``approved_data`` (an empty dict included) accepts the step back into
        processing; ``None`` rejects it and fails the request.

        Raises:
            AlreadyTerminal: If the request is completed or failed
            OutOfOrderTransition: If the step is not waiting for review
        """
        check_step_number(step_number)
        if not resolver or not resolver.strip():
            raise ValidationError("Review resolver identity is required")

        async with self.locks.hold(request_id):
            request = await self._load(request_id, timeout)
            if request.is_terminal:
                raise AlreadyTerminal(
                    f"Lease request {request_id} is {request.status.value}",
                    request_id=request_id,
                    step_number=step_number,
                )
            if not request.is_initialized:
                raise OutOfOrderTransition(
                    f"Lease request {request_id} has no workflow steps",
                    request_id=request_id,
                    step_number=step_number,
                )
            if request.step(step_number).status != StepStatus.REVIEW_REQUIRED:
                raise OutOfOrderTransition(
                    f"Step {step_number} of lease request {request_id} is not awaiting review",
                    request_id=request_id,
                    step_number=step_number,
                )

            working = request.model_copy(deep=True)
            step = working.step(step_number)
            step.assigned_to = resolver
            step.requires_review = False

            if approved_data is not None:
                step.status = StepStatus.PROCESSING
                step.corrected_data = dict(approved_data)
                working.status = status_for_step(step_number)
                self.audit.stamp(
                    working,
                    "Review approved",
                    performed_by=resolver,
                    details=f"Extracted data for {step.name} accepted by reviewer",
                    step_number=step_number,
                    confidence_score=step.confidence_score,
                )
            else:
                step.status = StepStatus.FAILED
                step.completed_at = self.clock()
                working.status = WorkflowStatus.FAILED
                self.audit.stamp(
                    working,
                    "Review rejected",
                    performed_by=resolver,
                    details=f"Extracted data for {step.name} rejected by reviewer",
                    step_number=step_number,
                    confidence_score=step.confidence_score,
                )

            saved = await self._commit(working, request.version, timeout)

        self.logger.info(
            "Review resolved",
            extra={
                "request_id": request_id,
                "step_number": step_number,
                "resolver": resolver,
                "approved": approved_data is not None,
            },
        )
        return saved

    async def annotate(
        self,
        request_id: str,
        action: str,
        performed_by: str = SYSTEM_ACTOR,
        details: str = "",
        step_number: Optional[int] = None,
        confidence_score: Optional[float] = None,
        sla_breached: Optional[bool] = None,
        timeout: Optional[float] = None,
    ) -> AuditEntry:
        """Append an externally supplied audit annotation (an SLA breach, for example)."""
        if step_number is not None:
            check_step_number(step_number)
        async with self.locks.hold(request_id):
            return await self.guarded(
                self.audit.record(
                    request_id,
                    action,
                    performed_by=performed_by,
                    details=details,
                    step_number=step_number,
                    confidence_score=confidence_score,
                    sla_breached=sla_breached,
                ),
                "append_audit",
                timeout,
            )

    def progress_percent(self, request: LeaseRequest) -> float:
        return progress_percent(request)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_outcome(outcome: StepOutcome | str) -> StepOutcome:
        try:
            return StepOutcome(outcome)
        except ValueError as e:
            raise ValidationError(f"Unknown step outcome: {outcome!r}", original_error=e) from e

    def _apply_initialize(self, request: LeaseRequest, performed_by: str) -> None:
        if request.is_initialized:
            raise AlreadyInitialized(
                f"Workflow for lease request {request.id} is already initialized",
                request_id=request.id,
            )
        request.workflow_steps = materialize_steps()
        first = request.step(1)
        first.status = StepStatus.PROCESSING
        first.started_at = self.clock()
        request.status = status_for_step(1)
        self.audit.stamp(
            request,
            "Workflow initialized",
            performed_by=performed_by,
            details=f"Lease request submitted for {request.tenant_name}; step 1 {first.name} started",
            step_number=1,
        )

    def _apply_advance(
        self,
        request: LeaseRequest,
        step_number: int,
        outcome: StepOutcome,
        notes: Optional[str],
        performed_by: str,
    ) -> None:
        """Mutate ``request`` in place. Preconditions are checked before any change."""
        if request.is_terminal:
            raise AlreadyTerminal(
                f"Lease request {request.id} is {request.status.value}",
                request_id=request.id,
                step_number=step_number,
            )
        active = request.active_step()
        if active is None or active.step_number != step_number:
            current = active.step_number if active else None
            raise OutOfOrderTransition(
                f"Step {step_number} is not the active step of lease request {request.id} "
                f"(active step: {current})",
                request_id=request.id,
                step_number=step_number,
            )
        if active.status == StepStatus.REVIEW_REQUIRED:
            raise ReviewPending(
                f"Step {step_number} of lease request {request.id} is awaiting review",
                request_id=request.id,
                step_number=step_number,
            )

        now = self.clock()
        if notes is not None:
            active.notes = notes
        active.completed_at = now
        active.requires_review = False

        if outcome == StepOutcome.FAILURE:
            active.status = StepStatus.FAILED
            request.status = WorkflowStatus.FAILED
            self.audit.stamp(
                request,
                "Step failed",
                performed_by=performed_by,
                details=notes or f"{active.name} failed; lease request stopped",
                step_number=step_number,
                confidence_score=active.confidence_score,
            )
            return

        active.status = StepStatus.COMPLETED
        if step_number == TOTAL_STEPS:
            request.status = WorkflowStatus.COMPLETED
            details = f"{active.name} completed; lease request completed"
        else:
            following = request.step(step_number + 1)
            following.status = StepStatus.PROCESSING
            following.started_at = now
            request.status = status_for_step(step_number + 1)
            details = f"{active.name} completed; {following.name} started"
        self.audit.stamp(
            request,
            "Step completed",
            performed_by=performed_by,
            details=notes or details,
            step_number=step_number,
            confidence_score=active.confidence_score,
        )
