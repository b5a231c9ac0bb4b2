"""Exception hierarchy for the lease workflow service."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class InvalidStepNumber(ValidationError):
    """Raised when a step number falls outside the workflow catalog."""

    def __init__(self, step_number: int):
        super().__init__(f"Step number {step_number} is outside the workflow range 1-12")
        self.step_number = step_number


class UnknownStatusError(ValidationError):
    """Raised when a status string is not part of the closed vocabulary."""
    pass


class NotFoundError(AppError):
    """Raised when a referenced record does not exist."""
    pass


class LeaseRequestNotFound(NotFoundError):
    """Raised when a lease request id is unknown to the store."""

    def __init__(self, request_id: str):
        super().__init__(f"Lease request {request_id} not found")
        self.request_id = request_id


class DocumentNotFound(NotFoundError):
    """Raised when a document id does not belong to the lease request."""

    def __init__(self, request_id: str, document_id: str):
        super().__init__(f"Document {document_id} not found on lease request {request_id}")
        self.request_id = request_id
        self.document_id = document_id


class WorkflowTransitionError(AppError):
    """Base class for rejected workflow transitions. State is left unchanged."""

    def __init__(self, message: str, request_id: Optional[str] = None, step_number: Optional[int] = None):
        super().__init__(message)
        self.request_id = request_id
        self.step_number = step_number


class OutOfOrderTransition(WorkflowTransitionError):
    """Raised when a transition names a step that is not the active one."""
    pass


class ReviewPending(OutOfOrderTransition):
    """Raised when advancing a step that is waiting for a human review."""
    pass


class AlreadyTerminal(WorkflowTransitionError):
    """Raised when mutating a request that is already completed or failed."""
    pass


class AlreadyInitialized(WorkflowTransitionError):
    """Raised when workflow steps are materialized twice for one request."""
    pass


class ConcurrentTransitionError(WorkflowTransitionError):
    """Raised when another transition for the same request is in flight or won the race."""
    pass


class StaleSignal(AppError):
    """Late extraction result referencing a superseded step.

    Never raised by the transition APIs; returned in the extraction outcome for diagnostics.
    """

    def __init__(
        self,
        request_id: str,
        document_id: str,
        step_number: Optional[int],
        active_step_number: Optional[int],
    ):
        super().__init__(
            f"Extraction result for document {document_id} targets step {step_number} "
            f"but request {request_id} is at step {active_step_number}"
        )
        self.request_id = request_id
        self.document_id = document_id
        self.step_number = step_number
        self.active_step_number = active_step_number


class PersistenceFailure(AppError):
    """Raised when a store operation fails. Nothing is assumed committed."""
    pass


class PersistenceTimeout(PersistenceFailure):
    """Raised when a store operation exceeds its time bound."""
    pass


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class AgentUnavailable(APIClientError):
    """Raised when the document extraction agent cannot be reached."""
    pass


class AgentTimeout(AgentUnavailable):
    """Raised when the document extraction agent does not answer in time."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass
