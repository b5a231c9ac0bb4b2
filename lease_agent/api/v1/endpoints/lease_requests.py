"""Lease request routes."""

from typing import Annotated, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query, status

from lease_agent.core.exceptions import (
    APIClientError,
    AppError,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
    WorkflowTransitionError,
)
from lease_agent.dependencies import get_lease_request_service
from lease_agent.models.lease_request import AuditEntry, LeaseRequestCreate
from lease_agent.models.workflow import TOTAL_STEPS, WorkflowStepInstance
from lease_agent.schemas.lease_requests import (
    AdvanceStepRequest,
    AuditAnnotationRequest,
    ErrorResponse,
    ExtractionDispatchResponse,
    ExtractionOutcomeResponse,
    ExtractionResultRequest,
    LeaseRequestResponse,
    LeaseRequestSummary,
    RequestStatsResponse,
    ReviewResolutionRequest,
)
from lease_agent.services.extraction_agent import AgentDocument
from lease_agent.services.lease_request_service import LeaseRequestService
from lease_agent.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()

LeaseRequestServiceDep = Annotated[LeaseRequestService, Depends(get_lease_request_service)]
StepNumber = Annotated[int, Path(ge=1, le=TOTAL_STEPS, description="Workflow step number")]

ERROR_RESPONSES = {
    404: {"description": "Lease request not found", "model": ErrorResponse},
    409: {"description": "Transition rejected", "model": ErrorResponse},
    422: {"description": "Invalid input", "model": ErrorResponse},
    503: {"description": "Store unavailable", "model": ErrorResponse},
}


def to_http_error(error: AppError) -> HTTPException:
    """Map an application error onto an HTTP status and the standard error body."""
    if isinstance(error, ValidationError):
        code, message = status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid request parameters"
    elif isinstance(error, NotFoundError):
        code, message = status.HTTP_404_NOT_FOUND, "Resource not found"
    elif isinstance(error, WorkflowTransitionError):
        code, message = status.HTTP_409_CONFLICT, "Workflow transition rejected"
    elif isinstance(error, PersistenceFailure):
        code, message = status.HTTP_503_SERVICE_UNAVAILABLE, "Lease request store unavailable"
    elif isinstance(error, APIClientError):
        code, message = status.HTTP_502_BAD_GATEWAY, "Extraction agent unavailable"
    else:
        code, message = status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred"

    log = LOGGER.error if code >= 500 else LOGGER.warning
    log(
        message,
        exc_info=code >= 500,
        extra={"error": type(error).__name__, "detail": error.message},
    )
    return HTTPException(
        status_code=code,
        detail={
            "error": type(error).__name__,
            "message": message,
            "detail": error.message,
        },
    )


async def dispatch_extraction_task(
    service: LeaseRequestService,
    request_id: str,
    documents: List[AgentDocument],
) -> None:
    """Background dispatch after submission. A failed dispatch leaves step 2 processing."""
    try:
        await service.execute_dispatch_extraction(request_id, documents)
    except AppError as e:
        LOGGER.error(
            "Background extraction dispatch failed; request stays at its current step",
            exc_info=True,
            extra={"request_id": request_id, "error": e.message},
        )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=LeaseRequestResponse,
    responses={422: ERROR_RESPONSES[422], 503: ERROR_RESPONSES[503]},
    summary="Submit a lease request",
    description=(
        "Validates and stores a new lease request, materializes its 12 workflow steps "
        "and sends the attached documents to the extraction agent in the background."
    ),
    operation_id="create_lease_request",
)
async def create_lease_request(
    payload: LeaseRequestCreate,
    background_tasks: BackgroundTasks,
    service: LeaseRequestServiceDep,
) -> LeaseRequestResponse:
    try:
        submission = await service.execute_create(payload)
    except AppError as e:
        raise to_http_error(e)

    background_tasks.add_task(
        dispatch_extraction_task,
        service,
        submission.request.id,
        submission.agent_documents,
    )
    return LeaseRequestResponse.from_domain(submission.request)


@router.get(
    "",
    response_model=List[LeaseRequestSummary],
    responses={422: ERROR_RESPONSES[422], 503: ERROR_RESPONSES[503]},
    summary="List lease requests",
    operation_id="list_lease_requests",
)
async def list_lease_requests(
    service: LeaseRequestServiceDep,
    search: Annotated[Optional[str], Query(description="Matches tenant name, property address or id")] = None,
    status_filter: Annotated[Optional[str], Query(alias="status", description="Exact workflow status")] = None,
) -> List[LeaseRequestSummary]:
    try:
        requests = await service.execute_list(status=status_filter, search=search)
    except AppError as e:
        raise to_http_error(e)
    return [LeaseRequestSummary.from_domain(request) for request in requests]


@router.get(
    "/stats",
    response_model=RequestStatsResponse,
    responses={503: ERROR_RESPONSES[503]},
    summary="Aggregate request counts",
    operation_id="get_lease_request_stats",
)
async def get_lease_request_stats(service: LeaseRequestServiceDep) -> RequestStatsResponse:
    try:
        stats = await service.execute_stats()
    except AppError as e:
        raise to_http_error(e)
    return RequestStatsResponse(**stats)


@router.get(
    "/{request_id}",
    response_model=LeaseRequestResponse,
    responses={404: ERROR_RESPONSES[404], 503: ERROR_RESPONSES[503]},
    summary="Get a lease request",
    operation_id="get_lease_request",
)
async def get_lease_request(request_id: str, service: LeaseRequestServiceDep) -> LeaseRequestResponse:
    try:
        request = await service.execute_get(request_id)
    except AppError as e:
        raise to_http_error(e)
    return LeaseRequestResponse.from_domain(request)


@router.get(
    "/{request_id}/workflow-steps",
    response_model=List[WorkflowStepInstance],
    responses={404: ERROR_RESPONSES[404], 503: ERROR_RESPONSES[503]},
    summary="Get the workflow steps of a lease request",
    operation_id="get_lease_request_workflow_steps",
)
async def get_workflow_steps(request_id: str, service: LeaseRequestServiceDep) -> List[WorkflowStepInstance]:
    try:
        request = await service.execute_get(request_id)
    except AppError as e:
        raise to_http_error(e)
    return request.workflow_steps


@router.get(
    "/{request_id}/audit-trail",
    response_model=List[AuditEntry],
    responses={404: ERROR_RESPONSES[404], 503: ERROR_RESPONSES[503]},
    summary="Get the audit trail of a lease request",
    operation_id="get_lease_request_audit_trail",
)
async def get_audit_trail(request_id: str, service: LeaseRequestServiceDep) -> List[AuditEntry]:
    try:
        request = await service.execute_get(request_id)
    except AppError as e:
        raise to_http_error(e)
    return request.audit_trail


@router.post(
    "/{request_id}/workflow-steps/{step_number}/advance",
    response_model=LeaseRequestResponse,
    responses=ERROR_RESPONSES,
    summary="Complete or fail the active step",
    operation_id="advance_lease_request_step",
)
async def advance_step(
    request_id: str,
    step_number: StepNumber,
    body: AdvanceStepRequest,
    service: LeaseRequestServiceDep,
) -> LeaseRequestResponse:
    try:
        request = await service.engine.advance(
            request_id,
            step_number,
            body.outcome,
            notes=body.notes,
            performed_by=body.performed_by,
        )
    except AppError as e:
        raise to_http_error(e)
    return LeaseRequestResponse.from_domain(request)


@router.post(
    "/{request_id}/workflow-steps/{step_number}/review",
    response_model=LeaseRequestResponse,
    responses=ERROR_RESPONSES,
    summary="Resolve a pending review",
    description="Send approved_data to accept the step back into processing, or null to reject it.",
    operation_id="resolve_lease_request_review",
)
async def resolve_review(
    request_id: str,
    step_number: StepNumber,
    body: ReviewResolutionRequest,
    service: LeaseRequestServiceDep,
) -> LeaseRequestResponse:
    try:
        request = await service.engine.resolve_review(
            request_id,
            step_number,
            body.resolver,
            approved_data=body.approved_data,
        )
    except AppError as e:
        raise to_http_error(e)
    return LeaseRequestResponse.from_domain(request)


@router.post(
    "/{request_id}/extraction-results",
    response_model=ExtractionOutcomeResponse,
    responses=ERROR_RESPONSES,
    summary="Report a document extraction result",
    description="Called by the extraction agent once per document. Late results are acknowledged but not applied.",
    operation_id="record_lease_request_extraction_result",
)
async def record_extraction_result(
    request_id: str,
    body: ExtractionResultRequest,
    service: LeaseRequestServiceDep,
) -> ExtractionOutcomeResponse:
    try:
        outcome = await service.engine.record_extraction_result(
            request_id,
            body.document_id,
            body.confidence_score,
            body.extracted_data,
            step_number=body.step_number,
        )
    except AppError as e:
        raise to_http_error(e)
    return ExtractionOutcomeResponse.from_outcome(outcome)


@router.post(
    "/{request_id}/extraction",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ExtractionDispatchResponse,
    responses={
        404: ERROR_RESPONSES[404],
        502: {"description": "Extraction agent unavailable", "model": ErrorResponse},
        503: ERROR_RESPONSES[503],
    },
    summary="Send the request's documents to the extraction agent again",
    operation_id="dispatch_lease_request_extraction",
)
async def dispatch_extraction(request_id: str, service: LeaseRequestServiceDep) -> ExtractionDispatchResponse:
    try:
        status_code = await service.execute_dispatch_extraction(request_id)
    except AppError as e:
        raise to_http_error(e)
    return ExtractionDispatchResponse(
        request_id=request_id,
        dispatched=status_code is not None,
        agent_status_code=status_code,
    )


@router.post(
    "/{request_id}/audit-entries",
    status_code=status.HTTP_201_CREATED,
    response_model=AuditEntry,
    responses=ERROR_RESPONSES,
    summary="Append an external audit annotation",
    operation_id="annotate_lease_request",
)
async def annotate(
    request_id: str,
    body: AuditAnnotationRequest,
    service: LeaseRequestServiceDep,
) -> AuditEntry:
    try:
        return await service.annotate(
            request_id,
            body.action,
            performed_by=body.performed_by,
            details=body.details,
            step_number=body.step_number,
            confidence_score=body.confidence_score,
            sla_breached=body.sla_breached,
        )
    except AppError as e:
        raise to_http_error(e)
