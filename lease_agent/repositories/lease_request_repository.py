"""SQL-backed lease request store."""

from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from lease_agent.core.exceptions import (
    ConcurrentTransitionError,
    LeaseRequestNotFound,
    PersistenceFailure,
)
from lease_agent.database.models import (
    AuditEntryRecord,
    LeaseDocumentRecord,
    LeaseRequestRecord,
    WorkflowStepRecord,
)
from lease_agent.models.lease_request import AuditEntry, LeaseDocument, LeaseRequest
from lease_agent.models.workflow import (
    DocumentType,
    WorkflowStatus,
    WorkflowStepInstance,
    parse_step_status,
    parse_workflow_status,
)
from lease_agent.repositories.base_repository import BaseRepository
from lease_agent.repositories.lease_request_store import LeaseRequestStore
from lease_agent.utils.logging import get_logger

LOGGER = get_logger(__name__)

_AGGREGATE_LOADS = (
    selectinload(LeaseRequestRecord.documents),
    selectinload(LeaseRequestRecord.workflow_steps),
    selectinload(LeaseRequestRecord.audit_entries),
)


# ----------------------------------------------------------------------
# ORM <-> aggregate mapping
# ----------------------------------------------------------------------

def document_to_domain(record: LeaseDocumentRecord) -> LeaseDocument:
    return LeaseDocument(
        id=record.id,
        name=record.name,
        type=DocumentType(record.document_type),
        url=record.url,
        uploaded_at=record.uploaded_at,
        size=record.size,
        mime_type=record.mime_type,
        extracted_data=record.extracted_data,
        confidence_score=record.confidence_score,
    )


def step_to_domain(record: WorkflowStepRecord) -> WorkflowStepInstance:
    return WorkflowStepInstance(
        step_number=record.step_number,
        name=record.name,
        description=record.description,
        status=parse_step_status(record.status),
        started_at=record.started_at,
        completed_at=record.completed_at,
        assigned_to=record.assigned_to,
        notes=record.notes,
        confidence_score=record.confidence_score,
        requires_review=record.requires_review,
        corrected_data=record.corrected_data,
    )


def audit_to_domain(record: AuditEntryRecord) -> AuditEntry:
    return AuditEntry(
        id=record.id,
        timestamp=record.timestamp,
        action=record.action,
        performed_by=record.performed_by,
        details=record.details,
        step_number=record.step_number,
        confidence_score=record.confidence_score,
        sla_breached=record.sla_breached,
    )


def record_to_domain(record: LeaseRequestRecord) -> LeaseRequest:
    """Build the aggregate from a header row with its children loaded."""
    return LeaseRequest(
        id=record.id,
        property_id=record.property_id,
        property_address=record.property_address,
        tenant_name=record.tenant_name,
        tenant_abn=record.tenant_abn,
        tenant_acn=record.tenant_acn,
        requestor_email=record.requestor_email,
        contact_phone=record.contact_phone,
        special_conditions=record.special_conditions,
        lease_term=record.lease_term,
        commencement_date=record.commencement_date,
        rent_amount=float(record.rent_amount),
        security_deposit=float(record.security_deposit),
        status=parse_workflow_status(record.status),
        documents=[document_to_domain(doc) for doc in sorted(record.documents, key=lambda d: d.position)],
        workflow_steps=[step_to_domain(step) for step in sorted(record.workflow_steps, key=lambda s: s.step_number)],
        audit_trail=[audit_to_domain(entry) for entry in sorted(record.audit_entries, key=lambda a: a.sequence)],
        created_at=record.created_at,
        updated_at=record.updated_at,
        version=record.version,
    )


def apply_header(record: LeaseRequestRecord, request: LeaseRequest) -> None:
    record.property_id = request.property_id
    record.property_address = request.property_address
    record.tenant_name = request.tenant_name
    record.tenant_abn = request.tenant_abn
    record.tenant_acn = request.tenant_acn
    record.requestor_email = request.requestor_email
    record.contact_phone = request.contact_phone
    record.special_conditions = request.special_conditions
    record.lease_term = request.lease_term
    record.commencement_date = request.commencement_date
    record.rent_amount = Decimal(str(request.rent_amount))
    record.security_deposit = Decimal(str(request.security_deposit))
    record.status = request.status.value
    record.created_at = request.created_at
    record.updated_at = request.updated_at


def apply_document(record: LeaseDocumentRecord, document: LeaseDocument, position: int) -> None:
    record.position = position
    record.name = document.name
    record.document_type = document.type.value
    record.url = document.url
    record.size = document.size
    record.mime_type = document.mime_type
    record.extracted_data = document.extracted_data
    record.confidence_score = document.confidence_score
    record.uploaded_at = document.uploaded_at


def apply_step(record: WorkflowStepRecord, step: WorkflowStepInstance) -> None:
    record.step_number = step.step_number
    record.name = step.name
    record.description = step.description
    record.status = step.status.value
    record.started_at = step.started_at
    record.completed_at = step.completed_at
    record.assigned_to = step.assigned_to
    record.notes = step.notes
    record.confidence_score = step.confidence_score
    record.requires_review = step.requires_review
    record.corrected_data = step.corrected_data


def audit_to_record(entry: AuditEntry, lease_request_id: str, sequence: int) -> AuditEntryRecord:
    return AuditEntryRecord(
        id=entry.id,
        sequence=sequence,
        lease_request_id=lease_request_id,
        timestamp=entry.timestamp,
        action=entry.action,
        performed_by=entry.performed_by,
        details=entry.details,
        step_number=entry.step_number,
        confidence_score=entry.confidence_score,
        sla_breached=entry.sla_breached,
    )


def sync_children(record: LeaseRequestRecord, request: LeaseRequest) -> List[AuditEntryRecord]:
    """Merge documents and steps into ``record`` and return the audit rows still to insert.

    Stored audit rows are left alone; only entries whose id is not yet stored are new.
    """
    documents: Dict[str, LeaseDocumentRecord] = {doc.id: doc for doc in record.documents}
    for position, document in enumerate(request.documents):
        doc_record = documents.get(document.id)
        if doc_record is None:
            doc_record = LeaseDocumentRecord(id=document.id, lease_request_id=record.id)
            record.documents.append(doc_record)
        apply_document(doc_record, document, position)

    steps: Dict[int, WorkflowStepRecord] = {step.step_number: step for step in record.workflow_steps}
    for step in request.workflow_steps:
        step_record = steps.get(step.step_number)
        if step_record is None:
            step_record = WorkflowStepRecord(lease_request_id=record.id)
            record.workflow_steps.append(step_record)
        apply_step(step_record, step)

    stored_ids = {entry.id for entry in record.audit_entries}
    next_sequence = len(record.audit_entries)
    new_rows = []
    for entry in request.audit_trail:
        if entry.id in stored_ids:
            continue
        new_rows.append(audit_to_record(entry, record.id, next_sequence))
        next_sequence += 1
    return new_rows


# ----------------------------------------------------------------------
# Repositories
# ----------------------------------------------------------------------

class LeaseRequestRepository(BaseRepository[LeaseRequestRecord]):
    """Repository for lease request header rows and their children."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, LeaseRequestRecord)

    async def get_aggregate(self, request_id: str, for_update: bool = False) -> Optional[LeaseRequestRecord]:
        """Load a request with documents, steps and audit rows.

        Args:
            request_id: Lease request id
            for_update: Lock the header row until the transaction ends
        """
        query = select(LeaseRequestRecord).where(LeaseRequestRecord.id == request_id).options(*_AGGREGATE_LOADS)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def search(
        self,
        status: Optional[WorkflowStatus] = None,
        search: Optional[str] = None,
    ) -> List[LeaseRequestRecord]:
        query = select(LeaseRequestRecord).options(*_AGGREGATE_LOADS)
        if status is not None:
            query = query.where(LeaseRequestRecord.status == status.value)
        if search and search.strip():
            # Plain substring match: % and _ in the term are literals
            term = search.strip().lower()
            query = query.where(
                or_(
                    func.lower(LeaseRequestRecord.tenant_name).contains(term, autoescape=True),
                    func.lower(LeaseRequestRecord.property_address).contains(term, autoescape=True),
                    func.lower(LeaseRequestRecord.id).contains(term, autoescape=True),
                )
            )
        query = query.order_by(LeaseRequestRecord.created_at.desc())
        result = await self.session.execute(query)
        return list(result.scalars().all())


class AuditEntryRepository(BaseRepository[AuditEntryRecord]):
    """Insert-only access to audit rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AuditEntryRecord)

    async def append(self, entry: AuditEntry, lease_request_id: str) -> AuditEntryRecord:
        sequence = await self.count(filters={"lease_request_id": lease_request_id})
        return await self.create(
            id=entry.id,
            sequence=sequence,
            lease_request_id=lease_request_id,
            timestamp=entry.timestamp,
            action=entry.action,
            performed_by=entry.performed_by,
            details=entry.details,
            step_number=entry.step_number,
            confidence_score=entry.confidence_score,
            sla_breached=entry.sla_breached,
        )


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------

class SqlLeaseRequestStore(LeaseRequestStore):
    """LeaseRequestStore over PostgreSQL. One transaction per store call."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self.logger = LOGGER

    async def create(self, request: LeaseRequest) -> LeaseRequest:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    record = LeaseRequestRecord(id=request.id, version=request.version)
                    apply_header(record, request)
                    session.add(record)
                    for position, document in enumerate(request.documents):
                        doc_record = LeaseDocumentRecord(id=document.id, lease_request_id=request.id)
                        apply_document(doc_record, document, position)
                        session.add(doc_record)
                    for step in request.workflow_steps:
                        step_record = WorkflowStepRecord(lease_request_id=request.id)
                        apply_step(step_record, step)
                        session.add(step_record)
                    for sequence, entry in enumerate(request.audit_trail):
                        session.add(audit_to_record(entry, request.id, sequence))
        except SQLAlchemyError as e:
            self._fail("create", request.id, e)
        return request.model_copy(deep=True)

    async def get(self, request_id: str) -> LeaseRequest:
        try:
            async with self.session_factory() as session:
                record = await LeaseRequestRepository(session).get_aggregate(request_id)
                if record is None:
                    raise LeaseRequestNotFound(request_id)
                return record_to_domain(record)
        except SQLAlchemyError as e:
            self._fail("get", request_id, e)

    async def save(self, request: LeaseRequest, expected_version: int) -> LeaseRequest:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    record = await LeaseRequestRepository(session).get_aggregate(request.id, for_update=True)
                    if record is None:
                        raise LeaseRequestNotFound(request.id)
                    if record.version != expected_version:
                        raise ConcurrentTransitionError(
                            f"Lease request {request.id} changed (version {record.version}, "
                            f"expected {expected_version})",
                            request_id=request.id,
                        )
                    apply_header(record, request)
                    for row in sync_children(record, request):
                        session.add(row)
                    record.version = expected_version + 1
        except SQLAlchemyError as e:
            self._fail("save", request.id, e)
        return request.model_copy(deep=True, update={"version": expected_version + 1})

    async def append_audit(self, request_id: str, entry: AuditEntry) -> AuditEntry:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    repository = LeaseRequestRepository(session)
                    record = await repository.get_aggregate(request_id, for_update=True)
                    if record is None:
                        raise LeaseRequestNotFound(request_id)
                    await AuditEntryRepository(session).append(entry, request_id)
                    record.version += 1
        except SQLAlchemyError as e:
            self._fail("append_audit", request_id, e)
        return entry

    async def list(
        self,
        status: Optional[WorkflowStatus] = None,
        search: Optional[str] = None,
    ) -> List[LeaseRequest]:
        try:
            async with self.session_factory() as session:
                records = await LeaseRequestRepository(session).search(status=status, search=search)
                return [record_to_domain(record) for record in records]
        except SQLAlchemyError as e:
            self._fail("list", None, e)

    def _fail(self, operation: str, request_id: Optional[str], error: SQLAlchemyError):
        self.logger.error(
            f"Lease request store {operation} failed: {str(error)}",
            exc_info=True,
            extra={"request_id": request_id, "operation": operation},
        )
        raise PersistenceFailure(f"Lease request store {operation} failed", original_error=error) from error
