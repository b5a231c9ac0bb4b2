"""Tests for the ORM <-> aggregate mapping used by the SQL store."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import OperationalError

from lease_agent.core.exceptions import PersistenceFailure
from lease_agent.database.models import LeaseRequestRecord
from lease_agent.models.lease_request import AuditEntry, LeaseRequest
from lease_agent.models.workflow import StepStatus, WorkflowStatus
from lease_agent.repositories.lease_request_repository import (
    AuditEntryRepository,
    LeaseRequestRepository,
    SqlLeaseRequestStore,
    apply_header,
    record_to_domain,
    sync_children,
)
from lease_agent.services.workflow.catalog import materialize_steps

NOW = datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)


def _aggregate() -> LeaseRequest:
    steps = materialize_steps()
    steps[0].status = StepStatus.PROCESSING
    steps[0].started_at = NOW
    return LeaseRequest(
        property_id="PROP-3",
        property_address="8 Queen Street, Brisbane",
        tenant_name="Queen Street Florist",
        tenant_abn="51 824 753 556",
        lease_term=60,
        commencement_date=date(2027, 2, 1),
        rent_amount=6100.5,
        security_deposit=18301.5,
        documents=[{"name": "lease.pdf", "type": "lease_agreement", "uploaded_at": NOW}],
        workflow_steps=steps,
        audit_trail=[AuditEntry(action="Workflow initialized", timestamp=NOW, step_number=1)],
        created_at=NOW,
        updated_at=NOW,
    )


def _record_for(request: LeaseRequest) -> LeaseRequestRecord:
    record = LeaseRequestRecord(id=request.id, version=request.version, documents=[], workflow_steps=[], audit_entries=[])
    apply_header(record, request)
    for row in sync_children(record, request):
        record.audit_entries.append(row)
    return record


class TestSqlMapping:

    def test_round_trip_through_records(self):
        request = _aggregate()

        record = _record_for(request)

        assert record.rent_amount == Decimal("6100.5")
        assert record.status == "initiated"
        assert len(record.workflow_steps) == 12
        assert record_to_domain(record) == request

    def test_sync_inserts_only_new_audit_entries(self):
        request = _aggregate()
        record = _record_for(request)

        request.workflow_steps[0].status = StepStatus.COMPLETED
        request.workflow_steps[0].completed_at = NOW
        request.status = WorkflowStatus.DOCUMENT_EXTRACTION
        request.audit_trail.append(AuditEntry(action="Step completed", timestamp=NOW, step_number=1))

        new_rows = sync_children(record, request)

        assert [row.action for row in new_rows] == ["Step completed"]
        assert new_rows[0].sequence == 1
        assert record.workflow_steps[0].status == "completed"
        # Steps are updated in place, never duplicated
        assert len(record.workflow_steps) == 12

    def test_new_document_appended(self):
        request = _aggregate()
        record = _record_for(request)
        request.documents.append(request.documents[0].model_copy(update={"id": "doc-feedbeef", "name": "plan.pdf"}))

        sync_children(record, request)

        assert [doc.name for doc in record.documents] == ["lease.pdf", "plan.pdf"]
        assert record.documents[1].position == 1


class TestSqlLeaseRequestStoreErrors:

    @pytest.mark.asyncio
    async def test_database_errors_become_persistence_failures(self):
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("server closed the connection"))
        session_cm = MagicMock()
        session_cm.__aenter__ = AsyncMock(return_value=session)
        session_cm.__aexit__ = AsyncMock(return_value=None)
        store = SqlLeaseRequestStore(MagicMock(return_value=session_cm))

        with pytest.raises(PersistenceFailure) as exc_info:
            await store.get("LR0000AAAA")

        assert isinstance(exc_info.value.original_error, OperationalError)


class TestLeaseRequestSearch:

    @pytest.mark.asyncio
    async def test_wildcards_in_search_are_literal(self):
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        session = MagicMock()
        session.execute = AsyncMock(return_value=result)

        records = await LeaseRequestRepository(session).search(search=" 50%_Off ")

        assert records == []
        compiled = session.execute.await_args.args[0].compile()
        assert "ESCAPE '/'" in str(compiled)
        assert "50/%/_off" in compiled.params.values()


class TestAuditEntryRepository:

    @pytest.mark.asyncio
    async def test_append_continues_sequence(self):
        count_result = MagicMock()
        count_result.scalar_one.return_value = 3
        session = MagicMock()
        session.execute = AsyncMock(return_value=count_result)
        session.flush = AsyncMock()
        entry = AuditEntry(action="SLA breached", timestamp=NOW, step_number=4, sla_breached=True)

        row = await AuditEntryRepository(session).append(entry, "LR0000AAAA")

        assert row.sequence == 3
        assert row.id == entry.id
        assert row.lease_request_id == "LR0000AAAA"
        assert row.sla_breached is True
        session.add.assert_called_once_with(row)
        session.flush.assert_awaited_once()
