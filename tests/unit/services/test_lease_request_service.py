"""Tests for the lease request service."""

import pytest
from unittest.mock import AsyncMock

from lease_agent.core.exceptions import (
    AgentUnavailable,
    PersistenceFailure,
    UnknownStatusError,
    ValidationError,
)
from lease_agent.models.workflow import StepOutcome, StepStatus, WorkflowStatus
from lease_agent.repositories.lease_request_store import InMemoryLeaseRequestStore
from lease_agent.services.lease_request_service import LeaseRequestService
from lease_agent.services.workflow.progression_engine import StepProgressionEngine


class FailingSaveStore(InMemoryLeaseRequestStore):
    async def save(self, request, expected_version):
        raise RuntimeError("connection reset")


class FailingCreateStore(InMemoryLeaseRequestStore):
    async def create(self, request):
        raise RuntimeError("connection reset")


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_completes_initiation(self, lease_request_service, store, lease_request_payload):
        submission = await lease_request_service.execute_create(lease_request_payload)

        request = submission.request
        assert request.id.startswith("LR")
        assert request.status == WorkflowStatus.DOCUMENT_EXTRACTION
        assert request.step(1).status == StepStatus.COMPLETED
        assert request.step(2).status == StepStatus.PROCESSING
        # initialize + step 1 completion
        assert [entry.step_number for entry in request.audit_trail] == [1, 1]
        assert request.audit_trail[0].performed_by == "leasing@example.com"
        assert (await store.get(request.id)) == request

        agent_document = submission.agent_documents[0]
        assert agent_document.id == request.documents[0].id
        assert agent_document.data == "JVBERi0xLjQK"
        assert agent_document.type == "solicitor_instructions"

    @pytest.mark.asyncio
    async def test_create_without_completing_initiation(self, engine, agent_client, lease_request_payload):
        service = LeaseRequestService(engine, agent_client=agent_client, complete_initiation_on_submit=False)

        submission = await service.execute_create(lease_request_payload)

        assert submission.request.status == WorkflowStatus.INITIATED
        assert submission.request.step(1).status == StepStatus.PROCESSING
        assert len(submission.request.audit_trail) == 1

    @pytest.mark.asyncio
    async def test_store_failure_leaves_nothing_behind(self, agent_client, lease_request_payload):
        store = FailingCreateStore()
        service = LeaseRequestService(
            StepProgressionEngine(store),
            agent_client=agent_client,
            complete_initiation_on_submit=True,
        )

        with pytest.raises(PersistenceFailure):
            await service.execute_create(lease_request_payload)

        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_created_request_is_complete_in_one_write(self, agent_client, lease_request_payload):
        store = FailingSaveStore()
        service = LeaseRequestService(
            StepProgressionEngine(store),
            agent_client=agent_client,
            complete_initiation_on_submit=True,
        )

        submission = await service.execute_create(lease_request_payload)

        [stored] = await store.list()
        assert stored == submission.request
        assert len(stored.workflow_steps) == 12
        assert stored.step(2).status == StepStatus.PROCESSING
        assert len(stored.audit_trail) == 2

    @pytest.mark.asyncio
    async def test_invalid_payload_stores_nothing(self, lease_request_service, store, lease_request_payload):
        lease_request_payload["tenant_abn"] = "123"

        with pytest.raises(ValidationError) as exc_info:
            await lease_request_service.execute_create(lease_request_payload)

        assert "tenant_abn" in exc_info.value.message
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_missing_documents_rejected(self, lease_request_service, store, lease_request_payload):
        lease_request_payload["documents"] = []
        with pytest.raises(ValidationError):
            await lease_request_service.execute_create(lease_request_payload)
        assert await store.list() == []


class TestQueries:

    @pytest.mark.asyncio
    async def test_list_filters_by_status_and_search(self, lease_request_service, engine, make_request):
        harbour = await make_request(at_step=2, tenant_name="Harbour Coffee Pty Ltd")
        await make_request(at_step=4, tenant_name="Bridge Street Books", property_address="20 Bridge Street")

        by_search = await lease_request_service.execute_list(search="harbour")
        assert [request.id for request in by_search] == [harbour.id]

        by_status = await lease_request_service.execute_list(status="bp_check")
        assert by_status == []
        by_status = await lease_request_service.execute_list(status=WorkflowStatus.SPACE_VALIDATION)
        assert [request.tenant_name for request in by_status] == ["Bridge Street Books"]

        assert len(await lease_request_service.execute_list()) == 2

    @pytest.mark.asyncio
    async def test_unknown_status_filter(self, lease_request_service):
        with pytest.raises(UnknownStatusError):
            await lease_request_service.execute_list(status="archived")

    @pytest.mark.asyncio
    async def test_stats(self, lease_request_service, engine, make_request):
        await make_request(at_step=2)
        in_review = await make_request(at_step=2)
        await engine.record_extraction_result(in_review.id, in_review.documents[0].id, 0.3)
        failed = await make_request(at_step=6)
        await engine.advance(failed.id, 6, StepOutcome.FAILURE)
        done = await make_request(at_step=12)
        await engine.advance(done.id, 12, StepOutcome.SUCCESS)

        stats = await lease_request_service.execute_stats()

        assert stats == {"total": 4, "completed": 1, "pending_review": 1, "processing": 1, "failed": 1}

    @pytest.mark.asyncio
    async def test_get_requires_id(self, lease_request_service):
        with pytest.raises(ValidationError):
            await lease_request_service.execute_get("  ")


class TestDispatchExtraction:

    @pytest.mark.asyncio
    async def test_dispatch_uses_stored_documents(self, lease_request_service, agent_client, make_request):
        request = await make_request(at_step=2, documents=2)

        status_code = await lease_request_service.execute_dispatch_extraction(request.id)

        assert status_code == 200
        agent_client.submit.assert_awaited_once()
        request_id, documents = agent_client.submit.await_args.args
        assert request_id == request.id
        assert [doc.id for doc in documents] == [doc.id for doc in request.documents]

    @pytest.mark.asyncio
    async def test_agent_failure_propagates_and_step_stays(self, lease_request_service, agent_client, store, make_request):
        request = await make_request(at_step=2)
        agent_client.submit.side_effect = AgentUnavailable("Extraction agent unreachable")

        with pytest.raises(AgentUnavailable):
            await lease_request_service.execute_dispatch_extraction(request.id)

        assert (await store.get(request.id)).step(2).status == StepStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_disabled_agent_skips_dispatch(self, engine, make_request):
        agent_client = AsyncMock()
        service = LeaseRequestService(engine, agent_client=agent_client, agent_enabled=False)
        request = await make_request(at_step=2)

        assert await service.execute_dispatch_extraction(request.id) is None
        agent_client.submit.assert_not_awaited()


class TestAnnotate:

    @pytest.mark.asyncio
    async def test_annotation_requires_action(self, lease_request_service, make_request):
        request = await make_request(at_step=3)
        with pytest.raises(ValidationError):
            await lease_request_service.annotate(request.id, " ")

    @pytest.mark.asyncio
    async def test_annotation_recorded(self, lease_request_service, store, make_request):
        request = await make_request(at_step=3)
        entry = await lease_request_service.annotate(request.id, "SLA breached", sla_breached=True, step_number=3)
        assert (await store.get(request.id)).audit_trail[-1] == entry
