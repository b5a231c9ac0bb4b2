"""Pytest configuration and shared fixtures."""

from datetime import date
from typing import Any, Dict

import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from lease_agent.dependencies import get_lease_request_service
from lease_agent.main import app
from lease_agent.models.lease_request import LeaseRequest, LeaseRequestCreate
from lease_agent.models.workflow import StepOutcome
from lease_agent.repositories.lease_request_store import InMemoryLeaseRequestStore
from lease_agent.services.extraction_agent import ExtractionAgentClient
from lease_agent.services.lease_request_service import LeaseRequestService
from lease_agent.services.workflow.progression_engine import StepProgressionEngine


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def lease_request_payload() -> Dict[str, Any]:
    """Valid creation payload with a single attached document."""
    return {
        "property_id": "PROP-001",
        "property_address": "Shop 12, 100 George Street, Sydney NSW 2000",
        "tenant_name": "Harbour Coffee Pty Ltd",
        "tenant_abn": "51 824 753 556",
        "tenant_acn": "824 753 556",
        "requestor_email": "leasing@example.com",
        "lease_term": 36,
        "commencement_date": "2026-12-01",
        "rent_amount": 4500.0,
        "security_deposit": 13500.0,
        "documents": [
            {
                "name": "solicitor-instructions.pdf",
                "type": "solicitor_instructions",
                "size": 204800,
                "mime_type": "application/pdf",
                "content": "JVBERi0xLjQK",
            }
        ],
    }


@pytest.fixture
def lease_request_create(lease_request_payload: Dict[str, Any]) -> LeaseRequestCreate:
    return LeaseRequestCreate.model_validate(lease_request_payload)


@pytest.fixture
def store() -> InMemoryLeaseRequestStore:
    return InMemoryLeaseRequestStore()


@pytest.fixture
def engine(store: InMemoryLeaseRequestStore) -> StepProgressionEngine:
    return StepProgressionEngine(store, operation_timeout=5.0, auto_advance_on_confidence=True)


@pytest.fixture
def agent_client() -> AsyncMock:
    client = AsyncMock(spec=ExtractionAgentClient)
    client.submit.return_value = 200
    return client


@pytest.fixture
def lease_request_service(engine: StepProgressionEngine, agent_client: AsyncMock) -> LeaseRequestService:
    return LeaseRequestService(
        engine,
        agent_client=agent_client,
        complete_initiation_on_submit=True,
        agent_enabled=True,
    )


@pytest.fixture
def override_service(lease_request_service: LeaseRequestService) -> LeaseRequestService:
    """Route the API to the in-memory service of this test."""
    app.dependency_overrides[get_lease_request_service] = lambda: lease_request_service
    return lease_request_service


@pytest.fixture
def make_request(store: InMemoryLeaseRequestStore, engine: StepProgressionEngine):
    """Factory storing a request and driving it to a given active step.

    ``at_step=0`` stores the request without workflow steps.
    """

    async def _make(
        at_step: int = 2,
        documents: int = 1,
        tenant_name: str = "Harbour Coffee Pty Ltd",
        property_address: str = "Shop 12, 100 George Street, Sydney NSW 2000",
    ) -> LeaseRequest:
        request = LeaseRequest(
            property_id="PROP-001",
            property_address=property_address,
            tenant_name=tenant_name,
            lease_term=36,
            commencement_date=date(2026, 12, 1),
            rent_amount=4500.0,
            security_deposit=13500.0,
            documents=[
                {"name": f"document-{index}.pdf", "type": "lease_agreement"}
                for index in range(documents)
            ],
        )
        await store.create(request)
        if at_step == 0:
            return await store.get(request.id)

        await engine.initialize(request.id)
        for step_number in range(1, at_step):
            await engine.advance(request.id, step_number, StepOutcome.SUCCESS)
        return await store.get(request.id)

    return _make
