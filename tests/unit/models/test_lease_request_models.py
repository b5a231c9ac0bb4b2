import pytest
from pydantic import ValidationError

from lease_agent.models.lease_request import (
    ABN_PATTERN,
    LeaseRequest,
    LeaseRequestCreate,
    new_audit_id,
    new_document_id,
    new_request_id,
)
from lease_agent.models.workflow import WorkflowStatus


class TestLeaseRequestCreate:

    def test_valid_payload(self, lease_request_payload):
        payload = LeaseRequestCreate.model_validate(lease_request_payload)
        assert payload.tenant_abn == "51 824 753 556"
        assert len(payload.documents) == 1

    @pytest.mark.parametrize("abn", ["51824753556", "51 824 753 55", "AB 824 753 556"])
    def test_bad_abn_format(self, lease_request_payload, abn):
        lease_request_payload["tenant_abn"] = abn
        with pytest.raises(ValidationError):
            LeaseRequestCreate.model_validate(lease_request_payload)

    def test_bad_acn_format(self, lease_request_payload):
        lease_request_payload["tenant_acn"] = "824753556"
        with pytest.raises(ValidationError):
            LeaseRequestCreate.model_validate(lease_request_payload)

    def test_blank_abn_is_optional(self, lease_request_payload):
        lease_request_payload["tenant_abn"] = "   "
        lease_request_payload["tenant_acn"] = ""
        payload = LeaseRequestCreate.model_validate(lease_request_payload)
        assert payload.tenant_abn is None
        assert payload.tenant_acn is None

    @pytest.mark.parametrize(
        "field,value",
        [
            ("rent_amount", 0),
            ("rent_amount", -10),
            ("security_deposit", -1),
            ("lease_term", 0),
            ("tenant_name", "   "),
            ("property_address", ""),
        ],
    )
    def test_invalid_fields(self, lease_request_payload, field, value):
        lease_request_payload[field] = value
        with pytest.raises(ValidationError):
            LeaseRequestCreate.model_validate(lease_request_payload)

    def test_requires_a_document(self, lease_request_payload):
        lease_request_payload["documents"] = []
        with pytest.raises(ValidationError):
            LeaseRequestCreate.model_validate(lease_request_payload)

    def test_abn_pattern_is_format_only(self):
        # Checksum-invalid ABNs still pass the format check
        assert ABN_PATTERN.match("11 111 111 111")


class TestIdentifiers:

    def test_request_id_format(self):
        request_id = new_request_id()
        assert request_id.startswith("LR")
        assert len(request_id) == 10
        assert request_id[2:] == request_id[2:].upper()

    def test_document_and_audit_ids(self):
        assert new_document_id().startswith("doc-")
        assert new_audit_id().startswith("audit-")
        assert new_request_id() != new_request_id()


class TestLeaseRequestAggregate:

    def _request(self, **overrides) -> LeaseRequest:
        values = {
            "property_id": "PROP-7",
            "property_address": "Level 3, 20 Bridge Street, Sydney",
            "tenant_name": "Bridge Street Books",
            "lease_term": 24,
            "commencement_date": "2027-01-01",
            "rent_amount": 3200,
        }
        values.update(overrides)
        return LeaseRequest(**values)

    def test_defaults(self):
        request = self._request()
        assert request.status == WorkflowStatus.INITIATED
        assert request.is_initialized is False
        assert request.is_terminal is False
        assert request.active_step() is None
        assert request.version == 0

    @pytest.mark.parametrize("term", ["bridge", "SYDNEY", " books "])
    def test_search_matches(self, term):
        assert self._request().matches_search(term)

    def test_search_ignores_property_id(self):
        assert not self._request().matches_search("prop-7")

    def test_search_matches_id(self):
        request = self._request()
        assert request.matches_search(request.id.lower())
        assert request.matches_search(None)
        assert request.matches_search("")

    def test_terminal_statuses(self):
        assert self._request(status="completed").is_terminal
        assert self._request(status="failed").is_terminal
        assert not self._request(status="pending_review").is_terminal
