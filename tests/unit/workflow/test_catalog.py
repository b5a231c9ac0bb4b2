import pytest

from lease_agent.core.exceptions import InvalidStepNumber
from lease_agent.models.workflow import TOTAL_STEPS, StepStatus
from lease_agent.services.workflow.catalog import get_step_template, materialize_steps, workflow_steps


class TestWorkflowCatalog:

    def test_twelve_steps_in_order(self):
        steps = workflow_steps()
        assert len(steps) == TOTAL_STEPS == 12
        assert [step.step_number for step in steps] == list(range(1, 13))

    def test_known_step_names(self):
        assert get_step_template(1).name == "Request Initiation"
        assert get_step_template(2).name == "Document Extraction"
        assert get_step_template(6).name == "ASIC Validation"
        assert get_step_template(12).name == "Audit & Notification"

    @pytest.mark.parametrize("step_number", [0, 13, -1])
    def test_out_of_range_step_rejected(self, step_number):
        with pytest.raises(InvalidStepNumber):
            get_step_template(step_number)

    def test_templates_are_immutable(self):
        with pytest.raises(Exception):
            get_step_template(1).name = "Renamed"

    def test_materialized_steps_start_pending(self):
        steps = materialize_steps()
        assert len(steps) == 12
        assert all(step.status == StepStatus.PENDING for step in steps)
        assert all(step.started_at is None and step.completed_at is None for step in steps)
        # Fresh instances every call
        steps[0].status = StepStatus.PROCESSING
        assert materialize_steps()[0].status == StepStatus.PENDING
