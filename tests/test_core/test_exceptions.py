"""
Tests for agentflow.core.exceptions
=====================================

Every error carries a status classification and HTTP code the API layer
relies on, and serializes with to_dict().
"""

import pytest

from agentflow.core.exceptions import (
    AgentFlowError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    StateError,
    StepExecutionError,
    ValidationError,
    WorkflowConflictError,
    WorkflowError,
)


class TestClassification:
    """status / http_status per error type."""

    @pytest.mark.parametrize(
        ("error", "status", "http_status"),
        [
            (ValidationError("missing", fields=["goal"]), "validation", 400),
            (AuthenticationError(), "authorization", 401),
            (AuthorizationError("no", tenant_id="acme", user_id="u"), "authorization", 403),
            (NotFoundError("gone", resource="workflow", resource_id="w"), "not_found", 404),
            (StateError("db down"), "storage", 500),
            (WorkflowConflictError("w", expected_version=1, actual_version=2), "storage", 409),
            (WorkflowError("stuck", workflow_id="w"), "processing", 500),
            (ConfigurationError("bad"), "processing", 500),
        ],
    )
    def test_status_and_http_code(self, error, status, http_status) -> None:
        assert error.status == status
        assert error.http_status == http_status
        assert isinstance(error, AgentFlowError)

    def test_conflict_is_a_state_error(self) -> None:
        assert issubclass(WorkflowConflictError, StateError)

    def test_step_execution_error_is_a_workflow_error(self) -> None:
        assert issubclass(StepExecutionError, WorkflowError)


class TestDetails:
    """Structured context attached by each subclass."""

    def test_validation_error_lists_fields(self) -> None:
        error = ValidationError("Missing required fields: goal", fields=["goal"])
        assert error.fields == ["goal"]
        assert error.details["fields"] == ["goal"]
        assert error.error_code == "MISSING_REQUIRED_FIELDS"

    def test_conflict_records_versions(self) -> None:
        error = WorkflowConflictError("wf-1", expected_version=3, actual_version=4)
        assert error.error_code == "WORKFLOW_CONFLICT"
        assert error.details == {
            "workflow_id": "wf-1",
            "expected_version": 3,
            "actual_version": 4,
        }

    def test_step_execution_error_records_step(self) -> None:
        error = StepExecutionError("boom", workflow_id="wf-1", step=2, action="evaluate_policies")
        assert error.error_code == "STEP_EXECUTION_FAILED"
        assert error.details["step"] == 2
        assert error.details["action"] == "evaluate_policies"
        assert error.workflow_id == "wf-1"

    def test_to_dict(self) -> None:
        error = NotFoundError("Workflow 'w' not found", resource="workflow", resource_id="w")
        assert error.to_dict() == {
            "error_type": "NotFoundError",
            "status": "not_found",
            "message": "Workflow 'w' not found",
            "error_code": "NOT_FOUND",
            "details": {"resource": "workflow", "resource_id": "w"},
        }

    def test_str_is_message(self) -> None:
        assert str(StateError("db down")) == "db down"
