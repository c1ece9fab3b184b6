"""
Tests for agentflow.core.models and agentflow.core.enums
==========================================================

What's Being Tested:
    - Workflow:       cursor/status invariants, next_step, is_completed
    - Policy:         defaults and free-form operators
    - Decision/Task:  defaults and JSON serialization
    - RunMode:        parsing of caller-supplied mode strings
    - TaskStatus:     terminal states
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from agentflow.core.enums import (
    LogEventType,
    MemoryKind,
    RunMode,
    StepStatus,
    TaskStatus,
    WorkflowStatus,
)
from agentflow.core.models import (
    Decision,
    LogEntry,
    MemoryRecord,
    Policy,
    PolicyCondition,
    PolicyEvaluation,
    StepOutcome,
    Task,
    Workflow,
    WorkflowStep,
)


def _make_plan(n: int = 4) -> list[WorkflowStep]:
    return [WorkflowStep(step=i + 1, action=f"step_{i + 1}") for i in range(n)]


# =============================================================================
# Test: Workflow
# =============================================================================
class TestWorkflow:
    """Invariants enforced on construction."""

    def test_new_workflow_defaults(self) -> None:
        workflow = Workflow(tenant_id="acme", agent_type="ops", goal="g", plan=_make_plan())
        assert workflow.current_step == 0
        assert workflow.status == WorkflowStatus.PENDING
        assert workflow.version == 0
        assert workflow.next_step.action == "step_1"
        assert not workflow.is_completed

    def test_cursor_beyond_plan_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            Workflow(
                tenant_id="acme",
                agent_type="ops",
                goal="g",
                plan=_make_plan(2),
                current_step=3,
                status=WorkflowStatus.COMPLETED,
            )

    def test_completed_status_requires_cursor_at_end(self) -> None:
        with pytest.raises(PydanticValidationError):
            Workflow(
                tenant_id="acme",
                agent_type="ops",
                goal="g",
                plan=_make_plan(),
                current_step=2,
                status=WorkflowStatus.COMPLETED,
            )

    def test_cursor_at_end_requires_completed_status(self) -> None:
        with pytest.raises(PydanticValidationError):
            Workflow(
                tenant_id="acme",
                agent_type="ops",
                goal="g",
                plan=_make_plan(),
                current_step=4,
                status=WorkflowStatus.IN_PROGRESS,
            )

    def test_completed_workflow_has_no_next_step(self) -> None:
        workflow = Workflow(
            tenant_id="acme",
            agent_type="ops",
            goal="g",
            plan=_make_plan(),
            current_step=4,
            status=WorkflowStatus.COMPLETED,
        )
        assert workflow.is_completed
        assert workflow.next_step is None

    def test_step_numbers_are_one_based(self) -> None:
        with pytest.raises(PydanticValidationError):
            WorkflowStep(step=0, action="gather_context")

    def test_new_step_is_pending(self) -> None:
        assert WorkflowStep(step=1, action="a").status == StepStatus.PENDING


# =============================================================================
# Test: Other Entities
# =============================================================================
class TestEntities:
    """Defaults on the remaining entities."""

    def test_memory_record_defaults_to_observation(self) -> None:
        record = MemoryRecord(tenant_id="acme", agent_type="ops")
        assert record.memory_kind == MemoryKind.OBSERVATION
        assert record.content == {}
        assert record.created_at.tzinfo is not None

    def test_ids_are_unique(self) -> None:
        first = MemoryRecord(tenant_id="acme", agent_type="ops")
        second = MemoryRecord(tenant_id="acme", agent_type="ops")
        assert first.memory_id != second.memory_id

    def test_policy_defaults_active_without_conditions(self) -> None:
        policy = Policy(tenant_id="acme", agent_type="ops", name="p")
        assert policy.active is True
        assert policy.conditions == []
        assert policy.actions == []

    def test_condition_accepts_unknown_operator(self) -> None:
        """Unknown operators are stored; evaluation treats them as no match."""
        condition = PolicyCondition(field="x", operator="~=", value=1)
        assert condition.operator == "~="

    def test_task_starts_running(self) -> None:
        task = Task(tenant_id="acme", agent_type="ops", goal="g")
        assert task.status == TaskStatus.RUNNING
        assert task.result is None

    def test_decision_serializes_to_json(self) -> None:
        decision = Decision(action="alert", applied_policies=["p"], memory_used=["m1"])
        dumped = decision.model_dump(mode="json")
        assert dumped["action"] == "alert"
        assert dumped["applied_policies"] == ["p"]
        assert dumped["params"] is None

    def test_log_entry_event_type_serializes_as_string(self) -> None:
        entry = LogEntry(tenant_id="acme", agent_type="ops", event_type=LogEventType.DECISION)
        assert entry.model_dump(mode="json")["event_type"] == "decision"

    def test_policy_evaluation_matched_names(self) -> None:
        evaluation = PolicyEvaluation(matched=[
            Policy(tenant_id="acme", agent_type="ops", name="first"),
            Policy(tenant_id="acme", agent_type="ops", name="second"),
        ])
        assert evaluation.matched_names == ["first", "second"]

    def test_step_outcome_status_constants(self) -> None:
        assert StepOutcome.STEP_COMPLETED == "step_completed"
        assert StepOutcome.COMPLETED == "completed"


# =============================================================================
# Test: Enums
# =============================================================================
class TestRunMode:
    """RunMode.parse() maps caller strings to the three modes."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (None, RunMode.SIMULATE),
            ("simulate", RunMode.SIMULATE),
            ("auto", RunMode.AUTO),
            ("AUTO", RunMode.PLAN),
            (" auto ", RunMode.PLAN),
            ("Simulate", RunMode.PLAN),
            ("plan", RunMode.PLAN),
            ("supervised", RunMode.PLAN),
            ("whatever", RunMode.PLAN),
            (RunMode.AUTO, RunMode.AUTO),
        ],
    )
    def test_parse(self, raw, expected) -> None:
        assert RunMode.parse(raw) == expected

    def test_is_known(self) -> None:
        assert RunMode.is_known("supervised")
        assert RunMode.is_known("plan")
        assert not RunMode.is_known("whatever")
        assert not RunMode.is_known("Plan")
        assert not RunMode.is_known(["auto"])

    def test_str_enum_compares_to_value(self) -> None:
        assert TaskStatus.RUNNING == "running"
        assert WorkflowStatus.IN_PROGRESS == "in_progress"


class TestTaskStatus:
    def test_terminal_states(self) -> None:
        assert TaskStatus.COMPLETED.is_terminal
        assert TaskStatus.ERROR.is_terminal
        assert not TaskStatus.RUNNING.is_terminal
        assert not TaskStatus.PENDING.is_terminal
