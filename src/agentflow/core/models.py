"""
agentflow.core.models - Core Data Models
==========================================

Pydantic models for every entity the orchestration engine reads or writes.
All ids are UUID4 strings and all timestamps are UTC.

Model Map (one logical table each, partitioned by tenant + agent type):

    memories   → MemoryRecord      (append-only)
    policies   → Policy            (read-only to the engine)
    tasks      → Task              (running → completed | error)
    workflows  → Workflow          (fixed plan, cursor only moves forward)
    logs       → LogEntry          (append-only)

Ephemeral (never stored as its own row):

    Decision   → chosen action + evidence, embedded in Task results and logs
    RunResult  → what a run request returns to the caller

Design Principles:
    1. Snapshots: update a stored entity with ``model_copy(update=...)`` and
       write the copy back; never mutate a model the store handed you.
    2. Free-form payloads (memory content, facts, log details, step results)
       are ``dict[str, Any]``; their per-kind shapes are documented on the
       enums in ``agentflow.core.enums``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from agentflow.core.enums import (
    LogEventType,
    MemoryKind,
    RunMode,
    StepStatus,
    TaskStatus,
    WorkflowStatus,
)


def _generate_id() -> str:
    """Generate a UUID4 string identifier."""
    return str(uuid4())


def _now() -> datetime:
    """Current UTC timestamp. Every timestamp in agentflow is UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# Memory Record
# =============================================================================
class MemoryRecord(BaseModel):
    """One immutable observation remembered for a tenant's agent type.

    Memory is append-only: nothing in the engine updates or deletes a
    record, so the evidence ids cited by a past Decision always resolve to
    the same content. Retention/pruning is an external concern.

    Example:
        >>> MemoryRecord(
        ...     tenant_id="acme",
        ...     agent_type="operations",
        ...     memory_kind=MemoryKind.OBSERVATION,
        ...     content={"goal": "check SLA", "decision_action": "alert"},
        ... )
    """

    memory_id: str = Field(default_factory=_generate_id)
    tenant_id: str
    agent_type: str
    memory_kind: MemoryKind = MemoryKind.OBSERVATION
    content: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_now)


# =============================================================================
# Policy
# =============================================================================
# A Policy is a declarative rule: if ALL conditions hold against the fact
# snapshot, every action is proposed (in declaration order).
#
#   conditions=[{"field": "score", "operator": "<", "value": 80}]
#   actions=[{"action": "alert", "params": {"channel": "ops"}}]
#
# A policy with NO conditions matches every fact snapshot.
# =============================================================================
class PolicyCondition(BaseModel):
    """A single ``fact[field] <operator> value`` test.

    ``operator`` is kept as a raw string: unknown operators are stored
    as-is and evaluate to "no match" rather than failing validation, so one
    badly authored policy cannot prevent the others from loading.
    """

    field: str
    operator: str
    value: Any = None


class PolicyAction(BaseModel):
    """An action a policy proposes, with optional parameters."""

    action: str
    params: Optional[dict[str, Any]] = None


class Policy(BaseModel):
    """A tenant- and agent-type-scoped condition→action rule.

    Attributes:
        policy_id: Unique policy identifier.
        tenant_id: Owning tenant.
        agent_type: Agent type the rule applies to.
        name: Human-readable name; recorded in ``Decision.applied_policies``.
        description: Optional free-text explanation for authors.
        active: Inactive policies are never returned to the engine.
        conditions: Conjunction of conditions (empty = always matches).
        actions: Proposed actions, in declaration order.
    """

    policy_id: str = Field(default_factory=_generate_id)
    tenant_id: str
    agent_type: str
    name: str
    description: Optional[str] = None
    active: bool = True
    conditions: list[PolicyCondition] = Field(default_factory=list)
    actions: list[PolicyAction] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ProposedAction(BaseModel):
    """An action contributed by a matched policy, tagged with its origin."""

    action: str
    params: Optional[dict[str, Any]] = None
    policy_name: str


class PolicyEvaluation(BaseModel):
    """Outcome of evaluating a list of policies against one fact snapshot.

    Both lists preserve the iteration order of the input policies, so
    ``actions[0]`` always comes from ``matched[0]`` when anything matched.
    """

    matched: list[Policy] = Field(default_factory=list)
    actions: list[ProposedAction] = Field(default_factory=list)

    @property
    def matched_names(self) -> list[str]:
        return [policy.name for policy in self.matched]


# =============================================================================
# Decision
# =============================================================================
class Decision(BaseModel):
    """The single decision produced for one orchestration request.

    Attributes:
        action: The chosen action (first proposed action, or "analyze").
        applied_policies: Names of EVERY matched policy, not only the one
            that contributed the chosen action.
        memory_used: Ids of up to five most recent memory records.
        reasoning: Human-readable rationale.
        params: Parameters of the chosen action, if any.
    """

    action: str
    applied_policies: list[str] = Field(default_factory=list)
    memory_used: list[str] = Field(default_factory=list)
    reasoning: str = ""
    params: Optional[dict[str, Any]] = None


# =============================================================================
# Task
# =============================================================================
class Task(BaseModel):
    """One logical orchestration run.

    Created ``running`` when the request is accepted and finalized exactly
    once with ``completed`` or ``error``. ``result`` holds the decision,
    workflow id and ``executed`` flag on success, or the captured error.
    """

    task_id: str = Field(default_factory=_generate_id)
    tenant_id: str
    agent_type: str
    goal: str
    input: dict[str, Any] = Field(default_factory=dict)
    status: TaskStatus = TaskStatus.RUNNING
    result: Optional[dict[str, Any]] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


# =============================================================================
# Workflow
# =============================================================================
class WorkflowStep(BaseModel):
    """One step of a workflow plan. ``step`` numbers are 1-based."""

    step: int = Field(ge=1)
    action: str
    status: StepStatus = StepStatus.PENDING
    result: Optional[dict[str, Any]] = None


class Workflow(BaseModel):
    """A persisted, fixed-length plan advanced one step at a time.

    Invariants (validated on construction):
        - ``0 <= current_step <= len(plan)``
        - ``status == COMPLETED`` iff ``current_step == len(plan)``
          (for a non-empty plan)

    Attributes:
        current_step: 0-based cursor into ``plan``; only ever increases.
        task_id: The Task that created this workflow, if any.
        context: Data handed to step handlers; the orchestrator stores the
            decision here under ``"decision"``.
        version: Optimistic-concurrency counter, bumped on every stored
            update. Writers must present the version they read.
    """

    workflow_id: str = Field(default_factory=_generate_id)
    tenant_id: str
    agent_type: str
    goal: str
    plan: list[WorkflowStep] = Field(default_factory=list)
    current_step: int = Field(default=0, ge=0)
    status: WorkflowStatus = WorkflowStatus.PENDING
    task_id: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict)
    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @model_validator(mode="after")
    def _check_cursor(self) -> Workflow:
        if self.current_step > len(self.plan):
            raise ValueError(
                f"current_step {self.current_step} exceeds plan length {len(self.plan)}"
            )
        if self.plan:
            at_end = self.current_step == len(self.plan)
            if at_end != (self.status == WorkflowStatus.COMPLETED):
                raise ValueError(
                    f"status {self.status.value} inconsistent with "
                    f"current_step {self.current_step}/{len(self.plan)}"
                )
        return self

    @property
    def is_completed(self) -> bool:
        return self.current_step >= len(self.plan)

    @property
    def next_step(self) -> Optional[WorkflowStep]:
        """The step the cursor points at, or None when the plan is done."""
        if self.is_completed:
            return None
        return self.plan[self.current_step]


# =============================================================================
# Log Entry
# =============================================================================
class LogEntry(BaseModel):
    """Append-only audit record. See LogEventType for ``details`` shapes."""

    log_id: str = Field(default_factory=_generate_id)
    tenant_id: str
    agent_type: str
    task_id: Optional[str] = None
    workflow_id: Optional[str] = None
    event_type: LogEventType
    details: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=_now)


# =============================================================================
# Request / Response Models
# =============================================================================
class CallerIdentity(BaseModel):
    """An already-authenticated caller, as supplied by the transport."""

    user_id: str


class RunResult(BaseModel):
    """What ``run`` returns to the caller.

    ``workflow_id`` is None in simulate mode, where no workflow is created.
    """

    task_id: str
    mode: RunMode
    decision: Decision
    workflow_id: Optional[str] = None
    executed: bool = False


class StepOutcome(BaseModel):
    """Result of one ``execute_next_step`` call.

    ``status`` is ``"step_completed"`` when a step was advanced, or
    ``"completed"`` when the workflow was already at the end of its plan
    (in which case ``step`` is None).
    """

    status: str
    step: Optional[WorkflowStep] = None
    workflow: Workflow

    STEP_COMPLETED: ClassVar[str] = "step_completed"
    COMPLETED: ClassVar[str] = "completed"


class WorkflowDetails(BaseModel):
    """A workflow together with its audit trail (oldest entry first)."""

    workflow: Workflow
    logs: list[LogEntry] = Field(default_factory=list)


class AgentStats(BaseModel):
    """Per-tenant counters for dashboards."""

    total_tasks: int = 0
    total_workflows: int = 0
    active_policies: int = 0
    logs_last_24h: int = 0
