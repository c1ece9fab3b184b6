"""
agentflow.core.enums - Type-Safe Enumerations
===============================================

All enumeration types used throughout agentflow. Every enum inherits from
both ``str`` and ``Enum`` so that values serialize to plain strings in JSON
and compare equal to their raw string form (``TaskStatus.RUNNING == "running"``).

    ┌─────────────────────────────────────────────────────────────────┐
    │  REQUEST                                                        │
    │    RunMode: simulate / plan / auto                              │
    ├─────────────────────────────────────────────────────────────────┤
    │  PERSISTED ENTITIES                                             │
    │    TaskStatus:     running → completed | error                  │
    │    WorkflowStatus: pending → in_progress → completed            │
    │    StepStatus:     pending → completed                          │
    │    MemoryKind:     observation / pattern / fact                 │
    │    LogEventType:   decision / workflow_step / ...               │
    ├─────────────────────────────────────────────────────────────────┤
    │  POLICY RULES                                                   │
    │    ConditionOperator: > < >= <= = != contains not_contains      │
    └─────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


# =============================================================================
# Run Mode
# =============================================================================
# Controls how far a single orchestration request goes:
#
#   SIMULATE → decide only, no workflow is created
#   PLAN     → decide and create the workflow, but do not advance it
#   AUTO     → decide, create the workflow and drive it to completion
# =============================================================================
class RunMode(str, Enum):
    """How far an orchestration run proceeds after the decision is made.

    Usage:
        >>> RunMode.parse("auto")
        <RunMode.AUTO: 'auto'>
        >>> RunMode.parse("supervised")  # legacy alias
        <RunMode.PLAN: 'plan'>
    """

    SIMULATE = "simulate"   # Decision only
    PLAN = "plan"           # Decision + workflow, not executed
    AUTO = "auto"           # Decision + workflow, executed to completion

    @classmethod
    def parse(cls, value: Optional[str]) -> RunMode:
        """Resolve a caller-supplied mode string to a RunMode.

        ``None`` resolves to SIMULATE. ``"supervised"`` is accepted as an alias
        of PLAN, and any other unrecognised string also resolves to PLAN: a
        non-simulate, non-auto run always creates its workflow without
        executing it. Matching is exact: ``"AUTO"`` or ``" auto "`` is not
        ``auto`` and therefore plans without executing.
        """
        if value is None:
            return cls.SIMULATE
        if isinstance(value, cls):
            return value
        if value == cls.SIMULATE.value:
            return cls.SIMULATE
        if value == cls.AUTO.value:
            return cls.AUTO
        return cls.PLAN

    @classmethod
    def is_known(cls, value: Optional[str]) -> bool:
        """Return True if ``value`` names a mode or its documented alias."""
        if value is None:
            return True
        return isinstance(value, str) and value in {m.value for m in cls} | {"supervised"}


# =============================================================================
# Task Status
# =============================================================================
# One Task row per orchestration request. It is created RUNNING and set to
# exactly one terminal status afterwards. PENDING exists in the stored
# schema for externally queued tasks; this engine never writes it.
# =============================================================================
class TaskStatus(str, Enum):
    """Lifecycle states for an orchestration Task.

    State Transitions:
        RUNNING → COMPLETED:  Run finished (any mode)
        RUNNING → ERROR:      Decision, memory write or workflow failed
    """

    PENDING = "pending"         # Queued externally, not started
    RUNNING = "running"         # Orchestration in progress
    COMPLETED = "completed"     # Terminal: run finished
    ERROR = "error"             # Terminal: run aborted, error captured in result

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.ERROR)


# =============================================================================
# Workflow Status
# =============================================================================
# There is intentionally no ERROR/CANCELLED state: a step that fails leaves
# the workflow where it was (cursor unmoved) and the failure is recorded on
# the owning Task instead.
# =============================================================================
class WorkflowStatus(str, Enum):
    """Lifecycle states for a persisted Workflow.

    State Transitions:
        PENDING → IN_PROGRESS:   First step completed, steps remain
        PENDING → COMPLETED:     Single-step plan completed
        IN_PROGRESS → COMPLETED: Cursor reached the end of the plan
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class StepStatus(str, Enum):
    """Status of a single plan step."""

    PENDING = "pending"
    COMPLETED = "completed"


# =============================================================================
# Memory Kind
# =============================================================================
class MemoryKind(str, Enum):
    """Category of a stored memory record.

    The orchestrator writes OBSERVATION records after every decision.
    PATTERN and FACT records are written by other agents (e.g. a daily
    operations agent storing recommendations) and read back as context.
    """

    OBSERVATION = "observation"
    PATTERN = "pattern"
    FACT = "fact"


# =============================================================================
# Log Event Type
# =============================================================================
# Per-event ``details`` shape written by this engine:
#
#   DECISION       → {"goal": str, "decision": Decision, "policies_evaluated": int}
#   WORKFLOW_STEP  → {"action": "workflow_created", "goal": str}            (creation)
#                    {"step": int, "action": str, "current_step": int,
#                     "status": WorkflowStatus}                            (advance)
#
# The remaining types are accepted for entries written by other components.
# =============================================================================
class LogEventType(str, Enum):
    """Type of an audit log entry."""

    DECISION = "decision"
    WORKFLOW_STEP = "workflow_step"
    MEMORY_READ = "memory_read"
    MEMORY_WRITE = "memory_write"
    POLICY_MATCH = "policy_match"
    ERROR = "error"
    INFO = "info"


# =============================================================================
# Condition Operator
# =============================================================================
class ConditionOperator(str, Enum):
    """Comparison operators understood by the PolicyEngine.

    Conditions are stored with a free-form operator string; anything that
    is not one of these values simply never matches.
    """

    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_OR_EQUAL = ">="
    LESS_OR_EQUAL = "<="
    EQUALS = "="
    NOT_EQUALS = "!="
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
