"""
agentflow.orchestration.state_manager - State Persistence Infrastructure
==========================================================================

The State Manager is the persistence layer behind every engine component.
It owns five logical tables, each partitioned by tenant (and agent type):

    ┌──────────────┐  add / list         ┌──────────────────┐
    │ MemoryStore   │ ─────────────────→  │                  │  memories  (append-only)
    ├──────────────┤  list active        │                  │  policies  (read-only here)
    │ PolicyEngine  │ ─────────────────→  │  State Manager   │
    ├──────────────┤  create / update    │                  │  tasks
    │ Orchestrator  │ ─────────────────→  │                  │
    ├──────────────┤  create / CAS update│                  │  workflows
    │ WorkflowEngine│ ─────────────────→  │                  │
    ├──────────────┤  append / list      │                  │  logs      (append-only)
    │ DecisionEngine│ ─────────────────→  │                  │
    └──────────────┘                     └──────────────────┘

Concurrency Contract:
    Memories and logs are append-only and never conflict. Policies are
    read-only to the engine. Tasks have a single writer (the run that
    created them). Workflows are the only contended rows, so
    ``update_workflow`` is a compare-and-swap on ``Workflow.version``:
    a writer must present the version it read and the store rejects the
    write with ``WorkflowConflictError`` if anyone else got there first.

Ordering Contract:
    ``list_*`` methods return newest first unless documented otherwise;
    ties on timestamp are broken by insertion order (later insert first).
    ``list_policies`` returns policies in repository (insertion) order,
    which is the precedence order the DecisionEngine relies on.

Isolation Contract:
    Rows are copied on the way in and on the way out. Mutating a returned
    model never changes what is stored; the only way to change a workflow
    is ``update_workflow``.

Implementations:
    - StateManager (ABC):        Abstract interface
    - InMemoryStateManager:      Dict/list-based for dev and testing
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, TypeVar

from pydantic import BaseModel

from agentflow.core.enums import LogEventType, MemoryKind, TaskStatus, WorkflowStatus
from agentflow.core.exceptions import NotFoundError, WorkflowConflictError
from agentflow.core.models import LogEntry, MemoryRecord, Policy, Task, Workflow

logger = logging.getLogger(__name__)

_T = TypeVar("_T")
_M = TypeVar("_M", bound=BaseModel)


# =============================================================================
# Abstract Base Class: StateManager
# =============================================================================
class StateManager(ABC):
    """Abstract base class for engine persistence backends.

    Every method may raise ``StateError`` when the backend fails; callers
    treat that as fatal for the current request (no retries).

    Example:
        >>> async def remember(sm: StateManager, record: MemoryRecord):
        ...     await sm.add_memory(record)
        ...     latest = await sm.list_memories(record.tenant_id, record.agent_type, limit=1)
    """

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------
    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the storage backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Gracefully disconnect from the storage backend."""

    # -------------------------------------------------------------------------
    # Memories (append-only)
    # -------------------------------------------------------------------------
    @abstractmethod
    async def add_memory(self, record: MemoryRecord) -> MemoryRecord:
        """Append a memory record and return it as stored."""

    @abstractmethod
    async def list_memories(
        self,
        tenant_id: str,
        agent_type: Optional[str] = None,
        memory_kind: Optional[MemoryKind] = None,
        limit: Optional[int] = None,
    ) -> list[MemoryRecord]:
        """List a tenant's memories, newest first.

        Args:
            tenant_id: Tenant partition.
            agent_type: Restrict to one agent type (None = all).
            memory_kind: Restrict to one kind (None = all).
            limit: Maximum number of records (None = no limit).
        """

    # -------------------------------------------------------------------------
    # Policies (read-only to the engine)
    # -------------------------------------------------------------------------
    @abstractmethod
    async def save_policy(self, policy: Policy) -> None:
        """Insert or replace a policy. Used by external authoring only."""

    @abstractmethod
    async def list_policies(
        self,
        tenant_id: str,
        agent_type: Optional[str] = None,
        active_only: bool = False,
    ) -> list[Policy]:
        """List a tenant's policies in repository (insertion) order."""

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------
    @abstractmethod
    async def create_task(self, task: Task) -> Task:
        """Insert a new task row."""

    @abstractmethod
    async def update_task(self, task: Task) -> Task:
        """Replace an existing task row.

        Raises:
            NotFoundError: If the task does not exist.
        """

    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[Task]:
        """Retrieve a task by id, or None."""

    @abstractmethod
    async def list_tasks(
        self,
        tenant_id: str,
        agent_type: Optional[str] = None,
        status: Optional[TaskStatus] = None,
    ) -> list[Task]:
        """List a tenant's tasks, newest first."""

    # -------------------------------------------------------------------------
    # Workflows
    # -------------------------------------------------------------------------
    @abstractmethod
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        """Insert a new workflow row (version 0)."""

    @abstractmethod
    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Retrieve a workflow by id, or None."""

    @abstractmethod
    async def update_workflow(
        self, workflow: Workflow, expected_version: int
    ) -> Workflow:
        """Compare-and-swap a workflow row.

        The write succeeds only if the stored version equals
        ``expected_version``; the stored copy gets ``expected_version + 1``.

        Returns:
            The workflow as stored (with its new version).

        Raises:
            NotFoundError: If the workflow does not exist.
            WorkflowConflictError: If the stored version has moved on.
        """

    @abstractmethod
    async def list_workflows(
        self,
        tenant_id: str,
        agent_type: Optional[str] = None,
        status: Optional[WorkflowStatus] = None,
    ) -> list[Workflow]:
        """List a tenant's workflows, newest first."""

    # -------------------------------------------------------------------------
    # Logs (append-only)
    # -------------------------------------------------------------------------
    @abstractmethod
    async def append_log(self, entry: LogEntry) -> LogEntry:
        """Append an audit log entry."""

    @abstractmethod
    async def list_logs(
        self,
        tenant_id: Optional[str] = None,
        *,
        agent_type: Optional[str] = None,
        event_type: Optional[LogEventType] = None,
        workflow_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
        oldest_first: bool = False,
    ) -> list[LogEntry]:
        """List log entries matching every given filter.

        Newest first by default; ``oldest_first=True`` reverses the order
        (used for a workflow's step-by-step audit trail).
        """


# =============================================================================
# InMemoryStateManager Implementation
# =============================================================================
# Key Data Structures:
#   _memories:  list[MemoryRecord]     (append order)
#   _policies:  dict[policy_id, Policy] (insertion order = precedence order)
#   _tasks:     dict[task_id, Task]
#   _workflows: dict[workflow_id, Workflow]
#   _logs:      list[LogEntry]         (append order)
#
# Every method body runs without awaiting, so each call is atomic with
# respect to other coroutines on the same event loop. That is what makes
# the version check + write in update_workflow a real compare-and-swap.
# =============================================================================
class InMemoryStateManager(StateManager):
    """In-memory state manager for development and testing.

    Data is lost when the process ends; single-process only.

    Example:
        >>> sm = InMemoryStateManager()
        >>> await sm.connect()
        >>> await sm.save_policy(policy)
        >>> await sm.list_policies("acme", "operations", active_only=True)
    """

    def __init__(self) -> None:
        self._memories: list[MemoryRecord] = []
        self._policies: dict[str, Policy] = {}
        self._tasks: dict[str, Task] = {}
        self._workflows: dict[str, Workflow] = {}
        self._logs: list[LogEntry] = []

        self._connected: bool = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------
    async def connect(self) -> None:
        """Mark the state manager as connected."""
        self._connected = True
        logger.info("InMemoryStateManager connected")

    async def disconnect(self) -> None:
        """Clear all stored state and mark as disconnected."""
        self._memories.clear()
        self._policies.clear()
        self._tasks.clear()
        self._workflows.clear()
        self._logs.clear()
        self._connected = False
        logger.info("InMemoryStateManager disconnected")

    # -------------------------------------------------------------------------
    # Memories
    # -------------------------------------------------------------------------
    async def add_memory(self, record: MemoryRecord) -> MemoryRecord:
        self._memories.append(_snapshot(record))
        logger.debug(
            "Stored memory %s (tenant=%s, agent_type=%s, kind=%s)",
            record.memory_id,
            record.tenant_id,
            record.agent_type,
            record.memory_kind,
        )
        return record

    async def list_memories(
        self,
        tenant_id: str,
        agent_type: Optional[str] = None,
        memory_kind: Optional[MemoryKind] = None,
        limit: Optional[int] = None,
    ) -> list[MemoryRecord]:
        matches = [
            m for m in self._memories
            if m.tenant_id == tenant_id
            and (agent_type is None or m.agent_type == agent_type)
            and (memory_kind is None or m.memory_kind == memory_kind)
        ]
        ordered = _newest_first(matches, key=lambda m: m.created_at)
        return [_snapshot(m) for m in _limit(ordered, limit)]

    # -------------------------------------------------------------------------
    # Policies
    # -------------------------------------------------------------------------
    async def save_policy(self, policy: Policy) -> None:
        # Replacing keeps the original position: precedence does not change
        # when a policy is edited.
        self._policies[policy.policy_id] = _snapshot(policy)
        logger.debug("Saved policy %s (%s)", policy.policy_id, policy.name)

    async def list_policies(
        self,
        tenant_id: str,
        agent_type: Optional[str] = None,
        active_only: bool = False,
    ) -> list[Policy]:
        return [
            _snapshot(p) for p in self._policies.values()
            if p.tenant_id == tenant_id
            and (agent_type is None or p.agent_type == agent_type)
            and (not active_only or p.active)
        ]

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------
    async def create_task(self, task: Task) -> Task:
        self._tasks[task.task_id] = _snapshot(task)
        logger.debug("Created task %s (status=%s)", task.task_id, task.status)
        return _snapshot(task)

    async def update_task(self, task: Task) -> Task:
        if task.task_id not in self._tasks:
            raise NotFoundError(
                message=f"Task '{task.task_id}' not found",
                resource="task",
                resource_id=task.task_id,
            )
        stored = task.model_copy(
            update={"updated_at": datetime.now(timezone.utc)}, deep=True
        )
        self._tasks[task.task_id] = stored
        logger.debug("Updated task %s (status=%s)", task.task_id, task.status)
        return _snapshot(stored)

    async def get_task(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return None if task is None else _snapshot(task)

    async def list_tasks(
        self,
        tenant_id: str,
        agent_type: Optional[str] = None,
        status: Optional[TaskStatus] = None,
    ) -> list[Task]:
        matches = [
            t for t in self._tasks.values()
            if t.tenant_id == tenant_id
            and (agent_type is None or t.agent_type == agent_type)
            and (status is None or t.status == status)
        ]
        ordered = _newest_first(matches, key=lambda t: t.created_at)
        return [_snapshot(t) for t in ordered]

    # -------------------------------------------------------------------------
    # Workflows
    # -------------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        stored = workflow.model_copy(update={"version": 0}, deep=True)
        self._workflows[stored.workflow_id] = stored
        logger.debug(
            "Created workflow %s (%d steps)", stored.workflow_id, len(stored.plan)
        )
        return _snapshot(stored)

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        workflow = self._workflows.get(workflow_id)
        return None if workflow is None else _snapshot(workflow)

    async def update_workflow(
        self, workflow: Workflow, expected_version: int
    ) -> Workflow:
        current = self._workflows.get(workflow.workflow_id)
        if current is None:
            raise NotFoundError(
                message=f"Workflow '{workflow.workflow_id}' not found",
                resource="workflow",
                resource_id=workflow.workflow_id,
            )
        if current.version != expected_version:
            logger.warning(
                "Workflow %s CAS failed (expected v%d, found v%d)",
                workflow.workflow_id,
                expected_version,
                current.version,
            )
            raise WorkflowConflictError(
                workflow_id=workflow.workflow_id,
                expected_version=expected_version,
                actual_version=current.version,
            )

        stored = workflow.model_copy(update={
            "version": expected_version + 1,
            "updated_at": datetime.now(timezone.utc),
        }, deep=True)
        self._workflows[workflow.workflow_id] = stored
        logger.debug(
            "Updated workflow %s (step=%d/%d, status=%s, v%d)",
            stored.workflow_id,
            stored.current_step,
            len(stored.plan),
            stored.status,
            stored.version,
        )
        return _snapshot(stored)

    async def list_workflows(
        self,
        tenant_id: str,
        agent_type: Optional[str] = None,
        status: Optional[WorkflowStatus] = None,
    ) -> list[Workflow]:
        matches = [
            w for w in self._workflows.values()
            if w.tenant_id == tenant_id
            and (agent_type is None or w.agent_type == agent_type)
            and (status is None or w.status == status)
        ]
        ordered = _newest_first(matches, key=lambda w: w.created_at)
        return [_snapshot(w) for w in ordered]

    # -------------------------------------------------------------------------
    # Logs
    # -------------------------------------------------------------------------
    async def append_log(self, entry: LogEntry) -> LogEntry:
        self._logs.append(_snapshot(entry))
        logger.debug(
            "Appended %s log for tenant %s (workflow=%s)",
            entry.event_type,
            entry.tenant_id,
            entry.workflow_id,
        )
        return entry

    async def list_logs(
        self,
        tenant_id: Optional[str] = None,
        *,
        agent_type: Optional[str] = None,
        event_type: Optional[LogEventType] = None,
        workflow_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
        oldest_first: bool = False,
    ) -> list[LogEntry]:
        matches = [
            e for e in self._logs
            if (tenant_id is None or e.tenant_id == tenant_id)
            and (agent_type is None or e.agent_type == agent_type)
            and (event_type is None or e.event_type == event_type)
            and (workflow_id is None or e.workflow_id == workflow_id)
            and (since is None or e.occurred_at >= since)
        ]
        if oldest_first:
            ordered = sorted(matches, key=lambda e: e.occurred_at)
        else:
            ordered = _newest_first(matches, key=lambda e: e.occurred_at)
        return [_snapshot(e) for e in _limit(ordered, limit)]


# =============================================================================
# Internal Helpers
# =============================================================================
def _snapshot(item: _M) -> _M:
    """Detached copy, so callers never hold a reference to a stored row."""
    return item.model_copy(deep=True)


def _newest_first(items: list[_T], key) -> list[_T]:
    """Sort newest first; equal timestamps keep later inserts first."""
    # sorted() is stable under reverse=True, so pre-reversing the append
    # order makes the later insert win ties.
    return sorted(reversed(items), key=key, reverse=True)


def _limit(items: list[_T], limit: Optional[int]) -> list[_T]:
    if limit is None:
        return items
    return items[: max(limit, 0)]
