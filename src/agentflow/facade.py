"""
agentflow.facade - AgentFlow Request Boundary
===============================================

The ``AgentFlow`` facade wires every layer together and is the only entry
point callers (the HTTP API, scripts, tests) should use.

    ┌──────────────────────────────────────────────────┐
    │                AgentFlow (Facade)                 │
    │   validate → authorize → orchestrate / read back  │
    │                                                   │
    │  ┌─────────────────────────────────────────────┐ │
    │  │            Orchestration Layer               │ │
    │  │  Orchestrator, WorkflowEngine,               │ │
    │  │  DecisionEngine, PolicyEngine, MemoryStore   │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │     StateManager        AccessControl        │ │
    │  └─────────────────────────────────────────────┘ │
    └──────────────────────────────────────────────────┘

Every public operation follows the same order:

    1. Validation     missing/blank required fields → ValidationError
    2. Authorization  no caller → AuthenticationError,
                      not allowed on tenant → AuthorizationError
    3. State access   only after both checks pass

so a rejected request never leaves a Task, Memory, Workflow or Log row.

Usage:
    >>> async with AgentFlow() as flow:
    ...     result = await flow.run(
    ...         CallerIdentity(user_id="alice"),
    ...         tenant_id="acme",
    ...         agent_type="operations",
    ...         goal="check SLA",
    ...         facts={"score": 50},
    ...         mode="auto",
    ...     )
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional, TypeVar

import structlog

from agentflow.core.config import AgentFlowConfig
from agentflow.core.enums import LogEventType, MemoryKind, RunMode, TaskStatus, WorkflowStatus
from agentflow.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from agentflow.core.logging_config import configure_logging
from agentflow.core.models import (
    AgentStats,
    CallerIdentity,
    LogEntry,
    MemoryRecord,
    RunResult,
    StepOutcome,
    Task,
    Workflow,
    WorkflowDetails,
)
from agentflow.infrastructure.access_control import AccessControl, InMemoryAccessControl
from agentflow.orchestration.decision_engine import DecisionEngine
from agentflow.orchestration.memory_store import MemoryStore
from agentflow.orchestration.orchestrator import Orchestrator
from agentflow.orchestration.policy_engine import PolicyEngine
from agentflow.orchestration.state_manager import InMemoryStateManager, StateManager
from agentflow.orchestration.step_handlers import StepHandlerRegistry
from agentflow.orchestration.workflow_engine import WorkflowEngine

logger = structlog.get_logger()

# Upper bound (and default) for log listings.
LOG_LIST_LIMIT = 100

_E = TypeVar("_E", bound=Enum)


class AgentFlow:
    """Top-level facade for the agentflow engine.

    Attributes:
        _config: Engine configuration.
        _state_manager: Persistence backend shared by all components.
        _access_control: Membership directory for the authorization gate.
        _orchestrator: Runs agent requests.
        _workflow_engine: Advances workflows (also exposed for manual
            stepping of plan-mode workflows).
    """

    def __init__(
        self,
        config: Optional[AgentFlowConfig] = None,
        *,
        state_manager: Optional[StateManager] = None,
        access_control: Optional[AccessControl] = None,
        step_handlers: Optional[StepHandlerRegistry] = None,
        setup_logging: bool = True,
    ) -> None:
        """Initialize the facade and wire its components.

        Args:
            config: Engine configuration. Defaults to AgentFlowConfig(),
                which reads AGENTFLOW_* environment variables.
            state_manager: Persistence backend. Defaults to
                InMemoryStateManager.
            access_control: Membership directory. Defaults to an empty
                InMemoryAccessControl (nobody is authorized).
            step_handlers: Handlers for workflow steps. Defaults to an
                empty registry (bookkeeping only).
            setup_logging: Configure structlog from ``config``. Pass False
                if the host application configures logging itself.
        """
        # --- Configuration ---
        self._config = config or AgentFlowConfig()
        if setup_logging:
            configure_logging(self._config.log_level, self._config.log_format)

        # --- Infrastructure ---
        self._state_manager = state_manager or InMemoryStateManager()
        self._access_control = access_control or InMemoryAccessControl()

        # --- Orchestration Layer ---
        self._memory_store = MemoryStore(self._state_manager)
        self._policy_engine = PolicyEngine(self._state_manager)
        self._decision_engine = DecisionEngine(
            state_manager=self._state_manager,
            memory_store=self._memory_store,
            policy_engine=self._policy_engine,
        )
        self._workflow_engine = WorkflowEngine(
            state_manager=self._state_manager,
            step_handlers=step_handlers or StepHandlerRegistry(),
        )
        self._orchestrator = Orchestrator(
            state_manager=self._state_manager,
            memory_store=self._memory_store,
            decision_engine=self._decision_engine,
            workflow_engine=self._workflow_engine,
            max_auto_steps=self._config.max_auto_steps,
        )

        # --- Tracking ---
        self._initialized = False
        self._logger = logger.bind(component="agentflow")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> AgentFlowConfig:
        return self._config

    @property
    def state_manager(self) -> StateManager:
        return self._state_manager

    @property
    def access_control(self) -> AccessControl:
        return self._access_control

    @property
    def step_handlers(self) -> StepHandlerRegistry:
        return self._workflow_engine.step_handlers

    @property
    def orchestrator(self) -> Orchestrator:
        return self._orchestrator

    @property
    def workflow_engine(self) -> WorkflowEngine:
        return self._workflow_engine

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def initialize(self) -> None:
        """Connect the state manager. Idempotent."""
        if self._initialized:
            self._logger.debug("agentflow_already_initialized")
            return

        self._logger.info("agentflow_initializing", environment=self._config.environment)
        await self._state_manager.connect()

        self._initialized = True
        self._logger.info("agentflow_initialized")

    async def shutdown(self) -> None:
        """Disconnect the state manager. Idempotent."""
        if not self._initialized:
            self._logger.debug("agentflow_not_initialized_skipping_shutdown")
            return

        self._logger.info("agentflow_shutting_down")
        await self._state_manager.disconnect()

        self._initialized = False
        self._logger.info("agentflow_shutdown_complete")

    async def __aenter__(self) -> AgentFlow:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Authorization Gate
    # =========================================================================

    async def authorize(self, caller: Optional[CallerIdentity], tenant_id: str) -> None:
        """Allow tenant owners/admins and platform admins; reject everyone else.

        Raises:
            AuthenticationError: No caller identity was presented.
            AuthorizationError: ``TENANT_MEMBERSHIP_REQUIRED`` if the caller
                is not a member of the tenant, ``INSUFFICIENT_ROLE`` if they
                are a member without an admin role.
        """
        if caller is None or not caller.user_id.strip():
            raise AuthenticationError()

        access = self._config.access
        role = await self._access_control.get_tenant_role(tenant_id, caller.user_id)
        if role is not None and role in access.tenant_admin_roles:
            return

        platform_roles = await self._access_control.get_platform_roles(caller.user_id)
        if access.platform_admin_role in platform_roles:
            return

        self._logger.warning(
            "authorization_denied",
            tenant_id=tenant_id,
            user_id=caller.user_id,
            tenant_role=role,
        )
        if role is None:
            raise AuthorizationError(
                message=f"User '{caller.user_id}' is not a member of tenant '{tenant_id}'",
                tenant_id=tenant_id,
                user_id=caller.user_id,
                error_code="TENANT_MEMBERSHIP_REQUIRED",
            )
        raise AuthorizationError(
            message=f"Role '{role}' may not use agents for tenant '{tenant_id}'",
            tenant_id=tenant_id,
            user_id=caller.user_id,
            error_code="INSUFFICIENT_ROLE",
            details={"role": role},
        )

    # =========================================================================
    # Agent Runs
    # =========================================================================

    async def run(
        self,
        caller: Optional[CallerIdentity],
        *,
        tenant_id: Optional[str],
        agent_type: Optional[str],
        goal: Optional[str],
        facts: Optional[dict[str, Any]] = None,
        mode: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunResult:
        """Decide (and depending on ``mode``, plan and execute) for a tenant.

        Args:
            caller: Authenticated caller identity.
            tenant_id: Tenant to run for. Required.
            agent_type: Agent type. Required.
            goal: Free-text goal. Required.
            facts: Fact snapshot for policy evaluation (the request's
                ``input``). Defaults to an empty dict.
            mode: ``simulate``, ``plan`` or ``auto``. None uses the
                configured default; ``supervised`` and unrecognised values
                mean ``plan``.
            cancel_event: Cancellation token for an auto run.

        Raises:
            ValidationError: A required field is missing or blank, or
                ``facts`` is not a mapping.
            AuthenticationError / AuthorizationError: See ``authorize``.
            StateError, WorkflowError: The run failed; its Task is marked
                ``error``.
        """
        self._ensure_initialized()
        _require(tenant_id=tenant_id, agent_type=agent_type, goal=goal)
        if facts is not None and not isinstance(facts, dict):
            raise ValidationError(
                message="Field 'input' must be an object",
                fields=["input"],
                error_code="INVALID_FIELD_TYPE",
            )
        run_mode = self._resolve_mode(mode)

        await self.authorize(caller, tenant_id)

        return await self._orchestrator.run_agent(
            tenant_id=tenant_id,
            agent_type=agent_type,
            goal=goal,
            facts=facts or {},
            mode=run_mode,
            cancel_event=cancel_event,
        )

    async def execute_next_step(
        self,
        caller: Optional[CallerIdentity],
        *,
        tenant_id: Optional[str],
        workflow_id: Optional[str],
    ) -> StepOutcome:
        """Advance one of the tenant's workflows by a single step."""
        self._ensure_initialized()
        _require(tenant_id=tenant_id, workflow_id=workflow_id)
        await self.authorize(caller, tenant_id)

        await self._get_tenant_workflow(tenant_id, workflow_id)
        return await self._workflow_engine.execute_next_step(workflow_id)

    # =========================================================================
    # Read-Back Operations
    # =========================================================================

    async def list_logs(
        self,
        caller: Optional[CallerIdentity],
        *,
        tenant_id: Optional[str],
        agent_type: Optional[str] = None,
        event_type: Optional[str] = None,
        workflow_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[LogEntry]:
        """List the tenant's log entries, newest first.

        ``limit`` defaults to and is clamped at 100 (minimum 1).
        """
        self._ensure_initialized()
        _require(tenant_id=tenant_id)
        event = _parse_enum(LogEventType, event_type, "event_type")
        bounded = LOG_LIST_LIMIT if limit is None else max(1, min(limit, LOG_LIST_LIMIT))
        await self.authorize(caller, tenant_id)

        return await self._state_manager.list_logs(
            tenant_id,
            agent_type=agent_type or None,
            event_type=event,
            workflow_id=workflow_id or None,
            limit=bounded,
        )

    async def get_workflow_details(
        self,
        caller: Optional[CallerIdentity],
        *,
        tenant_id: Optional[str],
        workflow_id: Optional[str],
    ) -> WorkflowDetails:
        """Return a workflow with its log entries in the order they happened.

        Raises:
            NotFoundError: Unknown workflow, or one owned by another tenant.
        """
        self._ensure_initialized()
        _require(tenant_id=tenant_id, workflow_id=workflow_id)
        await self.authorize(caller, tenant_id)

        workflow = await self._get_tenant_workflow(tenant_id, workflow_id)
        logs = await self._state_manager.list_logs(
            tenant_id, workflow_id=workflow_id, oldest_first=True
        )
        return WorkflowDetails(workflow=workflow, logs=logs)

    async def list_tasks(
        self,
        caller: Optional[CallerIdentity],
        *,
        tenant_id: Optional[str],
        agent_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Task]:
        self._ensure_initialized()
        _require(tenant_id=tenant_id)
        task_status = _parse_enum(TaskStatus, status, "status")
        await self.authorize(caller, tenant_id)

        return await self._state_manager.list_tasks(
            tenant_id, agent_type or None, task_status
        )

    async def list_workflows(
        self,
        caller: Optional[CallerIdentity],
        *,
        tenant_id: Optional[str],
        agent_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Workflow]:
        self._ensure_initialized()
        _require(tenant_id=tenant_id)
        workflow_status = _parse_enum(WorkflowStatus, status, "status")
        await self.authorize(caller, tenant_id)

        return await self._state_manager.list_workflows(
            tenant_id, agent_type or None, workflow_status
        )

    async def list_memories(
        self,
        caller: Optional[CallerIdentity],
        *,
        tenant_id: Optional[str],
        agent_type: Optional[str] = None,
        memory_kind: Optional[str] = None,
    ) -> list[MemoryRecord]:
        self._ensure_initialized()
        _require(tenant_id=tenant_id)
        kind = _parse_enum(MemoryKind, memory_kind, "memory_kind")
        await self.authorize(caller, tenant_id)

        return await self._memory_store.list_records(tenant_id, agent_type or None, kind)

    async def get_stats(
        self,
        caller: Optional[CallerIdentity],
        *,
        tenant_id: Optional[str],
    ) -> AgentStats:
        """Counters for the tenant's agent dashboard."""
        self._ensure_initialized()
        _require(tenant_id=tenant_id)
        await self.authorize(caller, tenant_id)

        since = datetime.now(timezone.utc) - timedelta(hours=24)
        tasks = await self._state_manager.list_tasks(tenant_id)
        workflows = await self._state_manager.list_workflows(tenant_id)
        policies = await self._state_manager.list_policies(tenant_id, active_only=True)
        recent_logs = await self._state_manager.list_logs(tenant_id, since=since)
        return AgentStats(
            total_tasks=len(tasks),
            total_workflows=len(workflows),
            active_policies=len(policies),
            logs_last_24h=len(recent_logs),
        )

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _resolve_mode(self, mode: Optional[str]) -> RunMode:
        if mode is None:
            return self._config.default_mode
        if not RunMode.is_known(mode):
            self._logger.warning("unknown_run_mode", mode=mode, resolved=RunMode.PLAN.value)
        return RunMode.parse(mode)

    async def _get_tenant_workflow(self, tenant_id: str, workflow_id: str) -> Workflow:
        workflow = await self._state_manager.get_workflow(workflow_id)
        if workflow is None or workflow.tenant_id != tenant_id:
            raise NotFoundError(
                message=f"Workflow '{workflow_id}' not found",
                resource="workflow",
                resource_id=workflow_id,
            )
        return workflow

    def _ensure_initialized(self) -> None:
        """Check that initialize() has been called.

        Raises:
            RuntimeError: If the facade has not been initialized.
        """
        if not self._initialized:
            raise RuntimeError(
                "AgentFlow has not been initialized. "
                "Call await agentflow.initialize() or use 'async with AgentFlow() as agentflow:'"
            )

    def __repr__(self) -> str:
        return (
            f"AgentFlow("
            f"initialized={self._initialized}, "
            f"environment={self._config.environment!r})"
        )


def _require(**fields: Any) -> None:
    """Raise ValidationError naming every missing or blank field."""
    missing = [
        name for name, value in fields.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise ValidationError(
            message=f"Missing required fields: {', '.join(missing)}",
            fields=missing,
        )
    for name, value in fields.items():
        if not isinstance(value, str):
            raise ValidationError(
                message=f"Field '{name}' must be a string",
                fields=[name],
                error_code="INVALID_FIELD_TYPE",
            )


def _parse_enum(enum_cls: type[_E], value: Any, field: str) -> Optional[_E]:
    """Parse an optional filter value, rejecting unknown values."""
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            message=f"Invalid {field} '{value}'. Expected one of: {allowed}",
            fields=[field],
            error_code="INVALID_FIELD_VALUE",
        ) from None
