"""
agentflow.orchestration.workflow_engine - Persisted Step-by-Step Workflows
============================================================================

The Workflow Engine turns a goal into a fixed, persisted plan and advances
that plan one step per call.

Workflow State Machine:

    ┌─────────┐  first step done,   ┌─────────────┐  cursor reaches   ┌───────────┐
    │ PENDING  │ ── steps remain ──→ │ IN_PROGRESS  │ ── plan length ─→ │ COMPLETED  │
    └─────────┘                     └─────────────┘                    └───────────┘
         │                                                                   ↑
         └──────────────── single-step plan completed ───────────────────────┘

    There is no error state: a failing step leaves the workflow unchanged.

Plan Template (identical for every goal):

    1. gather_context  2. evaluate_policies  3. execute_decision  4. store_results

Advancing a Step (``execute_next_step``):

    lock(workflow_id)
      load ──→ at end?  ──yes──→ (re-)mark completed, return "completed"
                 │ no
                 ↓
      run step handler ──raises──→ StepExecutionError (nothing written)
                 │
                 ↓
      mark step completed, cursor += 1, status = in_progress | completed
      CAS write (expected version) ──conflict──→ WorkflowConflictError
                 │
                 ↓
      append workflow_step log, return "step_completed"

Concurrency:
    Advances of the same workflow are serialized by a per-workflow
    ``asyncio.Lock`` inside this process, and every write is a
    compare-and-swap on ``Workflow.version`` so that a second process
    sharing the store cannot double-advance the cursor either.
"""

from __future__ import annotations

import asyncio
import weakref
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import structlog

from agentflow.core.enums import LogEventType, StepStatus, WorkflowStatus
from agentflow.core.exceptions import NotFoundError, StepExecutionError, WorkflowError
from agentflow.core.models import LogEntry, StepOutcome, Workflow, WorkflowStep
from agentflow.orchestration.state_manager import StateManager
from agentflow.orchestration.step_handlers import StepContext, StepHandlerRegistry

logger = structlog.get_logger()

PLAN_TEMPLATE: tuple[str, ...] = (
    "gather_context",
    "evaluate_policies",
    "execute_decision",
    "store_results",
)


class WorkflowEngine:
    """Creates workflows from the plan template and advances them.

    Attributes:
        _state: Persistence for workflows and their log entries.
        _handlers: Step handlers, resolved by step action name.
        _plan_template: Step action names every new plan is built from.
        _locks: Per-workflow locks; an entry lives only while some
            coroutine holds a reference to it.

    Example:
        >>> engine = WorkflowEngine(state_manager, StepHandlerRegistry())
        >>> workflow = await engine.create_plan("acme", "operations", "check SLA")
        >>> outcome = await engine.execute_next_step(workflow.workflow_id)
        >>> outcome.status
        'step_completed'
    """

    def __init__(
        self,
        state_manager: StateManager,
        step_handlers: Optional[StepHandlerRegistry] = None,
        plan_template: Sequence[str] = PLAN_TEMPLATE,
    ) -> None:
        self._state = state_manager
        self._handlers = step_handlers or StepHandlerRegistry()
        self._plan_template = tuple(plan_template)
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._logger = logger.bind(component="workflow_engine")

    @property
    def step_handlers(self) -> StepHandlerRegistry:
        return self._handlers

    # =========================================================================
    # Plan Creation
    # =========================================================================

    async def create_plan(
        self,
        tenant_id: str,
        agent_type: str,
        goal: str,
        task_id: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> Workflow:
        """Create and persist a workflow with the template plan.

        Every step starts ``pending``, the cursor at 0 and the workflow
        ``pending``. One ``workflow_step`` log entry records the creation.

        Args:
            tenant_id: Owning tenant.
            agent_type: Agent type the workflow runs for.
            goal: Free-text goal the workflow serves.
            task_id: Task that requested the workflow, if any.
            context: Data for step handlers (the orchestrator passes the
                decision under ``"decision"``).
        """
        workflow = Workflow(
            tenant_id=tenant_id,
            agent_type=agent_type,
            goal=goal,
            plan=[
                WorkflowStep(step=number, action=action)
                for number, action in enumerate(self._plan_template, start=1)
            ],
            task_id=task_id,
            context=context or {},
        )
        workflow = await self._state.create_workflow(workflow)

        await self._state.append_log(
            LogEntry(
                tenant_id=tenant_id,
                agent_type=agent_type,
                task_id=task_id,
                workflow_id=workflow.workflow_id,
                event_type=LogEventType.WORKFLOW_STEP,
                details={"action": "workflow_created", "goal": goal},
            )
        )

        self._logger.info(
            "workflow_created",
            workflow_id=workflow.workflow_id,
            tenant_id=tenant_id,
            agent_type=agent_type,
            steps=len(workflow.plan),
        )
        return workflow

    # =========================================================================
    # Step Advancement
    # =========================================================================

    async def execute_next_step(self, workflow_id: str) -> StepOutcome:
        """Advance the workflow by exactly one step.

        Safe to call repeatedly after completion: it returns
        ``status="completed"`` and writes nothing further.

        Raises:
            NotFoundError: If the workflow does not exist.
            StepExecutionError: If the step handler raised. The workflow is
                left exactly as it was.
            WorkflowConflictError: If another writer advanced the workflow
                between our read and our write.
            StateError: If the step log entry cannot be appended. The
                advance itself is already stored; the missing entry is
                reported as a ``workflow_step_log_failed`` event.
        """
        lock = self._lock_for(workflow_id)
        async with lock:
            return await self._advance(workflow_id)

    async def _advance(self, workflow_id: str) -> StepOutcome:
        workflow = await self._state.get_workflow(workflow_id)
        if workflow is None:
            raise NotFoundError(
                message=f"Workflow '{workflow_id}' not found",
                resource="workflow",
                resource_id=workflow_id,
            )

        if workflow.is_completed:
            if workflow.status != WorkflowStatus.COMPLETED:
                workflow = await self._state.update_workflow(
                    workflow.model_copy(update={"status": WorkflowStatus.COMPLETED}),
                    expected_version=workflow.version,
                )
            return StepOutcome(status=StepOutcome.COMPLETED, workflow=workflow)

        index = workflow.current_step
        step = workflow.plan[index]
        result = await self._run_handler(workflow, step)

        completed_step = step.model_copy(
            update={"status": StepStatus.COMPLETED, "result": result}
        )
        plan = list(workflow.plan)
        plan[index] = completed_step
        cursor = index + 1
        status = (
            WorkflowStatus.COMPLETED if cursor == len(plan) else WorkflowStatus.IN_PROGRESS
        )

        stored = await self._state.update_workflow(
            workflow.model_copy(
                update={"plan": plan, "current_step": cursor, "status": status}
            ),
            expected_version=workflow.version,
        )

        entry = LogEntry(
            tenant_id=workflow.tenant_id,
            agent_type=workflow.agent_type,
            task_id=workflow.task_id,
            workflow_id=workflow_id,
            event_type=LogEventType.WORKFLOW_STEP,
            details={
                "step": completed_step.step,
                "action": completed_step.action,
                "current_step": cursor,
                "status": status.value,
            },
        )
        try:
            await self._state.append_log(entry)
        except Exception as exc:
            # The advance is already stored; this record is the only trace
            # of it until the audit log is repaired.
            self._logger.error(
                "workflow_step_log_failed",
                workflow_id=workflow_id,
                step=completed_step.step,
                action=completed_step.action,
                current_step=cursor,
                status=status.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise

        self._logger.info(
            "workflow_step_completed",
            workflow_id=workflow_id,
            step=completed_step.step,
            action=completed_step.action,
            current_step=cursor,
            total_steps=len(plan),
            status=status.value,
        )
        return StepOutcome(
            status=StepOutcome.STEP_COMPLETED, step=completed_step, workflow=stored
        )

    async def _run_handler(self, workflow: Workflow, step: WorkflowStep) -> dict[str, Any]:
        handler = self._handlers.resolve(step.action)
        snapshot = workflow.model_copy(deep=True)
        context = StepContext(
            workflow=snapshot,
            step=snapshot.plan[snapshot.current_step],
            decision=snapshot.context.get("decision") or {},
        )
        try:
            output = await handler(context)
        except Exception as exc:
            self._logger.error(
                "workflow_step_failed",
                workflow_id=workflow.workflow_id,
                step=step.step,
                action=step.action,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise StepExecutionError(
                message=f"Step {step.step} ({step.action}) failed: {exc}",
                workflow_id=workflow.workflow_id,
                step=step.step,
                action=step.action,
                details={"error_type": type(exc).__name__},
            ) from exc

        result = dict(output or {})
        result["executed_at"] = datetime.now(timezone.utc).isoformat()
        return result

    def _lock_for(self, workflow_id: str) -> asyncio.Lock:
        lock = self._locks.get(workflow_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[workflow_id] = lock
        return lock

    # =========================================================================
    # Auto Execution
    # =========================================================================

    async def run_until_complete(
        self,
        workflow_id: str,
        max_steps: int,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Workflow:
        """Advance the workflow until it completes.

        Args:
            workflow_id: Workflow to drive.
            max_steps: Ceiling on steps advanced by this call.
            cancel_event: Checked before every step; once set, the run stops.

        Returns:
            The completed workflow.

        Raises:
            WorkflowError: ``RUN_CANCELLED`` if ``cancel_event`` was set, or
                ``MAX_STEPS_EXCEEDED`` if the plan still had steps left after
                ``max_steps`` advances. Steps already advanced stay advanced.
        """
        steps_run = 0
        while True:
            if cancel_event is not None and cancel_event.is_set():
                self._logger.warning(
                    "workflow_run_cancelled", workflow_id=workflow_id, steps_run=steps_run
                )
                raise WorkflowError(
                    message=f"Run of workflow '{workflow_id}' was cancelled",
                    workflow_id=workflow_id,
                    error_code="RUN_CANCELLED",
                    details={"steps_run": steps_run},
                )

            outcome = await self.execute_next_step(workflow_id)
            if outcome.status != StepOutcome.STEP_COMPLETED or outcome.workflow.is_completed:
                return outcome.workflow

            steps_run += 1
            if steps_run >= max_steps:
                self._logger.warning(
                    "workflow_step_limit_reached",
                    workflow_id=workflow_id,
                    max_steps=max_steps,
                    current_step=outcome.workflow.current_step,
                )
                raise WorkflowError(
                    message=(
                        f"Workflow '{workflow_id}' did not complete within "
                        f"{max_steps} steps"
                    ),
                    workflow_id=workflow_id,
                    error_code="MAX_STEPS_EXCEEDED",
                    details={
                        "max_steps": max_steps,
                        "current_step": outcome.workflow.current_step,
                    },
                )
