"""
agentflow.orchestration.orchestrator - Agent Run Orchestration
================================================================

Drives one orchestration request from Task creation to its terminal status.

Run Flow:

    create Task (running)
        │
        ↓
    DecisionEngine.decide_next_action ──→ decision log
        │
        ↓
    MemoryStore.record(observation)
        │
        ├── SIMULATE ──→ Task completed {executed: false}          (no workflow)
        │
        ↓
    WorkflowEngine.create_plan ──→ creation log
        │
        ├── PLAN ──────→ Task completed {workflow_id, executed: false}
        │
        ↓
    WorkflowEngine.run_until_complete ──→ one log per step
        │
        └── AUTO ──────→ Task completed {workflow_id, executed: true}

    Any exception after the Task exists ──→ Task error {error, error_type},
    then the exception is re-raised unchanged.

The Orchestrator is the only component that catches errors, and only to
make sure a Task never stays ``running``. It never retries.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import structlog

from agentflow.core.enums import MemoryKind, RunMode, TaskStatus
from agentflow.core.models import RunResult, Task
from agentflow.orchestration.decision_engine import DecisionEngine
from agentflow.orchestration.memory_store import MemoryStore
from agentflow.orchestration.state_manager import StateManager
from agentflow.orchestration.workflow_engine import WorkflowEngine

logger = structlog.get_logger()

DEFAULT_MAX_AUTO_STEPS = 100


class Orchestrator:
    """Runs an agent for a tenant in simulate, plan or auto mode.

    Attributes:
        _max_auto_steps: Step ceiling for one auto-mode run.
    """

    def __init__(
        self,
        state_manager: StateManager,
        memory_store: MemoryStore,
        decision_engine: DecisionEngine,
        workflow_engine: WorkflowEngine,
        max_auto_steps: int = DEFAULT_MAX_AUTO_STEPS,
    ) -> None:
        self._state = state_manager
        self._memory = memory_store
        self._decisions = decision_engine
        self._workflows = workflow_engine
        self._max_auto_steps = max_auto_steps
        self._logger = logger.bind(component="orchestrator")

    async def run_agent(
        self,
        tenant_id: str,
        agent_type: str,
        goal: str,
        facts: dict[str, Any],
        mode: RunMode = RunMode.SIMULATE,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunResult:
        """Run one orchestration request.

        Inputs are assumed to be validated and the caller authorized.

        Args:
            tenant_id: Tenant to run for.
            agent_type: Agent type whose policies and memory apply.
            goal: Free-text goal.
            facts: Fact snapshot for policy evaluation; stored as the Task
                input.
            mode: How far to go after deciding.
            cancel_event: Cancellation token for the auto loop.

        Returns:
            RunResult with the task id, decision, workflow id (None in
            simulate mode) and whether the workflow was executed.

        Raises:
            StateError: A store read or write failed.
            WorkflowError: The auto loop was cancelled, hit its step
                ceiling, or a step handler failed.
        """
        task = await self._state.create_task(
            Task(
                tenant_id=tenant_id,
                agent_type=agent_type,
                goal=goal,
                input=facts,
                status=TaskStatus.RUNNING,
            )
        )
        self._logger.info(
            "agent_run_started",
            task_id=task.task_id,
            tenant_id=tenant_id,
            agent_type=agent_type,
            mode=mode.value,
        )

        try:
            result = await self._run(task, facts, mode, cancel_event)
        except Exception as exc:
            self._logger.error(
                "agent_run_failed",
                task_id=task.task_id,
                tenant_id=tenant_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            await self._state.update_task(
                task.model_copy(update={
                    "status": TaskStatus.ERROR,
                    "result": {"error": str(exc), "error_type": type(exc).__name__},
                })
            )
            raise

        self._logger.info(
            "agent_run_completed",
            task_id=task.task_id,
            action=result.decision.action,
            workflow_id=result.workflow_id,
            executed=result.executed,
        )
        return result

    async def _run(
        self,
        task: Task,
        facts: dict[str, Any],
        mode: RunMode,
        cancel_event: Optional[asyncio.Event],
    ) -> RunResult:
        decision = await self._decisions.decide_next_action(
            task.tenant_id, task.agent_type, task.goal, facts, task_id=task.task_id
        )
        decision_payload = decision.model_dump(mode="json")

        await self._memory.record(
            task.tenant_id,
            task.agent_type,
            MemoryKind.OBSERVATION,
            {"goal": task.goal, "decision_action": decision.action},
        )

        if mode == RunMode.SIMULATE:
            await self._complete(task, {
                "mode": mode.value,
                "decision": decision_payload,
                "executed": False,
            })
            return RunResult(task_id=task.task_id, mode=mode, decision=decision)

        workflow = await self._workflows.create_plan(
            task.tenant_id,
            task.agent_type,
            task.goal,
            task_id=task.task_id,
            context={"decision": decision_payload},
        )

        executed = mode == RunMode.AUTO
        if executed:
            await self._workflows.run_until_complete(
                workflow.workflow_id,
                max_steps=self._max_auto_steps,
                cancel_event=cancel_event,
            )

        await self._complete(task, {
            "mode": mode.value,
            "decision": decision_payload,
            "workflow_id": workflow.workflow_id,
            "executed": executed,
        })
        return RunResult(
            task_id=task.task_id,
            mode=mode,
            decision=decision,
            workflow_id=workflow.workflow_id,
            executed=executed,
        )

    async def _complete(self, task: Task, result: dict[str, Any]) -> None:
        await self._state.update_task(
            task.model_copy(update={"status": TaskStatus.COMPLETED, "result": result})
        )
