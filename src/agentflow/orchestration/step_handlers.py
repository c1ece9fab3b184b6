"""
agentflow.orchestration.step_handlers - Pluggable Step Execution
==================================================================

A workflow plan is a list of step action names (``gather_context``,
``evaluate_policies``, ...). When the WorkflowEngine advances a step it looks
up a handler for that action name here and awaits it; the returned dict
becomes the step's ``result``.

    registry = StepHandlerRegistry()

    @registry.handler("execute_decision")
    async def send_it(ctx: StepContext) -> dict:
        await notifier.send(ctx.decision["action"], ctx.decision.get("params"))
        return {"sent": True}

Steps without a registered handler fall back to ``bookkeeping_handler``,
which does no work and only lets the engine stamp ``executed_at``.
A handler that raises aborts the advance; the engine reports it as a
``StepExecutionError`` and leaves the workflow untouched.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel, Field

from agentflow.core.models import Workflow, WorkflowStep

logger = structlog.get_logger()


class StepContext(BaseModel):
    """Everything a step handler may read.

    Attributes:
        workflow: Private copy of the workflow before this step is
            advanced. Changes made to it are never persisted.
        step: The step being executed.
        decision: The decision the workflow was created for (empty dict if
            the workflow was created without one).
    """

    workflow: Workflow
    step: WorkflowStep
    decision: dict[str, Any] = Field(default_factory=dict)

    @property
    def tenant_id(self) -> str:
        return self.workflow.tenant_id

    @property
    def agent_type(self) -> str:
        return self.workflow.agent_type


StepHandler = Callable[[StepContext], Awaitable[Optional[dict[str, Any]]]]


async def bookkeeping_handler(context: StepContext) -> dict[str, Any]:
    """Default handler: performs nothing, the step is only marked done."""
    return {}


class StepHandlerRegistry:
    """Maps step action names to async handlers."""

    def __init__(self, default: StepHandler = bookkeeping_handler) -> None:
        self._handlers: dict[str, StepHandler] = {}
        self._default = default
        self._logger = logger.bind(component="step_handlers")

    def register(self, action: str, handler: StepHandler) -> None:
        """Register (or replace) the handler for ``action``."""
        if action in self._handlers:
            self._logger.warning("step_handler_replaced", action=action)
        self._handlers[action] = handler
        self._logger.debug("step_handler_registered", action=action)

    def handler(self, action: str) -> Callable[[StepHandler], StepHandler]:
        """Decorator form of ``register``."""

        def decorator(func: StepHandler) -> StepHandler:
            self.register(action, func)
            return func

        return decorator

    def unregister(self, action: str) -> bool:
        return self._handlers.pop(action, None) is not None

    def has_handler(self, action: str) -> bool:
        return action in self._handlers

    def resolve(self, action: str) -> StepHandler:
        """Return the handler for ``action``, or the default handler."""
        return self._handlers.get(action, self._default)

    @property
    def actions(self) -> list[str]:
        return list(self._handlers)
