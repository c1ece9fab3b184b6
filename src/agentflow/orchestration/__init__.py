"""
agentflow.orchestration - Orchestration Layer
===============================================

The decision and execution engine, leaf first:

    - StateManager:        Persistence for memories, policies, tasks,
                           workflows and logs (with workflow CAS)
    - MemoryStore:         Append-only agent memory
    - PolicyEngine:        Declarative condition → action rule evaluation
    - DecisionEngine:      Memory + policies → one Decision per request
    - StepHandlerRegistry: Pluggable execution of workflow plan steps
    - WorkflowEngine:      Fixed four-step persisted plans, one step per call
    - Orchestrator:        simulate / plan / auto runs with Task bookkeeping
"""

from agentflow.orchestration.decision_engine import (
    DEFAULT_ACTION,
    MEMORY_CONTEXT_WINDOW,
    MEMORY_EVIDENCE_WINDOW,
    DecisionEngine,
)
from agentflow.orchestration.memory_store import MEMORY_LIST_LIMIT, MemoryStore
from agentflow.orchestration.orchestrator import Orchestrator
from agentflow.orchestration.policy_engine import (
    PolicyEngine,
    evaluate_condition,
    evaluate_policies,
)
from agentflow.orchestration.state_manager import InMemoryStateManager, StateManager
from agentflow.orchestration.step_handlers import (
    StepContext,
    StepHandler,
    StepHandlerRegistry,
    bookkeeping_handler,
)
from agentflow.orchestration.workflow_engine import PLAN_TEMPLATE, WorkflowEngine

__all__ = [
    # Persistence
    "StateManager",
    "InMemoryStateManager",
    # Memory
    "MemoryStore",
    "MEMORY_LIST_LIMIT",
    # Policies
    "PolicyEngine",
    "evaluate_condition",
    "evaluate_policies",
    # Decisions
    "DecisionEngine",
    "DEFAULT_ACTION",
    "MEMORY_CONTEXT_WINDOW",
    "MEMORY_EVIDENCE_WINDOW",
    # Workflows
    "PLAN_TEMPLATE",
    "WorkflowEngine",
    "StepContext",
    "StepHandler",
    "StepHandlerRegistry",
    "bookkeeping_handler",
    # Runs
    "Orchestrator",
]
