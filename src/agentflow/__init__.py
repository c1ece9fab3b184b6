"""
agentflow - Policy-Driven Agent Orchestration
===============================================

Decides what an automated agent should do next for a tenant, persists the
decision as a multi-step workflow and executes it step by step, recording
every decision and step in an append-only audit log.

Architecture Layers (top to bottom):
    1. API            - FastAPI app over the facade
    2. Facade         - AgentFlow: validation, authorization, read-back
    3. Orchestration  - Orchestrator, WorkflowEngine, DecisionEngine,
                        PolicyEngine, MemoryStore, StateManager
    4. Infrastructure - AccessControl (tenant membership directory)
    5. Core           - Config, enums, models, exceptions, logging

Quick Start:
    >>> from agentflow import AgentFlow
    >>> from agentflow.core.models import CallerIdentity
    >>> async with AgentFlow() as flow:
    ...     result = await flow.run(CallerIdentity(user_id="alice"),
    ...                             tenant_id="acme", agent_type="operations",
    ...                             goal="check SLA", mode="simulate")
"""

# =============================================================================
# Package Version
# =============================================================================
__version__ = "0.1.0"

from agentflow.facade import AgentFlow

__all__ = ["AgentFlow", "__version__"]
