"""
Shared Test Fixtures for agentflow
====================================

Fixtures are organized by layer:

    1. Configuration fixtures
    2. Orchestration fixtures (StateManager, engines, Orchestrator)
    3. Infrastructure fixtures (AccessControl with a seeded tenant)
    4. Facade fixtures (AgentFlow and callers)
"""

from __future__ import annotations

import pytest

from agentflow.core.config import AgentFlowConfig
from agentflow.core.models import CallerIdentity
from agentflow.facade import AgentFlow
from agentflow.infrastructure.access_control import InMemoryAccessControl
from agentflow.orchestration.decision_engine import DecisionEngine
from agentflow.orchestration.memory_store import MemoryStore
from agentflow.orchestration.orchestrator import Orchestrator
from agentflow.orchestration.policy_engine import PolicyEngine
from agentflow.orchestration.state_manager import InMemoryStateManager
from agentflow.orchestration.step_handlers import StepHandlerRegistry
from agentflow.orchestration.workflow_engine import WorkflowEngine

TENANT = "acme"
OTHER_TENANT = "globex"
AGENT_TYPE = "operations"


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def config():
    """AgentFlow configuration with defaults."""
    return AgentFlowConfig()


# =============================================================================
# Orchestration
# =============================================================================

@pytest.fixture
def state_manager():
    """Fresh InMemoryStateManager."""
    return InMemoryStateManager()


@pytest.fixture
def memory_store(state_manager):
    return MemoryStore(state_manager)


@pytest.fixture
def policy_engine(state_manager):
    return PolicyEngine(state_manager)


@pytest.fixture
def decision_engine(state_manager, memory_store, policy_engine):
    return DecisionEngine(
        state_manager=state_manager,
        memory_store=memory_store,
        policy_engine=policy_engine,
    )


@pytest.fixture
def step_handlers():
    """Empty StepHandlerRegistry (bookkeeping only)."""
    return StepHandlerRegistry()


@pytest.fixture
def workflow_engine(state_manager, step_handlers):
    return WorkflowEngine(state_manager, step_handlers)


@pytest.fixture
def orchestrator(state_manager, memory_store, decision_engine, workflow_engine):
    return Orchestrator(
        state_manager=state_manager,
        memory_store=memory_store,
        decision_engine=decision_engine,
        workflow_engine=workflow_engine,
    )


# =============================================================================
# Infrastructure
# =============================================================================

@pytest.fixture
def access_control():
    """Directory with one member per role for TENANT, plus a platform admin."""
    access = InMemoryAccessControl()
    access.add_member(TENANT, "owner-1", "company_owner")
    access.add_member(TENANT, "admin-1", "company_admin")
    access.add_member(TENANT, "viewer-1", "company_member")
    access.add_member(OTHER_TENANT, "outsider-1", "company_owner")
    access.grant_platform_role("root", "admin")
    return access


# =============================================================================
# Facade
# =============================================================================

@pytest.fixture
async def agentflow(config, state_manager, access_control, step_handlers):
    """Initialized AgentFlow facade over the shared fixtures."""
    flow = AgentFlow(
        config,
        state_manager=state_manager,
        access_control=access_control,
        step_handlers=step_handlers,
        setup_logging=False,
    )
    await flow.initialize()
    yield flow
    await flow.shutdown()


@pytest.fixture
def owner():
    return CallerIdentity(user_id="owner-1")


@pytest.fixture
def platform_admin():
    return CallerIdentity(user_id="root")
