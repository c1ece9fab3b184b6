"""
agentflow.core - Foundation Layer
=================================

Plain data structures and configuration shared by every other module:

    - config:          AgentFlowConfig, AccessConfig, load_config()
    - enums:           RunMode, TaskStatus, WorkflowStatus, LogEventType, ...
    - models:          Pydantic entities (Policy, Task, Workflow, LogEntry, ...)
    - exceptions:      AgentFlowError hierarchy with status classification
    - logging_config:  structlog setup

Dependency Rule:
    core/ depends on NOTHING else in the agentflow package.
"""

from agentflow.core.config import AccessConfig, AgentFlowConfig, load_config
from agentflow.core.enums import (
    ConditionOperator,
    LogEventType,
    MemoryKind,
    RunMode,
    StepStatus,
    TaskStatus,
    WorkflowStatus,
)
from agentflow.core.exceptions import (
    AgentFlowError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    StateError,
    StepExecutionError,
    ValidationError,
    WorkflowConflictError,
    WorkflowError,
)
from agentflow.core.models import (
    CallerIdentity,
    Decision,
    LogEntry,
    MemoryRecord,
    Policy,
    PolicyAction,
    PolicyCondition,
    RunResult,
    Task,
    Workflow,
    WorkflowStep,
)

__all__ = [
    # Config
    "AgentFlowConfig",
    "AccessConfig",
    "load_config",
    # Enums
    "ConditionOperator",
    "LogEventType",
    "MemoryKind",
    "RunMode",
    "StepStatus",
    "TaskStatus",
    "WorkflowStatus",
    # Models
    "CallerIdentity",
    "Decision",
    "LogEntry",
    "MemoryRecord",
    "Policy",
    "PolicyAction",
    "PolicyCondition",
    "RunResult",
    "Task",
    "Workflow",
    "WorkflowStep",
    # Exceptions
    "AgentFlowError",
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "NotFoundError",
    "StateError",
    "StepExecutionError",
    "ValidationError",
    "WorkflowConflictError",
    "WorkflowError",
]
