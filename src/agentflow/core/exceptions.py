"""
agentflow.core.exceptions - Custom Exception Hierarchy
========================================================

Structured exceptions for agentflow. Every exception carries a message, a
machine-readable error code, a details dict, and a coarse ``status``
classification that the request boundary turns into a caller-facing error.

Exception Hierarchy:
    AgentFlowError (base)
        ├── ConfigurationError       - Invalid config, missing required values
        ├── ValidationError          - Missing/invalid request field          [validation]
        ├── AuthenticationError      - No caller identity presented           [authorization]
        ├── AuthorizationError       - Caller lacks membership or role        [authorization]
        ├── NotFoundError            - Entity does not exist for this tenant  [not_found]
        ├── StateError               - Store read/write failed                [storage]
        │     └── WorkflowConflictError - Concurrent workflow update lost CAS
        └── WorkflowError            - Workflow advancement failed            [processing]
              └── StepExecutionError - A step handler raised

Error Handling Flow:
    Store / engine raises
        → Orchestrator catches, marks the Task ``error`` with the error captured
        → Orchestrator re-raises
        → AgentFlow facade / HTTP layer converts to {"error", "status", ...}

Nothing in the engine retries. Malformed policy conditions never raise at
all: they evaluate to "does not match".

Usage:
    >>> from agentflow.core.exceptions import NotFoundError
    >>> raise NotFoundError(
    ...     message="Workflow not found",
    ...     resource="workflow",
    ...     resource_id="wf-123",
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
class AgentFlowError(Exception):
    """Base exception for all agentflow errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code, UPPER_SNAKE_CASE.
        details: Arbitrary dict with additional debugging context.
        status: Error classification shown to callers
            (validation, authorization, not_found, storage, processing).
        http_status: HTTP status code used by the API layer.

    Example:
        >>> try:
        ...     await agentflow.run(caller, ...)
        ... except AgentFlowError as e:
        ...     print(f"[{e.status}:{e.error_code}] {e.message}")
    """

    status: str = "processing"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception for logs and API responses."""
        return {
            "error_type": self.__class__.__name__,
            "status": self.status,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration Error
# =============================================================================
class ConfigurationError(AgentFlowError):
    """Raised when agentflow configuration is invalid or missing.

    Raised at startup; the application should fail fast.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Validation Error
# =============================================================================
# Raised by the request boundary BEFORE any state is touched: no Task,
# Memory, Workflow or Log row exists for a request that fails validation.
# =============================================================================
class ValidationError(AgentFlowError):
    """Raised when a request is missing a required field or has a bad value.

    Attributes:
        fields: Names of the offending request fields.

    Example:
        >>> raise ValidationError(
        ...     message="Missing required fields: goal",
        ...     fields=["goal"],
        ... )
    """

    status = "validation"
    http_status = 400

    def __init__(
        self,
        message: str,
        fields: Optional[list[str]] = None,
        error_code: str = "MISSING_REQUIRED_FIELDS",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["fields"] = list(fields or [])

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.fields = list(fields or [])


# =============================================================================
# Authentication / Authorization Errors
# =============================================================================
# Both classify as "authorization" for the caller, but keep distinct HTTP
# codes: 401 when no identity was presented at all, 403 when the identity
# is known but not allowed to act on the tenant. Neither is ever confused
# with NotFoundError.
# =============================================================================
class AuthenticationError(AgentFlowError):
    """Raised when a request carries no caller identity."""

    status = "authorization"
    http_status = 401

    def __init__(
        self,
        message: str = "Missing caller identity",
        error_code: str = "UNAUTHENTICATED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class AuthorizationError(AgentFlowError):
    """Raised when the caller may not act on the requested tenant.

    Attributes:
        tenant_id: The tenant the caller tried to act on.
        user_id: The caller's identity.

    Common Codes:
        - TENANT_MEMBERSHIP_REQUIRED: caller does not belong to the tenant
        - INSUFFICIENT_ROLE: caller belongs but is not an owner/admin
    """

    status = "authorization"
    http_status = 403

    def __init__(
        self,
        message: str,
        tenant_id: str,
        user_id: str,
        error_code: str = "PERMISSION_DENIED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["tenant_id"] = tenant_id
        enriched_details["user_id"] = user_id

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.tenant_id = tenant_id
        self.user_id = user_id


# =============================================================================
# Not Found Error
# =============================================================================
class NotFoundError(AgentFlowError):
    """Raised when a referenced entity does not exist (for this tenant).

    Attributes:
        resource: Entity kind ("workflow", "task", ...).
        resource_id: The identifier that was looked up.
    """

    status = "not_found"
    http_status = 404

    def __init__(
        self,
        message: str,
        resource: str,
        resource_id: str,
        error_code: str = "NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["resource"] = resource
        enriched_details["resource_id"] = resource_id

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.resource = resource
        self.resource_id = resource_id


# =============================================================================
# State Error
# =============================================================================
# Any read/write failure against memories, policies, tasks, workflows or
# logs. Store backends raise this; the engine never retries it.
# =============================================================================
class StateError(AgentFlowError):
    """Raised when a persistence operation fails.

    Common Causes:
        - Backend unreachable or write rejected
        - Stored row could not be deserialized
        - Concurrent workflow update (see WorkflowConflictError)
    """

    status = "storage"
    http_status = 500

    def __init__(
        self,
        message: str,
        error_code: str = "STATE_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class WorkflowConflictError(StateError):
    """Raised when a workflow update loses its compare-and-swap.

    Two callers loaded the same workflow version and both tried to advance
    it; only the first write wins, the second gets this error.

    Attributes:
        workflow_id: The contended workflow.
        expected_version: Version the caller read.
        actual_version: Version found in the store at write time.
    """

    http_status = 409

    def __init__(
        self,
        workflow_id: str,
        expected_version: int,
        actual_version: int,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message or (
                f"Workflow '{workflow_id}' was modified concurrently "
                f"(expected version {expected_version}, found {actual_version})"
            ),
            error_code="WORKFLOW_CONFLICT",
            details={
                "workflow_id": workflow_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )

        self.workflow_id = workflow_id
        self.expected_version = expected_version
        self.actual_version = actual_version


# =============================================================================
# Workflow Error
# =============================================================================
class WorkflowError(AgentFlowError):
    """Raised when workflow advancement fails.

    Common Codes:
        - MAX_STEPS_EXCEEDED: auto loop hit its step ceiling
        - RUN_CANCELLED: the caller's cancellation token was set
        - STEP_EXECUTION_FAILED: a step handler raised (StepExecutionError)

    Attributes:
        workflow_id: ID of the workflow that encountered the error.
    """

    def __init__(
        self,
        message: str,
        workflow_id: str,
        error_code: str = "WORKFLOW_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["workflow_id"] = workflow_id

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.workflow_id = workflow_id


class StepExecutionError(WorkflowError):
    """Raised when a registered step handler fails.

    The workflow cursor is not advanced and nothing is persisted for the
    failed step.
    """

    def __init__(
        self,
        message: str,
        workflow_id: str,
        step: int,
        action: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["step"] = step
        enriched_details["action"] = action

        super().__init__(
            message=message,
            workflow_id=workflow_id,
            error_code="STEP_EXECUTION_FAILED",
            details=enriched_details,
        )

        self.step = step
        self.action = action
