"""
agentflow.core.config - Configuration Management
==================================================

Configuration for agentflow. Values are resolved with the following
priority (highest first):

    1. Explicit constructor arguments
    2. Environment variables (prefixed with AGENTFLOW_)
    3. YAML configuration file (agentflow.yaml)
    4. Default values defined in the models below

    AgentFlowConfig
        ├── AccessConfig     → AgentFlow.authorize()
        └── (other settings) → logging setup, Orchestrator auto-loop ceiling

Deliberately NOT configurable (module constants in the engines):
    - memory context window (20 records)
    - memory evidence window (5 ids)
    - log listing cap (100 entries)

Environment Variables:
    AGENTFLOW_LOG_LEVEL=DEBUG
    AGENTFLOW_LOG_FORMAT=json
    AGENTFLOW_MAX_AUTO_STEPS=50
    AGENTFLOW_ACCESS__PLATFORM_ADMIN_ROLE=superuser
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from agentflow.core.enums import RunMode
from agentflow.core.exceptions import ConfigurationError


# =============================================================================
# Access Configuration
# =============================================================================
# Which roles may drive the engine for a tenant. A caller passes the gate if
# their tenant role is one of ``tenant_admin_roles`` OR they hold
# ``platform_admin_role`` globally.
# =============================================================================
class AccessConfig(BaseModel):
    """Role names used by the authorization gate.

    Attributes:
        tenant_admin_roles: Tenant-level roles allowed to run agents and
            read engine state for that tenant.
        platform_admin_role: Platform-wide role that bypasses the tenant
            role check (but still needs no membership).
    """

    tenant_admin_roles: list[str] = Field(
        default_factory=lambda: ["company_owner", "company_admin"],
        description="Tenant roles allowed to use the engine",
    )
    platform_admin_role: str = Field(
        default="admin",
        description="Platform role that may act on any tenant",
    )


# =============================================================================
# Main Configuration
# =============================================================================
class AgentFlowConfig(BaseSettings):
    """Top-level configuration for agentflow.

    Attributes:
        environment: Deployment environment.
        log_level: Logging level for structlog/stdlib logging.
        log_format: ``console`` for human-readable output, ``json`` for
            log shippers.
        max_auto_steps: Ceiling on steps an ``auto`` run may execute in one
            request. The built-in plan has four steps, so this only bites
            for custom, longer plans.
        default_mode: Run mode used when a request omits ``mode``.
        access: Role names for the authorization gate.

    Example:
        >>> config = AgentFlowConfig(log_level="DEBUG", max_auto_steps=10)
    """

    # -------------------------------------------------------------------------
    # General Settings
    # -------------------------------------------------------------------------
    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log renderer: console or json",
    )

    # -------------------------------------------------------------------------
    # Orchestration Settings
    # -------------------------------------------------------------------------
    max_auto_steps: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Maximum workflow steps executed by one auto-mode run",
    )
    default_mode: RunMode = Field(
        default=RunMode.SIMULATE,
        description="Run mode used when the request does not specify one",
    )

    # -------------------------------------------------------------------------
    # Nested Configurations
    # -------------------------------------------------------------------------
    access: AccessConfig = Field(
        default_factory=AccessConfig,
        description="Authorization role names",
    )

    model_config = {
        "env_prefix": "AGENTFLOW_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> AgentFlowConfig:
    """Load configuration from a YAML file and/or environment variables.

    Args:
        path: Path to a YAML configuration file. If None, ``agentflow.yaml``
            in the current directory is used when present; otherwise only
            defaults and environment variables apply.

    Returns:
        A validated AgentFlowConfig.

    Raises:
        FileNotFoundError: If an explicit path is provided but doesn't exist.
        ConfigurationError: If the YAML file cannot be parsed or its top
            level is not a mapping.
    """
    if path is None:
        default_path = Path("agentflow.yaml")
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(config_path) as f:
            try:
                raw_data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    message=f"Invalid YAML in {path}: {exc}",
                    error_code="INVALID_CONFIG_FILE",
                    details={"path": str(path)},
                ) from exc

        if raw_data is None:
            raw_data = {}
        if not isinstance(raw_data, dict):
            raise ConfigurationError(
                message=f"Configuration file {path} must contain a mapping",
                error_code="INVALID_CONFIG_FILE",
                details={"path": str(path), "type": type(raw_data).__name__},
            )
        yaml_data = raw_data

    return AgentFlowConfig(**yaml_data)


def get_default_config() -> AgentFlowConfig:
    """Create an AgentFlowConfig from defaults and environment variables."""
    return AgentFlowConfig()
