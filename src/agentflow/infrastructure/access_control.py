"""
agentflow.infrastructure.access_control - Tenant Membership Directory
=======================================================================

The authorization gate needs two facts about a caller: their role inside a
tenant (if they are a member at all) and their platform-wide roles. Where
those facts live (a membership table, an identity provider) is outside the
engine, so they are read through this small interface.

    ┌──────────────┐  get_tenant_role()     ┌──────────────────┐
    │  AgentFlow    │ ─────────────────────→ │  AccessControl    │
    │  .authorize() │  get_platform_roles()  │                  │
    └──────────────┘ ─────────────────────→ └──────────────────┘

Implementations:
    - AccessControl (ABC):      Abstract interface
    - InMemoryAccessControl:    Dict-based, for development and testing
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import structlog

logger = structlog.get_logger()


class AccessControl(ABC):
    """Read-only view of tenant memberships and platform roles."""

    @abstractmethod
    async def get_tenant_role(self, tenant_id: str, user_id: str) -> Optional[str]:
        """Return the user's role in the tenant, or None if not a member."""

    @abstractmethod
    async def get_platform_roles(self, user_id: str) -> set[str]:
        """Return the user's platform-wide roles (empty set if none)."""


class InMemoryAccessControl(AccessControl):
    """Dict-backed membership directory.

    Example:
        >>> access = InMemoryAccessControl()
        >>> access.add_member("acme", "alice", "company_owner")
        >>> access.grant_platform_role("root", "admin")
        >>> await access.get_tenant_role("acme", "alice")
        'company_owner'
    """

    def __init__(self) -> None:
        # (tenant_id, user_id) → role
        self._memberships: dict[tuple[str, str], str] = {}
        # user_id → platform roles
        self._platform_roles: dict[str, set[str]] = {}
        self._logger = logger.bind(component="access_control")

    def add_member(self, tenant_id: str, user_id: str, role: str) -> None:
        """Add the user to the tenant, replacing any previous role."""
        self._memberships[(tenant_id, user_id)] = role
        self._logger.debug("member_added", tenant_id=tenant_id, user_id=user_id, role=role)

    def remove_member(self, tenant_id: str, user_id: str) -> bool:
        return self._memberships.pop((tenant_id, user_id), None) is not None

    def grant_platform_role(self, user_id: str, role: str) -> None:
        self._platform_roles.setdefault(user_id, set()).add(role)
        self._logger.debug("platform_role_granted", user_id=user_id, role=role)

    def revoke_platform_role(self, user_id: str, role: str) -> None:
        self._platform_roles.get(user_id, set()).discard(role)

    async def get_tenant_role(self, tenant_id: str, user_id: str) -> Optional[str]:
        return self._memberships.get((tenant_id, user_id))

    async def get_platform_roles(self, user_id: str) -> set[str]:
        return set(self._platform_roles.get(user_id, set()))
