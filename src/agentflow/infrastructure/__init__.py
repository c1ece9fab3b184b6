"""
agentflow.infrastructure - External Collaborators
===================================================

Interfaces to things the engine consumes but does not own:

    - AccessControl (ABC):    Tenant membership and platform role lookups
    - InMemoryAccessControl:  In-memory implementation for development/testing

Usage:
    from agentflow.infrastructure import InMemoryAccessControl
"""

from agentflow.infrastructure.access_control import (
    AccessControl,
    InMemoryAccessControl,
)

__all__ = [
    "AccessControl",
    "InMemoryAccessControl",
]
