"""
agentflow.orchestration.memory_store - Agent Memory
=====================================================

Append-only record of what an agent type has observed for a tenant. The
DecisionEngine reads the most recent records as context and cites a few of
them as evidence; the Orchestrator writes one observation after every
decision, so past decisions feed future ones.

There is deliberately no update or delete: a Decision's ``memory_used`` ids
must keep resolving to the same content.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from agentflow.core.enums import MemoryKind
from agentflow.core.models import MemoryRecord
from agentflow.orchestration.state_manager import StateManager

logger = structlog.get_logger()

# Upper bound for listing memories through the read-back API.
MEMORY_LIST_LIMIT = 100


class MemoryStore:
    """Append-only memory over a StateManager.

    Example:
        >>> store = MemoryStore(state_manager)
        >>> await store.record("acme", "operations", MemoryKind.OBSERVATION,
        ...                    {"goal": "check SLA", "decision_action": "alert"})
        >>> latest = await store.recent("acme", "operations", limit=5)
    """

    def __init__(self, state_manager: StateManager) -> None:
        self._state = state_manager
        self._logger = logger.bind(component="memory_store")

    async def record(
        self,
        tenant_id: str,
        agent_type: str,
        memory_kind: MemoryKind,
        content: dict[str, Any],
    ) -> MemoryRecord:
        """Append a memory record and return it as stored.

        Raises:
            StateError: If the backend is unavailable.
        """
        record = MemoryRecord(
            tenant_id=tenant_id,
            agent_type=agent_type,
            memory_kind=memory_kind,
            content=content,
        )
        stored = await self._state.add_memory(record)
        self._logger.debug(
            "memory_recorded",
            memory_id=stored.memory_id,
            tenant_id=tenant_id,
            agent_type=agent_type,
            memory_kind=memory_kind.value,
        )
        return stored

    async def recent(
        self, tenant_id: str, agent_type: str, limit: int
    ) -> list[MemoryRecord]:
        """Return up to ``limit`` records, newest first (empty if none)."""
        if limit <= 0:
            return []
        return await self._state.list_memories(tenant_id, agent_type, limit=limit)

    async def list_records(
        self,
        tenant_id: str,
        agent_type: Optional[str] = None,
        memory_kind: Optional[MemoryKind] = None,
    ) -> list[MemoryRecord]:
        """List memories for display, newest first, capped at MEMORY_LIST_LIMIT."""
        return await self._state.list_memories(
            tenant_id,
            agent_type,
            memory_kind=memory_kind,
            limit=MEMORY_LIST_LIMIT,
        )
