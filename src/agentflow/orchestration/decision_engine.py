"""
agentflow.orchestration.decision_engine - Next-Action Decisions
=================================================================

Combines recent memory with policy evaluation into exactly one Decision per
request, and writes one ``decision`` log entry for every call.

    ┌──────────────┐  recent(20)   ┌──────────────────┐
    │ MemoryStore   │ ───────────→ │                  │
    └──────────────┘               │  DecisionEngine  │ ──→ Decision
    ┌──────────────┐  matched +    │                  │      + decision log
    │ PolicyEngine  │ ───────────→ │                  │
    └──────────────┘  actions      └──────────────────┘

Choice Rule:
    - At least one proposed action: the FIRST one wins, and
      ``applied_policies`` lists every matched policy name.
    - No proposed action: fall back to DEFAULT_ACTION with no applied
      policies.
    - Either way, the ids of the MEMORY_EVIDENCE_WINDOW most recent memory
      records are cited as ``memory_used``.

Storage errors propagate unchanged; nothing is retried here.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from agentflow.core.enums import LogEventType
from agentflow.core.models import Decision, LogEntry
from agentflow.orchestration.memory_store import MemoryStore
from agentflow.orchestration.policy_engine import PolicyEngine
from agentflow.orchestration.state_manager import StateManager

logger = structlog.get_logger()

# Number of recent memories fetched as decision context.
MEMORY_CONTEXT_WINDOW = 20

# Number of memory ids cited as evidence on every decision.
MEMORY_EVIDENCE_WINDOW = 5

DEFAULT_ACTION = "analyze"


class DecisionEngine:
    """Produces a Decision from memory context and active policies.

    Attributes:
        _memory: Source of recent memory records.
        _policies: Loads and evaluates active policies.
        _state: Where the decision log entry is appended.
    """

    def __init__(
        self,
        state_manager: StateManager,
        memory_store: MemoryStore,
        policy_engine: PolicyEngine,
    ) -> None:
        self._state = state_manager
        self._memory = memory_store
        self._policies = policy_engine
        self._logger = logger.bind(component="decision_engine")

    async def decide_next_action(
        self,
        tenant_id: str,
        agent_type: str,
        goal: str,
        facts: dict[str, Any],
        task_id: Optional[str] = None,
    ) -> Decision:
        """Decide what the agent should do next.

        Args:
            tenant_id: Tenant the decision is made for.
            agent_type: Agent type whose memory and policies apply.
            goal: Free-text goal of the run; recorded in the log.
            facts: Fact snapshot the policies are evaluated against.
            task_id: Owning Task, attached to the log entry when known.

        Returns:
            The Decision. Exactly one ``decision`` log entry has been
            written by the time this returns.

        Raises:
            StateError: If memory, policies or the log cannot be accessed.
        """
        memories = await self._memory.recent(
            tenant_id, agent_type, MEMORY_CONTEXT_WINDOW
        )
        policies = await self._policies.active_policies(tenant_id, agent_type)
        evaluation = self._policies.evaluate_policies(facts, policies)

        evidence = [m.memory_id for m in memories[:MEMORY_EVIDENCE_WINDOW]]

        if evaluation.actions:
            chosen = evaluation.actions[0]
            decision = Decision(
                action=chosen.action,
                applied_policies=evaluation.matched_names,
                memory_used=evidence,
                reasoning=f'Policy "{chosen.policy_name}" matched. Executing: {chosen.action}',
                params=chosen.params,
            )
        else:
            decision = Decision(
                action=DEFAULT_ACTION,
                applied_policies=[],
                memory_used=evidence,
                reasoning=f"No policies matched. Default action for goal: {goal}",
            )

        await self._state.append_log(
            LogEntry(
                tenant_id=tenant_id,
                agent_type=agent_type,
                task_id=task_id,
                event_type=LogEventType.DECISION,
                details={
                    "goal": goal,
                    "decision": decision.model_dump(mode="json"),
                    "policies_evaluated": len(policies),
                },
            )
        )

        self._logger.info(
            "decision_made",
            tenant_id=tenant_id,
            agent_type=agent_type,
            action=decision.action,
            applied_policies=decision.applied_policies,
            memories_considered=len(memories),
        )
        return decision
