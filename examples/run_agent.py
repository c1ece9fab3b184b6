"""
Run Agent Example - Policy-Driven Decision and Auto Workflow
==============================================================

This example demonstrates a complete agentflow run:
seed a tenant with a member and two policies, register a handler for the
``execute_decision`` step, then run the same goal in each mode.

Usage:
    python examples/run_agent.py
"""

from __future__ import annotations

import asyncio

from agentflow import AgentFlow
from agentflow.core.config import AgentFlowConfig
from agentflow.core.models import CallerIdentity, Policy, PolicyAction, PolicyCondition
from agentflow.infrastructure.access_control import InMemoryAccessControl
from agentflow.orchestration.step_handlers import StepContext, StepHandlerRegistry

TENANT = "acme"
AGENT = "operations"


async def main() -> None:
    """Run one goal in simulate, plan and auto mode and print the results."""
    access = InMemoryAccessControl()
    access.add_member(TENANT, "alice", "company_owner")
    caller = CallerIdentity(user_id="alice")

    handlers = StepHandlerRegistry()

    @handlers.handler("execute_decision")
    async def execute(ctx: StepContext) -> dict:
        # A real deployment would call a notifier or ticketing system here
        return {"performed": ctx.decision.get("action"), "params": ctx.decision.get("params")}

    config = AgentFlowConfig(log_level="WARNING")

    async with AgentFlow(config, access_control=access, step_handlers=handlers) as flow:
        await flow.state_manager.save_policy(Policy(
            tenant_id=TENANT,
            agent_type=AGENT,
            name="sla-breach",
            conditions=[PolicyCondition(field="sla_score", operator="<", value=80)],
            actions=[PolicyAction(action="alert", params={"channel": "#ops"})],
        ))
        await flow.state_manager.save_policy(Policy(
            tenant_id=TENANT,
            agent_type=AGENT,
            name="audit-everything",
            actions=[PolicyAction(action="log")],
        ))

        facts = {"sla_score": 72, "region": "eu-west"}
        for mode in ("simulate", "plan", "auto"):
            result = await flow.run(
                caller,
                tenant_id=TENANT,
                agent_type=AGENT,
                goal="Keep SLA above 80",
                facts=facts,
                mode=mode,
            )
            print(f"[{result.mode.value}] action={result.decision.action} "
                  f"policies={result.decision.applied_policies} "
                  f"workflow={result.workflow_id} executed={result.executed}")

        details = await flow.get_workflow_details(
            caller, tenant_id=TENANT, workflow_id=result.workflow_id
        )

        print()
        print("Auto Workflow")
        print("-" * 40)
        print(f"Status : {details.workflow.status.value}")
        for step in details.workflow.plan:
            print(f"  {step.step}. {step.action:<18} {step.result}")

        print()
        print("Recent Log")
        print("-" * 40)
        for entry in await flow.list_logs(caller, tenant_id=TENANT, limit=5):
            print(f"  {entry.occurred_at:%H:%M:%S} {entry.event_type.value:<14} {entry.details}")


if __name__ == "__main__":
    asyncio.run(main())
