"""
Tests for agentflow.api.app - HTTP Surface
============================================

What's Being Tested:
    - POST /run response shape for each mode
    - Error body shape {"error", "status", "error_code"} and HTTP codes
      (400 validation, 401/403 authorization, 404 not found, 500 processing)
    - Read-back endpoints return plain JSON arrays / objects
    - Manual stepping through POST /workflows/{id}/next
"""

import pytest
from fastapi.testclient import TestClient

from agentflow.api import create_app
from agentflow.facade import AgentFlow
from agentflow.orchestration.step_handlers import StepContext

TENANT = "acme"
AGENT = "operations"

OWNER = {"X-User-Id": "owner-1"}


@pytest.fixture
def client(state_manager, access_control, step_handlers):
    """TestClient around a facade the app initializes on startup."""
    flow = AgentFlow(
        state_manager=state_manager,
        access_control=access_control,
        step_handlers=step_handlers,
        setup_logging=False,
    )
    with TestClient(create_app(flow)) as test_client:
        yield test_client


def _run(client: TestClient, headers=OWNER, **overrides):
    body = {"tenant_id": TENANT, "agent_type": AGENT, "goal": "check SLA", "input": {"score": 42}}
    body.update(overrides)
    return client.post("/run", json=body, headers=headers)


# =============================================================================
# Test: POST /run
# =============================================================================
class TestRun:
    def test_simulate_response(self, client: TestClient) -> None:
        response = _run(client)

        assert response.status_code == 200
        payload = response.json()
        assert payload["mode"] == "simulate"
        assert payload["executed"] is False
        assert payload["workflow_id"] is None
        assert payload["task_id"]
        assert payload["decision"]["action"] == "analyze"
        assert payload["decision"]["reasoning"] == "No policies matched. Default action for goal: check SLA"

    def test_auto_response(self, client: TestClient) -> None:
        payload = _run(client, mode="auto").json()

        assert payload["mode"] == "auto"
        assert payload["executed"] is True
        assert payload["workflow_id"]

    def test_supervised_is_plan(self, client: TestClient) -> None:
        payload = _run(client, mode="supervised").json()

        assert payload["mode"] == "plan"
        assert payload["executed"] is False

    def test_missing_goal(self, client: TestClient) -> None:
        response = _run(client, goal=None)

        assert response.status_code == 400
        assert response.json() == {
            "error": "Missing required fields: goal",
            "status": "validation",
            "error_code": "MISSING_REQUIRED_FIELDS",
        }

    def test_body_must_be_object(self, client: TestClient) -> None:
        response = client.post("/run", json=["not", "an", "object"], headers=OWNER)

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REQUEST"

    def test_empty_body(self, client: TestClient) -> None:
        response = client.post("/run", headers=OWNER)
        assert response.status_code == 400

    def test_input_must_be_object(self, client: TestClient) -> None:
        response = _run(client, input="score=42")

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_FIELD_TYPE"

    def test_no_identity(self, client: TestClient) -> None:
        response = _run(client, headers={})

        assert response.status_code == 401
        assert response.json()["status"] == "authorization"

    def test_non_member(self, client: TestClient) -> None:
        response = _run(client, headers={"X-User-Id": "outsider-1"})

        assert response.status_code == 403
        assert response.json()["status"] == "authorization"
        assert response.json()["error_code"] == "TENANT_MEMBERSHIP_REQUIRED"

    def test_member_without_admin_role(self, client: TestClient) -> None:
        response = _run(client, headers={"X-User-Id": "viewer-1"})

        assert response.status_code == 403
        assert response.json()["error_code"] == "INSUFFICIENT_ROLE"

    def test_platform_admin(self, client: TestClient) -> None:
        response = _run(client, headers={"X-User-Id": "root"})
        assert response.status_code == 200

    def test_step_failure_is_processing_error(self, client: TestClient, step_handlers) -> None:
        @step_handlers.handler("execute_decision")
        async def fail(ctx: StepContext) -> dict:
            raise ConnectionError("notifier down")

        response = _run(client, mode="auto")

        assert response.status_code == 500
        assert response.json()["status"] == "processing"
        assert response.json()["error_code"] == "STEP_EXECUTION_FAILED"

        tasks = client.get("/tasks", params={"tenant_id": TENANT}, headers=OWNER).json()
        assert tasks[0]["status"] == "error"


# =============================================================================
# Test: Workflows
# =============================================================================
class TestWorkflows:
    def test_details_logs_oldest_first(self, client: TestClient) -> None:
        workflow_id = _run(client, mode="auto").json()["workflow_id"]

        response = client.get(f"/workflows/{workflow_id}", params={"tenant_id": TENANT}, headers=OWNER)

        assert response.status_code == 200
        payload = response.json()
        assert payload["workflow"]["status"] == "completed"
        assert payload["workflow"]["current_step"] == 4
        assert payload["logs"][0]["details"]["action"] == "workflow_created"
        assert [entry["details"].get("step") for entry in payload["logs"][1:]] == [1, 2, 3, 4]

    def test_unknown_workflow(self, client: TestClient) -> None:
        response = client.get("/workflows/missing", params={"tenant_id": TENANT}, headers=OWNER)

        assert response.status_code == 404
        assert response.json()["status"] == "not_found"

    def test_step_plan_workflow(self, client: TestClient) -> None:
        workflow_id = _run(client, mode="plan").json()["workflow_id"]

        response = client.post(f"/workflows/{workflow_id}/next", params={"tenant_id": TENANT}, headers=OWNER)

        assert response.status_code == 200
        payload = response.json()
        assert payload["status"] == "step_completed"
        assert payload["step"]["action"] == "gather_context"
        assert payload["workflow"]["status"] == "in_progress"

    def test_list_workflows_by_status(self, client: TestClient) -> None:
        _run(client, mode="plan")
        _run(client, mode="auto")

        response = client.get("/workflows", params={"tenant_id": TENANT, "status": "pending"}, headers=OWNER)

        assert response.status_code == 200
        assert len(response.json()) == 1


# =============================================================================
# Test: Read-Back
# =============================================================================
class TestReadBack:
    def test_logs_is_array(self, client: TestClient) -> None:
        _run(client, mode="auto")

        response = client.get("/logs", params={"tenant_id": TENANT}, headers=OWNER)

        assert response.status_code == 200
        assert isinstance(response.json(), list)
        assert len(response.json()) == 6

    def test_logs_limit(self, client: TestClient) -> None:
        _run(client, mode="auto")

        response = client.get("/logs", params={"tenant_id": TENANT, "limit": 2}, headers=OWNER)
        assert len(response.json()) == 2

    def test_logs_bad_limit(self, client: TestClient) -> None:
        response = client.get("/logs", params={"tenant_id": TENANT, "limit": "abc"}, headers=OWNER)

        assert response.status_code == 400
        assert response.json()["status"] == "validation"
        assert response.json()["error_code"] == "INVALID_REQUEST"

    def test_logs_bad_event_type(self, client: TestClient) -> None:
        response = client.get("/logs", params={"tenant_id": TENANT, "event_type": "gossip"}, headers=OWNER)

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_FIELD_VALUE"

    def test_logs_require_tenant(self, client: TestClient) -> None:
        response = client.get("/logs", headers=OWNER)
        assert response.status_code == 400

    def test_memories_and_tasks(self, client: TestClient) -> None:
        _run(client)

        memories = client.get("/memories", params={"tenant_id": TENANT}, headers=OWNER).json()
        tasks = client.get("/tasks", params={"tenant_id": TENANT}, headers=OWNER).json()

        assert memories[0]["content"] == {"goal": "check SLA", "decision_action": "analyze"}
        assert tasks[0]["status"] == "completed"
        assert tasks[0]["input"] == {"score": 42}

    def test_stats(self, client: TestClient) -> None:
        _run(client, mode="auto")

        response = client.get("/stats", params={"tenant_id": TENANT}, headers=OWNER)

        assert response.json() == {
            "total_tasks": 1,
            "total_workflows": 1,
            "active_policies": 0,
            "logs_last_24h": 6,
        }

    def test_unknown_route(self, client: TestClient) -> None:
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json()["error_code"] == "HTTP_ERROR"
