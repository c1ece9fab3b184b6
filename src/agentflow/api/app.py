"""
agentflow.api.app - HTTP Surface
==================================

FastAPI application exposing the AgentFlow request boundary.

    POST /run                              run an agent
    GET  /logs?tenant_id=...               audit log, newest first (max 100)
    GET  /workflows/{id}?tenant_id=...     workflow + its log, oldest first
    POST /workflows/{id}/next?tenant_id=   advance a workflow one step
    GET  /tasks | /workflows | /memories | /stats   read-back for dashboards

The caller is identified by the ``X-User-Id`` header; validating the token
that produced it is the job of the gateway in front of this app.

Every AgentFlowError becomes ``{"error", "status", "error_code"}`` with the
error's HTTP status, and request-shape problems FastAPI detects itself are
reported the same way as a 400.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import structlog
from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentflow.core.exceptions import AgentFlowError, ValidationError
from agentflow.core.models import CallerIdentity
from agentflow.facade import AgentFlow

logger = structlog.get_logger()


def _error_response(http_status: int, message: str, status: str, error_code: str) -> JSONResponse:
    return JSONResponse(
        status_code=http_status,
        content={"error": message, "status": status, "error_code": error_code},
    )


def get_caller(x_user_id: Optional[str] = Header(default=None)) -> Optional[CallerIdentity]:
    """Build the caller identity from the ``X-User-Id`` header, if present."""
    if x_user_id is None or not x_user_id.strip():
        return None
    return CallerIdentity(user_id=x_user_id.strip())


def create_app(agentflow: Optional[AgentFlow] = None) -> FastAPI:
    """Create the HTTP app around an AgentFlow facade.

    The facade is initialized on startup and shut down on exit; pass your
    own to control its state manager, access control and step handlers.
    """
    flow = agentflow or AgentFlow()
    api_logger = logger.bind(component="api")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await flow.initialize()
        api_logger.info("api_started")
        yield
        await flow.shutdown()
        api_logger.info("api_stopped")

    app = FastAPI(title="agentflow", lifespan=lifespan)
    app.state.agentflow = flow

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Error Handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(AgentFlowError)
    async def handle_agentflow_error(request: Request, exc: AgentFlowError) -> JSONResponse:
        if exc.http_status >= 500:
            api_logger.error("request_failed", path=request.url.path, **exc.to_dict())
        else:
            api_logger.info(
                "request_rejected",
                path=request.url.path,
                status=exc.status,
                error_code=exc.error_code,
            )
        return _error_response(exc.http_status, exc.message, exc.status, exc.error_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [str(err["loc"][-1]) for err in exc.errors() if err.get("loc")]
        message = "Invalid request"
        if fields:
            message = f"Invalid request fields: {', '.join(fields)}"
        return _error_response(400, message, "validation", "INVALID_REQUEST")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        status = "not_found" if exc.status_code == 404 else "http"
        return _error_response(exc.status_code, str(exc.detail), status, "HTTP_ERROR")

    # -------------------------------------------------------------------------
    # Agent Runs
    # -------------------------------------------------------------------------
    @app.post("/run")
    async def run_agent(
        body: Any = Body(default=None),
        caller: Optional[CallerIdentity] = Depends(get_caller),
    ) -> dict[str, Any]:
        if not isinstance(body, dict):
            raise ValidationError(
                message="Request body must be a JSON object",
                fields=["body"],
                error_code="INVALID_REQUEST",
            )
        result = await flow.run(
            caller,
            tenant_id=body.get("tenant_id"),
            agent_type=body.get("agent_type"),
            goal=body.get("goal"),
            facts=body.get("input"),
            mode=body.get("mode"),
        )
        return result.model_dump(mode="json")

    @app.post("/workflows/{workflow_id}/next")
    async def execute_next_step(
        workflow_id: str,
        tenant_id: Optional[str] = None,
        caller: Optional[CallerIdentity] = Depends(get_caller),
    ) -> dict[str, Any]:
        outcome = await flow.execute_next_step(
            caller, tenant_id=tenant_id, workflow_id=workflow_id
        )
        return outcome.model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Read-Back
    # -------------------------------------------------------------------------
    @app.get("/logs")
    async def list_logs(
        tenant_id: Optional[str] = None,
        agent_type: Optional[str] = None,
        event_type: Optional[str] = None,
        workflow_id: Optional[str] = None,
        limit: Optional[int] = None,
        caller: Optional[CallerIdentity] = Depends(get_caller),
    ) -> list[dict[str, Any]]:
        logs = await flow.list_logs(
            caller,
            tenant_id=tenant_id,
            agent_type=agent_type,
            event_type=event_type,
            workflow_id=workflow_id,
            limit=limit,
        )
        return [entry.model_dump(mode="json") for entry in logs]

    @app.get("/workflows/{workflow_id}")
    async def get_workflow(
        workflow_id: str,
        tenant_id: Optional[str] = None,
        caller: Optional[CallerIdentity] = Depends(get_caller),
    ) -> dict[str, Any]:
        details = await flow.get_workflow_details(
            caller, tenant_id=tenant_id, workflow_id=workflow_id
        )
        return details.model_dump(mode="json")

    @app.get("/workflows")
    async def list_workflows(
        tenant_id: Optional[str] = None,
        agent_type: Optional[str] = None,
        status: Optional[str] = None,
        caller: Optional[CallerIdentity] = Depends(get_caller),
    ) -> list[dict[str, Any]]:
        workflows = await flow.list_workflows(
            caller, tenant_id=tenant_id, agent_type=agent_type, status=status
        )
        return [w.model_dump(mode="json") for w in workflows]

    @app.get("/tasks")
    async def list_tasks(
        tenant_id: Optional[str] = None,
        agent_type: Optional[str] = None,
        status: Optional[str] = None,
        caller: Optional[CallerIdentity] = Depends(get_caller),
    ) -> list[dict[str, Any]]:
        tasks = await flow.list_tasks(
            caller, tenant_id=tenant_id, agent_type=agent_type, status=status
        )
        return [t.model_dump(mode="json") for t in tasks]

    @app.get("/memories")
    async def list_memories(
        tenant_id: Optional[str] = None,
        agent_type: Optional[str] = None,
        memory_kind: Optional[str] = None,
        caller: Optional[CallerIdentity] = Depends(get_caller),
    ) -> list[dict[str, Any]]:
        memories = await flow.list_memories(
            caller, tenant_id=tenant_id, agent_type=agent_type, memory_kind=memory_kind
        )
        return [m.model_dump(mode="json") for m in memories]

    @app.get("/stats")
    async def get_stats(
        tenant_id: Optional[str] = None,
        caller: Optional[CallerIdentity] = Depends(get_caller),
    ) -> dict[str, Any]:
        stats = await flow.get_stats(caller, tenant_id=tenant_id)
        return stats.model_dump(mode="json")

    return app
