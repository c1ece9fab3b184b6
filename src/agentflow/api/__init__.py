"""
agentflow.api - HTTP Layer
============================

    from agentflow.api import create_app
    app = create_app()          # uvicorn-compatible ASGI app
"""

from agentflow.api.app import create_app, get_caller

__all__ = ["create_app", "get_caller"]
