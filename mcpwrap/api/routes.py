"""
MCPWrap API Routes

FastAPI routes translating REST calls into worker manager operations.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse

import structlog

from mcpwrap import __version__
from mcpwrap.workers.errors import WorkerError, WorkerNotConfiguredError
from mcpwrap.workers.manager import WorkerManager
from mcpwrap.workers.registry import ServerRegistry

logger = structlog.get_logger(__name__)


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    """JSON error body in the ``{"error": ...}`` shape."""
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def public_config(registry: ServerRegistry, name: str) -> Optional[dict]:
    """Launch spec of ``name`` with environment values withheld."""
    spec = registry.get(name)
    if spec is None:
        return None
    data = spec.to_dict()
    data["env"] = sorted(data["env"])
    return data


# ==================== Route Setup ====================

def setup_routes(app: FastAPI, manager: WorkerManager, registry: ServerRegistry) -> None:
    """Setup the worker routes."""

    @app.get("/health")
    async def health():
        """Health check endpoint; reads registry status only."""
        return {
            "status": "ok",
            "version": __version__,
            "servers": [
                {"name": status.name, "ready": status.ready}
                for status in manager.statuses()
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/servers")
    async def list_servers():
        """List all configured servers with their running state."""
        return {
            "servers": [
                {
                    "name": name,
                    "running": manager.is_running(name),
                    "ready": manager.is_ready(name),
                    "config": public_config(registry, name),
                }
                for name in registry.names()
            ],
        }

    @app.post("/servers/{name}/start")
    async def start_server(name: str):
        """Start a configured server and complete its handshake."""
        try:
            spec = registry.require(name)
        except WorkerNotConfiguredError as e:
            return error_response(404, e.message, availableServers=registry.names())

        try:
            await manager.start(name, spec)
        except WorkerError as e:
            logger.error("Start server failed", worker=name, error=e.message)
            return error_response(500, e.message)

        return {"message": f"Server {name} started successfully", "name": name}

    @app.get("/servers/{name}/tools")
    async def list_tools(name: str):
        """List available tools from a server."""
        try:
            tools = await manager.list_tools(name)
        except WorkerError as e:
            logger.error("List tools failed", worker=name, error=e.message)
            return error_response(500, e.message)

        return {"server": name, "tools": tools}

    @app.post("/servers/{name}/tools/{tool_name}")
    async def call_tool(
        name: str,
        tool_name: str,
        arguments: Optional[dict[str, Any]] = Body(default=None),
    ):
        """Call a tool on a server; the body is passed through as arguments."""
        logger.info("Calling tool", worker=name, tool=tool_name)
        try:
            result = await manager.call_tool(name, tool_name, arguments or {})
        except WorkerError as e:
            logger.error("Error calling tool", worker=name, tool=tool_name, error=e.message)
            return error_response(500, e.message)

        return {"server": name, "tool": tool_name, "result": result}

    @app.post("/servers/{name}/stop")
    async def stop_server(name: str):
        """Stop a server; stopping a server that is not running succeeds."""
        await manager.stop(name)
        return {"message": f"Server {name} stopped"}
