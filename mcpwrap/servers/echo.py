"""
Echo MCP server: minimal stdio worker.

Speaks line-delimited JSON-RPC on stdin/stdout and exposes two tools,
``echo`` and ``add``. Logs go to stderr, which the wrapper forwards.

Launch:
    python -m mcpwrap.servers.echo

Test:
    echo '{"jsonrpc":"2.0","id":1,"method":"tools/list"}' | python -m mcpwrap.servers.echo
"""

from __future__ import annotations

import json
import sys
from typing import Any, Optional, TextIO

import structlog

from mcpwrap.workers.types import MCP_PROTOCOL_VERSION, JsonRpcErrorCode

logger = structlog.get_logger(__name__)

SERVER_NAME = "mcpwrap-echo"
SERVER_VERSION = "1.0.0"


class ToolHandler:
    """A single tool: schema for discovery plus a handler."""

    name: str = ""
    description: str = ""
    input_schema: dict[str, Any] = {"type": "object", "properties": {}}

    def handle(self, arguments: dict[str, Any]) -> Any:
        raise NotImplementedError

    def get_schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class EchoTool(ToolHandler):
    name = "echo"
    description = "Echoes back the input message."
    input_schema = {
        "type": "object",
        "properties": {"message": {"type": "string", "description": "Message to echo"}},
        "required": ["message"],
    }

    def handle(self, arguments: dict[str, Any]) -> Any:
        return str(arguments.get("message", ""))


class AddTool(ToolHandler):
    name = "add"
    description = "Adds two numbers."
    input_schema = {
        "type": "object",
        "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
        "required": ["a", "b"],
    }

    def handle(self, arguments: dict[str, Any]) -> Any:
        a, b = arguments.get("a"), arguments.get("b")
        if not isinstance(a, (int, float)) or not isinstance(b, (int, float)):
            raise ValueError("'a' and 'b' must be numbers")
        return str(a + b)


class ToolError(Exception):
    def __init__(self, code: int, message: str):
        self.code = code
        super().__init__(message)


class EchoServer:
    """
    JSON-RPC tool server over stdin/stdout.

    Supports ``initialize``, ``ping``, ``tools/list`` and ``tools/call``;
    notifications are accepted and ignored.
    """

    def __init__(self, tools: Optional[list[ToolHandler]] = None):
        self._handlers: dict[str, ToolHandler] = {}
        for tool in tools if tools is not None else [EchoTool(), AddTool()]:
            self.register(tool)

    def register(self, handler: ToolHandler) -> None:
        if not handler.name:
            raise ValueError(f"{handler.__class__.__name__} has no name")
        self._handlers[handler.name] = handler

    def handle_line(self, line: str) -> Optional[dict]:
        """Process one input line; returns the reply, or None for notifications."""
        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            return self._error(None, JsonRpcErrorCode.PARSE_ERROR, f"Parse error: {e}")

        if not isinstance(message, dict) or "method" not in message:
            return self._error(None, JsonRpcErrorCode.INVALID_REQUEST, "Invalid request")

        if "id" not in message:
            logger.debug("Notification", method=message["method"])
            return None

        request_id = message["id"]
        try:
            result = self.dispatch(message["method"], message.get("params") or {})
        except ToolError as e:
            return self._error(request_id, e.code, str(e))
        except Exception as e:
            return self._error(request_id, JsonRpcErrorCode.INTERNAL_ERROR, str(e))

        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def dispatch(self, method: str, params: dict[str, Any]) -> Any:
        if method == "initialize":
            return {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            }

        if method == "ping":
            return {}

        if method == "tools/list":
            return {"tools": [h.get_schema() for h in self._handlers.values()]}

        if method == "tools/call":
            tool_name = params.get("name", "")
            handler = self._handlers.get(tool_name)
            if handler is None:
                raise ToolError(JsonRpcErrorCode.INVALID_PARAMS, f"Unknown tool: {tool_name}")
            text = handler.handle(params.get("arguments") or {})
            return {"content": [{"type": "text", "text": text}]}

        raise ToolError(JsonRpcErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}")

    def run(self, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout) -> None:
        """Serve until stdin closes."""
        logger.info("Echo server starting", tools=list(self._handlers))

        for line in stdin:
            line = line.strip()
            if not line:
                continue

            reply = self.handle_line(line)
            if reply is not None:
                stdout.write(json.dumps(reply, separators=(",", ":")) + "\n")
                stdout.flush()

        logger.info("Echo server stdin closed")

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> dict:
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": int(code), "message": message},
        }


def main() -> None:
    # stdout carries the protocol; logs must stay on stderr
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )
    EchoServer().run()


if __name__ == "__main__":
    main()
