"""
MCPWrap Worker Protocol

Serialization and parsing of the line-delimited JSON-RPC 2.0 messages
spoken by worker processes.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Iterator, Optional, Union

import structlog

from mcpwrap.workers.errors import ProtocolDecodeError
from mcpwrap.workers.types import (
    JsonRpcErrorCode,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
)

logger = structlog.get_logger(__name__)

Message = Union[JsonRpcRequest, JsonRpcResponse, JsonRpcNotification]


class MCPMethods:
    """MCP method names used by the wrapper."""

    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"


class WorkerProtocol:
    """
    JSON-RPC codec for one worker stream.

    Handles:
    - Request and notification construction
    - Compact single-line serialization
    - Classifying decoded objects as request, response or notification
    """

    def create_request(
        self,
        method: str,
        request_id: int,
        params: Optional[dict[str, Any]] = None,
    ) -> JsonRpcRequest:
        """Create a JSON-RPC request."""
        return JsonRpcRequest(method=method, id=request_id, params=params)

    def create_notification(
        self,
        method: str,
        params: Optional[dict[str, Any]] = None,
    ) -> JsonRpcNotification:
        """Create a JSON-RPC notification."""
        return JsonRpcNotification(method=method, params=params)

    def create_error_response(
        self,
        request_id: Union[str, int],
        code: int,
        message: str,
    ) -> JsonRpcResponse:
        """Create an error response to a request sent by the worker."""
        return JsonRpcResponse(
            id=request_id,
            error={"code": int(code), "message": message},
        )

    def serialize(self, message: Message) -> str:
        """
        Serialize a message to a single line of JSON.

        ``json.dumps`` escapes embedded newlines, so the result never
        contains a line terminator.
        """
        return json.dumps(message.to_dict(), separators=(",", ":"))

    def parse(self, data: str) -> Message:
        """
        Parse one line of worker output.

        Raises:
            ProtocolDecodeError: If the line is not JSON or not a JSON-RPC object
        """
        try:
            obj = json.loads(data)
        except json.JSONDecodeError as e:
            raise ProtocolDecodeError(f"Invalid JSON: {e}", line=data)
        except (ValueError, RecursionError) as e:
            # Oversized integers and pathological nesting
            raise ProtocolDecodeError(f"Undecodable JSON: {e}", line=data)

        return self.parse_dict(obj, line=data)

    def parse_dict(self, obj: Any, line: str = "") -> Message:
        """Classify a decoded JSON value."""
        if not isinstance(obj, dict):
            raise ProtocolDecodeError("Message must be an object", line=line)

        if "id" in obj and ("result" in obj or "error" in obj):
            return JsonRpcResponse.from_dict(obj)

        if "method" in obj and "id" in obj:
            return JsonRpcRequest.from_dict(obj)

        if "method" in obj:
            return JsonRpcNotification.from_dict(obj)

        raise ProtocolDecodeError("Cannot determine message type", line=line)

    def decode_lines(self, lines: Iterable[str], worker: str = "") -> Iterator[Message]:
        """
        Parse framed lines, dropping the ones that do not decode.

        A bad line is logged and skipped; it never stops the lines after it.
        """
        for line in lines:
            try:
                yield self.parse(line)
            except ProtocolDecodeError as e:
                logger.warning(
                    "Dropping undecodable worker output",
                    worker=worker,
                    error=e.message,
                    line=line[:200],
                )


def method_not_found(protocol: WorkerProtocol, request: JsonRpcRequest) -> JsonRpcResponse:
    """Build the reply for a server-to-client request the wrapper cannot serve."""
    return protocol.create_error_response(
        request.id,
        JsonRpcErrorCode.METHOD_NOT_FOUND,
        f"Method not found: {request.method}",
    )
