"""
MCPWrap Worker Errors

Every failure raised by the worker core is a ``WorkerError``; the HTTP layer
translates them 1:1 into error responses.
"""

from __future__ import annotations

from typing import Any, Optional


class WorkerError(Exception):
    """Base exception for worker errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


# ==================== Configuration / Lookup ====================

class WorkerNotConfiguredError(WorkerError):
    """Requested worker name is absent from the static configuration."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Server {name} not found in configuration")


class WorkerNotFoundError(WorkerError):
    """No running worker with this name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Server {name} not found or not running")


class WorkerNotReadyError(WorkerError):
    """Worker exists but has not completed its handshake."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Server {name} not ready")


# ==================== Transport ====================

class TransportError(WorkerError):
    """Error on the byte stream between wrapper and worker."""
    pass


class TransportWriteError(TransportError):
    """The worker's stdin rejected a write."""
    pass


class FrameOverflowError(TransportError):
    """Worker output exceeded the buffer limit without a line terminator."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Worker output exceeded {limit} bytes without a newline")


class ProtocolDecodeError(WorkerError):
    """A line of worker output is not a JSON-RPC message."""

    def __init__(self, message: str, line: str = ""):
        self.line = line
        super().__init__(message)


# ==================== Call Outcomes ====================

class RemoteError(WorkerError):
    """The worker answered with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        self.code = code
        self.data = data
        super().__init__(message)

    @classmethod
    def from_error(cls, error: dict[str, Any]) -> "RemoteError":
        return cls(
            message=error.get("message") or "MCP Error",
            code=error.get("code"),
            data=error.get("data"),
        )


class RequestTimeoutError(WorkerError):
    """No response arrived within the request timeout."""

    def __init__(self, method: str, timeout: float):
        self.method = method
        self.timeout = timeout
        super().__init__(f"MCP request timeout after {int(timeout * 1000)}ms")


# ==================== Lifecycle ====================

class WorkerLifecycleError(WorkerError):
    """Spawn, handshake or exit failure."""
    pass


class SpawnError(WorkerLifecycleError):
    """The worker process could not be started."""
    pass


class HandshakeError(WorkerLifecycleError):
    """The initialize exchange failed."""
    pass


class WorkerExitedError(WorkerLifecycleError):
    """The worker process exited while a call was pending."""
    pass


class WorkerStoppedError(WorkerLifecycleError):
    """The worker was stopped while a call was pending."""
    pass
