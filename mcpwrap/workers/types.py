"""
MCPWrap Worker Types

Dataclasses for the line-delimited JSON-RPC messages exchanged with worker
processes, and for worker launch/status bookkeeping.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union


# ============================================
# Protocol Version
# ============================================

MCP_PROTOCOL_VERSION = "2024-11-05"


# ============================================
# JSON-RPC Base Types
# ============================================

@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request."""
    method: str
    id: Union[str, int]
    params: Optional[dict[str, Any]] = None
    jsonrpc: str = "2.0"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        d = {"jsonrpc": self.jsonrpc, "id": self.id, "method": self.method}
        if self.params is not None:
            d["params"] = self.params
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "JsonRpcRequest":
        """Create from dictionary."""
        return cls(
            method=data["method"],
            id=data["id"],
            params=data.get("params"),
            jsonrpc=data.get("jsonrpc", "2.0"),
        )


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 response."""
    id: Union[str, int, None]
    result: Optional[Any] = None
    error: Optional[dict[str, Any]] = None
    jsonrpc: str = "2.0"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        d = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "JsonRpcResponse":
        """Create from dictionary."""
        error = data.get("error")
        if error is not None and not isinstance(error, dict):
            # Some servers send a bare string
            error = {"message": str(error)}
        return cls(
            id=data.get("id"),
            result=data.get("result"),
            error=error,
            jsonrpc=data.get("jsonrpc", "2.0"),
        )

    @property
    def is_error(self) -> bool:
        """Check if this is an error response."""
        return self.error is not None


@dataclass
class JsonRpcNotification:
    """JSON-RPC 2.0 notification (no id, no response expected)."""
    method: str
    params: Optional[dict[str, Any]] = None
    jsonrpc: str = "2.0"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        d = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.params is not None:
            d["params"] = self.params
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "JsonRpcNotification":
        """Create from dictionary."""
        return cls(
            method=data["method"],
            params=data.get("params"),
            jsonrpc=data.get("jsonrpc", "2.0"),
        )


class JsonRpcErrorCode(int, Enum):
    """Standard JSON-RPC error codes."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


# ============================================
# Handshake Types
# ============================================

@dataclass
class Implementation:
    """Implementation info for client or server."""
    name: str
    version: str

    def to_dict(self) -> dict:
        return {"name": self.name, "version": self.version}

    @classmethod
    def from_dict(cls, data: dict) -> "Implementation":
        return cls(
            name=str(data.get("name", "unknown")),
            version=str(data.get("version", "unknown")),
        )


# ============================================
# Worker Types
# ============================================

@dataclass(frozen=True)
class LaunchSpec:
    """
    How to launch one worker process.

    Immutable once built; the child environment is produced once per spawn
    by overlaying ``env`` on the wrapper's own environment.
    """
    command: str
    args: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    cwd: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.command:
            raise ValueError("Launch spec requires a command")
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))
        object.__setattr__(
            self,
            "env",
            MappingProxyType({str(k): str(v) for k, v in dict(self.env).items()}),
        )

    def build_env(self, base: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """Merge the overlay onto ``base`` (the current environment by default)."""
        merged = dict(os.environ if base is None else base)
        merged.update(self.env)
        return merged

    def to_dict(self) -> dict:
        """Convert to the static configuration document shape."""
        d: dict[str, Any] = {
            "command": self.command,
            "args": list(self.args),
            "env": dict(self.env),
        }
        if self.cwd is not None:
            d["cwd"] = self.cwd
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "LaunchSpec":
        """Create from a ``mcpServers`` entry."""
        if not isinstance(data, dict):
            raise ValueError("Server entry must be an object")
        command = data.get("command")
        if not isinstance(command, str) or not command:
            raise ValueError("Server entry requires a 'command' string")
        args = data.get("args") or []
        if not isinstance(args, list):
            raise ValueError("'args' must be a list")
        env = data.get("env") or {}
        if not isinstance(env, dict):
            raise ValueError("'env' must be an object")
        return cls(
            command=command,
            args=tuple(args),
            env=env,
            cwd=data.get("cwd"),
        )


class WorkerState(str, Enum):
    """Lifecycle state of a worker."""
    STARTING = "starting"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    STOPPED = "stopped"
    CRASHED = "crashed"

    @property
    def terminal(self) -> bool:
        return self in (WorkerState.FAILED, WorkerState.STOPPED, WorkerState.CRASHED)


@dataclass
class WorkerStatus:
    """Read-only snapshot of a worker."""
    name: str
    state: WorkerState
    ready: bool
    pid: Optional[int] = None
    pending: int = 0
    started_at: Optional[datetime] = None
    return_code: Optional[int] = None
    server_info: Optional[Implementation] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "ready": self.ready,
            "pid": self.pid,
            "pending": self.pending,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "return_code": self.return_code,
            "server_info": self.server_info.to_dict() if self.server_info else None,
        }
