"""
MCPWrap Worker Layer

Child-process MCP servers driven over line-delimited JSON-RPC.

Usage:
    from mcpwrap.workers import WorkerManager, LaunchSpec

    manager = WorkerManager()
    await manager.start("echo", LaunchSpec(command="python", args=("-m", "mcpwrap.servers.echo")))

    tools = await manager.list_tools("echo")
    result = await manager.call_tool("echo", "echo", {"message": "hi"})

    await manager.shutdown_all()
"""

from mcpwrap.workers.types import (
    MCP_PROTOCOL_VERSION,
    JsonRpcRequest,
    JsonRpcResponse,
    JsonRpcNotification,
    JsonRpcErrorCode,
    Implementation,
    LaunchSpec,
    WorkerState,
    WorkerStatus,
)
from mcpwrap.workers.errors import (
    WorkerError,
    WorkerNotConfiguredError,
    WorkerNotFoundError,
    WorkerNotReadyError,
    TransportError,
    TransportWriteError,
    FrameOverflowError,
    ProtocolDecodeError,
    RemoteError,
    RequestTimeoutError,
    WorkerLifecycleError,
    SpawnError,
    HandshakeError,
    WorkerExitedError,
    WorkerStoppedError,
)
from mcpwrap.workers.protocol import MCPMethods, WorkerProtocol
from mcpwrap.workers.framer import LineFramer
from mcpwrap.workers.correlator import RequestCorrelator, PendingCall
from mcpwrap.workers.process import StdioProcess
from mcpwrap.workers.worker import Worker
from mcpwrap.workers.manager import WorkerManager
from mcpwrap.workers.registry import ServerRegistry

__all__ = [
    # Types
    "MCP_PROTOCOL_VERSION",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "JsonRpcNotification",
    "JsonRpcErrorCode",
    "Implementation",
    "LaunchSpec",
    "WorkerState",
    "WorkerStatus",
    # Errors
    "WorkerError",
    "WorkerNotConfiguredError",
    "WorkerNotFoundError",
    "WorkerNotReadyError",
    "TransportError",
    "TransportWriteError",
    "FrameOverflowError",
    "ProtocolDecodeError",
    "RemoteError",
    "RequestTimeoutError",
    "WorkerLifecycleError",
    "SpawnError",
    "HandshakeError",
    "WorkerExitedError",
    "WorkerStoppedError",
    # Components
    "MCPMethods",
    "WorkerProtocol",
    "LineFramer",
    "RequestCorrelator",
    "PendingCall",
    "StdioProcess",
    "Worker",
    "WorkerManager",
    "ServerRegistry",
]
