"""
MCPWrap - HTTP wrapper for stdio MCP servers

Runs Model Context Protocol servers as long-lived child processes and exposes
them over a small REST API:
- Line-delimited JSON-RPC over stdin/stdout
- Concurrent callers multiplexed onto one worker by request id
- Per-request timeouts
- Start/initialize/stop/crash lifecycle tracking
"""

__version__ = "1.0.0"

from mcpwrap.core.config import WrapperConfig
from mcpwrap.workers.manager import WorkerManager

__all__ = ["WrapperConfig", "WorkerManager", "__version__"]
