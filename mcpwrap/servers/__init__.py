"""
MCPWrap reference servers

Small stdio MCP servers used for demos and integration tests.
"""

from mcpwrap.servers.echo import EchoServer, ToolHandler

__all__ = ["EchoServer", "ToolHandler"]
