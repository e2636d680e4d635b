"""
MCPWrap Command Line Interface

Runs the wrapper server and talks to a running one over HTTP.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Optional

import httpx

DEFAULT_URL = "http://localhost:3000"


def default_api_key() -> Optional[str]:
    return os.environ.get("MCPWRAP_SECURITY__API_KEY") or os.environ.get("API_KEY") or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpwrap",
        description="MCPWrap - HTTP wrapper for stdio MCP servers",
    )

    # Shared client options
    client_opts = argparse.ArgumentParser(add_help=False)
    client_opts.add_argument("--url", default=DEFAULT_URL, help="Wrapper URL")
    client_opts.add_argument(
        "--api-key",
        default=default_api_key(),
        help="API key (defaults to MCPWRAP_SECURITY__API_KEY or API_KEY)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Server command
    server_parser = subparsers.add_parser("server", help="Start the wrapper server")
    server_parser.add_argument("--host", default=None, help="Host to bind to")
    server_parser.add_argument("--port", type=int, default=None, help="Port")
    server_parser.add_argument("--reload", action="store_true", help="Auto-reload")

    subparsers.add_parser("health", parents=[client_opts], help="Check wrapper health")
    subparsers.add_parser("servers", parents=[client_opts], help="List configured servers")

    start_parser = subparsers.add_parser("start", parents=[client_opts], help="Start a server")
    start_parser.add_argument("name", help="Server name")

    stop_parser = subparsers.add_parser("stop", parents=[client_opts], help="Stop a server")
    stop_parser.add_argument("name", help="Server name")

    tools_parser = subparsers.add_parser("tools", parents=[client_opts], help="List a server's tools")
    tools_parser.add_argument("name", help="Server name")

    call_parser = subparsers.add_parser("call", parents=[client_opts], help="Call a tool")
    call_parser.add_argument("name", help="Server name")
    call_parser.add_argument("tool", help="Tool name")
    call_parser.add_argument("--args", type=json.loads, default={}, help="Tool arguments as JSON")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "server":
        from mcpwrap.main import run_server
        run_server(host=args.host, port=args.port, reload=args.reload)
        return 0

    if args.command == "health":
        request = ("GET", "/health", None)
    elif args.command == "servers":
        request = ("GET", "/servers", None)
    elif args.command == "start":
        request = ("POST", f"/servers/{args.name}/start", None)
    elif args.command == "stop":
        request = ("POST", f"/servers/{args.name}/stop", None)
    elif args.command == "tools":
        request = ("GET", f"/servers/{args.name}/tools", None)
    else:
        request = ("POST", f"/servers/{args.name}/tools/{args.tool}", args.args)

    method, path, body = request
    return asyncio.run(cmd_request(args.url, method, path, body, args.api_key))


async def cmd_request(
    base_url: str,
    method: str,
    path: str,
    body: Any = None,
    api_key: Optional[str] = None,
) -> int:
    """Send one request to the wrapper and print the JSON reply."""
    headers = {"X-API-Key": api_key} if api_key else {}

    async with httpx.AsyncClient(base_url=base_url, headers=headers) as client:
        try:
            response = await client.request(method, path, json=body, timeout=60.0)
        except httpx.HTTPError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    try:
        result = response.json()
    except ValueError:
        result = response.text

    print(json.dumps(result, indent=2) if not isinstance(result, str) else result)

    if response.status_code >= 400:
        print(f"Error: {response.status_code}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
