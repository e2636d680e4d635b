"""
MCPWrap Server Registry

Static worker configurations loaded from a ``claude_desktop_config.json``
style document:

    {"mcpServers": {"<name>": {"command": "...", "args": [...], "env": {...}}}}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import structlog

from mcpwrap.workers.errors import WorkerNotConfiguredError
from mcpwrap.workers.types import LaunchSpec

logger = structlog.get_logger(__name__)


class ServerRegistry:
    """
    Registry of configured worker launch specs.

    Manages:
    - Loading specs from the configuration document
    - Runtime registration
    - Lookup by name
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Args:
            config_path: Path to the worker configuration document
        """
        self.config_path = config_path or Path("./config/claude_desktop_config.json")
        self._servers: dict[str, LaunchSpec] = {}
        self._loaded = False

    def load(self) -> None:
        """
        Load worker specs from the configuration document.

        A missing or unreadable document leaves the registry empty; the
        wrapper still serves and workers can be registered at runtime.
        """
        if self._loaded:
            return
        self._loaded = True

        try:
            with open(self.config_path) as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning(
                "Could not load config, starting without MCP servers",
                path=str(self.config_path),
            )
            return
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load server config", path=str(self.config_path), error=str(e))
            return

        servers = data.get("mcpServers") if isinstance(data, dict) else None
        if not isinstance(servers, dict):
            logger.warning("Config has no mcpServers object", path=str(self.config_path))
            return

        for name, entry in servers.items():
            try:
                self._servers[name] = LaunchSpec.from_dict(entry)
            except ValueError as e:
                logger.error("Skipping invalid server config", worker=name, error=str(e))

        logger.info(
            "Loaded server configs from file",
            count=len(self._servers),
            path=str(self.config_path),
        )

    def register(self, name: str, spec: LaunchSpec) -> None:
        """Register or replace a worker spec."""
        if name in self._servers:
            logger.info("Updating existing server config", worker=name)
        else:
            logger.info("Registered new MCP server", worker=name)
        self._servers[name] = spec

    def unregister(self, name: str) -> bool:
        """Remove a worker spec; returns True if it existed."""
        return self._servers.pop(name, None) is not None

    def get(self, name: str) -> Optional[LaunchSpec]:
        return self._servers.get(name)

    def require(self, name: str) -> LaunchSpec:
        """
        Get a worker spec.

        Raises:
            WorkerNotConfiguredError: If ``name`` is not configured
        """
        spec = self._servers.get(name)
        if spec is None:
            raise WorkerNotConfiguredError(name)
        return spec

    def names(self) -> list[str]:
        return list(self._servers)

    def specs(self) -> dict[str, LaunchSpec]:
        return dict(self._servers)

    def __contains__(self, name: str) -> bool:
        return name in self._servers

    def to_dict(self) -> dict:
        """Convert to the configuration document shape."""
        return {
            "mcpServers": {
                name: spec.to_dict() for name, spec in self._servers.items()
            },
        }
