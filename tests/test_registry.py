"""
Server registry tests
"""

from __future__ import annotations

import json

import pytest

from mcpwrap.workers.errors import WorkerNotConfiguredError
from mcpwrap.workers.registry import ServerRegistry
from mcpwrap.workers.types import LaunchSpec


def write_config(path, servers):
    path.write_text(json.dumps({"mcpServers": servers}))
    return path


class TestServerRegistry:
    """Test ServerRegistry class."""

    @pytest.fixture
    def config_path(self, tmp_path):
        return write_config(tmp_path / "claude_desktop_config.json", {
            "filesystem": {
                "command": "npx",
                "args": ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"],
            },
            "github": {
                "command": "npx",
                "args": ["-y", "@modelcontextprotocol/server-github"],
                "env": {"GITHUB_TOKEN": "secret"},
            },
        })

    def test_load(self, config_path):
        registry = ServerRegistry(config_path)
        registry.load()

        assert registry.names() == ["filesystem", "github"]
        spec = registry.require("github")
        assert spec.command == "npx"
        assert dict(spec.env) == {"GITHUB_TOKEN": "secret"}

    def test_load_is_idempotent(self, config_path):
        registry = ServerRegistry(config_path)
        registry.load()
        registry.unregister("github")
        registry.load()

        assert registry.names() == ["filesystem"]

    def test_missing_file_leaves_registry_empty(self, tmp_path):
        registry = ServerRegistry(tmp_path / "missing.json")
        registry.load()

        assert registry.names() == []

    def test_invalid_json_leaves_registry_empty(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        registry = ServerRegistry(path)
        registry.load()

        assert registry.names() == []

    def test_invalid_entries_skipped(self, tmp_path):
        path = write_config(tmp_path / "config.json", {
            "good": {"command": "python", "args": ["server.py"]},
            "no-command": {"args": ["x"]},
            "bad-args": {"command": "python", "args": "server.py"},
        })
        registry = ServerRegistry(path)
        registry.load()

        assert registry.names() == ["good"]

    def test_require_unknown(self, config_path):
        registry = ServerRegistry(config_path)
        registry.load()

        with pytest.raises(WorkerNotConfiguredError) as exc:
            registry.require("nope")
        assert exc.value.message == "Server nope not found in configuration"
        assert registry.get("nope") is None

    def test_register_and_unregister(self, tmp_path):
        registry = ServerRegistry(tmp_path / "missing.json")
        spec = LaunchSpec(command="python", args=("-m", "mcpwrap.servers.echo"))

        registry.register("echo", spec)
        assert "echo" in registry
        assert registry.specs() == {"echo": spec}

        assert registry.unregister("echo") is True
        assert registry.unregister("echo") is False
        assert "echo" not in registry

    def test_to_dict(self, config_path):
        registry = ServerRegistry(config_path)
        registry.load()

        data = registry.to_dict()
        assert data["mcpServers"]["github"]["env"] == {"GITHUB_TOKEN": "secret"}
        assert data["mcpServers"]["filesystem"]["args"][0] == "-y"
