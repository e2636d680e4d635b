"""
Configuration tests
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mcpwrap.core.config import (
    LogLevel,
    WrapperConfig,
    get_config,
    set_config,
)

ENV_NAMES = [
    "API_KEY",
    "PORT",
    "MCP_CONFIG_PATH",
    "MCP_REQUEST_TIMEOUT",
    "ALLOWED_ORIGINS",
    "RATE_LIMIT_WINDOW_MS",
    "RATE_LIMIT_MAX_REQUESTS",
    "MCPWRAP_PORT",
    "MCPWRAP_SECURITY__API_KEY",
    "MCPWRAP_WORKERS__REQUEST_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


class TestWrapperConfig:
    """Test WrapperConfig loading."""

    def test_defaults(self):
        config = WrapperConfig()

        assert config.port == 3000
        assert config.workers.request_timeout == 30.0
        assert config.workers.max_buffer_bytes == 10 * 1024 * 1024
        assert config.workers.fail_pending_on_exit is False
        assert config.security.api_key is None
        assert config.security.allowed_origins == ["http://localhost:3000"]
        assert config.security.rate_limit_window == 900.0
        assert config.security.rate_limit_max_requests == 100
        assert config.monitoring.log_level is LogLevel.INFO

    def test_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("MCPWRAP_PORT", "4000")
        monkeypatch.setenv("MCPWRAP_WORKERS__REQUEST_TIMEOUT", "12.5")
        monkeypatch.setenv("MCPWRAP_SECURITY__API_KEY", "modern")

        config = WrapperConfig()

        assert config.port == 4000
        assert config.workers.request_timeout == 12.5
        assert config.security.api_key == "modern"

    def test_legacy_env(self):
        config = WrapperConfig.from_env({
            "API_KEY": "legacy-key",
            "PORT": "8080",
            "MCP_CONFIG_PATH": "/etc/mcp/servers.json",
            "MCP_REQUEST_TIMEOUT": "5000",
            "ALLOWED_ORIGINS": "http://a.example, http://b.example",
            "RATE_LIMIT_WINDOW_MS": "60000",
            "RATE_LIMIT_MAX_REQUESTS": "5",
        })

        assert config.security.api_key == "legacy-key"
        assert config.port == 8080
        assert config.workers.config_path == Path("/etc/mcp/servers.json")
        assert config.workers.request_timeout == 5.0
        assert config.security.allowed_origins == ["http://a.example", "http://b.example"]
        assert config.security.rate_limit_window == 60.0
        assert config.security.rate_limit_max_requests == 5

    def test_prefixed_env_wins_over_legacy(self, monkeypatch):
        monkeypatch.setenv("MCPWRAP_PORT", "4000")
        monkeypatch.setenv("PORT", "8080")

        config = WrapperConfig.from_env()

        assert config.port == 4000

    def test_empty_legacy_value_ignored(self):
        config = WrapperConfig.from_env({"API_KEY": ""})
        assert config.security.api_key is None

    def test_from_file(self, tmp_path):
        path = tmp_path / "wrapper.json"
        path.write_text(json.dumps({
            "port": 9000,
            "workers": {"request_timeout": 2, "auto_start": False},
        }))

        config = WrapperConfig.from_file(path)

        assert config.port == 9000
        assert config.workers.request_timeout == 2.0
        assert config.workers.auto_start is False

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            WrapperConfig.from_file(tmp_path / "missing.json")

    def test_invalid_timeout_rejected(self):
        with pytest.raises(ValueError):
            WrapperConfig(workers={"request_timeout": 0})

    def test_process_wide_config(self):
        config = WrapperConfig(port=1234)
        set_config(config)

        assert get_config() is config
