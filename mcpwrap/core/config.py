"""
MCPWrap Configuration Management

Centralized configuration for the wrapper with:
- Environment-based configuration (MCPWRAP_ prefix, ``__`` for nesting)
- Type-safe settings with Pydantic
- Fallback to the legacy unprefixed variable names (API_KEY, PORT, ...)
"""

from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


def _split_csv(v: Any) -> Any:
    if isinstance(v, str):
        return [o.strip() for o in v.split(",") if o.strip()]
    return v


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class WorkerConfig(BaseModel):
    """Configuration for worker processes."""
    config_path: Path = Path("./config/claude_desktop_config.json")
    request_timeout: float = Field(default=30.0, gt=0)  # seconds
    max_buffer_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    terminate_timeout: float = Field(default=5.0, ge=0)  # SIGTERM -> SIGKILL
    fail_pending_on_exit: bool = False
    auto_start: bool = True
    client_name: str = "mcp-http-wrapper"


class SecurityConfig(BaseModel):
    """Configuration for the HTTP security layer."""
    api_key: Optional[str] = None
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    rate_limit_window: float = Field(default=900.0, gt=0)  # seconds
    rate_limit_max_requests: int = Field(default=100, gt=0)
    max_body_bytes: int = Field(default=10 * 1024 * 1024, gt=0)

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def split_origins(cls, v: Any) -> Any:
        """Accept a comma separated string as well as a list."""
        return _split_csv(v)


class MonitoringConfig(BaseModel):
    """Configuration for logging."""
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "text"] = "json"


class WrapperConfig(BaseSettings):
    """
    Main MCPWrap Configuration

    Loads configuration from environment variables and/or config files.
    Environment variables are prefixed with MCPWRAP_ (e.g.
    MCPWRAP_WORKERS__REQUEST_TIMEOUT=10).
    """

    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False  # FastAPI debug tracebacks and DEBUG logging

    workers: WorkerConfig = Field(default_factory=WorkerConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = {
        "env_prefix": "MCPWRAP_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @classmethod
    def from_file(cls, config_path: Path) -> "WrapperConfig":
        """Load configuration from a JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = json.load(f)

        return cls(**config_data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WrapperConfig":
        """
        Build configuration from MCPWRAP_ variables, then fill gaps from the
        legacy names (API_KEY, PORT, MCP_CONFIG_PATH, MCP_REQUEST_TIMEOUT in
        milliseconds, ALLOWED_ORIGINS, RATE_LIMIT_WINDOW_MS,
        RATE_LIMIT_MAX_REQUESTS).
        """
        env = os.environ if environ is None else environ
        config = cls()
        config.apply_legacy_env(env)
        return config

    def apply_legacy_env(self, env: Mapping[str, str]) -> None:
        """Apply legacy variables whose MCPWRAP_ counterpart is unset."""
        keys = {k.upper() for k in env}

        def legacy(name: str, modern: str) -> Optional[str]:
            if modern in keys:
                return None
            value = env.get(name)
            return value if value else None

        if (v := legacy("API_KEY", "MCPWRAP_SECURITY__API_KEY")) is not None:
            self.security.api_key = v
        if (v := legacy("PORT", "MCPWRAP_PORT")) is not None:
            self.port = int(v)
        if (v := legacy("MCP_CONFIG_PATH", "MCPWRAP_WORKERS__CONFIG_PATH")) is not None:
            self.workers.config_path = Path(v)
        if (v := legacy("MCP_REQUEST_TIMEOUT", "MCPWRAP_WORKERS__REQUEST_TIMEOUT")) is not None:
            self.workers.request_timeout = int(v) / 1000.0
        if (v := legacy("ALLOWED_ORIGINS", "MCPWRAP_SECURITY__ALLOWED_ORIGINS")) is not None:
            self.security.allowed_origins = _split_csv(v)
        if (v := legacy("RATE_LIMIT_WINDOW_MS", "MCPWRAP_SECURITY__RATE_LIMIT_WINDOW")) is not None:
            self.security.rate_limit_window = int(v) / 1000.0
        if (v := legacy("RATE_LIMIT_MAX_REQUESTS", "MCPWRAP_SECURITY__RATE_LIMIT_MAX_REQUESTS")) is not None:
            self.security.rate_limit_max_requests = int(v)


# Process-wide configuration (lazy loaded)
_config: Optional[WrapperConfig] = None


def get_config() -> WrapperConfig:
    """Get the process-wide configuration instance."""
    global _config
    if _config is None:
        _config = WrapperConfig.from_env()
    return _config


def set_config(config: WrapperConfig) -> None:
    """Set the process-wide configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the process-wide configuration to default."""
    global _config
    _config = None
