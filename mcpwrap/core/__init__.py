"""MCPWrap Core Module - Configuration."""

from mcpwrap.core.config import (
    WrapperConfig,
    WorkerConfig,
    SecurityConfig,
    MonitoringConfig,
    LogLevel,
    get_config,
    set_config,
    reset_config,
)

__all__ = [
    "WrapperConfig",
    "WorkerConfig",
    "SecurityConfig",
    "MonitoringConfig",
    "LogLevel",
    "get_config",
    "set_config",
    "reset_config",
]
