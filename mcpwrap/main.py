"""
MCPWrap - HTTP wrapper for stdio MCP servers

Main entry point: application factory, lifespan and server runner.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mcpwrap import __version__
from mcpwrap.api.middleware import (
    ApiKeyMiddleware,
    BodySizeLimitMiddleware,
    RateLimitMiddleware,
    SlidingWindowRateLimiter,
)
from mcpwrap.api.routes import setup_routes
from mcpwrap.core.config import WrapperConfig, get_config, set_config
from mcpwrap.workers.manager import WorkerManager
from mcpwrap.workers.registry import ServerRegistry


# Configure structured logging
def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structured logging."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(level)

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: auto-start workers, stop them all on shutdown."""
    config: WrapperConfig = app.state.config
    manager: WorkerManager = app.state.manager
    registry: ServerRegistry = app.state.registry

    logger.info(
        "Starting MCP HTTP wrapper",
        version=__version__,
        port=config.port,
        auth="enabled" if config.security.api_key else "disabled",
    )
    if not config.security.api_key:
        logger.warning("API key authentication is DISABLED")

    auto_start: Optional[asyncio.Task] = None
    if config.workers.auto_start:
        auto_start = asyncio.create_task(manager.auto_start(registry.specs()))
    app.state.auto_start_task = auto_start

    yield

    logger.info("Shutting down gracefully")
    if auto_start is not None and not auto_start.done():
        auto_start.cancel()
        try:
            await auto_start
        except asyncio.CancelledError:
            pass

    await manager.shutdown_all()
    logger.info("Shutdown complete")


def create_app(
    config: Optional[WrapperConfig] = None,
    registry: Optional[ServerRegistry] = None,
    manager: Optional[WorkerManager] = None,
) -> FastAPI:
    """
    Create and configure the wrapper FastAPI application.

    Args:
        config: Optional configuration override
        registry: Optional worker registry (loaded from config otherwise)
        manager: Optional worker manager (built from config otherwise)

    Returns:
        Configured FastAPI application
    """
    if config:
        set_config(config)
    else:
        config = get_config()

    log_level = "DEBUG" if config.debug else config.monitoring.log_level.value
    setup_logging(log_level, config.monitoring.log_format)

    if registry is None:
        registry = ServerRegistry(config.workers.config_path)
        registry.load()

    if manager is None:
        manager = WorkerManager(config.workers)

    app = FastAPI(
        title="MCP HTTP Wrapper",
        description="HTTP REST API wrapper for Model Context Protocol servers",
        version=__version__,
        debug=config.debug,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry
    app.state.manager = manager

    setup_routes(app, manager, registry)

    # Last added runs first: CORS, body size, rate limit, then auth
    app.add_middleware(ApiKeyMiddleware, api_key=config.security.api_key)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=SlidingWindowRateLimiter(
            name="http",
            limit=config.security.rate_limit_max_requests,
            window_seconds=config.security.rate_limit_window,
        ),
    )
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=config.security.max_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: bool = False,
) -> None:
    """
    Run the wrapper server.

    Args:
        host: Host to bind to
        port: Port to bind to
        reload: Enable auto-reload for development
    """
    config = get_config()
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port
    set_config(config)

    uvicorn.run(
        "mcpwrap.main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=reload,
        log_level="debug" if config.debug else config.monitoring.log_level.value.lower(),
    )


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="MCP HTTP Wrapper")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    run_server(host=args.host, port=args.port, reload=args.reload)
