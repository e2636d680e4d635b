"""MCPWrap API Module - FastAPI routes and middleware."""

from mcpwrap.api.routes import setup_routes
from mcpwrap.api.middleware import (
    ApiKeyMiddleware,
    RateLimitMiddleware,
    BodySizeLimitMiddleware,
    SlidingWindowRateLimiter,
)

__all__ = [
    "setup_routes",
    "ApiKeyMiddleware",
    "RateLimitMiddleware",
    "BodySizeLimitMiddleware",
    "SlidingWindowRateLimiter",
]
