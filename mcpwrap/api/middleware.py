"""
MCPWrap HTTP Middleware

- API key authentication (X-API-Key or Bearer token)
- Per-client sliding window rate limiting
- Request body size limit
"""

from __future__ import annotations

import hmac
import math
import time
from collections import deque
from typing import Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
import structlog

logger = structlog.get_logger(__name__)


# =============================================================================
# Authentication
# =============================================================================

class ApiKeyMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests without the configured API key.

    The key is read from ``X-API-Key`` or ``Authorization: Bearer <key>``.
    Exempt paths (``/health`` by default) are always let through.
    """

    def __init__(
        self,
        app,
        api_key: Optional[str],
        exclude_paths: Optional[list[str]] = None,
    ):
        super().__init__(app)
        self.api_key = api_key
        self.exclude_paths = exclude_paths or ["/health"]

    @staticmethod
    def extract_key(request: Request) -> Optional[str]:
        key = request.headers.get("x-api-key")
        if key:
            return key

        authorization = request.headers.get("authorization", "")
        if authorization.startswith("Bearer "):
            return authorization[len("Bearer "):].strip() or None
        return None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.api_key is None or request.url.path in self.exclude_paths:
            return await call_next(request)

        provided = self.extract_key(request)
        if provided is None or not hmac.compare_digest(
            provided.encode("utf-8"), self.api_key.encode("utf-8")
        ):
            logger.warning(
                "Rejected unauthenticated request",
                path=request.url.path,
                client=request.client.host if request.client else None,
            )
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized - Invalid or missing API key"},
            )

        return await call_next(request)


# =============================================================================
# Rate Limiting
# =============================================================================

class RateLimitExceededError(Exception):
    """Raised when rate limit is exceeded."""
    def __init__(self, limit_name: str, retry_after: float):
        self.limit_name = limit_name
        self.retry_after = retry_after
        super().__init__(f"Rate limit '{limit_name}' exceeded. Retry after {retry_after:.2f}s")


class SlidingWindowRateLimiter:
    """
    Sliding window rate limiter keyed by client.

    More accurate than fixed window, prevents burst at window boundaries.
    """

    def __init__(
        self,
        name: str,
        limit: int,            # Maximum requests
        window_seconds: float, # Window duration
    ):
        """
        Initialize rate limiter.

        Args:
            name: Limiter name
            limit: Maximum requests per window and client
            window_seconds: Window duration in seconds
        """
        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds

        self._requests: Dict[str, deque[float]] = {}
        self._last_sweep = time.monotonic()

    def acquire(self, key: str) -> None:
        """
        Record a request for ``key``.

        Raises:
            RateLimitExceededError: If ``key`` already used its window
        """
        now = time.monotonic()
        cutoff = now - self.window_seconds
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(cutoff)
            self._last_sweep = now

        requests = self._requests.get(key)
        if requests is None:
            requests = self._requests[key] = deque()
        while requests and requests[0] <= cutoff:
            requests.popleft()

        if len(requests) < self.limit:
            requests.append(now)
            return

        retry_after = requests[0] + self.window_seconds - now
        raise RateLimitExceededError(self.name, max(0.0, retry_after))

    def _sweep(self, cutoff: float) -> None:
        # Drop clients with no request inside the current window
        idle = [key for key, requests in self._requests.items() if not requests or requests[-1] <= cutoff]
        for key in idle:
            del self._requests[key]

    @property
    def client_count(self) -> int:
        return len(self._requests)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client-address request limit with proper 429 responses."""

    def __init__(self, app, limiter: SlidingWindowRateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        client = request.client.host if request.client else "unknown"
        try:
            self.limiter.acquire(client)
        except RateLimitExceededError as e:
            logger.warning("Rate limit exceeded", client=client, retry_after=e.retry_after)
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests from this IP, please try again later."},
                headers={"Retry-After": str(math.ceil(e.retry_after))},
            )

        return await call_next(request)


# =============================================================================
# Body Size
# =============================================================================

class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests whose declared Content-Length exceeds the limit."""

    def __init__(self, app, max_body_bytes: int):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(status_code=400, content={"error": "Invalid Content-Length"})
            if size > self.max_body_bytes:
                return JSONResponse(
                    status_code=413,
                    content={"error": f"Request body exceeds {self.max_body_bytes} bytes"},
                )

        return await call_next(request)
