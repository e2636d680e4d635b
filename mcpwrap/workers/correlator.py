"""
MCPWrap Request Correlator

Multiplexes concurrent calls onto a worker's single request/response stream.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import structlog

from mcpwrap.workers.errors import (
    RemoteError,
    RequestTimeoutError,
    TransportWriteError,
    WorkerError,
)
from mcpwrap.workers.protocol import WorkerProtocol
from mcpwrap.workers.types import JsonRpcResponse

logger = structlog.get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0

Writer = Callable[[str], Awaitable[None]]


@dataclass
class PendingCall:
    """One in-flight request."""
    request_id: int
    method: str
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = None
    sent_at: float = field(default_factory=time.monotonic)


class RequestCorrelator:
    """
    Tracks outstanding requests by id and resolves each exactly once.

    Whoever removes a record from the pending table (a response, the timeout,
    a write failure or ``fail_all``) is the only party allowed to complete
    its future.
    """

    def __init__(
        self,
        name: str,
        write: Writer,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        protocol: Optional[WorkerProtocol] = None,
    ):
        """
        Args:
            name: Worker name, for logs and error messages
            write: Coroutine that writes one serialized line to the worker
            timeout: Seconds to wait for each response
            protocol: JSON-RPC codec
        """
        self.name = name
        self.timeout = timeout
        self._write = write
        self._protocol = protocol or WorkerProtocol()
        self._next_id = 0
        self._pending: dict[int, PendingCall] = {}

    def next_request_id(self) -> int:
        """Allocate a fresh request id."""
        self._next_id += 1
        return self._next_id

    async def send(self, method: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Send a request and wait for its result.

        Raises:
            TransportWriteError: If the request could not be written
            RequestTimeoutError: If no response arrived in time
            RemoteError: If the worker answered with an error
        """
        loop = asyncio.get_running_loop()
        request_id = self.next_request_id()
        request = self._protocol.create_request(method, request_id, params)

        call = PendingCall(
            request_id=request_id,
            method=method,
            future=loop.create_future(),
        )
        self._pending[request_id] = call
        call.timer = loop.call_later(self.timeout, self._expire, request_id)

        try:
            await self._write(self._protocol.serialize(request))
        except Exception as e:
            if self._pending.pop(request_id, None) is call:
                call.timer.cancel()
            # The timeout may already have fired while the write was blocked
            if call.future.done():
                return call.future.result()
            if isinstance(e, TransportWriteError):
                raise
            raise TransportWriteError(
                f"Failed to write to MCP server {self.name}: {e}", cause=e
            ) from e

        logger.debug(
            "Sent request to worker",
            worker=self.name,
            method=method,
            request_id=request_id,
        )

        try:
            return await call.future
        except asyncio.CancelledError:
            # Caller gave up; release the slot
            if self._pending.pop(request_id, None) is call:
                call.timer.cancel()
            raise

    def deliver(self, response: JsonRpcResponse) -> bool:
        """
        Resolve the pending call matching ``response.id``.

        Returns:
            True if a pending call was resolved, False if the id was unknown
        """
        request_id = response.id
        # bool is an int subclass; true/false are never valid ids here
        if not isinstance(request_id, int) or isinstance(request_id, bool):
            logger.debug("Ignoring response with non-integer id", worker=self.name, id=request_id)
            return False

        call = self._pending.pop(request_id, None)
        if call is None:
            logger.debug("Ignoring response for unknown request", worker=self.name, id=request_id)
            return False

        call.timer.cancel()
        if call.future.done():
            return False

        if response.is_error:
            call.future.set_exception(RemoteError.from_error(response.error))
        else:
            call.future.set_result(response.result)

        logger.debug(
            "Resolved worker request",
            worker=self.name,
            method=call.method,
            request_id=request_id,
            latency_ms=round((time.monotonic() - call.sent_at) * 1000, 2),
        )
        return True

    def fail_all(self, error: WorkerError) -> int:
        """
        Fail every pending call with ``error``.

        Returns:
            Number of calls failed
        """
        calls = list(self._pending.values())
        self._pending.clear()

        failed = 0
        for call in calls:
            call.timer.cancel()
            if not call.future.done():
                call.future.set_exception(error)
                failed += 1
        return failed

    def _expire(self, request_id: int) -> None:
        """Timer callback: fail the call if it is still pending."""
        call = self._pending.pop(request_id, None)
        if call is None or call.future.done():
            return

        logger.warning(
            "Worker request timed out",
            worker=self.name,
            method=call.method,
            request_id=request_id,
            timeout=self.timeout,
        )
        call.future.set_exception(RequestTimeoutError(call.method, self.timeout))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    @property
    def last_request_id(self) -> int:
        return self._next_id
