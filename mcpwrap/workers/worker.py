"""
MCPWrap Worker

One MCP server process plus its call surface: framing of stdout, request
correlation, the initialize handshake and lifecycle tracking.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from mcpwrap.workers.correlator import DEFAULT_REQUEST_TIMEOUT, RequestCorrelator
from mcpwrap.workers.errors import (
    FrameOverflowError,
    HandshakeError,
    TransportError,
    WorkerError,
    WorkerExitedError,
    WorkerNotReadyError,
    WorkerStoppedError,
)
from mcpwrap.workers.framer import DEFAULT_MAX_BUFFER_BYTES, LineFramer
from mcpwrap.workers.process import StdioProcess
from mcpwrap.workers.protocol import MCPMethods, Message, WorkerProtocol, method_not_found
from mcpwrap.workers.types import (
    MCP_PROTOCOL_VERSION,
    Implementation,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    LaunchSpec,
    WorkerState,
    WorkerStatus,
)

logger = structlog.get_logger(__name__)

ExitCallback = Callable[["Worker"], None]


class Worker:
    """
    A single worker process and everything needed to talk to it.

    Lifecycle:
        starting -> initializing -> ready -> stopped | crashed
        starting -> initializing -> failed
    """

    def __init__(
        self,
        name: str,
        spec: LaunchSpec,
        client_info: Implementation,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
        terminate_timeout: float = 5.0,
        fail_pending_on_exit: bool = False,
        on_exit: Optional[ExitCallback] = None,
    ):
        """
        Args:
            name: Registry key
            spec: Command, arguments and environment overlay
            client_info: Identity sent in the initialize handshake
            request_timeout: Seconds to wait for each response
            max_buffer_bytes: Limit on an unterminated stdout line
            terminate_timeout: Grace period between SIGTERM and SIGKILL
            fail_pending_on_exit: Fail in-flight calls as soon as the process exits
            on_exit: Called once if the process exits without being stopped
        """
        self.name = name
        self.spec = spec
        self.client_info = client_info
        self.terminate_timeout = terminate_timeout
        self.fail_pending_on_exit = fail_pending_on_exit

        self.state = WorkerState.STARTING
        self.server_info: Optional[Implementation] = None
        self.started_at: Optional[datetime] = None

        self._on_exit = on_exit
        self._protocol = WorkerProtocol()
        self._process = StdioProcess(name, spec)
        self._framer = LineFramer(max_buffer_bytes)
        self._correlator = RequestCorrelator(
            name,
            self._process.write,
            timeout=request_timeout,
            protocol=self._protocol,
        )

        self._reader_task: Optional[asyncio.Task] = None
        self._exit_task: Optional[asyncio.Task] = None
        self._exited = asyncio.Event()
        self._stopping = False

    # === Lifecycle ===

    async def start(self) -> None:
        """
        Spawn the process and attach the stdout reader and exit observer.

        Raises:
            SpawnError: If the process cannot be started
        """
        await self._process.spawn()
        self.started_at = datetime.now()

        self._reader_task = asyncio.create_task(self._read_loop())
        self._exit_task = asyncio.create_task(self._watch_exit())

    async def initialize(self) -> None:
        """
        Perform the initialize handshake.

        The request races process exit, so a worker that dies during startup
        fails immediately instead of waiting out the request timeout.

        Raises:
            HandshakeError: On error response, timeout, write failure or exit
        """
        self.state = WorkerState.INITIALIZING

        params = {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": self.client_info.to_dict(),
        }
        request = asyncio.create_task(self._correlator.send(MCPMethods.INITIALIZE, params))
        exited = asyncio.create_task(self._exited.wait())

        try:
            done, _ = await asyncio.wait(
                {request, exited},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            request.cancel()
            raise
        finally:
            exited.cancel()

        if request not in done:
            request.cancel()
            try:
                await request
            except (asyncio.CancelledError, WorkerError):
                pass
            raise self._exited_during_handshake()

        try:
            result = request.result()
            await self._notify(MCPMethods.INITIALIZED, {})
        except TransportError as e:
            # A broken pipe means the process is going away; report its exit
            try:
                await asyncio.wait_for(self._exited.wait(), timeout=1.0)
            except asyncio.TimeoutError:
                self.state = WorkerState.FAILED
                raise HandshakeError(
                    f"Failed to initialize {self.name}: {e.message}", cause=e
                ) from e
            raise self._exited_during_handshake() from e
        except WorkerError as e:
            self.state = WorkerState.FAILED
            raise HandshakeError(f"Failed to initialize {self.name}: {e.message}", cause=e) from e

        if isinstance(result, dict) and isinstance(result.get("serverInfo"), dict):
            self.server_info = Implementation.from_dict(result["serverInfo"])

        self.state = WorkerState.READY
        logger.info(
            "Server initialized successfully",
            worker=self.name,
            server=self.server_info.name if self.server_info else "unknown",
        )

    def _exited_during_handshake(self) -> HandshakeError:
        self.state = WorkerState.FAILED
        return HandshakeError(
            f"Failed to initialize {self.name}: "
            f"process exited with code {self._process.returncode}"
        )

    async def stop(self) -> None:
        """
        Terminate the process and release its resources.

        Pending calls fail with ``WorkerStoppedError``. Safe to call repeatedly
        and on workers that already exited.
        """
        if self._stopping:
            return
        self._stopping = True

        if not self.state.terminal:
            self.state = WorkerState.STOPPED

        failed = self._correlator.fail_all(WorkerStoppedError(f"Server {self.name} was stopped"))
        if failed:
            logger.info("Failed pending requests on stop", worker=self.name, count=failed)

        await self._process.terminate(self.terminate_timeout)

        for task in (self._reader_task, self._exit_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._framer.reset()
        logger.info("Stopped server", worker=self.name, state=self.state.value)

    # === Calls ===

    async def list_tools(self) -> Any:
        """Fetch the worker's tool descriptors."""
        self._require_ready()
        return await self._correlator.send(MCPMethods.TOOLS_LIST, {})

    async def call_tool(self, tool_name: str, arguments: Optional[dict[str, Any]] = None) -> Any:
        """Invoke a tool; arguments and result pass through untouched."""
        self._require_ready()
        return await self._correlator.send(MCPMethods.TOOLS_CALL, {
            "name": tool_name,
            "arguments": arguments if arguments is not None else {},
        })

    def _require_ready(self) -> None:
        if not self.ready:
            raise WorkerNotReadyError(self.name)

    async def _notify(self, method: str, params: dict[str, Any]) -> None:
        """Send a notification (no response expected)."""
        notification = self._protocol.create_notification(method, params)
        await self._process.write(self._protocol.serialize(notification))

    # === Background Tasks ===

    async def _read_loop(self) -> None:
        """Feed stdout through the framer and dispatch each message."""
        try:
            while True:
                chunk = await self._process.read_chunk()
                if not chunk:
                    logger.debug("Worker stdout closed", worker=self.name)
                    break

                try:
                    lines = self._framer.feed(chunk)
                except FrameOverflowError as e:
                    logger.error(
                        "Worker output exceeded buffer limit, stopping worker",
                        worker=self.name,
                        limit=e.limit,
                    )
                    self._correlator.fail_all(e)
                    await self._process.terminate(self.terminate_timeout)
                    break

                for message in self._protocol.decode_lines(lines, worker=self.name):
                    await self._dispatch(message)

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Worker reader failed, stopping worker", worker=self.name, error=str(e))
            self._correlator.fail_all(
                TransportError(f"Reading from MCP server {self.name} failed: {e}", cause=e)
            )
            await self._process.terminate(self.terminate_timeout)

    async def _dispatch(self, message: Message) -> None:
        if isinstance(message, JsonRpcResponse):
            self._correlator.deliver(message)

        elif isinstance(message, JsonRpcRequest):
            logger.debug("Rejecting request from worker", worker=self.name, method=message.method)
            reply = method_not_found(self._protocol, message)
            try:
                await self._process.write(self._protocol.serialize(reply))
            except WorkerError as e:
                logger.warning("Failed to reply to worker request", worker=self.name, error=e.message)

        elif isinstance(message, JsonRpcNotification):
            logger.debug("Worker notification", worker=self.name, method=message.method)

    async def _watch_exit(self) -> None:
        """Observe process exit that was not requested through ``stop``."""
        try:
            code = await self._process.wait()
        except asyncio.CancelledError:
            return

        self._exited.set()
        if self._stopping:
            return

        if self.state in (WorkerState.STARTING, WorkerState.INITIALIZING):
            self.state = WorkerState.FAILED
        else:
            self.state = WorkerState.CRASHED

        logger.warning("Server exited", worker=self.name, return_code=code)

        if self.fail_pending_on_exit:
            self._correlator.fail_all(
                WorkerExitedError(f"Server {self.name} exited with code {code}")
            )

        if self._on_exit is not None:
            self._on_exit(self)

    # === Properties ===

    @property
    def ready(self) -> bool:
        return self.state is WorkerState.READY

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    @property
    def return_code(self) -> Optional[int]:
        return self._process.returncode

    @property
    def pending_count(self) -> int:
        return self._correlator.pending_count

    @property
    def correlator(self) -> RequestCorrelator:
        return self._correlator

    def status(self) -> WorkerStatus:
        """Get a snapshot of this worker."""
        return WorkerStatus(
            name=self.name,
            state=self.state,
            ready=self.ready,
            pid=self.pid,
            pending=self.pending_count,
            started_at=self.started_at,
            return_code=self.return_code,
            server_info=self.server_info,
        )
