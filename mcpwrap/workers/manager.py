"""
MCPWrap Worker Manager

Keyed registry of running workers with start/stop/shutdown lifecycle and
call routing by worker name.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import structlog

from mcpwrap import __version__
from mcpwrap.core.config import WorkerConfig
from mcpwrap.workers.errors import HandshakeError, WorkerError, WorkerNotFoundError
from mcpwrap.workers.types import Implementation, LaunchSpec, WorkerStatus
from mcpwrap.workers.worker import Worker

logger = structlog.get_logger(__name__)


class WorkerManager:
    """
    Owns every running worker, keyed by name.

    Provides:
    - Idempotent start, including concurrent starts of the same name
    - Removal on stop, failed handshake and unexpected exit
    - Name-based routing of tool listing and tool calls
    - Sequential auto-start and full shutdown
    """

    def __init__(self, config: Optional[WorkerConfig] = None):
        """
        Args:
            config: Worker settings (timeouts, buffer limit, exit policy)
        """
        self.config = config or WorkerConfig()
        self.client_info = Implementation(
            name=self.config.client_name,
            version=__version__,
        )

        self._workers: dict[str, Worker] = {}
        self._starting: dict[str, asyncio.Task] = {}

    # === Lifecycle ===

    async def start(self, name: str, spec: LaunchSpec) -> Worker:
        """
        Start a worker and complete its handshake.

        A worker that is already registered is returned unchanged. A start
        already in flight for ``name`` is awaited rather than repeated.

        Raises:
            SpawnError: If the process cannot be started
            HandshakeError: If the initialize exchange fails
        """
        task = self._starting.get(name)
        if task is None:
            worker = self._workers.get(name)
            if worker is not None:
                logger.info("Server already running", worker=name)
                return worker

            task = asyncio.create_task(self._start_worker(name, spec))
            self._starting[name] = task
            task.add_done_callback(lambda t: self._clear_starting(name, t))

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # The shared start was aborted by stop/shutdown, not this caller
            if task.cancelled():
                raise HandshakeError(f"Failed to initialize {name}: start was cancelled")
            raise

    async def _start_worker(self, name: str, spec: LaunchSpec) -> Worker:
        logger.info("Starting MCP server", worker=name)

        worker = Worker(
            name,
            spec,
            client_info=self.client_info,
            request_timeout=self.config.request_timeout,
            max_buffer_bytes=self.config.max_buffer_bytes,
            terminate_timeout=self.config.terminate_timeout,
            fail_pending_on_exit=self.config.fail_pending_on_exit,
            on_exit=self._handle_exit,
        )

        await worker.start()
        self._workers[name] = worker

        try:
            await worker.initialize()
        except BaseException as e:
            logger.error("Failed to initialize server", worker=name, error=str(e))
            self._remove(worker)
            await worker.stop()
            raise

        return worker

    def _clear_starting(self, name: str, task: asyncio.Task) -> None:
        if self._starting.get(name) is task:
            del self._starting[name]
        # Consumed here so an abandoned start never logs "exception never retrieved"
        if not task.cancelled():
            task.exception()

    async def stop(self, name: str) -> None:
        """Stop a worker; unknown names are ignored."""
        task = self._starting.pop(name, None)
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, WorkerError):
                pass

        worker = self._workers.pop(name, None)
        if worker is None:
            return

        logger.info("Stopping server", worker=name)
        await worker.stop()

    async def shutdown_all(self) -> None:
        """Stop every worker, including ones still starting or mid-crash."""
        logger.info("Stopping all MCP servers", count=len(self._workers))

        starting = list(self._starting.values())
        self._starting.clear()
        for task in starting:
            task.cancel()
        if starting:
            await asyncio.gather(*starting, return_exceptions=True)

        workers = list(self._workers.values())
        self._workers.clear()
        results = await asyncio.gather(
            *(worker.stop() for worker in workers),
            return_exceptions=True,
        )
        for worker, result in zip(workers, results):
            if isinstance(result, Exception):
                logger.error("Error stopping server", worker=worker.name, error=str(result))

    async def auto_start(self, specs: Mapping[str, LaunchSpec]) -> dict[str, Optional[str]]:
        """
        Start every configured worker, one after another.

        A failure is logged and does not prevent the remaining starts.

        Returns:
            Mapping of worker name to error message (None on success)
        """
        if not specs:
            logger.warning("No servers configured to start")
            return {}

        logger.info("Auto-starting MCP servers", count=len(specs))
        results: dict[str, Optional[str]] = {}
        for name, spec in specs.items():
            try:
                await self.start(name, spec)
                results[name] = None
                logger.info("Started server", worker=name)
            except WorkerError as e:
                results[name] = e.message
                logger.error("Failed to start server", worker=name, error=e.message)

        started = sum(1 for error in results.values() if error is None)
        logger.info("Auto-start complete", started=started, failed=len(results) - started)
        return results

    def _handle_exit(self, worker: Worker) -> None:
        """Exit observer: drop the worker from the registry."""
        if self._remove(worker):
            logger.info(
                "Removed exited server",
                worker=worker.name,
                return_code=worker.return_code,
            )

    def _remove(self, worker: Worker) -> bool:
        # Only remove this exact instance; a newer worker may own the name
        if self._workers.get(worker.name) is worker:
            del self._workers[worker.name]
            return True
        return False

    # === Calls ===

    def get(self, name: str) -> Worker:
        """
        Get a registered worker.

        Raises:
            WorkerNotFoundError: If no worker is registered under ``name``
        """
        worker = self._workers.get(name)
        if worker is None:
            raise WorkerNotFoundError(name)
        return worker

    async def list_tools(self, name: str) -> Any:
        """List tools of the named worker."""
        return await self.get(name).list_tools()

    async def call_tool(
        self,
        name: str,
        tool_name: str,
        arguments: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Call a tool on the named worker."""
        return await self.get(name).call_tool(tool_name, arguments)

    # === Status ===

    def is_running(self, name: str) -> bool:
        return name in self._workers

    def is_ready(self, name: str) -> bool:
        worker = self._workers.get(name)
        return worker is not None and worker.ready

    def names(self) -> list[str]:
        return list(self._workers)

    def statuses(self) -> list[WorkerStatus]:
        return [worker.status() for worker in self._workers.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._workers

    def __len__(self) -> int:
        return len(self._workers)
