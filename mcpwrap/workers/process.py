"""
MCPWrap Worker Process

Owns one child process and its stdin/stdout/stderr pipes.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from mcpwrap.workers.errors import SpawnError, TransportWriteError
from mcpwrap.workers.types import LaunchSpec

logger = structlog.get_logger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class StdioProcess:
    """
    Child process speaking newline-delimited JSON on stdin/stdout.

    stdout is exposed as raw chunks; reassembling lines is the caller's job.
    stderr is drained in the background and logged line by line.
    """

    def __init__(self, name: str, spec: LaunchSpec):
        """
        Args:
            name: Worker name, for logs
            spec: Command, arguments, environment overlay and cwd
        """
        self.name = name
        self.spec = spec

        self._process: Optional[asyncio.subprocess.Process] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()

    async def spawn(self) -> None:
        """
        Start the child process.

        Raises:
            SpawnError: If the command cannot be executed
        """
        if self._process is not None:
            return

        logger.info(
            "Starting MCP server process",
            worker=self.name,
            command=self.spec.command,
            args=list(self.spec.args),
        )

        try:
            self._process = await asyncio.create_subprocess_exec(
                self.spec.command,
                *self.spec.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.spec.build_env(),
                cwd=self.spec.cwd,
            )
        except FileNotFoundError as e:
            raise SpawnError(f"Command not found: {self.spec.command}", cause=e)
        except PermissionError as e:
            raise SpawnError(f"Permission denied: {self.spec.command}", cause=e)
        except OSError as e:
            raise SpawnError(f"Failed to start process: {e}", cause=e)

        self._stderr_task = asyncio.create_task(self._read_stderr())

        logger.debug(
            "MCP server process started",
            worker=self.name,
            pid=self._process.pid,
        )

    async def write(self, line: str) -> None:
        """
        Write one line to the child's stdin.

        Lines are written in call order.

        Raises:
            TransportWriteError: If stdin is closed or the write fails
        """
        process = self._process
        if process is None or process.stdin is None:
            raise TransportWriteError(f"Failed to write to MCP server {self.name}: process not running")

        async with self._write_lock:
            if process.stdin.is_closing():
                raise TransportWriteError(f"Failed to write to MCP server {self.name}: stdin closed")
            try:
                process.stdin.write((line + "\n").encode("utf-8"))
                await process.stdin.drain()
            except OSError as e:
                raise TransportWriteError(
                    f"Failed to write to MCP server {self.name}: {e}", cause=e
                ) from e

    async def read_chunk(self) -> bytes:
        """Read the next stdout chunk; ``b""`` means end of stream."""
        if self._process is None or self._process.stdout is None:
            return b""
        return await self._process.stdout.read(READ_CHUNK_SIZE)

    async def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""
        if self._process is None:
            raise RuntimeError("Process not started")
        return await self._process.wait()

    async def terminate(self, grace: float = 5.0) -> None:
        """Stop the process: SIGTERM, then SIGKILL after ``grace`` seconds."""
        process = self._process
        if process is None:
            return

        if process.returncode is None:
            logger.debug("Stopping MCP server process", worker=self.name, pid=process.pid)
            try:
                if process.stdin is not None and not process.stdin.is_closing():
                    process.stdin.close()
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=grace)
                except asyncio.TimeoutError:
                    logger.warning(
                        "Process did not terminate gracefully, killing",
                        worker=self.name,
                        pid=process.pid,
                    )
                    process.kill()
                    await process.wait()
            except ProcessLookupError:
                # Already gone
                pass

        if self._stderr_task is not None:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None

        logger.debug(
            "MCP server process stopped",
            worker=self.name,
            return_code=process.returncode,
        )

    async def _read_stderr(self) -> None:
        """Background task to read and log stderr."""
        if self._process is None or self._process.stderr is None:
            return

        try:
            while True:
                chunk = await self._process.stderr.read(READ_CHUNK_SIZE)
                if not chunk:
                    break

                for text in chunk.decode("utf-8", errors="replace").splitlines():
                    if text.strip():
                        logger.info("Worker stderr", worker=self.name, output=text.rstrip())

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning("Error reading stderr", worker=self.name, error=str(e))

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None
