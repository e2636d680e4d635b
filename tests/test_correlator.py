"""
Request correlator tests
"""

from __future__ import annotations

import asyncio
import json

import pytest

from mcpwrap.workers.correlator import RequestCorrelator
from mcpwrap.workers.errors import (
    RemoteError,
    RequestTimeoutError,
    TransportWriteError,
    WorkerStoppedError,
)
from mcpwrap.workers.types import JsonRpcResponse


class RecordingWriter:
    """Async writer that records every line."""

    def __init__(self, fail: Exception = None):
        self.lines = []
        self.fail = fail

    async def __call__(self, line: str) -> None:
        if self.fail is not None:
            raise self.fail
        self.lines.append(json.loads(line))


async def settle():
    """Let spawned send() tasks reach their await on the response."""
    for _ in range(5):
        await asyncio.sleep(0)


class TestRequestCorrelator:
    """Test RequestCorrelator."""

    @pytest.mark.asyncio
    async def test_ids_are_monotonic(self):
        writer = RecordingWriter()
        correlator = RequestCorrelator("test", writer, timeout=5.0)

        tasks = [asyncio.create_task(correlator.send("tools/list")) for _ in range(3)]
        await settle()

        assert [line["id"] for line in writer.lines] == [1, 2, 3]
        assert correlator.pending_ids == [1, 2, 3]

        for request_id in (1, 2, 3):
            correlator.deliver(JsonRpcResponse(id=request_id, result=request_id))
        assert await asyncio.gather(*tasks) == [1, 2, 3]
        assert correlator.last_request_id == 3

    @pytest.mark.asyncio
    async def test_response_resolves_exactly_once(self):
        writer = RecordingWriter()
        correlator = RequestCorrelator("test", writer, timeout=5.0)

        task = asyncio.create_task(correlator.send("tools/call", {"name": "x"}))
        await settle()

        assert correlator.deliver(JsonRpcResponse(id=1, result={"ok": True})) is True
        assert correlator.deliver(JsonRpcResponse(id=1, result={"ok": False})) is False
        assert await task == {"ok": True}
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_out_of_order_responses(self):
        writer = RecordingWriter()
        correlator = RequestCorrelator("test", writer, timeout=5.0)

        tasks = [
            asyncio.create_task(correlator.send("tools/call", {"n": n}))
            for n in range(3)
        ]
        await settle()

        for request_id in (3, 1, 2):
            correlator.deliver(JsonRpcResponse(id=request_id, result=f"r{request_id}"))

        assert await asyncio.gather(*tasks) == ["r1", "r2", "r3"]

    @pytest.mark.asyncio
    async def test_unknown_and_invalid_ids_ignored(self):
        writer = RecordingWriter()
        correlator = RequestCorrelator("test", writer, timeout=5.0)

        task = asyncio.create_task(correlator.send("tools/list"))
        await settle()

        assert correlator.deliver(JsonRpcResponse(id=99, result=None)) is False
        assert correlator.deliver(JsonRpcResponse(id="1", result=None)) is False
        assert correlator.deliver(JsonRpcResponse(id=True, result=None)) is False
        assert correlator.deliver(JsonRpcResponse(id=None, result=None)) is False
        assert correlator.pending_count == 1

        correlator.deliver(JsonRpcResponse(id=1, result="done"))
        assert await task == "done"

    @pytest.mark.asyncio
    async def test_error_response_raises_remote_error(self):
        writer = RecordingWriter()
        correlator = RequestCorrelator("test", writer, timeout=5.0)

        task = asyncio.create_task(correlator.send("tools/call"))
        await settle()
        correlator.deliver(JsonRpcResponse(id=1, error={"code": -32000, "message": "tool failed"}))

        with pytest.raises(RemoteError) as exc:
            await task
        assert exc.value.message == "tool failed"
        assert exc.value.code == -32000

    @pytest.mark.asyncio
    async def test_write_failure(self):
        writer = RecordingWriter(fail=BrokenPipeError("pipe closed"))
        correlator = RequestCorrelator("test", writer, timeout=5.0)

        with pytest.raises(TransportWriteError) as exc:
            await correlator.send("tools/list")

        assert "Failed to write to MCP server test" in exc.value.message
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_timeout_window(self):
        writer = RecordingWriter()
        correlator = RequestCorrelator("test", writer, timeout=0.2)
        loop = asyncio.get_running_loop()

        started = loop.time()
        with pytest.raises(RequestTimeoutError) as exc:
            await correlator.send("tools/list")
        elapsed = loop.time() - started

        assert elapsed >= 0.2 - 0.005
        assert elapsed < 2.0
        assert exc.value.message == "MCP request timeout after 200ms"
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_late_response_after_timeout_is_dropped(self):
        writer = RecordingWriter()
        correlator = RequestCorrelator("test", writer, timeout=0.05)

        with pytest.raises(RequestTimeoutError):
            await correlator.send("tools/list")

        assert correlator.deliver(JsonRpcResponse(id=1, result="late")) is False

    @pytest.mark.asyncio
    async def test_fail_all(self):
        writer = RecordingWriter()
        correlator = RequestCorrelator("test", writer, timeout=5.0)

        tasks = [asyncio.create_task(correlator.send("tools/list")) for _ in range(2)]
        await settle()

        assert correlator.fail_all(WorkerStoppedError("Server test was stopped")) == 2
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, WorkerStoppedError) for r in results)
        assert correlator.pending_count == 0
        assert correlator.fail_all(WorkerStoppedError("again")) == 0

    @pytest.mark.asyncio
    async def test_cancelled_caller_releases_slot(self):
        writer = RecordingWriter()
        correlator = RequestCorrelator("test", writer, timeout=5.0)

        task = asyncio.create_task(correlator.send("tools/list"))
        await settle()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert correlator.pending_count == 0
        assert correlator.deliver(JsonRpcResponse(id=1, result=None)) is False
