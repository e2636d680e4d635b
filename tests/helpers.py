"""
Test helpers shared by the subprocess tests
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from mcpwrap.workers.types import LaunchSpec

FAKE_WORKER = Path(__file__).parent / "fake_worker.py"


def fake_spec(mode: str = "normal", **env: str) -> LaunchSpec:
    """Launch spec for the scripted fake worker."""
    return LaunchSpec(command=sys.executable, args=(str(FAKE_WORKER), mode), env=env)


async def eventually(predicate, timeout: float = 5.0) -> None:
    """Wait until ``predicate()`` is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.02)
