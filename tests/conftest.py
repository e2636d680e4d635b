"""
Shared fixtures
"""

from __future__ import annotations

import sys

import pytest

from mcpwrap.core.config import reset_config
from mcpwrap.workers.types import LaunchSpec


@pytest.fixture
def echo_spec():
    """Launch spec for the bundled echo server."""
    return LaunchSpec(command=sys.executable, args=("-m", "mcpwrap.servers.echo"))


@pytest.fixture(autouse=True)
def clean_config():
    """Keep the process-wide configuration from leaking between tests."""
    reset_config()
    yield
    reset_config()
