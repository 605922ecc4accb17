"""conftest.py for benchmarks.

Every benchmark drives its coroutines through one session-scoped event
loop so loop start-up never shows up in the timings.
"""

from __future__ import annotations

import asyncio

import pytest


@pytest.fixture(scope="session")
def event_loop():
    """Session-scoped event loop shared by all async benchmarks."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture(scope="session")
def run_async(event_loop):
    """Run a coroutine to completion on the shared loop."""

    def _run(coro):
        return event_loop.run_until_complete(coro)

    return _run
