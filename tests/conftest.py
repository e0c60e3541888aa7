"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration and a worker-thread
dispatcher fixture. All fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
import logging
import os
from typing import TYPE_CHECKING

import pytest

from flowstate import ThreadLoopDispatcher

if TYPE_CHECKING:
    from collections.abc import Iterator

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_flowstate_env(monkeypatch):
    """Clear FLOWSTATE_* variables so resolution starts from defaults."""
    for key in list(os.environ.keys()):
        if key.startswith("FLOWSTATE_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_asyncio_logger():
    """Keep asyncio debug chatter out of failure output."""
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# =============================================================================
# Dispatchers (opt-in)
# =============================================================================


@pytest.fixture
def thread_dispatcher() -> Iterator[ThreadLoopDispatcher]:
    """A started worker-thread dispatcher, closed after the test."""
    with ThreadLoopDispatcher("flowstate-test-worker", capacity=4) as dispatcher:
        yield dispatcher
