"""Root conftest: test environment, structlog routing and per-test log context."""

import logging
from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import configure_structlog

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# stdlib routing without timestamps, so caplog sees coordinator events
configure_structlog(timestamps=False)


@pytest.fixture(autouse=True)
def _isolate_logging():
    """Clear bound connection/room context and undo any setup_logging() call."""
    structlog.contextvars.clear_contextvars()
    root_level = logging.getLogger().level
    yield
    structlog.contextvars.clear_contextvars()
    logging.getLogger().setLevel(root_level)
    configure_structlog(timestamps=False)
