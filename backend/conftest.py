"""Root conftest: load test environment variables and route structlog through stdlib for tests."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import configure_structlog

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# no handlers installed here, so caplog sees the records
configure_structlog()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Keep connection_id and room_id bindings from leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def log_events():
    """Capture structlog event dicts emitted during the test."""
    with structlog.testing.capture_logs() as captured:
        yield captured
