"""
Pytest fixtures for the stock allocation test suite.

Provides:
- Structured logging configured for the run, plus a captured_logs fixture
- In-memory fakes for the RecordFetch and Notifier collaborators
- Stock record fixtures for the serial management modes
- An in-memory SQLite engine for the SQL key/value store
"""

import json
import logging
from io import StringIO

import pytest

from stock_config import get_active_config
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.domain.stock import StockRecord
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.helpers import (
    FakeRecordFetch,
    RecordingNotifier,
    make_global_stock,
    make_stock,
)

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """JSON logging at DEBUG for the whole run, so traces and rejections are emitted."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """No session or line binding may leak from one test into the next."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "detail_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def record_fetch() -> FakeRecordFetch:
    return FakeRecordFetch()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# =============================================================================
# Stock records
# =============================================================================


@pytest.fixture
def stock() -> StockRecord:
    """100 UN of P1, nothing allocated, factor 1."""
    return make_stock()


@pytest.fixture
def global_stock() -> StockRecord:
    """10 serials A100..A109 tracked as a range."""
    return make_global_stock()


# =============================================================================
# Configuration and database
# =============================================================================


@pytest.fixture
def active_config():
    return get_active_config()


@pytest.fixture
def issue_workflow(active_config):
    return active_config.workflow("miscellaneous_issue")


@pytest.fixture
def sqlite_session_factory():
    """Fresh in-memory SQLite database with the session-state table."""
    init_engine_from_url("sqlite://")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()
