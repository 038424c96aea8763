"""
Pytest fixtures for the jewel payment-plan test suite.

Provides:
- Structured logging configured once per session, with a capture fixture
- A deterministic clock and default shop settings
- Item and order factories built through the real pricing and schedule
  engines
- An in-memory SQLite session factory for the persistence tests
"""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from jewel_config.schema import ShopSettings
from jewel_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from jewel_kernel.domain.clock import DeterministicClock
from jewel_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

from tests.factories import BOOKED_AT, make_order


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture jewel_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "protection_lapsed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("jewel_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and settings
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at the booking instant used by ``make_order``."""
    return DeterministicClock(BOOKED_AT)


@pytest.fixture
def shop_settings() -> ShopSettings:
    return ShopSettings(current_gold_rate_24k=Decimal("7500"))


# =============================================================================
# Domain factories
# =============================================================================


@pytest.fixture
def order_factory(shop_settings):
    def _factory(**overrides):
        return make_order(shop_settings, **overrides)

    return _factory


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()
