"""
Pytest fixtures for the settlement test suite.

Provides:
- Structured logging setup and log capture
- Booking / contract builders
- An in-memory SQLite session for the closeout lock
"""

import json
import logging
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from settlement_kernel.domain.dtos import Booking, BookingStatus, EventCloseoutState
from settlement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from settlement_services.closeout_lock import metadata


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
    Capture settlement logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            calculate_promoter_payout(contract, 10)
            logs = captured_logs()
            assert any(r["message"] == "payout_calculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("settlement")
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
# Domain builders
# =============================================================================


@pytest.fixture
def make_booking():
    """Factory for bookings with sensible defaults."""
    counter = {"n": 0}

    def _make(
        table_name: str | None = None,
        *,
        id: str | None = None,
        guest_name: str | None = None,
        current_spend: Decimal | None = None,
        minimum_spend: Decimal | None = None,
        status: BookingStatus = BookingStatus.CONFIRMED,
        promoter_id: str | None = None,
        closeout_locked: bool = False,
    ) -> Booking:
        counter["n"] += 1
        n = counter["n"]
        return Booking(
            id=id or f"bk-{n}",
            guest_name=guest_name or f"Guest {n}",
            table_name=table_name,
            current_spend=current_spend,
            minimum_spend=minimum_spend,
            status=status,
            promoter_id=promoter_id,
            closeout_locked=closeout_locked,
        )

    return _make


@pytest.fixture
def open_event() -> EventCloseoutState:
    return EventCloseoutState(event_id="evt-1", currency="USD")


@pytest.fixture
def closed_event() -> EventCloseoutState:
    return EventCloseoutState(
        event_id="evt-closed",
        closeout_at=datetime(2026, 3, 1, 4, 0, tzinfo=UTC),
        closeout_by="manager-1",
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """In-memory SQLite session with the closeout tables created."""
    engine = create_engine("sqlite://")
    metadata.create_all(engine)
    session = Session(engine)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
