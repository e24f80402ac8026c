"""
Tests for the atomic apply-and-lock write.

Runs against in-memory SQLite; the conditional UPDATE is portable SQL.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import insert, select

from settlement_engines.spend_import import SpendMatch, plan_spend_import
from settlement_kernel.domain.dtos import Booking
from settlement_kernel.exceptions import AlreadyClosedError
from settlement_services.closeout_lock import (
    apply_and_lock,
    events_table,
    table_bookings_table,
)

LOCKED_AT = datetime(2026, 3, 2, 3, 30, tzinfo=UTC)


def _seed(session, *, closeout_at=None):
    session.execute(insert(events_table).values(id="evt-1", tables_closeout_at=closeout_at))
    session.execute(insert(table_bookings_table), [
        {"id": "b1", "event_id": "evt-1", "closeout_locked": False},
        {"id": "b2", "event_id": "evt-1", "closeout_locked": False},
        {"id": "b3", "event_id": "evt-1", "closeout_locked": True},
    ])
    session.flush()


def _plan(*pairs):
    bookings = [Booking(id=booking_id, guest_name="G") for booking_id, _ in pairs]
    matches = [SpendMatch(booking_id, amount) for booking_id, amount in pairs]
    return plan_spend_import("evt-1", matches, bookings)


def _spend(session, booking_id):
    return session.execute(
        select(table_bookings_table.c.actual_spend).where(
            table_bookings_table.c.id == booking_id
        )
    ).scalar_one()


class TestApplyAndLock:
    """Tests for apply_and_lock()."""

    def test_locks_event_and_writes_spend(self, db_session):
        _seed(db_session)

        result = apply_and_lock(
            db_session,
            _plan(("b1", Decimal("1200.50")), ("b2", Decimal("80"))),
            LOCKED_AT,
            locked_by="manager-1",
        )

        assert result.bookings_updated == 2
        assert result.bookings_skipped == ()
        assert _spend(db_session, "b1") == Decimal("1200.50")
        assert _spend(db_session, "b2") == Decimal("80")
        event = db_session.execute(select(events_table)).one()
        assert event.tables_closeout_at is not None
        assert event.tables_closeout_by == "manager-1"

    def test_second_lock_rejected(self, db_session):
        _seed(db_session)
        apply_and_lock(db_session, _plan(("b1", Decimal("10"))), LOCKED_AT)

        with pytest.raises(AlreadyClosedError) as exc_info:
            apply_and_lock(db_session, _plan(("b1", Decimal("99"))), LOCKED_AT)

        assert exc_info.value.event_id == "evt-1"
        assert _spend(db_session, "b1") == Decimal("10")

    def test_already_closed_writes_nothing(self, db_session):
        _seed(db_session, closeout_at=LOCKED_AT)

        with pytest.raises(AlreadyClosedError):
            apply_and_lock(db_session, _plan(("b1", Decimal("10"))), LOCKED_AT)

        assert _spend(db_session, "b1") is None

    def test_unknown_event_rejected(self, db_session):
        with pytest.raises(AlreadyClosedError):
            apply_and_lock(db_session, _plan(("b1", Decimal("10"))), LOCKED_AT)

    def test_locked_booking_skipped(self, db_session):
        _seed(db_session)

        result = apply_and_lock(
            db_session, _plan(("b1", Decimal("5")), ("b3", Decimal("7"))), LOCKED_AT
        )

        assert result.bookings_updated == 1
        assert result.bookings_skipped == ("b3",)
        assert _spend(db_session, "b3") is None

    def test_lock_logged(self, db_session, captured_logs):
        _seed(db_session)

        apply_and_lock(db_session, _plan(("b1", Decimal("5"))), LOCKED_AT, "manager-1")

        records = [r for r in captured_logs() if r["message"] == "closeout_locked"]
        assert records[0]["bookings_updated"] == 1
        assert records[0]["locked_by"] == "manager-1"
