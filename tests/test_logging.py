"""Tests for settlement structured logging (settlement_kernel/logging_config.py)."""

import json
import logging
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO

import pytest

from settlement_kernel.domain.dtos import BookingStatus
from settlement_kernel.exceptions import ColumnDetectionError
from settlement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def json_log():
    """Configure logging into a buffer; returns a reader of parsed lines."""
    reset_logging()
    stream = StringIO()
    configure_logging(stream=stream, level=logging.DEBUG)

    def _read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    yield _read
    reset_logging()


class TestRecordShape:
    """Each record is one JSON object with fixed base keys."""

    def test_base_keys(self, json_log):
        get_logger("engines.payout").info("payout_calculation_completed")

        (record,) = json_log()
        assert record["level"] == "INFO"
        assert record["logger"] == "settlement.engines.payout"
        assert record["message"] == "payout_calculation_completed"
        assert datetime.fromisoformat(record["ts"]).tzinfo is not None

    def test_extra_fields(self, json_log):
        get_logger("engines.reconciliation").info(
            "reconciliation_preview_completed",
            extra={"matched_count": 4, "skipped_rows": 0},
        )

        (record,) = json_log()
        assert record["matched_count"] == 4
        assert record["skipped_rows"] == 0

    def test_amount_and_enum_values(self, json_log):
        get_logger("test").info("values", extra={
            "final_payout": Decimal("165.00"),
            "status": BookingStatus.CONFIRMED,
            "statuses": frozenset({BookingStatus.COMPLETED}),
            "at": datetime(2026, 3, 1, tzinfo=UTC),
        })

        (record,) = json_log()
        assert record["final_payout"] == "165.00"
        assert record["status"] == "confirmed"
        assert record["statuses"] == ["completed"]
        assert record["at"] == "2026-03-01T00:00:00+00:00"

    def test_one_line_per_record(self, json_log):
        log = get_logger("test")
        log.debug("a")
        log.warning("b")

        assert [r["message"] for r in json_log()] == ["a", "b"]


class TestExceptionFields:
    """Settlement errors are flattened into exc_* keys."""

    def test_structured_error(self, json_log):
        try:
            raise ColumnDetectionError(["Tbl", "Net"], None, None)
        except ColumnDetectionError:
            get_logger("test").error("preview_failed", exc_info=True)

        (record,) = json_log()
        assert record["exc_type"] == "ColumnDetectionError"
        assert record["exc_code"] == "COLUMN_DETECTION_FAILED"
        assert record["exc_available_columns"] == ["Tbl", "Net"]
        assert record["exc_suggested_mapping"] == {
            "table_name_column": None,
            "spend_column": None,
        }
        assert "Traceback" in record["traceback"]

    def test_plain_error_has_no_code(self, json_log):
        try:
            raise ValueError("bad rate")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = json_log()
        assert record["exc_message"] == "bad rate"
        assert "exc_code" not in record


class TestLogContext:
    """Context fields flow into every record."""

    def test_bound_fields_in_records(self, json_log):
        with LogContext.bind(event_id="evt-1", promoter_id="p-2"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = json_log()
        assert inside["event_id"] == "evt-1"
        assert inside["promoter_id"] == "p-2"
        assert "event_id" not in outside

    def test_nested_bind_restores(self):
        with LogContext.bind(event_id="outer"):
            with LogContext.bind(event_id="inner", actor_id="u-1"):
                assert LogContext.get_all() == {"event_id": "inner", "actor_id": "u-1"}
            assert LogContext.get_all() == {"event_id": "outer"}
        assert LogContext.get_all() == {}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(venue_id="v-1"):
                raise RuntimeError("boom")

        assert LogContext.get_all() == {}

    def test_none_values_skipped(self):
        LogContext.set(event_id="e", venue_id=None)
        with LogContext.bind(event_id=None):
            assert LogContext.get_all() == {"event_id": "e"}

    def test_values_stringified(self):
        LogContext.set(event_id=42)

        assert LogContext.get_all() == {"event_id": "42"}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(booking_id="b-1")

    def test_context_not_overridden_by_extra(self, json_log):
        with LogContext.bind(event_id="evt-ctx"):
            get_logger("test").info("x", extra={"event_id": "evt-extra"})

        (record,) = json_log()
        assert record["event_id"] == "evt-ctx"


class TestConfigureLogging:
    """Setup and teardown."""

    def test_second_configure_is_noop(self, json_log):
        root = logging.getLogger("settlement")
        before = [h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)]

        configure_logging(stream=StringIO())

        after = [h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)]
        assert len(after) == 1
        assert after[0] is before[0]

    def test_level_respected(self):
        reset_logging()
        stream = StringIO()
        configure_logging(stream=stream, level="WARNING")
        try:
            get_logger("test").info("dropped")
            get_logger("test").warning("kept")
        finally:
            reset_logging()

        assert [json.loads(line)["message"] for line in stream.getvalue().splitlines()] == ["kept"]

    def test_reset_restores_propagation(self):
        configure_logging(stream=StringIO())
        reset_logging()

        root = logging.getLogger("settlement")
        assert not any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers)
        assert root.propagate is True
