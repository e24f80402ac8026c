"""
Typed Exception Hierarchy for event settlement.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Closeout callers (HTTP handlers, batch jobs, the closeout wizard) need to
tell a missing CSV apart from an unrecognised export layout, and both of
those apart from an event that is already locked.  Parsing message strings
for that is fragile, so every failure has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        preview = preview_spend_import(csv_data=rows, bookings=bookings)
    except ColumnDetectionError as e:
        return {
            "error": e.code,
            "available_columns": e.available_columns,
            "suggested_mapping": e.suggested_mapping,
        }

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementError (base)
    |
    +-- ReconciliationError
    |   +-- EmptyInputError
    |   +-- ColumnDetectionError
    |   +-- AlreadyClosedError
    |
    +-- PayoutError
    |   +-- InvalidCountError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                     | When Raised
----------------|--------------------------|--------------------------------------
Reconciliation  | EMPTY_INPUT              | No CSV rows / no matches supplied
                | COLUMN_DETECTION_FAILED  | Table or spend column not resolvable
                | EVENT_ALREADY_CLOSED     | Event closeout already finalized
----------------|--------------------------|--------------------------------------
Payout          | INVALID_CHECKIN_COUNT    | Negative effective check-in count
----------------|--------------------------|--------------------------------------
Configuration   | CONFIGURATION_ERROR      | Settlement YAML is malformed

All of these are terminal for the call that raised them.  Nothing retries
internally and no partial result is returned.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class SettlementError(Exception):
    """
    Base exception for all settlement errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SETTLEMENT_ERROR"


# Reconciliation exceptions


class ReconciliationError(SettlementError):
    """Base exception for spend reconciliation errors."""

    code: str = "RECONCILIATION_ERROR"


class EmptyInputError(ReconciliationError):
    """Nothing to reconcile was supplied."""

    code: str = "EMPTY_INPUT"

    def __init__(self, input_name: str = "csv_data"):
        self.input_name = input_name
        super().__init__(f"{input_name} is required and must not be empty")


class ColumnDetectionError(ReconciliationError):
    """
    Table-name or spend column could not be auto-detected.

    Carries the columns seen on the first row and whatever was resolved,
    so the caller can re-submit with an explicit mapping.
    """

    code: str = "COLUMN_DETECTION_FAILED"

    def __init__(
        self,
        available_columns: list[str],
        table_name_column: str | None,
        spend_column: str | None,
    ):
        self.available_columns = list(available_columns)
        self.suggested_mapping: dict[str, str | None] = {
            "table_name_column": table_name_column,
            "spend_column": spend_column,
        }
        super().__init__(
            "Could not auto-detect columns. Please provide column mapping. "
            f"(available: {', '.join(self.available_columns) or 'none'})"
        )


class AlreadyClosedError(ReconciliationError):
    """Event closeout has already been completed and locked."""

    code: str = "EVENT_ALREADY_CLOSED"

    def __init__(self, event_id: Any, closeout_at: datetime | str | None = None):
        self.event_id = event_id
        self.closeout_at = closeout_at
        super().__init__(
            f"Event {event_id} closeout has already been completed and locked"
        )


# Payout exceptions


class PayoutError(SettlementError):
    """Base exception for promoter payout errors."""

    code: str = "PAYOUT_ERROR"


class InvalidCountError(PayoutError):
    """Effective check-in count must be a non-negative integer."""

    code: str = "INVALID_CHECKIN_COUNT"

    def __init__(self, count: Any):
        self.count = count
        super().__init__(
            f"Effective check-in count must be a non-negative integer, got {count!r}"
        )


# Configuration exceptions


class ConfigurationError(SettlementError):
    """Settlement configuration is missing a key or holds an invalid value."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"Invalid settlement configuration in {source}: {detail}")
