"""
settlement_engines.spend_import -- Validation of an accepted spend mapping.

Responsibility:
    Turn the matches a venue accepted from a reconciliation preview into a
    plan of booking spend updates, rejecting individual matches that point
    at unknown or locked bookings.  The caller writes the plan (see
    ``settlement_services.closeout_lock``).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Closed events are rejected before any match is examined.
    - Matches are examined in the order given; each produces exactly one
      update or one error.
    - A booking id appears in at most one update; a repeated id is
      reported as an error.

Failure modes:
    - AlreadyClosedError if the event closeout is finalized.
    - EmptyInputError if no matches are supplied.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from settlement_engines.reconciliation import PreviewResult, ensure_event_open
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import Booking
from settlement_kernel.exceptions import EmptyInputError
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.spend_import")

INVALID_MATCH = "Invalid match data"
BOOKING_NOT_FOUND = "Booking not found or does not belong to this event"
BOOKING_LOCKED = "Booking closeout is already locked"
DUPLICATE_BOOKING = "Booking appears more than once in this import"


class ImportStatus(str, Enum):
    """Outcome of an import plan."""

    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SpendMatch:
    """An accepted pairing: set this booking's spend to this amount."""

    booking_id: str | None
    spend_amount: Any


@dataclass(frozen=True)
class SpendUpdate:
    """A validated booking spend write."""

    booking_id: str
    spend_amount: Decimal
    previous_spend: Decimal | None


@dataclass(frozen=True)
class ImportRejection:
    """A rejected match."""

    booking_id: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"booking_id": self.booking_id, "error": self.error}


@dataclass(frozen=True)
class SpendImportPlan:
    """Validated updates and rejected matches for one import."""

    event_id: Any
    updates: tuple[SpendUpdate, ...]
    errors: tuple[ImportRejection, ...]

    @property
    def total(self) -> int:
        return len(self.updates) + len(self.errors)

    @property
    def success_count(self) -> int:
        return len(self.updates)

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    @property
    def status(self) -> ImportStatus:
        if self.total and self.failed_count == self.total:
            return ImportStatus.FAILED
        return ImportStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status.value,
            "summary": {
                "total": self.total,
                "success": self.success_count,
                "failed": self.failed_count,
            },
        }
        if self.errors:
            data["errors"] = [e.to_dict() for e in self.errors]
        return data


def matches_from_preview(preview: PreviewResult) -> tuple[SpendMatch, ...]:
    """Accept every matched row of a preview at its CSV spend."""
    return tuple(
        SpendMatch(booking_id=row.booking_id, spend_amount=row.csv_spend)
        for row in preview.matched_rows
    )


def _is_amount(value: Any) -> bool:
    return isinstance(value, (Decimal, int)) and not isinstance(value, bool)


@traced_engine(
    "spend_import", "1.0",
    fingerprint_fields=("event_id", "matches", "bookings"),
    summarize=lambda p: {"status": p.status.value, "failed": p.failed_count},
)
def plan_spend_import(
    event_id: Any,
    matches: Sequence[SpendMatch],
    bookings: Sequence[Booking],
    closeout_at: datetime | str | None = None,
) -> SpendImportPlan:
    """
    Validate accepted matches against the event's bookings.

    Pure function.

    Args:
        event_id: Event the import is for
        matches: Accepted booking/spend pairs
        bookings: Every booking belonging to the event
        closeout_at: The event's closeout timestamp, if finalized

    Returns:
        SpendImportPlan with updates to write and per-match errors

    Raises:
        AlreadyClosedError: If the event closeout is finalized
        EmptyInputError: If ``matches`` is empty
    """
    t0 = time.monotonic()
    ensure_event_open(event_id, closeout_at)

    if not matches:
        logger.warning("spend_import_rejected_empty", extra={"event_id": str(event_id)})
        raise EmptyInputError("matches")

    by_id = {b.id: b for b in bookings}
    updates: list[SpendUpdate] = []
    errors: list[ImportRejection] = []
    seen: set[str] = set()

    for match in matches:
        if not match.booking_id or not _is_amount(match.spend_amount):
            errors.append(ImportRejection(match.booking_id or "unknown", INVALID_MATCH))
            continue

        booking = by_id.get(match.booking_id)
        if booking is None:
            errors.append(ImportRejection(match.booking_id, BOOKING_NOT_FOUND))
            continue
        if booking.closeout_locked:
            errors.append(ImportRejection(match.booking_id, BOOKING_LOCKED))
            continue
        if match.booking_id in seen:
            errors.append(ImportRejection(match.booking_id, DUPLICATE_BOOKING))
            continue

        seen.add(match.booking_id)
        updates.append(SpendUpdate(
            booking_id=match.booking_id,
            spend_amount=Decimal(match.spend_amount),
            previous_spend=booking.current_spend,
        ))

    plan = SpendImportPlan(
        event_id=event_id,
        updates=tuple(updates),
        errors=tuple(errors),
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    log = logger.warning if plan.errors else logger.info
    log("spend_import_planned", extra={
        "event_id": str(event_id),
        "status": plan.status.value,
        "total": plan.total,
        "success": plan.success_count,
        "failed": plan.failed_count,
        "duration_ms": duration_ms,
    })

    return plan
