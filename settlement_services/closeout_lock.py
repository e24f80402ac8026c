"""
settlement_services.closeout_lock -- Atomic "apply spend and lock" write.

Responsibility:
    Persist a validated spend import plan and finalize the event's table
    closeout in one transaction, so two concurrent closeout submissions
    can never both succeed.

Architecture position:
    Services -- the only module in this project that touches a database.
    Operates on a caller-provided SQLAlchemy ``Session``; the caller owns
    the transaction (commit / rollback).

Invariants enforced:
    - The event row is locked with a single conditional UPDATE
      (``... WHERE id = :id AND tables_closeout_at IS NULL``).  Exactly one
      concurrent caller can see rowcount == 1.
    - Booking spend is written only after the lock was won, and only to
      bookings of the same event that are not individually locked.

Failure modes:
    - AlreadyClosedError if the event was already closed (or does not
      exist); nothing is written in that case.

The table definitions below declare only the columns this write touches.
Full schema ownership stays with the host application.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    MetaData,
    Numeric,
    String,
    Table,
    false,
    update,
)
from sqlalchemy.orm import Session

from settlement_engines.spend_import import SpendImportPlan
from settlement_kernel.exceptions import AlreadyClosedError
from settlement_kernel.logging_config import get_logger

logger = get_logger("services.closeout_lock")

metadata = MetaData()

events_table = Table(
    "events",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("tables_closeout_at", DateTime(timezone=True), nullable=True),
    Column("tables_closeout_by", String(36), nullable=True),
)

table_bookings_table = Table(
    "table_bookings",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("event_id", String(36), ForeignKey("events.id"), nullable=False),
    Column("actual_spend", Numeric(38, 9), nullable=True),
    Column("closeout_locked", Boolean, nullable=False, default=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)


@dataclass(frozen=True)
class CloseoutLockResult:
    """Outcome of a successful apply-and-lock."""

    event_id: str
    locked_at: datetime
    locked_by: str | None
    bookings_updated: int
    bookings_skipped: tuple[str, ...]


def apply_and_lock(
    session: Session,
    plan: SpendImportPlan,
    locked_at: datetime,
    locked_by: str | None = None,
) -> CloseoutLockResult:
    """
    Lock the event's closeout and write the planned booking spend.

    Args:
        session: SQLAlchemy session; the caller commits or rolls back.
        plan: Validated plan from ``plan_spend_import``.
        locked_at: Closeout timestamp to record (callers supply the clock).
        locked_by: Actor finalizing the closeout.

    Returns:
        CloseoutLockResult with the number of bookings written.

    Raises:
        AlreadyClosedError: If another closeout already locked the event.
    """
    event_id = str(plan.event_id)

    lock = session.execute(
        update(events_table)
        .where(
            events_table.c.id == event_id,
            events_table.c.tables_closeout_at.is_(None),
        )
        .values(tables_closeout_at=locked_at, tables_closeout_by=locked_by)
    )
    if lock.rowcount != 1:
        logger.warning("closeout_lock_lost", extra={"event_id": event_id})
        raise AlreadyClosedError(event_id)

    updated = 0
    skipped: list[str] = []
    for item in plan.updates:
        result = session.execute(
            update(table_bookings_table)
            .where(
                table_bookings_table.c.id == item.booking_id,
                table_bookings_table.c.event_id == event_id,
                table_bookings_table.c.closeout_locked == false(),
            )
            .values(actual_spend=item.spend_amount, updated_at=locked_at)
        )
        if result.rowcount == 1:
            updated += 1
        else:
            skipped.append(item.booking_id)

    session.flush()

    logger.info("closeout_locked", extra={
        "event_id": event_id,
        "locked_by": locked_by,
        "bookings_updated": updated,
        "bookings_skipped": len(skipped),
    })

    return CloseoutLockResult(
        event_id=event_id,
        locked_at=locked_at,
        locked_by=locked_by,
        bookings_updated=updated,
        bookings_skipped=tuple(skipped),
    )
