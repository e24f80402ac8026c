"""
Records handed to the settlement engines by the surrounding application.

These are read-only snapshots of persisted rows (bookings, events,
check-ins).  The engines never load or store them; callers build them at
closeout time and discard them afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class BookingStatus(str, Enum):
    """Lifecycle status of a table booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Only these statuses take part in reconciliation and commissions.
SETTLEABLE_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.COMPLETED}
)


@dataclass(frozen=True)
class Booking:
    """
    A table booking for one event.

    ``current_spend`` is the spend already recorded on the booking (None
    when nothing has been imported yet).  ``table_name`` is None for
    bookings that were never assigned a table.
    """

    id: str
    guest_name: str
    table_name: str | None = None
    current_spend: Decimal | None = None
    minimum_spend: Decimal | None = None
    status: BookingStatus = BookingStatus.CONFIRMED
    promoter_id: str | None = None
    closeout_locked: bool = False

    @property
    def is_settleable(self) -> bool:
        return self.status in SETTLEABLE_STATUSES


@dataclass(frozen=True)
class EventCloseoutState:
    """Closeout lock state of an event, as read by the caller."""

    event_id: str
    closeout_at: datetime | None = None
    closeout_by: str | None = None
    currency: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.closeout_at is not None


@dataclass(frozen=True)
class CheckinRecord:
    """A door check-in, attributed to the promoter who referred the guest."""

    registration_id: str
    referral_promoter_id: str | None = None
    undone_at: datetime | None = None

    @property
    def is_effective(self) -> bool:
        """True when the check-in still counts (it was not undone)."""
        return self.undone_at is None
