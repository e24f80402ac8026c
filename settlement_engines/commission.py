"""
settlement_engines.commission -- Table spend commission calculator.

Responsibility:
    Split each settleable booking's spend into the promoter's table
    commission and the venue's commission once spend has been reconciled.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Effective spend is the booking's recorded spend, falling back to its
      minimum spend, falling back to zero.
    - Commission amounts are rounded to 2 places, ROUND_HALF_UP, per
      booking; totals are sums of the rounded lines.
    - Bookings whose closeout is locked are skipped entirely.

Failure modes:
    - ValueError from ``PromoterCommissionRate`` / ``calculate_table_commissions``
      when a rate lies outside 0..100.
"""

from __future__ import annotations

import time
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import SETTLEABLE_STATUSES, Booking, BookingStatus
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.commission")

_TWO_PLACES = Decimal("0.01")
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

DEFAULT_VENUE_COMMISSION_RATE = Decimal("10")


def _check_rate(name: str, rate: Decimal | None) -> None:
    if rate is not None and not (_ZERO <= rate <= _HUNDRED):
        raise ValueError(f"{name} must be between 0 and 100")


class SpendSource(str, Enum):
    """Where a booking's effective spend came from."""

    ACTUAL = "actual"
    MINIMUM = "minimum"


@dataclass(frozen=True)
class PromoterCommissionRate:
    """
    A promoter's commission percentages for one event.

    ``table_commission_rate`` overrides ``commission_rate`` for table
    spend when set.
    """

    promoter_id: str
    commission_rate: Decimal | None = None
    table_commission_rate: Decimal | None = None

    def __post_init__(self) -> None:
        _check_rate("commission_rate", self.commission_rate)
        _check_rate("table_commission_rate", self.table_commission_rate)

    @property
    def effective_rate(self) -> Decimal | None:
        if self.table_commission_rate is not None:
            return self.table_commission_rate
        return self.commission_rate


@dataclass(frozen=True)
class CommissionLine:
    """Commission split for one booking."""

    booking_id: str
    spend_amount: Decimal
    spend_source: SpendSource
    promoter_id: str | None
    promoter_commission_rate: Decimal | None
    promoter_commission_amount: Decimal
    venue_commission_rate: Decimal
    venue_commission_amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "spend_amount": self.spend_amount,
            "spend_source": self.spend_source.value,
            "promoter_id": self.promoter_id,
            "promoter_commission_rate": self.promoter_commission_rate,
            "promoter_commission_amount": self.promoter_commission_amount,
            "venue_commission_rate": self.venue_commission_rate,
            "venue_commission_amount": self.venue_commission_amount,
        }


@dataclass(frozen=True)
class CommissionResult:
    """All commission lines for an event plus totals."""

    lines: tuple[CommissionLine, ...]
    total_spend: Decimal
    total_promoter_commission: Decimal
    total_venue_commission: Decimal
    venue_commission_rate: Decimal

    @property
    def bookings_processed(self) -> int:
        return len(self.lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "bookings_processed": self.bookings_processed,
                "total_spend": self.total_spend,
                "total_promoter_commission": self.total_promoter_commission,
                "total_venue_commission": self.total_venue_commission,
                "venue_commission_rate": self.venue_commission_rate,
            },
            "commissions": [line.to_dict() for line in self.lines],
        }


def effective_spend(booking: Booking) -> tuple[Decimal, SpendSource]:
    """Spend to commission on, and whether it was recorded or the minimum."""
    if booking.current_spend is not None:
        return booking.current_spend, SpendSource.ACTUAL
    if booking.minimum_spend is not None:
        return booking.minimum_spend, SpendSource.MINIMUM
    return _ZERO, SpendSource.MINIMUM


def _percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    return (amount * rate / _HUNDRED).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


@traced_engine(
    "commission", "1.0",
    fingerprint_fields=("bookings", "promoter_rates", "venue_commission_rate"),
    summarize=lambda r: {"bookings_processed": r.bookings_processed},
)
def calculate_table_commissions(
    bookings: Sequence[Booking],
    promoter_rates: Mapping[str, PromoterCommissionRate],
    venue_commission_rate: Decimal = DEFAULT_VENUE_COMMISSION_RATE,
    eligible_statuses: Collection[BookingStatus] = SETTLEABLE_STATUSES,
) -> CommissionResult:
    """
    Calculate promoter and venue commissions on reconciled table spend.

    Pure function.

    Args:
        bookings: The event's bookings
        promoter_rates: Commission rates keyed by promoter id
        venue_commission_rate: Venue's share as a percentage
        eligible_statuses: Booking statuses that are commissioned

    Returns:
        CommissionResult with one line per processed booking
    """
    t0 = time.monotonic()
    _check_rate("venue_commission_rate", venue_commission_rate)

    lines: list[CommissionLine] = []
    skipped_locked = 0

    for booking in bookings:
        if booking.status not in eligible_statuses:
            continue
        if booking.closeout_locked:
            skipped_locked += 1
            continue

        spend, source = effective_spend(booking)

        promoter_rate: Decimal | None = None
        promoter_amount = _ZERO
        if booking.promoter_id:
            config = promoter_rates.get(booking.promoter_id)
            promoter_rate = config.effective_rate if config else None
            if promoter_rate is not None and spend > 0:
                promoter_amount = _percent_of(spend, promoter_rate)

        lines.append(CommissionLine(
            booking_id=booking.id,
            spend_amount=spend,
            spend_source=source,
            promoter_id=booking.promoter_id,
            promoter_commission_rate=promoter_rate,
            promoter_commission_amount=promoter_amount,
            venue_commission_rate=venue_commission_rate,
            venue_commission_amount=_percent_of(spend, venue_commission_rate),
        ))

    result = CommissionResult(
        lines=tuple(lines),
        total_spend=sum((line.spend_amount for line in lines), _ZERO),
        total_promoter_commission=sum(
            (line.promoter_commission_amount for line in lines), _ZERO
        ),
        total_venue_commission=sum(
            (line.venue_commission_amount for line in lines), _ZERO
        ),
        venue_commission_rate=venue_commission_rate,
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("commission_calculation_completed", extra={
        "bookings_processed": result.bookings_processed,
        "bookings_skipped_locked": skipped_locked,
        "total_spend": str(result.total_spend),
        "total_promoter_commission": str(result.total_promoter_commission),
        "total_venue_commission": str(result.total_venue_commission),
        "duration_ms": duration_ms,
    })

    return result
