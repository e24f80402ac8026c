"""
settlement_engines.closeout -- Per-event promoter payout summary.

Responsibility:
    Attribute door check-ins to promoters and run the payout engine for
    every promoter assigned to an event, producing the numbers the
    closeout review screen and the payout run are built from.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Delegates payout math to ``settlement_engines.payout``.

Invariants enforced:
    - Undone check-ins and check-ins without a referral promoter never count.
    - ``total_checkins`` counts every attributed check-in at the event,
      including those of promoters without an assignment.
    - ``total_payout`` is the sum of every promoter's ``final_payout``.

Failure modes:
    - InvalidCountError propagated from the payout engine (cannot happen
      with counts produced by ``count_effective_checkins``).
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from settlement_engines.payout import (
    PayoutBreakdown,
    PromoterContract,
    calculate_promoter_payout,
    format_payout_breakdown,
)
from settlement_kernel.domain.dtos import CheckinRecord
from settlement_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.closeout")

DEFAULT_CURRENCY = "IDR"


@dataclass(frozen=True)
class PromoterAssignment:
    """A promoter booked for the event, with their contract."""

    promoter_id: str
    contract: PromoterContract
    promoter_name: str | None = None
    manual_adjustment_reason: str | None = None


@dataclass(frozen=True)
class PromoterPayout:
    """Payout outcome for one assigned promoter."""

    promoter_id: str
    promoter_name: str
    checkins_count: int
    breakdown: PayoutBreakdown
    description: str
    manual_adjustment_reason: str | None = None

    @property
    def final_payout(self) -> Decimal:
        return self.breakdown.final_payout

    def to_dict(self) -> dict[str, Any]:
        return {
            "promoter_id": self.promoter_id,
            "promoter_name": self.promoter_name,
            "checkins_count": self.checkins_count,
            "calculated_payout": self.breakdown.calculated_payout,
            "manual_adjustment_amount": self.breakdown.manual_adjustment,
            "manual_adjustment_reason": self.manual_adjustment_reason,
            "final_payout": self.breakdown.final_payout,
            "breakdown": self.breakdown.to_dict(),
            "description": self.description,
        }


@dataclass(frozen=True)
class EventPayoutSummary:
    """Payouts for every promoter assigned to an event."""

    event_id: str
    promoters: tuple[PromoterPayout, ...]
    total_checkins: int
    total_payout: Decimal
    currency: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "promoters": [p.to_dict() for p in self.promoters],
            "total_checkins": self.total_checkins,
            "total_payout": self.total_payout,
            "currency": self.currency,
        }


def count_effective_checkins(checkins: Iterable[CheckinRecord]) -> dict[str, int]:
    """Count effective check-ins per referral promoter."""
    counts: Counter[str] = Counter(
        c.referral_promoter_id
        for c in checkins
        if c.is_effective and c.referral_promoter_id
    )
    return dict(counts)


def summarize_event_payouts(
    event_id: str,
    assignments: Sequence[PromoterAssignment],
    checkin_counts: Mapping[str, int],
    currency: str | None = None,
) -> EventPayoutSummary:
    """
    Calculate every assigned promoter's payout for an event.

    Pure function.

    Args:
        event_id: Event being closed out
        assignments: Promoters assigned to the event, with contracts
        checkin_counts: Effective check-ins keyed by promoter id
        currency: Display currency (defaults to IDR)

    Returns:
        EventPayoutSummary in assignment order
    """
    t0 = time.monotonic()
    currency = currency or DEFAULT_CURRENCY

    payouts: list[PromoterPayout] = []
    for assignment in assignments:
        count = checkin_counts.get(assignment.promoter_id, 0)
        with LogContext.bind(promoter_id=assignment.promoter_id):
            breakdown = calculate_promoter_payout(assignment.contract, count)
        payouts.append(PromoterPayout(
            promoter_id=assignment.promoter_id,
            promoter_name=assignment.promoter_name or "Unknown",
            checkins_count=count,
            breakdown=breakdown,
            description=format_payout_breakdown(breakdown, currency),
            manual_adjustment_reason=assignment.manual_adjustment_reason,
        ))

    summary = EventPayoutSummary(
        event_id=event_id,
        promoters=tuple(payouts),
        total_checkins=sum(checkin_counts.values()),
        total_payout=sum((p.final_payout for p in payouts), Decimal("0")),
        currency=currency,
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("event_payout_summary_completed", extra={
        "event_id": str(event_id),
        "promoter_count": len(payouts),
        "total_checkins": summary.total_checkins,
        "total_payout": str(summary.total_payout),
        "currency": currency,
        "duration_ms": duration_ms,
    })

    return summary
