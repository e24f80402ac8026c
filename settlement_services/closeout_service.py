"""
settlement_services.closeout_service -- Event closeout orchestration.

Responsibility:
    Wires settlement configuration into the pure engines and gives the
    host application one object to call during event closeout: preview a
    POS export, validate the accepted matches, compute promoter payouts and
    table commissions.

Architecture position:
    Services -- orchestration over engines + config.  Holds no mutable
    state between calls; persistence stays with the caller (see
    ``settlement_services.closeout_lock`` for the locking write).

Invariants enforced:
    - Every call is logged with the event id bound into LogContext.
    - Closed events are rejected by the reconciliation and import paths.

Usage:
    service = CloseoutService()
    preview = service.preview_import(event, csv_rows, bookings)
    plan = service.plan_import(event, matches_from_preview(preview), bookings)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

from settlement_config import SettlementConfig, get_active_config
from settlement_engines.closeout import (
    EventPayoutSummary,
    PromoterAssignment,
    count_effective_checkins,
    summarize_event_payouts,
)
from settlement_engines.commission import (
    CommissionResult,
    PromoterCommissionRate,
    calculate_table_commissions,
)
from settlement_engines.payout import (
    PayoutBreakdown,
    PromoterContract,
    calculate_promoter_payout,
    format_payout_breakdown,
)
from settlement_engines.reconciliation import (
    ColumnMapping,
    CSVRow,
    PreviewResult,
    SpendReconciliationMatcher,
)
from settlement_engines.spend_import import SpendImportPlan, SpendMatch, plan_spend_import
from settlement_kernel.domain.dtos import Booking, CheckinRecord, EventCloseoutState
from settlement_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.closeout")


class CloseoutService:
    """
    Entry point for event closeout calculations.

    Contract:
        Given caller-loaded records (event state, bookings, contracts,
        check-ins), returns engine results.  Never reads or writes storage.
    Non-goals:
        - Does not authorize the caller.
        - Does not persist previews, plans or payouts.
    """

    def __init__(self, config: SettlementConfig | None = None):
        self.config = config or get_active_config()
        recon = self.config.reconciliation
        self._matcher = SpendReconciliationMatcher(
            table_name_candidates=recon.table_name_candidates,
            spend_candidates=recon.spend_candidates,
            strip_prefixes=recon.strip_prefixes,
            eligible_statuses=recon.eligible_statuses,
        )

    def _currency(self, event: EventCloseoutState) -> str:
        return event.currency or self.config.formatting.default_currency

    def preview_import(
        self,
        event: EventCloseoutState,
        csv_data: Sequence[CSVRow],
        bookings: Sequence[Booking],
        column_mapping: ColumnMapping | None = None,
    ) -> PreviewResult:
        """Preview how a POS export maps onto the event's bookings."""
        with LogContext.bind(event_id=event.event_id):
            return self._matcher.preview(
                csv_data=csv_data,
                bookings=bookings,
                column_mapping=column_mapping,
                event_id=event.event_id,
                closeout_at=event.closeout_at,
            )

    def plan_import(
        self,
        event: EventCloseoutState,
        matches: Sequence[SpendMatch],
        bookings: Sequence[Booking],
    ) -> SpendImportPlan:
        """Validate the matches a venue accepted from a preview."""
        with LogContext.bind(event_id=event.event_id):
            return plan_spend_import(
                event_id=event.event_id,
                matches=matches,
                bookings=bookings,
                closeout_at=event.closeout_at,
            )

    def calculate_payout(
        self,
        contract: PromoterContract,
        effective_checkins_count: int,
    ) -> PayoutBreakdown:
        """What-if payout for a single contract."""
        return calculate_promoter_payout(contract, effective_checkins_count)

    def describe_payout(
        self,
        breakdown: PayoutBreakdown,
        currency: str | None = None,
    ) -> str:
        """Human-readable breakdown line in the given (or default) currency."""
        return format_payout_breakdown(
            breakdown, currency or self.config.formatting.default_currency
        )

    def summarize_payouts(
        self,
        event: EventCloseoutState,
        assignments: Sequence[PromoterAssignment],
        checkins: Iterable[CheckinRecord],
    ) -> EventPayoutSummary:
        """Payouts for every promoter assigned to the event."""
        with LogContext.bind(event_id=event.event_id):
            counts = count_effective_checkins(checkins)
            return summarize_event_payouts(
                event_id=event.event_id,
                assignments=assignments,
                checkin_counts=counts,
                currency=self._currency(event),
            )

    def calculate_commissions(
        self,
        event: EventCloseoutState,
        bookings: Sequence[Booking],
        promoter_rates: Mapping[str, PromoterCommissionRate],
        venue_commission_rate: Decimal | None = None,
    ) -> CommissionResult:
        """Table commissions, using the configured venue rate when unset."""
        rate = (
            venue_commission_rate
            if venue_commission_rate is not None
            else self.config.commission.default_venue_rate
        )
        with LogContext.bind(event_id=event.event_id):
            return calculate_table_commissions(
                bookings=bookings,
                promoter_rates=promoter_rates,
                venue_commission_rate=rate,
                eligible_statuses=self.config.reconciliation.eligible_statuses,
            )
