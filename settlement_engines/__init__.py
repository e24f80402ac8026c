"""
Module: settlement_engines
Responsibility:
    Package entrypoint that re-exports all public symbols from the pure
    settlement engines.  This is the canonical import surface for
    ``settlement_services`` and outside callers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import settlement_kernel (and sibling engine modules).
    MUST NOT import settlement_services or settlement_config.

Invariants enforced:
    - Purity: engines never read the clock, configuration or storage.
      Closeout timestamps and configured values are passed in by callers.
    - Decimal-only arithmetic: monetary amounts are ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is traced via ``@traced_engine`` (see
    ``settlement_engines.tracer``), emitting SETTLEMENT_ENGINE_TRACE log
    records with engine name, version, input fingerprint and duration.

Usage:
    from settlement_engines.reconciliation import preview_spend_import
    from settlement_engines.payout import calculate_promoter_payout
    from settlement_engines.commission import calculate_table_commissions
"""

from settlement_kernel.logging_config import get_logger

logger = get_logger("engines")

from settlement_engines.closeout import (
    EventPayoutSummary,
    PromoterAssignment,
    PromoterPayout,
    count_effective_checkins,
    summarize_event_payouts,
)
from settlement_engines.commission import (
    CommissionLine,
    CommissionResult,
    PromoterCommissionRate,
    SpendSource,
    calculate_table_commissions,
    effective_spend,
)
from settlement_engines.payout import (
    BonusDetail,
    BonusTier,
    BonusType,
    PayoutBreakdown,
    PromoterContract,
    calculate_promoter_payout,
    format_payout_breakdown,
)
from settlement_engines.reconciliation import (
    ColumnMapping,
    MatchRow,
    PreviewResult,
    PreviewSummary,
    SpendReconciliationMatcher,
    UnmatchedBooking,
    UnmatchedCsvRow,
    detect_columns,
    preview_spend_import,
)
from settlement_engines.spend_import import (
    ImportRejection,
    ImportStatus,
    SpendImportPlan,
    SpendMatch,
    SpendUpdate,
    matches_from_preview,
    plan_spend_import,
)

__all__ = [
    # Reconciliation
    "SpendReconciliationMatcher",
    "ColumnMapping",
    "MatchRow",
    "PreviewResult",
    "PreviewSummary",
    "UnmatchedBooking",
    "UnmatchedCsvRow",
    "detect_columns",
    "preview_spend_import",
    # Spend import
    "SpendMatch",
    "SpendUpdate",
    "SpendImportPlan",
    "ImportRejection",
    "ImportStatus",
    "matches_from_preview",
    "plan_spend_import",
    # Payout
    "BonusTier",
    "BonusType",
    "BonusDetail",
    "PromoterContract",
    "PayoutBreakdown",
    "calculate_promoter_payout",
    "format_payout_breakdown",
    # Closeout summary
    "PromoterAssignment",
    "PromoterPayout",
    "EventPayoutSummary",
    "count_effective_checkins",
    "summarize_event_payouts",
    # Commission
    "PromoterCommissionRate",
    "CommissionLine",
    "CommissionResult",
    "SpendSource",
    "calculate_table_commissions",
    "effective_spend",
]

logger.debug("engines_package_loaded", extra={
    "module_count": 5,
    "modules": ["reconciliation", "spend_import", "payout", "closeout", "commission"],
})
