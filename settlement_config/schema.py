"""
Settlement configuration schema.

Frozen dataclasses the YAML settings file is parsed into.  Services read
these and pass the values to the engines as plain parameters; engines
never see this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from settlement_kernel.domain.dtos import BookingStatus

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationSettings:
    """How POS exports are matched to bookings."""

    table_name_candidates: tuple[str, ...]
    spend_candidates: tuple[str, ...]
    strip_prefixes: tuple[str, ...]
    eligible_statuses: frozenset[BookingStatus]


@dataclass(frozen=True)
class CommissionSettings:
    """Venue commission defaults."""

    default_venue_rate: Decimal


@dataclass(frozen=True)
class FormattingSettings:
    """Presentation defaults."""

    default_currency: str


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SettlementConfig:
    """Complete settlement configuration with its source checksum."""

    reconciliation: ReconciliationSettings
    commission: CommissionSettings
    formatting: FormattingSettings
    source: str
    checksum: str
