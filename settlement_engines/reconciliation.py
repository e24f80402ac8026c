"""
settlement_engines.reconciliation -- POS spend export to table booking matcher.

Responsibility:
    Propose a one-to-one correspondence between the rows of a venue's
    point-of-sale export (table name + spend per row) and the event's
    settleable table bookings.  The result is a preview: nothing is
    mutated and nothing is committed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import settlement_kernel.

Invariants enforced:
    - No double claim: a booking id appears in at most one matched row.
      The first CSV row (in export order) that resolves to a booking wins;
      later rows resolving to the same booking are reported unmatched.
    - Determinism: identical inputs produce identical previews; no clock
      access, no randomness.
    - Column detection is decided once, from the keys of the first row.
    - Closed events are rejected before any matching work is done.

Failure modes:
    - EmptyInputError if ``csv_data`` is empty.
    - AlreadyClosedError if the caller reports a closeout timestamp.
    - ColumnDetectionError if the table-name or spend column cannot be
      resolved from the first row and no explicit mapping was given.

Known limitation:
    Spend cells are parsed leniently (see
    ``settlement_kernel.domain.amounts.parse_spend``); a cell with no
    leading number becomes zero rather than an error.

Usage:
    from settlement_engines.reconciliation import preview_spend_import

    result = preview_spend_import(
        csv_data=[{"Table": "VIP 5", "Total": "$1,200"}],
        bookings=bookings,
    )
    for row in result.matches:
        ...
"""

from __future__ import annotations

import re
import time
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.amounts import parse_spend
from settlement_kernel.domain.dtos import SETTLEABLE_STATUSES, Booking, BookingStatus
from settlement_kernel.exceptions import (
    AlreadyClosedError,
    ColumnDetectionError,
    EmptyInputError,
)
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")

CSVRow = Mapping[str, Any]

DEFAULT_TABLE_NAME_CANDIDATES: tuple[str, ...] = ("table_name", "table", "tablename", "name")
DEFAULT_SPEND_CANDIDATES: tuple[str, ...] = ("spend", "spend_amount", "amount", "total", "revenue")
DEFAULT_STRIP_PREFIXES: tuple[str, ...] = ("table", "vip")


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class ColumnMapping:
    """
    Which CSV columns hold the table name and the spend.

    Either side may be left as None in a request; the matcher fills the
    gap by auto-detection.  Mappings returned by the matcher are always
    complete.
    """

    table_name_column: str | None = None
    spend_column: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.table_name_column) and bool(self.spend_column)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "table_name_column": self.table_name_column,
            "spend_column": self.spend_column,
        }


@dataclass(frozen=True)
class MatchRow:
    """One CSV row's outcome, in export row order."""

    row_index: int
    csv_table_name: str
    csv_spend: Decimal
    matched: bool
    booking_id: str | None = None
    booking_guest_name: str | None = None
    booking_table_name: str | None = None
    current_spend: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "row_index": self.row_index,
            "csv_table_name": self.csv_table_name,
            "csv_spend": self.csv_spend,
            "matched": self.matched,
        }
        if self.matched:
            data.update({
                "booking_id": self.booking_id,
                "booking_guest_name": self.booking_guest_name,
                "booking_table_name": self.booking_table_name,
                "current_spend": self.current_spend,
            })
        return data


@dataclass(frozen=True)
class UnmatchedCsvRow:
    """A CSV row that could not be paired with an unclaimed booking."""

    row_index: int
    csv_table_name: str
    csv_spend: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_index": self.row_index,
            "csv_table_name": self.csv_table_name,
            "csv_spend": self.csv_spend,
        }


@dataclass(frozen=True)
class UnmatchedBooking:
    """A settleable booking no CSV row was matched to."""

    booking_id: str
    guest_name: str
    table_name: str | None
    current_spend: Decimal | None
    minimum_spend: Decimal | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "guest_name": self.guest_name,
            "table_name": self.table_name,
            "current_spend": self.current_spend,
            "minimum_spend": self.minimum_spend,
        }


@dataclass(frozen=True)
class PreviewSummary:
    """Headline counts of a reconciliation preview."""

    total_csv_rows: int
    matched_count: int
    unmatched_csv_rows: int
    unmatched_bookings: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total_csv_rows": self.total_csv_rows,
            "matched_count": self.matched_count,
            "unmatched_csv_rows": self.unmatched_csv_rows,
            "unmatched_bookings": self.unmatched_bookings,
        }


@dataclass(frozen=True)
class PreviewResult:
    """
    Complete reconciliation preview.

    ``matches`` holds one entry per non-blank CSV row.  Rows whose table
    name cell is blank are skipped and listed in ``skipped_row_indexes``.
    """

    preview: PreviewSummary
    column_mapping: ColumnMapping
    matches: tuple[MatchRow, ...]
    unmatched_csv_rows: tuple[UnmatchedCsvRow, ...]
    unmatched_bookings: tuple[UnmatchedBooking, ...]
    skipped_row_indexes: tuple[int, ...] = ()

    @property
    def matched_rows(self) -> tuple[MatchRow, ...]:
        return tuple(m for m in self.matches if m.matched)

    @property
    def matched_booking_ids(self) -> tuple[str, ...]:
        return tuple(m.booking_id for m in self.matches if m.matched)

    def to_dict(self) -> dict[str, Any]:
        """Response body shape expected by closeout callers."""
        return {
            "preview": self.preview.to_dict(),
            "column_mapping": self.column_mapping.to_dict(),
            "matches": [m.to_dict() for m in self.matches],
            "unmatched_csv_rows": [r.to_dict() for r in self.unmatched_csv_rows],
            "unmatched_bookings": [b.to_dict() for b in self.unmatched_bookings],
            "skipped_row_indexes": list(self.skipped_row_indexes),
        }


# ============================================================================
# Name normalization and column detection
# ============================================================================


def _prefix_pattern(prefixes: Sequence[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(p.lower()) for p in prefixes)
    return re.compile(rf"^(?:{alternatives})\s+", re.IGNORECASE)


_DEFAULT_PREFIX_PATTERN = _prefix_pattern(DEFAULT_STRIP_PREFIXES)


def normalize_table_name(name: str) -> str:
    """Lower-case and trim a table name."""
    return name.strip().lower()


def strip_table_prefix(
    normalized: str,
    pattern: re.Pattern[str] = _DEFAULT_PREFIX_PATTERN,
) -> str:
    """Remove one leading ``table`` / ``vip`` prefix from a normalized name.

    Only the first matching prefix is removed, so ``"vip table 5"`` becomes
    ``"table 5"``, not ``"5"``.  The prefix must be followed by
    whitespace: ``"vipers lounge"`` and ``"table5"`` are left alone.
    """
    return pattern.sub("", normalized, count=1).strip()


def build_table_lookup(
    bookings: Sequence[Booking],
    pattern: re.Pattern[str] = _DEFAULT_PREFIX_PATTERN,
) -> dict[str, Booking]:
    """Index bookings by normalized table name and by its prefix-stripped form.

    Bookings without a table (or with a blank one) are not indexed, and
    no booking is ever indexed under an empty key.  When two bookings share a
    key, the later one in ``bookings`` owns it.
    """
    lookup: dict[str, Booking] = {}
    for booking in bookings:
        if not booking.table_name:
            continue
        normalized = normalize_table_name(booking.table_name)
        if not normalized:
            continue
        lookup[normalized] = booking
        stripped = strip_table_prefix(normalized, pattern)
        if stripped and stripped != normalized:
            lookup[stripped] = booking
    return lookup


def _find_column(columns: Sequence[str], candidates: Sequence[str]) -> str | None:
    wanted = {c.lower() for c in candidates}
    return next((col for col in columns if col.lower() in wanted), None)


def detect_columns(
    sample_row: CSVRow,
    requested: ColumnMapping | None = None,
    table_name_candidates: Sequence[str] = DEFAULT_TABLE_NAME_CANDIDATES,
    spend_candidates: Sequence[str] = DEFAULT_SPEND_CANDIDATES,
) -> ColumnMapping:
    """
    Resolve the table-name and spend columns for an export.

    Explicitly requested columns are used as given.  Missing sides are
    auto-detected from ``sample_row``'s keys, in key order: the first key
    whose lower-cased form is one of the candidates wins.

    Raises:
        ColumnDetectionError: if either side remains unresolved.
    """
    columns = [str(k) for k in sample_row.keys()]
    requested = requested or ColumnMapping()

    table_name_column = requested.table_name_column or _find_column(
        columns, table_name_candidates
    )
    spend_column = requested.spend_column or _find_column(columns, spend_candidates)

    if not table_name_column or not spend_column:
        logger.warning("column_detection_failed", extra={
            "available_columns": columns,
            "table_name_column": table_name_column,
            "spend_column": spend_column,
        })
        raise ColumnDetectionError(columns, table_name_column, spend_column)

    return ColumnMapping(table_name_column=table_name_column, spend_column=spend_column)


def ensure_event_open(event_id: Any, closeout_at: datetime | str | None) -> None:
    """Reject work on an event whose closeout is already finalized."""
    if closeout_at:
        logger.warning("reconciliation_rejected_event_closed", extra={
            "event_id": str(event_id),
            "closeout_at": str(closeout_at),
        })
        raise AlreadyClosedError(event_id, closeout_at)


def _cell_text(row: CSVRow, column: str) -> str:
    value = row.get(column)
    if value is None:
        return ""
    return str(value).strip()


# ============================================================================
# Matcher
# ============================================================================


class SpendReconciliationMatcher:
    """
    Greedy first-come matcher from POS export rows to table bookings.

    Contract:
        Pure -- no I/O, no mutation of the supplied rows or bookings.
        CSV row order is both the iteration order and the tie-break order.
    Guarantees:
        - Each booking id is claimed by at most one row.
        - Every non-blank row is in ``matches``; unmatched ones are also
          listed in ``unmatched_csv_rows``.
        - Every settleable booking is either claimed or listed in
          ``unmatched_bookings``.
    Non-goals:
        - Not a globally optimal assignment; only row order decides which
          of several rows sharing a table name gets the booking.
        - Does not write spend back to bookings.
    """

    def __init__(
        self,
        table_name_candidates: Sequence[str] = DEFAULT_TABLE_NAME_CANDIDATES,
        spend_candidates: Sequence[str] = DEFAULT_SPEND_CANDIDATES,
        strip_prefixes: Sequence[str] = DEFAULT_STRIP_PREFIXES,
        eligible_statuses: Collection[BookingStatus] = SETTLEABLE_STATUSES,
    ) -> None:
        self.table_name_candidates = tuple(table_name_candidates)
        self.spend_candidates = tuple(spend_candidates)
        self.eligible_statuses = frozenset(eligible_statuses)
        self._prefix_pattern = _prefix_pattern(strip_prefixes)

    @traced_engine(
        "reconciliation", "1.0",
        fingerprint_fields=("csv_data", "bookings", "column_mapping"),
        summarize=lambda r: {"matched_count": r.preview.matched_count},
    )
    def preview(
        self,
        csv_data: Sequence[CSVRow],
        bookings: Sequence[Booking],
        column_mapping: ColumnMapping | None = None,
        event_id: Any = None,
        closeout_at: datetime | str | None = None,
    ) -> PreviewResult:
        """
        Propose a mapping from CSV rows to bookings.

        Args:
            csv_data: Export rows, each an arbitrary column -> cell mapping.
            bookings: The event's bookings; those outside the eligible
                statuses are ignored.
            column_mapping: Optional explicit (possibly partial) mapping.
            event_id: Event identifier, used for logging and errors.
            closeout_at: The event's closeout timestamp, if finalized.

        Returns:
            PreviewResult with matches and both unmatched lists.
        """
        t0 = time.monotonic()

        if not csv_data:
            logger.warning("reconciliation_rejected_empty_input", extra={
                "event_id": str(event_id),
            })
            raise EmptyInputError("csv_data")

        ensure_event_open(event_id, closeout_at)

        mapping = detect_columns(
            csv_data[0],
            column_mapping,
            self.table_name_candidates,
            self.spend_candidates,
        )

        eligible = [b for b in bookings if b.status in self.eligible_statuses]

        logger.info("reconciliation_preview_started", extra={
            "event_id": str(event_id),
            "csv_row_count": len(csv_data),
            "booking_count": len(eligible),
            "table_name_column": mapping.table_name_column,
            "spend_column": mapping.spend_column,
        })

        lookup = build_table_lookup(eligible, self._prefix_pattern)

        matches: list[MatchRow] = []
        unmatched_rows: list[UnmatchedCsvRow] = []
        skipped: list[int] = []
        claimed: set[str] = set()

        for index, row in enumerate(csv_data):
            table_name = _cell_text(row, mapping.table_name_column)
            spend = parse_spend(row.get(mapping.spend_column))

            if not table_name:
                skipped.append(index)
                continue

            normalized = normalize_table_name(table_name)
            booking = lookup.get(normalized)
            if booking is None:
                stripped = strip_table_prefix(normalized, self._prefix_pattern)
                if stripped:
                    booking = lookup.get(stripped)

            if booking is not None and booking.id not in claimed:
                claimed.add(booking.id)
                matches.append(MatchRow(
                    row_index=index,
                    csv_table_name=table_name,
                    csv_spend=spend,
                    matched=True,
                    booking_id=booking.id,
                    booking_guest_name=booking.guest_name,
                    booking_table_name=booking.table_name,
                    current_spend=booking.current_spend,
                ))
                continue

            if booking is not None:
                logger.debug("reconciliation_duplicate_claim", extra={
                    "row_index": index,
                    "booking_id": booking.id,
                })
            unmatched_rows.append(UnmatchedCsvRow(
                row_index=index,
                csv_table_name=table_name,
                csv_spend=spend,
            ))
            matches.append(MatchRow(
                row_index=index,
                csv_table_name=table_name,
                csv_spend=spend,
                matched=False,
            ))

        unmatched_bookings = tuple(
            UnmatchedBooking(
                booking_id=b.id,
                guest_name=b.guest_name,
                table_name=b.table_name,
                current_spend=b.current_spend,
                minimum_spend=b.minimum_spend,
            )
            for b in eligible
            if b.id not in claimed
        )

        summary = PreviewSummary(
            total_csv_rows=len(csv_data),
            matched_count=len(claimed),
            unmatched_csv_rows=len(unmatched_rows),
            unmatched_bookings=len(unmatched_bookings),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("reconciliation_preview_completed", extra={
            "event_id": str(event_id),
            "matched_count": summary.matched_count,
            "unmatched_csv_rows": summary.unmatched_csv_rows,
            "unmatched_bookings": summary.unmatched_bookings,
            "skipped_rows": len(skipped),
            "duration_ms": duration_ms,
        })

        return PreviewResult(
            preview=summary,
            column_mapping=mapping,
            matches=tuple(matches),
            unmatched_csv_rows=tuple(unmatched_rows),
            unmatched_bookings=unmatched_bookings,
            skipped_row_indexes=tuple(skipped),
        )


def preview_spend_import(
    csv_data: Sequence[CSVRow],
    bookings: Sequence[Booking],
    column_mapping: ColumnMapping | None = None,
    event_id: Any = None,
    closeout_at: datetime | str | None = None,
) -> PreviewResult:
    """
    Convenience function: preview with the default candidates and prefixes.

    Args:
        csv_data: Export rows.
        bookings: The event's bookings.
        column_mapping: Optional explicit (possibly partial) mapping.
        event_id: Event identifier, used for logging and errors.
        closeout_at: The event's closeout timestamp, if finalized.

    Returns:
        PreviewResult for the export.
    """
    matcher = SpendReconciliationMatcher()
    return matcher.preview(
        csv_data=csv_data,
        bookings=bookings,
        column_mapping=column_mapping,
        event_id=event_id,
        closeout_at=closeout_at,
    )
