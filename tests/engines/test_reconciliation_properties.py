"""
Property-based tests for the reconciliation matcher.

Properties:
- No double claim: matched booking ids are unique
- Idempotence: identical inputs give identical previews
- Completeness: every non-blank row is matched or unmatched exactly once,
  every eligible booking is claimed or unmatched exactly once
"""

import pytest

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st
except ImportError:
    pytest.skip("hypothesis not installed", allow_module_level=True)

from settlement_engines.reconciliation import SpendReconciliationMatcher
from settlement_kernel.domain.dtos import Booking, BookingStatus

TABLE_NAMES = st.sampled_from([
    "Table 1", "table 1", "VIP 1", "VIP Table 1", "1",
    "Table 2", "vip 2", "2", "Booth", "  Table 3 ", "", "   ",
])

csv_rows = st.lists(
    st.fixed_dictionaries({
        "table": TABLE_NAMES,
        "spend": st.one_of(
            st.integers(min_value=-500, max_value=50_000).map(str),
            st.sampled_from(["$1,200.50", "n/a", "", "Rp 2.000", "-0"]),
        ),
    }),
    min_size=1,
    max_size=25,
)

bookings_strategy = st.lists(
    st.builds(
        lambda idx, name, status: Booking(
            id=f"b{idx}", guest_name=f"Guest {idx}", table_name=name, status=status
        ),
        st.integers(min_value=0, max_value=10_000),
        st.one_of(st.none(), TABLE_NAMES),
        st.sampled_from(list(BookingStatus)),
    ),
    max_size=15,
    unique_by=lambda b: b.id,
)


class TestMatcherProperties:
    """Invariants that hold for any export and booking list."""

    def setup_method(self):
        self.matcher = SpendReconciliationMatcher()

    @given(rows=csv_rows, bookings=bookings_strategy)
    @settings(max_examples=200, deadline=None)
    def test_no_double_claim(self, rows, bookings):
        result = self.matcher.preview(csv_data=rows, bookings=bookings)

        claimed = result.matched_booking_ids
        assert len(claimed) == len(set(claimed))
        assert result.preview.matched_count == len(claimed)

    @given(rows=csv_rows, bookings=bookings_strategy)
    @settings(max_examples=100, deadline=None)
    def test_idempotent(self, rows, bookings):
        first = self.matcher.preview(csv_data=rows, bookings=bookings)
        second = self.matcher.preview(csv_data=rows, bookings=bookings)

        assert first == second
        assert first.to_dict() == second.to_dict()

    @given(rows=csv_rows, bookings=bookings_strategy)
    @settings(max_examples=200, deadline=None)
    def test_rows_complete(self, rows, bookings):
        result = self.matcher.preview(csv_data=rows, bookings=bookings)

        matched = {m.row_index for m in result.matches if m.matched}
        unmatched = {r.row_index for r in result.unmatched_csv_rows}
        skipped = set(result.skipped_row_indexes)

        assert matched.isdisjoint(unmatched)
        assert matched | unmatched | skipped == set(range(len(rows)))
        assert not skipped & (matched | unmatched)

    @given(rows=csv_rows, bookings=bookings_strategy)
    @settings(max_examples=200, deadline=None)
    def test_bookings_complete(self, rows, bookings):
        result = self.matcher.preview(csv_data=rows, bookings=bookings)

        eligible = {b.id for b in bookings if b.is_settleable}
        claimed = set(result.matched_booking_ids)
        unmatched = {b.booking_id for b in result.unmatched_bookings}

        assert claimed.isdisjoint(unmatched)
        assert claimed | unmatched == eligible
