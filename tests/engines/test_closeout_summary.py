"""Tests for check-in attribution and the per-event payout summary."""

from datetime import UTC, datetime
from decimal import Decimal

from settlement_engines.closeout import (
    PromoterAssignment,
    count_effective_checkins,
    summarize_event_payouts,
)
from settlement_engines.payout import BonusTier, PromoterContract
from settlement_kernel.domain.dtos import CheckinRecord

UNDONE = datetime(2026, 3, 1, 23, 0, tzinfo=UTC)


class TestCountEffectiveCheckins:
    """Tests for count_effective_checkins()."""

    def test_counts_per_promoter(self):
        checkins = [
            CheckinRecord("r1", "p1"),
            CheckinRecord("r2", "p1"),
            CheckinRecord("r3", "p2"),
        ]

        assert count_effective_checkins(checkins) == {"p1": 2, "p2": 1}

    def test_undone_and_unattributed_excluded(self):
        checkins = [
            CheckinRecord("r1", "p1"),
            CheckinRecord("r2", "p1", undone_at=UNDONE),
            CheckinRecord("r3", None),
        ]

        assert count_effective_checkins(checkins) == {"p1": 1}

    def test_empty(self):
        assert count_effective_checkins([]) == {}


class TestSummarizeEventPayouts:
    """Tests for summarize_event_payouts()."""

    def setup_method(self):
        self.assignments = [
            PromoterAssignment(
                promoter_id="p1",
                promoter_name="Rina",
                contract=PromoterContract(
                    per_head_rate=Decimal("50000"),
                    bonus_tiers=(BonusTier(threshold=10, amount=Decimal("250000")),),
                ),
            ),
            PromoterAssignment(
                promoter_id="p2",
                contract=PromoterContract(
                    fixed_fee=Decimal("1000000"),
                    manual_adjustment_amount=Decimal("-100000"),
                ),
                manual_adjustment_reason="Late arrival",
            ),
        ]

    def test_payouts_in_assignment_order(self):
        summary = summarize_event_payouts("evt-1", self.assignments, {"p1": 12})

        assert [p.promoter_id for p in summary.promoters] == ["p1", "p2"]
        rina = summary.promoters[0]
        assert rina.checkins_count == 12
        assert rina.final_payout == Decimal("850000")
        other = summary.promoters[1]
        assert other.checkins_count == 0
        assert other.promoter_name == "Unknown"
        assert other.final_payout == Decimal("900000")
        assert other.manual_adjustment_reason == "Late arrival"

    def test_totals(self):
        summary = summarize_event_payouts(
            "evt-1", self.assignments, {"p1": 12, "p2": 3, "unassigned": 4}
        )

        assert summary.total_checkins == 19
        assert summary.total_payout == sum(p.final_payout for p in summary.promoters)

    def test_default_currency(self):
        summary = summarize_event_payouts("evt-1", self.assignments, {"p1": 1})

        assert summary.currency == "IDR"
        assert summary.promoters[0].description == "1 check-ins × IDR 50,000 = IDR 50,000"

    def test_explicit_currency(self):
        summary = summarize_event_payouts(
            "evt-1", self.assignments[1:], {}, currency="USD"
        )

        assert summary.promoters[0].description == (
            "Fixed fee: $1,000,000 + Manual adjustment: -$100,000"
        )

    def test_to_dict(self):
        data = summarize_event_payouts("evt-1", self.assignments[:1], {"p1": 10}).to_dict()

        promoter = data["promoters"][0]
        assert promoter["calculated_payout"] == Decimal("750000")
        assert promoter["manual_adjustment_amount"] == Decimal("0")
        assert promoter["breakdown"]["bonus_details"][0]["type"] == "tier"
        assert data["total_payout"] == Decimal("750000")

    def test_promoter_bound_in_logs(self, captured_logs):
        summarize_event_payouts("evt-1", self.assignments[:1], {"p1": 2})

        records = [r for r in captured_logs() if r["message"] == "payout_calculation_completed"]
        assert records[0]["promoter_id"] == "p1"
