"""
Promoter Payout Engine.

Pure functions with deterministic behavior. No I/O.

Computes what a promoter is owed for one event from their negotiated
contract and their effective check-in count.  A contract may combine any
of the following compensation modes; a field left as None means the mode
is not part of the contract (which is different from a zero amount):

- Per-head pay, with an all-or-nothing floor (``per_head_min``) and a
  cap (``per_head_max``) on counted check-ins
- Fixed fee, prorated to ``below_minimum_percent`` when check-ins fall
  short of ``minimum_guests``
- Bonuses: tiered (milestone or repeatable) bonuses, or the legacy single
  threshold bonus when no tiers are configured.  The two are never combined.
- Manual adjustment (may be negative) applied on top of the calculated payout

Payout arithmetic is exact Decimal arithmetic; nothing is rounded here.
``format_payout_breakdown`` is presentation only and never feeds back into
the numbers.

Usage:
    from settlement_engines.payout import (
        BonusTier,
        PromoterContract,
        calculate_promoter_payout,
    )

    contract = PromoterContract(
        per_head_rate=Decimal("5"),
        bonus_tiers=(BonusTier(threshold=20, amount=Decimal("50")),),
    )
    breakdown = calculate_promoter_payout(contract, 25)
    breakdown.final_payout  # Decimal("175")
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.amounts import format_currency, format_percent
from settlement_kernel.exceptions import InvalidCountError
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.payout")


# ============================================================================
# Constants
# ============================================================================

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class BonusType(str, Enum):
    """How a bonus line was earned."""

    LEGACY = "legacy"  # Single threshold bonus on the contract
    TIER = "tier"  # One-time milestone tier
    REPEATABLE = "repeatable"  # Paid for every multiple of the threshold


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class BonusTier:
    """
    A bonus tier on a promoter contract.

    Attributes:
        threshold: Check-ins needed to earn the tier (must be positive)
        amount: Bonus paid each time the tier is earned
        repeatable: True = paid for every ``threshold`` check-ins,
            False = paid once when ``threshold`` is reached
        label: Optional display label
    """

    threshold: int
    amount: Decimal
    repeatable: bool = False
    label: str | None = None

    def __post_init__(self) -> None:
        if self.threshold <= 0:
            raise ValueError("bonus tier threshold must be positive")


@dataclass(frozen=True)
class PromoterContract:
    """
    Compensation terms for one promoter at one event.

    All fields are optional.  None disables the corresponding mode.
    ``below_minimum_percent`` is a percentage (50 means half the fixed fee).
    """

    per_head_rate: Decimal | None = None
    per_head_min: int | None = None
    per_head_max: int | None = None
    fixed_fee: Decimal | None = None
    minimum_guests: int | None = None
    below_minimum_percent: Decimal | None = None
    bonus_threshold: int | None = None
    bonus_amount: Decimal | None = None
    bonus_tiers: tuple[BonusTier, ...] | None = None
    manual_adjustment_amount: Decimal | None = None

    def __post_init__(self) -> None:
        for attr in ("per_head_min", "per_head_max", "minimum_guests", "bonus_threshold"):
            val = getattr(self, attr)
            if val is not None and val < 0:
                raise ValueError(f"{attr} must be non-negative")
        if self.below_minimum_percent is not None and not (
            _ZERO <= self.below_minimum_percent <= _HUNDRED
        ):
            raise ValueError("below_minimum_percent must be between 0 and 100")
        if self.bonus_tiers is not None and not isinstance(self.bonus_tiers, tuple):
            object.__setattr__(self, "bonus_tiers", tuple(self.bonus_tiers))

    @property
    def has_bonus_tiers(self) -> bool:
        return bool(self.bonus_tiers)


@dataclass(frozen=True)
class BonusDetail:
    """A bonus line that fired for this event."""

    type: BonusType
    threshold: int
    amount: Decimal
    label: str | None = None
    times_earned: int | None = None

    @property
    def total(self) -> Decimal:
        """Amount contributed to ``bonus_amount`` by this line."""
        return self.amount * (self.times_earned or 1)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "threshold": self.threshold,
            "amount": self.amount,
        }
        if self.label is not None:
            data["label"] = self.label
        if self.times_earned is not None:
            data["times_earned"] = self.times_earned
        return data


@dataclass(frozen=True)
class PayoutBreakdown:
    """
    Complete payout calculation result.

    Field names are persisted and displayed verbatim by closeout callers.

    Attributes:
        per_head_amount: Per-head pay after floor/cap
        per_head_rate: Rate from the contract (None if no per-head pay)
        per_head_counted: Check-ins actually paid per head
        fixed_fee_amount: Fixed fee after any proration
        fixed_fee_full: Unprorated fixed fee from the contract
        fixed_fee_percent_applied: Percent of the fixed fee paid (None if
            the contract has no fixed fee)
        bonus_amount: Sum of all fired bonus lines
        bonus_details: The fired bonus lines, in tier order
        calculated_payout: per-head + fixed fee + bonuses
        manual_adjustment: Manual adjustment (0 if none)
        final_payout: calculated_payout + manual_adjustment
    """

    per_head_amount: Decimal
    per_head_rate: Decimal | None
    per_head_counted: int
    fixed_fee_amount: Decimal
    fixed_fee_full: Decimal | None
    fixed_fee_percent_applied: Decimal | None
    bonus_amount: Decimal
    bonus_details: tuple[BonusDetail, ...]
    calculated_payout: Decimal
    manual_adjustment: Decimal
    final_payout: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "per_head_amount": self.per_head_amount,
            "per_head_rate": self.per_head_rate,
            "per_head_counted": self.per_head_counted,
            "fixed_fee_amount": self.fixed_fee_amount,
            "fixed_fee_full": self.fixed_fee_full,
            "fixed_fee_percent_applied": self.fixed_fee_percent_applied,
            "bonus_amount": self.bonus_amount,
            "bonus_details": [d.to_dict() for d in self.bonus_details],
            "calculated_payout": self.calculated_payout,
            "manual_adjustment": self.manual_adjustment,
            "final_payout": self.final_payout,
        }


# ============================================================================
# Core Payout Functions
# ============================================================================


def validate_checkin_count(count: Any) -> int:
    """Reject negative or non-integer check-in counts."""
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        logger.warning("payout_rejected_invalid_count", extra={"count": repr(count)})
        raise InvalidCountError(count)
    return count


def calculate_per_head(
    contract: PromoterContract,
    effective_checkins_count: int,
) -> tuple[Decimal, int]:
    """
    Per-head component.

    Pure function.

    Returns:
        Tuple of (per_head_amount, per_head_counted).  (0, 0) when the
        contract has no per-head rate.
    """
    if contract.per_head_rate is None:
        return _ZERO, 0

    counted = effective_checkins_count
    if contract.per_head_min is not None and counted < contract.per_head_min:
        # Below the floor: no per-head pay at all
        counted = 0
    elif contract.per_head_max is not None and counted > contract.per_head_max:
        counted = contract.per_head_max

    return counted * contract.per_head_rate, counted


def calculate_fixed_fee(
    contract: PromoterContract,
    effective_checkins_count: int,
) -> tuple[Decimal, Decimal | None]:
    """
    Fixed-fee component with below-minimum proration.

    Pure function.

    Returns:
        Tuple of (fixed_fee_amount, percent_applied).  (0, None) when the
        contract has no fixed fee.
    """
    if contract.fixed_fee is None:
        return _ZERO, None

    if (
        contract.minimum_guests is not None
        and effective_checkins_count < contract.minimum_guests
    ):
        percent = (
            contract.below_minimum_percent
            if contract.below_minimum_percent is not None
            else _HUNDRED
        )
        return contract.fixed_fee * percent / _HUNDRED, percent

    return contract.fixed_fee, _HUNDRED


def calculate_bonuses(
    contract: PromoterContract,
    effective_checkins_count: int,
) -> tuple[Decimal, tuple[BonusDetail, ...]]:
    """
    Bonus component.

    Tiered bonuses take total precedence: when any tier is configured the
    legacy single bonus is ignored, even if it would qualify.  Tiers are
    evaluated independently and several can fire for the same count.

    Pure function.

    Returns:
        Tuple of (bonus_amount, bonus_details).
    """
    details: list[BonusDetail] = []

    if contract.has_bonus_tiers:
        for tier in contract.bonus_tiers:
            if tier.repeatable:
                times_earned = effective_checkins_count // tier.threshold
                if times_earned > 0:
                    details.append(BonusDetail(
                        type=BonusType.REPEATABLE,
                        threshold=tier.threshold,
                        amount=tier.amount,
                        label=tier.label,
                        times_earned=times_earned,
                    ))
            elif effective_checkins_count >= tier.threshold:
                details.append(BonusDetail(
                    type=BonusType.TIER,
                    threshold=tier.threshold,
                    amount=tier.amount,
                    label=tier.label,
                ))
    elif (
        contract.bonus_threshold is not None
        and contract.bonus_amount is not None
        and effective_checkins_count >= contract.bonus_threshold
    ):
        details.append(BonusDetail(
            type=BonusType.LEGACY,
            threshold=contract.bonus_threshold,
            amount=contract.bonus_amount,
        ))

    total = sum((d.total for d in details), _ZERO)
    return total, tuple(details)


@traced_engine(
    "payout", "1.0",
    fingerprint_fields=("contract", "effective_checkins_count"),
    summarize=lambda b: {"final_payout": b.final_payout},
)
def calculate_promoter_payout(
    contract: PromoterContract,
    effective_checkins_count: int,
) -> PayoutBreakdown:
    """
    Calculate the full payout for a promoter at one event.

    Pure function - no side effects, no I/O, deterministic output.  Safe
    to call repeatedly for what-if previews.

    Args:
        contract: The promoter's compensation terms
        effective_checkins_count: Verified check-ins attributed to the promoter

    Returns:
        PayoutBreakdown with every component and the final payout

    Raises:
        InvalidCountError: If the count is negative or not an integer
    """
    t0 = time.monotonic()
    count = validate_checkin_count(effective_checkins_count)

    per_head_amount, per_head_counted = calculate_per_head(contract, count)
    fixed_fee_amount, percent_applied = calculate_fixed_fee(contract, count)
    bonus_amount, bonus_details = calculate_bonuses(contract, count)

    calculated = per_head_amount + fixed_fee_amount + bonus_amount
    adjustment = contract.manual_adjustment_amount or _ZERO
    final = calculated + adjustment

    if percent_applied is not None and percent_applied < _HUNDRED:
        logger.info("fixed_fee_prorated", extra={
            "minimum_guests": contract.minimum_guests,
            "checkins": count,
            "percent_applied": str(percent_applied),
        })

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("payout_calculation_completed", extra={
        "checkins": count,
        "per_head_counted": per_head_counted,
        "per_head_amount": str(per_head_amount),
        "fixed_fee_amount": str(fixed_fee_amount),
        "bonus_amount": str(bonus_amount),
        "bonus_line_count": len(bonus_details),
        "manual_adjustment": str(adjustment),
        "final_payout": str(final),
        "duration_ms": duration_ms,
    })

    return PayoutBreakdown(
        per_head_amount=per_head_amount,
        per_head_rate=contract.per_head_rate,
        per_head_counted=per_head_counted,
        fixed_fee_amount=fixed_fee_amount,
        fixed_fee_full=contract.fixed_fee,
        fixed_fee_percent_applied=percent_applied,
        bonus_amount=bonus_amount,
        bonus_details=bonus_details,
        calculated_payout=calculated,
        manual_adjustment=adjustment,
        final_payout=final,
    )


# ============================================================================
# Presentation
# ============================================================================


def format_payout_breakdown(breakdown: PayoutBreakdown, currency: str) -> str:
    """
    Render a breakdown as one human-readable line for statements and PDFs.

    Components are joined with `` + ``; zero components are omitted.
    Amounts use whole-unit formatting for ``currency``.
    """

    def money(amount: Decimal | None) -> str:
        return format_currency(amount or _ZERO, currency)

    parts: list[str] = []

    if breakdown.per_head_amount > 0:
        parts.append(
            f"{breakdown.per_head_counted} check-ins × {money(breakdown.per_head_rate)}"
            f" = {money(breakdown.per_head_amount)}"
        )

    if breakdown.fixed_fee_amount > 0:
        pct = breakdown.fixed_fee_percent_applied
        if pct is not None and pct < _HUNDRED:
            parts.append(
                f"Fixed fee: {money(breakdown.fixed_fee_full)} × {format_percent(pct)}%"
                f" = {money(breakdown.fixed_fee_amount)}"
            )
        else:
            parts.append(f"Fixed fee: {money(breakdown.fixed_fee_amount)}")

    for bonus in breakdown.bonus_details:
        suffix = f" - {bonus.label}" if bonus.label else ""
        if bonus.type == BonusType.REPEATABLE and bonus.times_earned:
            parts.append(
                f"Bonus: {money(bonus.amount)} × {bonus.times_earned}"
                f" (every {bonus.threshold} guests){suffix}"
            )
        else:
            parts.append(f"Bonus: {money(bonus.amount)} ({bonus.threshold}+ guests){suffix}")

    if breakdown.manual_adjustment != 0:
        sign = "+" if breakdown.manual_adjustment > 0 else ""
        parts.append(f"Manual adjustment: {sign}{money(breakdown.manual_adjustment)}")

    return " + ".join(parts)
