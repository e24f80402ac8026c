"""
Amount parsing and display helpers shared by the settlement engines.

``parse_spend`` is intentionally lenient: point-of-sale exports put
currency symbols, thousands separators and free text into the spend
column, so every character except digits, ``.`` and ``-`` is dropped and
the longest numeric prefix of what remains is used.  Anything that does
not start with a number parses as zero.  Callers that need strict
validation must check the cell themselves before reconciling.

Examples:
    parse_spend("$1,250.50")  -> Decimal("1250.50")
    parse_spend("Rp 2.000")   -> Decimal("2.000")
    parse_spend("12.5.3")     -> Decimal("12.5")
    parse_spend("n/a")        -> Decimal("0")
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from settlement_kernel.domain.currency import CurrencyRegistry

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_NUMERIC_PREFIX = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)")

_ZERO = Decimal("0")
_ONE = Decimal("1")


def parse_spend(raw: Any) -> Decimal:
    """Parse a spend cell into a Decimal, defaulting to zero."""
    if raw is None:
        return _ZERO
    cleaned = _NON_NUMERIC.sub("", str(raw))
    match = _NUMERIC_PREFIX.match(cleaned)
    if match is None:
        return _ZERO
    value = Decimal(match.group(0))
    # Normalise "-0" so it never shows up as a negative spend.
    if value == _ZERO:
        return _ZERO
    return value


def format_currency(amount: Decimal | int, currency: str) -> str:
    """Format an amount with zero decimal places and the currency prefix.

    Mirrors en-US currency formatting: thousands separators, half-up
    rounding to a whole unit, and the minus sign ahead of the symbol.
    """
    info = CurrencyRegistry.get(currency)
    whole = Decimal(amount).quantize(_ONE, rounding=ROUND_HALF_UP)
    sign = "-" if whole < 0 else ""
    return f"{sign}{info.display_prefix}{abs(whole):,}"


def format_percent(value: Decimal | int) -> str:
    """Render a percentage without trailing zeros ("50", "12.5")."""
    dec = Decimal(value)
    if dec == dec.to_integral_value():
        return str(dec.quantize(_ONE))
    return format(dec.normalize(), "f")
