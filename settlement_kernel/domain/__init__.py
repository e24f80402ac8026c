"""Domain values and records shared by the settlement engines."""

from settlement_kernel.domain.amounts import format_currency, format_percent, parse_spend
from settlement_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from settlement_kernel.domain.dtos import (
    SETTLEABLE_STATUSES,
    Booking,
    BookingStatus,
    CheckinRecord,
    EventCloseoutState,
)

__all__ = [
    "Booking",
    "BookingStatus",
    "CheckinRecord",
    "CurrencyInfo",
    "CurrencyRegistry",
    "EventCloseoutState",
    "SETTLEABLE_STATUSES",
    "format_currency",
    "format_percent",
    "parse_spend",
]
