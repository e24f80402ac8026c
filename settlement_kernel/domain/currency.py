"""Currency -- ISO 4217 registry and display symbols for closeout formatting."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Display information for a single ISO 4217 currency.

    Closeout amounts are always shown in whole units, so only the symbol
    matters here.
    """

    code: str
    symbol: str | None = None

    @property
    def display_prefix(self) -> str:
        """Prefix placed before a formatted amount ("$" or "IDR ")."""
        if self.symbol:
            return self.symbol
        return f"{self.code} "


class CurrencyRegistry:
    """Registry of the currencies venues report closeouts in.

    Only currencies with a widely recognised en-US symbol carry one; every
    other code is displayed as its ISO code followed by a space.
    """

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", "$"),
        "EUR": CurrencyInfo("EUR", "€"),
        "GBP": CurrencyInfo("GBP", "£"),
        "JPY": CurrencyInfo("JPY", "¥"),
        "INR": CurrencyInfo("INR", "₹"),
        "KRW": CurrencyInfo("KRW", "₩"),
        "ILS": CurrencyInfo("ILS", "₪"),
        "VND": CurrencyInfo("VND", "₫"),
        "CAD": CurrencyInfo("CAD", "CA$"),
        "AUD": CurrencyInfo("AUD", "A$"),
        "NZD": CurrencyInfo("NZD", "NZ$"),
        "HKD": CurrencyInfo("HKD", "HK$"),
        "MXN": CurrencyInfo("MXN", "MX$"),
        "BRL": CurrencyInfo("BRL", "R$"),
        "IDR": CurrencyInfo("IDR"),
        "SGD": CurrencyInfo("SGD"),
        "MYR": CurrencyInfo("MYR"),
        "THB": CurrencyInfo("THB"),
        "PHP": CurrencyInfo("PHP", "₱"),
        "AED": CurrencyInfo("AED"),
        "CHF": CurrencyInfo("CHF"),
        "ZAR": CurrencyInfo("ZAR"),
        "KWD": CurrencyInfo("KWD"),
        "BHD": CurrencyInfo("BHD"),
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is known to the registry."""
        return code.upper() in cls._CURRENCIES

    @classmethod
    def get(cls, code: str) -> CurrencyInfo:
        """Get currency info, falling back to a code-prefixed entry."""
        normalized = code.upper()
        info = cls._CURRENCIES.get(normalized)
        if info is None:
            return CurrencyInfo(normalized)
        return info

