"""
Configuration Loader (``settlement_config.loader``).

Responsibility
--------------
Loads the settlement YAML file and parses it into the typed
``settlement_config.schema`` dataclasses.  Runtime callers go through
``settlement_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing section/key or invalid value -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from settlement_config.schema import (
    CommissionSettings,
    FormattingSettings,
    ReconciliationSettings,
    SettlementConfig,
)
from settlement_kernel.domain.currency import CurrencyRegistry
from settlement_kernel.domain.dtos import BookingStatus
from settlement_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed settings (key order independent)."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _section(data: dict[str, Any], name: str, source: str) -> dict[str, Any]:
    section = data.get(name)
    if not isinstance(section, dict):
        raise ConfigurationError(source, f"missing section '{name}'")
    return section


def _string_tuple(section: dict[str, Any], key: str, source: str) -> tuple[str, ...]:
    values = section.get(key)
    if not isinstance(values, list) or not values:
        raise ConfigurationError(source, f"'{key}' must be a non-empty list")
    return tuple(str(v) for v in values)


def parse_reconciliation(data: dict[str, Any], source: str) -> ReconciliationSettings:
    """Parse the ``reconciliation`` section."""
    statuses = _string_tuple(data, "eligible_statuses", source)
    try:
        eligible = frozenset(BookingStatus(s.lower()) for s in statuses)
    except ValueError as e:
        raise ConfigurationError(source, f"unknown booking status: {e}") from e

    return ReconciliationSettings(
        table_name_candidates=_string_tuple(data, "table_name_candidates", source),
        spend_candidates=_string_tuple(data, "spend_candidates", source),
        strip_prefixes=_string_tuple(data, "strip_prefixes", source),
        eligible_statuses=eligible,
    )


def parse_commission(data: dict[str, Any], source: str) -> CommissionSettings:
    """Parse the ``commission`` section."""
    raw = data.get("default_venue_rate")
    try:
        rate = Decimal(str(raw))
    except InvalidOperation as e:
        raise ConfigurationError(source, f"invalid default_venue_rate: {raw!r}") from e
    if not (Decimal("0") <= rate <= Decimal("100")):
        raise ConfigurationError(source, "default_venue_rate must be between 0 and 100")
    return CommissionSettings(default_venue_rate=rate)


def parse_formatting(data: dict[str, Any], source: str) -> FormattingSettings:
    """Parse the ``formatting`` section."""
    currency = str(data.get("default_currency", "")).upper()
    if not CurrencyRegistry.is_valid(currency):
        raise ConfigurationError(source, f"unknown default_currency: {currency!r}")
    return FormattingSettings(default_currency=currency)


def parse_config(data: dict[str, Any], source: str) -> SettlementConfig:
    """Parse a whole settings document into a SettlementConfig."""
    return SettlementConfig(
        reconciliation=parse_reconciliation(_section(data, "reconciliation", source), source),
        commission=parse_commission(_section(data, "commission", source), source),
        formatting=parse_formatting(_section(data, "formatting", source), source),
        source=source,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> SettlementConfig:
    """Load and parse a settings file."""
    return parse_config(load_yaml_file(path), str(path))
