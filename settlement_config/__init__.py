"""
settlement_config -- single public entrypoint for settlement settings.

Responsibility:
    Provides ``get_active_config()``, the only way services obtain
    configuration at runtime.  Engines never import this package; services
    pass configured values to them as parameters.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ConfigurationError`` -- a section or value is missing or invalid.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SETTLEMENT_CONFIG_TRACE`` log entry with the source path and checksum,
    tying a closeout back to the settings that governed it.
"""

from __future__ import annotations

from pathlib import Path

from settlement_config.loader import load_config
from settlement_config.schema import (
    CommissionSettings,
    FormattingSettings,
    ReconciliationSettings,
    SettlementConfig,
)
from settlement_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "settlement.yaml"


def get_active_config(config_path: Path | None = None) -> SettlementConfig:
    """Load the settlement settings.

    Args:
        config_path: Override path to a settings YAML file.  Defaults to
            ``settlement_config/defaults/settlement.yaml``.

    Returns:
        Frozen SettlementConfig.
    """
    config = load_config(config_path or DEFAULT_CONFIG_PATH)

    _logger.info("SETTLEMENT_CONFIG_TRACE", extra={
        "trace_type": "SETTLEMENT_CONFIG_TRACE",
        "source": config.source,
        "checksum": config.checksum,
        "default_currency": config.formatting.default_currency,
        "default_venue_rate": str(config.commission.default_venue_rate),
    })

    return config


__all__ = [
    "CommissionSettings",
    "DEFAULT_CONFIG_PATH",
    "FormattingSettings",
    "ReconciliationSettings",
    "SettlementConfig",
    "get_active_config",
]
