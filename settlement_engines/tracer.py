"""
settlement_engines.tracer -- SETTLEMENT_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` wraps a pure engine entry point and emits one
    structured log record per call: engine name and version, a SHA-256
    fingerprint of the selected inputs, the outcome, and duration.  An
    optional ``summarize`` callable adds headline numbers from the result
    (matched count, final payout, ...) so a closeout can be audited from
    the logs alone.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; never touches inputs or results.

Invariants enforced:
    - Fingerprints are deterministic: dict keys are sorted, dataclasses are
      expanded field by field, Decimals keep their exact digits.  The hash
      is SHA-256 truncated to 16 hex chars.
    - Positional and keyword calls of the same inputs fingerprint equally.

Failure modes:
    - A failed call is traced with ``outcome="error"`` and the exception's
      ``code`` (if any), then the exception propagates unchanged.

Usage:
    @traced_engine(
        "payout", "1.0",
        fingerprint_fields=("contract", "effective_checkins_count"),
        summarize=lambda b: {"final_payout": b.final_payout},
    )
    def calculate_promoter_payout(contract, effective_checkins_count):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from settlement_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

TRACE_TYPE = "SETTLEMENT_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    """Stable text form of a value for fingerprinting."""
    if value is None:
        return "null"
    # bool before int: True is an int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return _canonicalize(value.value)
    if isinstance(value, (str, int, float, Decimal)):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return type(value).__name__ + _canonicalize(fields)
    if isinstance(value, Mapping):
        pairs = sorted((str(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-char SHA-256 prefix over the named arguments; absent ones hash as null."""
    canonical = "|".join(
        f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
    summarize: Callable[[Any], Mapping[str, Any]] | None = None,
) -> Callable:
    """Decorate an engine entry point with SETTLEMENT_ENGINE_TRACE logging.

    Args:
        engine_name: Engine identifier (e.g. "reconciliation").
        engine_version: Engine version (e.g. "1.0").
        fingerprint_fields: Parameter names hashed into the input
            fingerprint.  Resolved against the signature, so positional
            arguments count too.
        summarize: Optional ``result -> dict`` merged into the trace record
            of a successful call.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            record: dict[str, Any] = {
                "trace_type": TRACE_TYPE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
                "function": func.__qualname__,
            }

            t0 = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                record.update(
                    outcome="error",
                    error_type=type(exc).__name__,
                    error_code=getattr(exc, "code", None),
                    duration_ms=round((time.monotonic() - t0) * 1000, 2),
                )
                _logger.info(TRACE_TYPE, extra=record)
                raise

            record.update(
                outcome="ok",
                duration_ms=round((time.monotonic() - t0) * 1000, 2),
            )
            if summarize is not None:
                record.update(summarize(result))
            _logger.info(TRACE_TYPE, extra=record)
            return result

        return wrapper

    return decorator
