"""
portfolio_engines.tracer -- Engine invocation tracer emitting PORTFOLIO_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps a pure synthesis engine call with one structured
    log record: engine name, engine version, a deterministic fingerprint of
    selected inputs, the number of records produced and the duration.

Architecture position:
    Engines -- support for the pure layer.  Emits a log record only and
    never mutates inputs.  Uses the plain ``logging`` namespace
    ``portfolio_kernel.engines.tracer`` so it inherits the kernel's
    structured handler without importing kernel internals.

Invariants enforced:
    - Fingerprints are stable: dict keys are sorted, dataclasses are
      flattened field by field, Decimals keep their exact string form.
      SHA-256, truncated to 16 hex characters.

Failure modes:
    - A fingerprint field missing from the call is recorded as "null".
    - Exceptions raised by the engine propagate unchanged; no trace record
      is written for a failed call.

Usage:
    @traced_engine("rounds", "1.0", fingerprint_fields=("company",))
    def synthesize(self, company): ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

_logger = logging.getLogger("portfolio_kernel.engines.tracer")

TRACE_TYPE = "PORTFOLIO_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    """Stable string form of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (bool, int, float, str)):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return type(value).__name__ + _canonicalize(fields)
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    # Decimal, UUID, datetime all have exact str() forms.
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """Deterministic 16-hex-char SHA-256 prefix over the named arguments."""
    parts = [
        f"{name}={_canonicalize(arguments.get(name))}"
        for name in fingerprint_fields
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits PORTFOLIO_ENGINE_TRACE for pure engine calls.

    Fingerprint fields may be passed positionally or by keyword; they are
    resolved against the wrapped function's signature.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(
                    fingerprint_fields, dict(bound.arguments),
                )

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            extra: dict[str, Any] = {
                "trace_type": TRACE_TYPE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fp,
                "duration_ms": duration_ms,
                "function": func.__qualname__,
            }
            if isinstance(result, (tuple, list)):
                extra["record_count"] = len(result)
            _logger.info(TRACE_TYPE, extra=extra)
            return result

        return wrapper

    return decorator
