"""
stock_engines.tracer -- STOCK_ENGINE_TRACE records for engine calls.

``@traced_engine`` logs one record per call of a pure engine function:

    engine_name, engine_version, function, input_fingerprint,
    duration_ms, outcome ("ok" or "error") and, on failure, error_code.

The fingerprint is a 16-hex prefix of a SHA-256 over the named arguments,
so two calls with the same serial numbers and quantities share it no matter
whether they were passed positionally or by keyword.  StockRecord and
SerialRange arguments are fingerprinted by their fields, Decimals by value
("10" and "10.00" hash alike) and enums by value.

Kernel errors raised by the engine are traced and then re-raised unchanged.

Usage:
    @traced_engine("serial_range", "1.0", fingerprint_fields=("starting_serial_number",))
    def ending_serial_number(starting_serial_number, quantity):
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

from stock_kernel.exceptions import StockKernelError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")


def _canonical(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return _canonical(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value.normalize(), "f") if value.is_finite() else str(value)
    if isinstance(value, (int, float, str)):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return f"{type(value).__name__}{_canonical(fields)}"
    if isinstance(value, Mapping):
        return "{" + ",".join(f"{k}:{_canonical(v)}" for k, v in sorted(value.items())) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonical(v) for v in value) + "]"
    return repr(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex fingerprint of the listed arguments; absent ones count as null."""
    canonical = "|".join(f"{name}={_canonical(arguments.get(name))}" for name in fingerprint_fields)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorate a pure engine function so each call emits STOCK_ENGINE_TRACE."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        def fingerprint(args: tuple, kwargs: dict) -> str:
            if not fingerprint_fields:
                return ""
            try:
                bound = signature.bind(*args, **kwargs)
            except TypeError:
                # Let the call itself raise the argument error
                return compute_input_fingerprint(fingerprint_fields, kwargs)
            bound.apply_defaults()
            return compute_input_fingerprint(fingerprint_fields, bound.arguments)

        def emit(fp: str, started: float, error: StockKernelError | None) -> None:
            extra = {
                "trace_type": "STOCK_ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "function": func.__qualname__,
                "input_fingerprint": fp,
                "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                "outcome": "ok" if error is None else "error",
            }
            if error is not None:
                extra["error_code"] = error.code
            logger.info("STOCK_ENGINE_TRACE", extra=extra)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = fingerprint(args, kwargs)
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except StockKernelError as exc:
                emit(fp, started, exc)
                raise
            emit(fp, started, None)
            return result

        wrapper.engine_name = engine_name  # type: ignore[attr-defined]
        wrapper.engine_version = engine_version  # type: ignore[attr-defined]
        return wrapper

    return decorator
