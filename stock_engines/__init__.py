"""
Module: stock_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    stock_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel (and sibling engine modules).
    MUST NOT import stock_services or stock_config.

Invariants enforced:
    - Decimal-only arithmetic; floats are coerced through str at the
      boundary.
    - Determinism: identical inputs always produce identical outputs.

Failure modes:
    - StockKernelError subclasses propagated from individual engines on
      invalid input (InvalidSerialFormatError, InvalidConversionFactorError,
      NegativeResidualError).

Usage:
    from stock_engines import QuantityLedger, ending_serial_number, to_stock_unit
"""

from stock_engines.ledger import QuantityLedger, detail_serial_range
from stock_engines.packing import (
    convert_packing,
    exact_packing_quantity,
    factor_scale,
    fits_scale,
    number_of_decimals,
    round_quantity,
    to_packing_unit,
    to_stock_unit,
)
from stock_engines.serial import (
    SerialParts,
    SerialRange,
    contiguous_runs,
    ending_serial_number,
    next_serial_number,
    ranges_overlap,
    split_serial,
)
from stock_engines.tracer import traced_engine

__all__ = [
    "QuantityLedger",
    "SerialParts",
    "SerialRange",
    "contiguous_runs",
    "convert_packing",
    "detail_serial_range",
    "ending_serial_number",
    "exact_packing_quantity",
    "factor_scale",
    "fits_scale",
    "next_serial_number",
    "number_of_decimals",
    "ranges_overlap",
    "round_quantity",
    "split_serial",
    "to_packing_unit",
    "to_stock_unit",
    "traced_engine",
]
