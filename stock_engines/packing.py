"""
Module: stock_engines.packing
Responsibility:
    Convert quantities between a packing unit and the product's stock unit,
    and round them at the target unit's declared scale.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel.

Invariants enforced:
    - Decimal-only arithmetic; conversions keep full precision.
    - Rounding happens only when a caller asks for it (display or commit),
      ROUND_HALF_UP (half away from zero) at the target unit's
      number_of_decimals -- never at the factor's scale.
    - factor > 0 (InvalidConversionFactorError otherwise).

Failure modes:
    - InvalidConversionFactorError on zero or negative factors.
    - ValueError on non-numeric quantities.

Usage:
    from stock_engines.packing import to_packing_unit, round_quantity

    qty = to_packing_unit(Decimal("100"), Decimal("12"))   # 8.333...
    round_quantity(qty, box_unit)                          # 8.33 for a 2-dp unit
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from stock_kernel.domain.values import PackingUnit, as_decimal
from stock_kernel.exceptions import InvalidConversionFactorError


def _factor(value: Decimal | int | str) -> Decimal:
    factor = as_decimal(value, "conversion_factor")
    if factor <= 0:
        raise InvalidConversionFactorError(factor)
    return factor


def to_stock_unit(quantity_in_packing_unit: Decimal | int | str,
                  factor: Decimal | int | str) -> Decimal:
    """Packing-unit quantity -> stock-unit quantity (q * factor)."""
    return as_decimal(quantity_in_packing_unit) * _factor(factor)


def to_packing_unit(quantity_in_stock_unit: Decimal | int | str,
                    factor: Decimal | int | str) -> Decimal:
    """Stock-unit quantity -> packing-unit quantity (q / factor)."""
    return as_decimal(quantity_in_stock_unit) / _factor(factor)


def convert_packing(quantity: Decimal | int | str,
                    from_factor: Decimal | int | str,
                    to_factor: Decimal | int | str) -> Decimal:
    """Re-express a packing-unit quantity in another packing unit of the same product."""
    from_f = _factor(from_factor)
    to_f = _factor(to_factor)
    if from_f == to_f:
        return as_decimal(quantity)
    return as_decimal(quantity) * from_f / to_f


def round_quantity(
    quantity: Decimal,
    unit: PackingUnit | int,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """
    Round at the unit's declared scale, half away from zero by default.

    Args:
        quantity: Full-precision quantity.
        unit: Target unit, or its number of decimals directly.
        rounding: decimal rounding mode; ROUND_DOWN when the result must
            not exceed the input (default slices).
    """
    scale = unit.number_of_decimals if isinstance(unit, PackingUnit) else int(unit)
    exponent = Decimal(1).scaleb(-scale)
    return as_decimal(quantity).quantize(exponent, rounding=rounding)


def fits_scale(quantity: Decimal | int | str, unit: PackingUnit | int) -> bool:
    """True when quantity has no digits beyond the unit's declared scale."""
    value = as_decimal(quantity)
    return round_quantity(value, unit) == value


def exact_packing_quantity(
    quantity_in_stock_unit: Decimal | int | str,
    factor: Decimal | int | str,
    packing_unit: PackingUnit,
) -> Decimal | None:
    """
    The packing-unit quantity that converts back to exactly
    quantity_in_stock_unit, written at the packing unit's scale.

    None when no such quantity exists: 10 UN at a factor of 3 cannot be
    written as BOX with 2 decimals (3.33 x 3 = 9.99).
    """
    stock_quantity = as_decimal(quantity_in_stock_unit)
    candidate = round_quantity(to_packing_unit(stock_quantity, factor), packing_unit)
    if to_stock_unit(candidate, factor) != stock_quantity:
        return None
    return candidate


def factor_scale(factor: Decimal | int | str) -> int:
    """
    Number of decimals used when editing a conversion factor.

    Equals the digit count after the decimal point of the factor as written,
    trailing zeros dropped: 0.001 -> 3, 12 -> 0, 2.50 -> 1.
    """
    normalized = as_decimal(factor, "conversion_factor").normalize()
    text = format(normalized, "f")
    if "." not in text:
        return 0
    return len(text.split(".", 1)[1])


def number_of_decimals(units: Iterable[PackingUnit] | None, code: str | None) -> int:
    """Declared scale of the unit with this code; 0 when unknown."""
    if not code or units is None:
        return 0
    for unit in units:
        if unit.code == code:
            return unit.number_of_decimals
    return 0
