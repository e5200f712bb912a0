"""
Draft lines and details -- the transaction lines a user is building.

Responsibility:
    Immutable value objects for one destination line (DraftLine) and the
    quantity slices committed to it (DraftDetail). Stores and reducers
    replace them wholesale; nothing mutates a line in place.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Line identity is (stock_id, line_number) -- see DraftLineKey.
    - A detail's quantity_in_stock_unit is fixed when the detail is created.
      DraftLine.repacked() changes the line's unit and factor but never
      touches existing details.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import NamedTuple

from stock_kernel.domain.stock import StockAttributes
from stock_kernel.domain.values import PackingUnit, as_decimal
from stock_kernel.exceptions import InvalidConversionFactorError


class DraftLineKey(NamedTuple):
    """Identity of a draft line."""

    stock_id: str
    line_number: int


@dataclass(frozen=True, slots=True)
class DraftDetail:
    """
    One committed slice of a draft line.

    serial_number is the starting serial of the slice. For
    globalReceivedIssued products ending_serial_number closes the range;
    for other products it is None.
    """

    quantity_in_packing_unit: Decimal
    quantity_in_stock_unit: Decimal
    packing_unit: str
    conversion_factor: Decimal
    stock_unit: str
    serial_number: str | None = None
    ending_serial_number: str | None = None
    attributes: StockAttributes = field(default_factory=StockAttributes)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "quantity_in_packing_unit",
            as_decimal(self.quantity_in_packing_unit, "quantity_in_packing_unit"),
        )
        object.__setattr__(
            self, "quantity_in_stock_unit",
            as_decimal(self.quantity_in_stock_unit, "quantity_in_stock_unit"),
        )
        object.__setattr__(
            self, "conversion_factor",
            as_decimal(self.conversion_factor, "conversion_factor"),
        )

    def matches(
        self,
        attributes: StockAttributes,
        packing_unit: str,
        conversion_factor: Decimal,
        ignore_serial: bool = False,
    ) -> bool:
        """True when this detail describes the given physical slice."""
        return (
            self.packing_unit == packing_unit
            and self.conversion_factor == conversion_factor
            and self.attributes.matches(attributes, ignore_serial=ignore_serial)
        )


@dataclass(frozen=True, slots=True)
class DraftLine:
    """
    One destination transaction line for a stock record.

    Contract:
        lineNumber distinguishes several destination lines fed by the same
        stock record (e.g. different packing units).

    Guarantees:
        - conversion_factor > 0
        - details is an ordered tuple; order of insertion is preserved
    """

    stock_id: str
    line_number: int
    product: str
    packing_unit: PackingUnit
    conversion_factor: Decimal
    details: tuple[DraftDetail, ...] = ()

    def __post_init__(self) -> None:
        factor = as_decimal(self.conversion_factor, "conversion_factor")
        if factor <= 0:
            raise InvalidConversionFactorError(factor)
        object.__setattr__(self, "conversion_factor", factor)
        object.__setattr__(self, "details", tuple(self.details))

    @property
    def key(self) -> DraftLineKey:
        return DraftLineKey(self.stock_id, self.line_number)

    @property
    def quantity_in_stock_unit(self) -> Decimal:
        """Sum of the details' stock-unit quantities."""
        return sum((d.quantity_in_stock_unit for d in self.details), Decimal("0"))

    @property
    def quantity_in_packing_unit(self) -> Decimal:
        """Line total in the line's current packing unit, full precision."""
        return self.quantity_in_stock_unit / self.conversion_factor

    def with_details(self, details: tuple[DraftDetail, ...]) -> DraftLine:
        return replace(self, details=tuple(details))

    def repacked(self, packing_unit: PackingUnit, conversion_factor: Decimal) -> DraftLine:
        """Same line and details under a different packing unit."""
        return replace(
            self, packing_unit=packing_unit, conversion_factor=conversion_factor
        )
