"""
StockRecord -- a physical stock position as fetched from the server.

Responsibility:
    Immutable snapshot of one stock line (product at a site/location/lot/
    serial/status combination) for the duration of a draft session.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - conversion_factor > 0 (InvalidConversionFactorError otherwise).
    - quantity_in_stock_unit and allocated_quantity are non-negative
      Decimals.

Non-goals:
    - Residual quantity and quantity-to-move are NOT stored here; they are
      derived by QuantityLedger from the current draft lines.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from stock_kernel.domain.values import (
    PackingUnit,
    SerialNumberManagementMode,
    as_decimal,
)
from stock_kernel.exceptions import InvalidConversionFactorError


@dataclass(frozen=True, slots=True)
class StockAttributes:
    """
    Descriptive attributes copied onto a draft detail when it is created.

    Two details describe the same physical slice when all of these match
    (serial excepted for globalReceivedIssued products, whose details carry
    a range start instead).
    """

    location: str | None = None
    license_plate_number: str | None = None
    lot: str | None = None
    sublot: str | None = None
    status: str | None = None
    serial_number: str | None = None
    identifier1: str | None = None
    identifier2: str | None = None
    stock_custom_field1: str | None = None
    stock_custom_field2: str | None = None

    def matches(self, other: StockAttributes, ignore_serial: bool = False) -> bool:
        """Attribute-wise equality, optionally ignoring the serial number."""
        if ignore_serial:
            return (
                self.location == other.location
                and self.license_plate_number == other.license_plate_number
                and self.lot == other.lot
                and self.sublot == other.sublot
                and self.status == other.status
                and self.identifier1 == other.identifier1
                and self.identifier2 == other.identifier2
                and self.stock_custom_field1 == other.stock_custom_field1
                and self.stock_custom_field2 == other.stock_custom_field2
            )
        return self == other

    def to_dict(self) -> dict[str, str | None]:
        return {
            "location": self.location,
            "license_plate_number": self.license_plate_number,
            "lot": self.lot,
            "sublot": self.sublot,
            "status": self.status,
            "serial_number": self.serial_number,
            "identifier1": self.identifier1,
            "identifier2": self.identifier2,
            "stock_custom_field1": self.stock_custom_field1,
            "stock_custom_field2": self.stock_custom_field2,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StockAttributes:
        return cls(**{k: data.get(k) for k in cls.__slots__})


@dataclass(frozen=True, slots=True)
class StockRecord:
    """
    Physical stock position.

    Contract:
        stock_id is unique per site/product/lot/serial/location/etc.
        quantity_in_stock_unit is the on-hand quantity in the product's base
        stock unit; allocated_quantity is already committed to unrelated
        documents.

    Guarantees:
        - Immutable and hashable
        - conversion_factor > 0
        - available_in_stock_unit == quantity_in_stock_unit - allocated_quantity
    """

    stock_id: str
    product: str
    site: str
    quantity_in_stock_unit: Decimal
    packing_unit: PackingUnit
    stock_unit: PackingUnit
    conversion_factor: Decimal = Decimal("1")
    allocated_quantity: Decimal = Decimal("0")
    serial_number_management_mode: SerialNumberManagementMode = (
        SerialNumberManagementMode.NOT_MANAGED
    )
    attributes: StockAttributes = field(default_factory=StockAttributes)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "quantity_in_stock_unit",
            as_decimal(self.quantity_in_stock_unit, "quantity_in_stock_unit"),
        )
        object.__setattr__(
            self, "allocated_quantity",
            as_decimal(self.allocated_quantity, "allocated_quantity"),
        )
        factor = as_decimal(self.conversion_factor, "conversion_factor")
        if factor <= 0:
            raise InvalidConversionFactorError(factor)
        object.__setattr__(self, "conversion_factor", factor)
        if isinstance(self.serial_number_management_mode, str):
            object.__setattr__(
                self, "serial_number_management_mode",
                SerialNumberManagementMode(self.serial_number_management_mode),
            )
        if self.quantity_in_stock_unit < 0:
            raise ValueError(
                f"quantity_in_stock_unit cannot be negative, got {self.quantity_in_stock_unit}"
            )
        if self.allocated_quantity < 0:
            raise ValueError(
                f"allocated_quantity cannot be negative, got {self.allocated_quantity}"
            )

    @property
    def available_in_stock_unit(self) -> Decimal:
        """On-hand quantity not committed to other documents."""
        return self.quantity_in_stock_unit - self.allocated_quantity

    @property
    def quantity_in_packing_unit(self) -> Decimal:
        """On-hand quantity in the record's own packing unit, full precision."""
        return self.quantity_in_stock_unit / self.conversion_factor

    @property
    def serial_number(self) -> str | None:
        return self.attributes.serial_number
