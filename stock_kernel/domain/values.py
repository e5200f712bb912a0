"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the small value types every other module speaks in: the unit a
    quantity is expressed in (PackingUnit), the serial management mode of a
    product, and the Decimal coercion used at every boundary.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module. No outward dependencies.

Invariants enforced:
    - Quantities are Decimal, never float. Floats arriving from JSON or UI
      glue are converted through ``str`` so 0.1 stays 0.1.
    - A unit's number_of_decimals is a non-negative int.

Failure modes:
    - ValueError on construction with an empty unit code, negative scale,
      or a value that is not a number.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any


def as_decimal(value: Any, name: str = "quantity") -> Decimal:
    """
    Coerce a boundary value to Decimal.

    Preconditions:
        - value is a Decimal, int, str, or float.
    Postconditions:
        - Returns a finite Decimal. Floats go through ``str`` first.
    Raises:
        ValueError: if the value is None, not numeric, or not finite.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValueError(f"{name} must be a number, got {value!r}")
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"{name} must be a number, got {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{name} must be finite, got {value!r}")
    return result


class SerialNumberManagementMode(str, Enum):
    """How a product's serial numbers are tracked."""

    NOT_MANAGED = "notManaged"
    ISSUED = "issued"  # Serial captured on issue only
    RECEIVED_ISSUED = "receivedIssued"  # One serial per stock record
    GLOBAL_RECEIVED_ISSUED = "globalReceivedIssued"  # Contiguous block per record

    @property
    def is_serial_tracked(self) -> bool:
        return self in (
            SerialNumberManagementMode.RECEIVED_ISSUED,
            SerialNumberManagementMode.GLOBAL_RECEIVED_ISSUED,
        )

    @property
    def tracks_ranges(self) -> bool:
        return self is SerialNumberManagementMode.GLOBAL_RECEIVED_ISSUED


@dataclass(frozen=True, slots=True)
class PackingUnit:
    """
    Unit of measure with its declared decimal scale.

    Contract:
        Pairs a unit code with the number of decimals quantities in that unit
        are displayed and committed at.

    Guarantees:
        - code is stripped and non-empty
        - number_of_decimals >= 0

    Non-goals:
        - Does NOT know its conversion factor; factors belong to the stock
          record or draft line that uses the unit.
    """

    code: str
    number_of_decimals: int = 0

    def __post_init__(self) -> None:
        if not self.code or not str(self.code).strip():
            raise ValueError("Unit code is required")
        object.__setattr__(self, "code", str(self.code).strip())
        if int(self.number_of_decimals) < 0:
            raise ValueError(
                f"number_of_decimals cannot be negative, got {self.number_of_decimals}"
            )
        object.__setattr__(self, "number_of_decimals", int(self.number_of_decimals))

    @classmethod
    def of(cls, code: str, number_of_decimals: int = 0) -> PackingUnit:
        """Factory method for creating a PackingUnit."""
        return cls(code=code, number_of_decimals=number_of_decimals)

    def __str__(self) -> str:
        return self.code
