"""
Module: stock_engines.serial
Responsibility:
    Serial-number arithmetic for products whose stock records carry a
    contiguous block of serials: ending serial from a start and a quantity,
    the next serial, range overlap and splitting a serial list into
    contiguous runs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel.

Invariants enforced:
    - A serial is a non-numeric prefix followed by a numeric suffix (the
      trailing run of decimal digits).  Serials without a suffix are not
      incrementable and raise InvalidSerialFormatError.
    - Rendering keeps the suffix's original width (left-padded with zeros)
      and widens it when the number outgrows it: SN00099 + 5 -> SN00103,
      99 + 1 -> 100.  Never truncates.
    - SerialRange.quantity == end suffix - start suffix + 1.
    - ranges_overlap is symmetric; ranges with different prefixes never
      overlap; malformed ranges raise rather than answer False.

Failure modes:
    - InvalidSerialFormatError when a serial has no numeric suffix, or a
      range's ends have different prefixes or are reversed.
    - ValueError when a quantity is not a whole number >= 1.

Usage:
    from stock_engines.serial import ending_serial_number, ranges_overlap

    ending_serial_number("SN00042", 5)                       # "SN00046"
    ranges_overlap("A100", "A109", "A105", "A109")           # True
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from stock_engines.tracer import traced_engine
from stock_kernel.domain.values import as_decimal
from stock_kernel.exceptions import InvalidSerialFormatError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.serial")

_NUMERIC_SUFFIX = re.compile(r"(\d+)$")


@dataclass(frozen=True)
class SerialParts:
    """A serial split into its prefix and numeric suffix."""

    prefix: str
    number: int
    width: int

    def render(self, number: int) -> str:
        return f"{self.prefix}{str(number).zfill(self.width)}"


def split_serial(serial_number: str | None) -> SerialParts:
    """
    Split a serial into prefix and numeric suffix.

    Raises:
        InvalidSerialFormatError: empty serial or no trailing digits.
    """
    if not serial_number:
        raise InvalidSerialFormatError(serial_number, "serial number is empty")
    match = _NUMERIC_SUFFIX.search(serial_number)
    if match is None:
        raise InvalidSerialFormatError(serial_number, "no numeric suffix")
    digits = match.group(1)
    return SerialParts(
        prefix=serial_number[: match.start()],
        number=int(digits),
        width=len(digits),
    )


def _serial_quantity(quantity: Decimal | int | str) -> int:
    value = as_decimal(quantity)
    if value != value.to_integral_value() or value < 1:
        raise ValueError(f"Serial quantity must be a whole number >= 1, got {quantity}")
    return int(value)


@traced_engine("serial_range", "1.0", fingerprint_fields=("starting_serial_number", "quantity"))
def ending_serial_number(starting_serial_number: str, quantity: Decimal | int | str) -> str:
    """
    Ending serial of the range that starts at starting_serial_number and
    holds quantity serials.

    A quantity of 1 returns the starting serial unchanged.
    """
    parts = split_serial(starting_serial_number)
    count = _serial_quantity(quantity)
    if count == 1:
        return starting_serial_number
    return parts.render(parts.number + count - 1)


def next_serial_number(serial_number: str) -> str:
    """The serial immediately after serial_number."""
    parts = split_serial(serial_number)
    return parts.render(parts.number + 1)


@dataclass(frozen=True)
class SerialRange:
    """
    An inclusive serial range.

    Contract:
        Derived from a detail (start + quantity, or start + end); never
        stored on its own.

    Guarantees:
        - start and end share a prefix
        - end's suffix >= start's suffix
        - quantity is the inclusive count of suffixes
    """

    start: str
    end: str

    def __post_init__(self) -> None:
        start = split_serial(self.start)
        end = split_serial(self.end)
        if start.prefix != end.prefix:
            raise InvalidSerialFormatError(
                self.end,
                f"prefix differs from starting serial {self.start!r}",
            )
        if end.number < start.number:
            raise InvalidSerialFormatError(
                self.end,
                f"ending serial precedes starting serial {self.start!r}",
            )

    @classmethod
    def from_start(cls, start: str, quantity: Decimal | int | str) -> SerialRange:
        return cls(start=start, end=ending_serial_number(start, quantity))

    @property
    def prefix(self) -> str:
        return split_serial(self.start).prefix

    @property
    def quantity(self) -> int:
        return split_serial(self.end).number - split_serial(self.start).number + 1

    def overlaps(self, other: SerialRange) -> bool:
        a_start, a_end = split_serial(self.start), split_serial(self.end)
        b_start, b_end = split_serial(other.start), split_serial(other.end)
        if a_start.prefix != b_start.prefix:
            return False
        return a_start.number <= b_end.number and b_start.number <= a_end.number

    def contains(self, serial_number: str) -> bool:
        parts = split_serial(serial_number)
        start, end = split_serial(self.start), split_serial(self.end)
        return parts.prefix == start.prefix and start.number <= parts.number <= end.number

    def __str__(self) -> str:
        if self.start == self.end:
            return self.start
        return f"{self.start}..{self.end}"


@traced_engine("serial_range", "1.0", fingerprint_fields=("a_start", "a_end", "b_start", "b_end"))
def ranges_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    """
    True when the inclusive ranges [a_start, a_end] and [b_start, b_end]
    share at least one serial.

    Raises:
        InvalidSerialFormatError: either range is malformed.
    """
    return SerialRange(a_start, a_end).overlaps(SerialRange(b_start, b_end))


def contiguous_runs(serial_numbers: Iterable[str]) -> list[SerialRange]:
    """
    Group an ordered serial list into maximal contiguous runs.

    A serial continues the current run when it equals the run end's
    next_serial_number; anything else starts a new run.  Order is kept.
    """
    runs: list[SerialRange] = []
    run_start: str | None = None
    run_end: str | None = None
    for serial in serial_numbers:
        if run_end is not None and serial == next_serial_number(run_end):
            run_end = serial
            continue
        if run_start is not None:
            runs.append(SerialRange(run_start, run_end))
        split_serial(serial)
        run_start = run_end = serial
    if run_start is not None:
        runs.append(SerialRange(run_start, run_end))

    logger.debug("serial_runs_computed", extra={"run_count": len(runs)})
    return runs
