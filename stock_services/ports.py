"""
stock_services.ports -- Contracts of the external collaborators.

Responsibility:
    Declares what the allocation core needs from the outside world: a
    record-fetch service (stock records, allocations, serial counts), a
    key/value session store and a fire-and-forget notifier.  Concrete
    adapters live in key_value_store.py and notifier.py; the record-fetch
    service is supplied by the host application.

Architecture position:
    Services layer.  Imports only stock_kernel domain types.

Invariants enforced:
    - RecordFetch lookups are coroutines; everything else in the core is
      synchronous.
    - KeyValueStore values are opaque strings read and written wholesale.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol, runtime_checkable

from stock_kernel.domain.stock import StockRecord
from stock_kernel.domain.values import as_decimal


@dataclass(frozen=True)
class AllocationRecord:
    """A server-side allocation of a serial block to another document."""

    serial_number: str
    quantity_in_stock_unit: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "quantity_in_stock_unit",
            as_decimal(self.quantity_in_stock_unit, "quantity_in_stock_unit"),
        )


@dataclass(frozen=True)
class StockFilter:
    """
    Criteria for fetching stock records.

    Composition of the filter is owned by the caller; the core passes it
    through untouched.
    """

    site: str
    product: str
    location: str | None = None
    lot: str | None = None
    sublot: str | None = None
    serial_number: str | None = None
    status: str | None = None
    packing_unit: str | None = None
    identifier1: str | None = None
    identifier2: str | None = None
    stock_custom_field1: str | None = None
    stock_custom_field2: str | None = None


class NotificationKind(str, Enum):
    """Severity of an operator notification."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


@runtime_checkable
class RecordFetch(Protocol):
    """Server lookups. Any exception raised is treated as a failed lookup."""

    async def fetch_stock_records(self, stock_filter: StockFilter) -> Sequence[StockRecord]:
        ...

    async def fetch_allocations(self, site: str, product: str) -> Sequence[AllocationRecord]:
        """Committed allocations of the product at the site."""
        ...

    async def count_serials_in_range(
        self,
        product: str,
        site: str,
        stock_id: str,
        starting_serial_number: str,
        ending_serial_number: str,
    ) -> int:
        """Number of serials that physically exist between start and end inclusive."""
        ...

    async def fetch_serial_numbers(
        self, product: str, site: str, stock_id: str,
    ) -> Sequence[str]:
        """Serials held by the stock record, in ascending order."""
        ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Session storage holding one opaque blob per key."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


@runtime_checkable
class Notifier(Protocol):
    """Operator-facing surface. report() must not block on acknowledgment."""

    def report(self, kind: NotificationKind, message: str) -> None:
        ...
