"""
Shared test helpers: collaborator fakes and stock record builders.

Imported by conftest.py for fixtures and directly by test modules that
need to build several records.
"""

import asyncio
from collections.abc import Sequence
from decimal import Decimal

from stock_engines.serial import SerialRange
from stock_kernel.domain.stock import StockAttributes, StockRecord
from stock_kernel.domain.values import PackingUnit, SerialNumberManagementMode
from stock_services.ports import AllocationRecord, NotificationKind, StockFilter

UN = PackingUnit.of("UN", 0)
BOX = PackingUnit.of("BOX", 2)
KG = PackingUnit.of("KG", 3)


class FakeRecordFetch:
    """
    RecordFetch backed by plain dicts.

    serials maps stock_id -> ordered serial list; count_serials_in_range
    counts the serials of that list that fall in the range unless
    count_override is set.  Set fail_with to make every call raise.  Set
    gate to an asyncio.Event to hold calls until the test releases them.
    """

    def __init__(self):
        self.records: list[StockRecord] = []
        self.allocations: dict[tuple[str, str], list[AllocationRecord]] = {}
        self.serials: dict[str, list[str]] = {}
        self.count_override: int | None = None
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch_stock_records(self, stock_filter: StockFilter) -> Sequence[StockRecord]:
        await self._enter("fetch_stock_records")
        return [
            r for r in self.records
            if r.site == stock_filter.site and r.product == stock_filter.product
        ]

    async def fetch_allocations(self, site: str, product: str) -> Sequence[AllocationRecord]:
        await self._enter("fetch_allocations")
        return list(self.allocations.get((site, product), []))

    async def count_serials_in_range(
        self,
        product: str,
        site: str,
        stock_id: str,
        starting_serial_number: str,
        ending_serial_number: str,
    ) -> int:
        await self._enter("count_serials_in_range")
        if self.count_override is not None:
            return self.count_override
        serial_range = SerialRange(starting_serial_number, ending_serial_number)
        return sum(1 for s in self.serials.get(stock_id, []) if serial_range.contains(s))

    async def fetch_serial_numbers(self, product: str, site: str, stock_id: str) -> Sequence[str]:
        await self._enter("fetch_serial_numbers")
        return list(self.serials.get(stock_id, []))


class RecordingNotifier:
    """Notifier that keeps every report."""

    def __init__(self):
        self.reports: list[tuple[NotificationKind, str]] = []

    def report(self, kind: NotificationKind, message: str) -> None:
        self.reports.append((kind, message))

    @property
    def messages(self) -> list[str]:
        return [message for _, message in self.reports]


class FailingKeyValueStore:
    """KeyValueStore whose every call raises."""

    def get(self, key: str) -> str | None:
        raise ConnectionError("store unavailable")

    def set(self, key: str, value: str) -> None:
        raise ConnectionError("store unavailable")

    def remove(self, key: str) -> None:
        raise ConnectionError("store unavailable")


def make_stock(
    stock_id: str = "S1",
    quantity: str | int = "100",
    allocated: str | int = "0",
    factor: str | int = "1",
    mode: SerialNumberManagementMode = SerialNumberManagementMode.NOT_MANAGED,
    product: str = "P1",
    site: str = "SITE1",
    packing_unit: PackingUnit = UN,
    stock_unit: PackingUnit = UN,
    serial_number: str | None = None,
    lot: str | None = "LOT1",
    location: str | None = "A-01",
) -> StockRecord:
    return StockRecord(
        stock_id=stock_id,
        product=product,
        site=site,
        quantity_in_stock_unit=Decimal(str(quantity)),
        packing_unit=packing_unit,
        stock_unit=stock_unit,
        conversion_factor=Decimal(str(factor)),
        allocated_quantity=Decimal(str(allocated)),
        serial_number_management_mode=mode,
        attributes=StockAttributes(
            location=location,
            lot=lot,
            status="A",
            serial_number=serial_number,
        ),
    )


def make_global_stock(
    stock_id: str = "G1",
    quantity: str | int = "10",
    serial_number: str = "A100",
    product: str = "SERIAL-P",
) -> StockRecord:
    """Stock record whose serials are tracked as one contiguous range."""
    return make_stock(
        stock_id=stock_id,
        quantity=quantity,
        mode=SerialNumberManagementMode.GLOBAL_RECEIVED_ISSUED,
        product=product,
        serial_number=serial_number,
    )
