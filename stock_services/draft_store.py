"""
stock_services.draft_store -- Ordered, immutable collection of draft lines.

Responsibility:
    Holds the draft transaction lines of one session keyed by
    (stock_id, line_number), with add/update/remove operations.  Every
    operation returns a new store; the old one is left untouched, so a
    reader never sees a half-applied change.

Architecture position:
    Services layer.  Pure data structure over stock_kernel domain values;
    no I/O.  Acceptance rules live in AllocationValidator, not here.

Invariants enforced:
    - At most one line per (stock_id, line_number).
    - Lines keep insertion order; details keep insertion order.
    - repack_line never rescales committed details.

Failure modes:
    - DraftLineNotFoundError when an operation names an absent line.
    - DraftDetailNotFoundError when a detail index is out of range.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from decimal import Decimal

from stock_kernel.domain.drafts import DraftDetail, DraftLine, DraftLineKey
from stock_kernel.domain.values import PackingUnit
from stock_kernel.exceptions import DraftDetailNotFoundError, DraftLineNotFoundError


@dataclass(frozen=True)
class DraftLineStore:
    """
    Immutable snapshot of a session's draft lines.

    Contract:
        Mutating methods return a new DraftLineStore.

    Non-goals:
        - Does not validate quantities or serial ranges.
    """

    lines: tuple[DraftLine, ...] = ()

    def __post_init__(self) -> None:
        lines = tuple(self.lines)
        keys = [line.key for line in lines]
        if len(keys) != len(set(keys)):
            raise ValueError("Duplicate draft line identity in store")
        object.__setattr__(self, "lines", lines)

    def __iter__(self) -> Iterator[DraftLine]:
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    def __contains__(self, key: object) -> bool:
        return any(line.key == key for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def get(self, key: DraftLineKey) -> DraftLine | None:
        for line in self.lines:
            if line.key == key:
                return line
        return None

    def require(self, key: DraftLineKey) -> DraftLine:
        line = self.get(key)
        if line is None:
            raise DraftLineNotFoundError(key.stock_id, key.line_number)
        return line

    def lines_for(self, stock_id: str) -> tuple[DraftLine, ...]:
        """All lines fed by the stock record, in insertion order."""
        return tuple(line for line in self.lines if line.stock_id == stock_id)

    def lines_for_product(self, product: str) -> tuple[DraftLine, ...]:
        return tuple(line for line in self.lines if line.product == product)

    def _replace_line(self, line: DraftLine) -> DraftLineStore:
        return DraftLineStore(tuple(
            line if existing.key == line.key else existing
            for existing in self.lines
        ))

    def upsert_line(
        self,
        stock_id: str,
        line_number: int,
        *,
        product: str,
        packing_unit: PackingUnit,
        conversion_factor: Decimal,
    ) -> tuple[DraftLineStore, DraftLine]:
        """
        Find the line for (stock_id, line_number) or create an empty one.

        An existing line is returned as-is; product, unit and factor are
        only used on creation.
        """
        existing = self.get(DraftLineKey(stock_id, line_number))
        if existing is not None:
            return self, existing
        line = DraftLine(
            stock_id=stock_id,
            line_number=line_number,
            product=product,
            packing_unit=packing_unit,
            conversion_factor=conversion_factor,
        )
        return DraftLineStore(self.lines + (line,)), line

    def add_detail(self, key: DraftLineKey, detail: DraftDetail) -> DraftLineStore:
        line = self.require(key)
        return self._replace_line(line.with_details(line.details + (detail,)))

    def replace_detail(self, key: DraftLineKey, index: int, detail: DraftDetail) -> DraftLineStore:
        line = self.require(key)
        if not 0 <= index < len(line.details):
            raise DraftDetailNotFoundError(key.stock_id, key.line_number, index)
        details = list(line.details)
        details[index] = detail
        return self._replace_line(line.with_details(tuple(details)))

    def remove_detail(
        self,
        key: DraftLineKey,
        predicate: Callable[[DraftDetail], bool],
    ) -> DraftLineStore:
        """Drop every detail of the line for which predicate is true."""
        line = self.require(key)
        kept = tuple(d for d in line.details if not predicate(d))
        if len(kept) == len(line.details):
            return self
        return self._replace_line(line.with_details(kept))

    def remove_detail_at(self, key: DraftLineKey, index: int) -> DraftLineStore:
        line = self.require(key)
        if not 0 <= index < len(line.details):
            raise DraftDetailNotFoundError(key.stock_id, key.line_number, index)
        return self._replace_line(
            line.with_details(line.details[:index] + line.details[index + 1:])
        )

    def remove_line(self, key: DraftLineKey) -> DraftLineStore:
        self.require(key)
        return DraftLineStore(tuple(line for line in self.lines if line.key != key))

    def repack_line(
        self,
        key: DraftLineKey,
        packing_unit: PackingUnit,
        conversion_factor: Decimal,
    ) -> DraftLineStore:
        line = self.require(key)
        return self._replace_line(line.repacked(packing_unit, conversion_factor))

    def clear(self) -> DraftLineStore:
        return DraftLineStore()
