"""
stock_services.reducer -- (DraftLineStore, event) -> (DraftLineStore, rejections).

Responsibility:
    Every user action on the draft lines is an event; reduce() applies one
    event to a store and returns the resulting store plus the rejections
    raised on the way.  A rejected event returns the input store unchanged.

Architecture position:
    Services layer.  Pure with respect to I/O: external checks happen in
    DraftSession before a CommitDetail event is built; reduce() only
    re-runs the local checks against the store it is handed.

Invariants enforced:
    - All-or-nothing: an event either fully applies or leaves the store
      as it was.
    - Local checks are re-run at commit time, so a candidate validated
      against an older store cannot break conservation or overlap rules.
    - Events naming an absent line raise DraftError (caller bug), except
      DeselectStock, which is a no-op for an absent line.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal

from stock_engines.packing import exact_packing_quantity, round_quantity
from stock_engines.serial import SerialRange
from stock_kernel.domain.drafts import DraftLineKey
from stock_kernel.domain.dtos import Rejection
from stock_kernel.domain.stock import StockRecord
from stock_kernel.domain.values import PackingUnit
from stock_kernel.logging_config import get_logger
from stock_services.draft_store import DraftLineStore
from stock_services.validator import AllocationCandidate, AllocationValidator

logger = get_logger("services.reducer")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SelectStock:
    """
    Row selection of a stock record for a line.

    runs holds the record's contiguous serial runs for products tracked by
    range (fetched by the session beforehand); it is empty otherwise.
    quantity_in_packing_unit None means "default to quantity_to_move".
    """

    stock: StockRecord
    line_number: int = 1
    packing_unit: PackingUnit | None = None
    conversion_factor: Decimal | None = None
    quantity_in_packing_unit: Decimal | None = None
    runs: tuple[SerialRange, ...] = ()


@dataclass(frozen=True)
class CommitDetail:
    """An Add action whose candidate passed the external checks."""

    candidate: AllocationCandidate


@dataclass(frozen=True)
class RemoveDetail:
    key: DraftLineKey
    index: int


@dataclass(frozen=True)
class DeselectStock:
    """Deselecting a record drops its whole line."""

    key: DraftLineKey


@dataclass(frozen=True)
class RepackLine:
    key: DraftLineKey
    packing_unit: PackingUnit
    conversion_factor: Decimal


@dataclass(frozen=True)
class ClearStore:
    pass


Event = SelectStock | CommitDetail | RemoveDetail | DeselectStock | RepackLine | ClearStore


@dataclass(frozen=True)
class ReduceResult:
    store: DraftLineStore
    rejections: tuple[Rejection, ...] = field(default_factory=tuple)

    @property
    def accepted(self) -> bool:
        return not self.rejections


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------


def reduce(
    store: DraftLineStore,
    event: Event,
    validator: AllocationValidator,
) -> ReduceResult:
    """Apply one event."""
    match event:
        case SelectStock():
            return _select_stock(store, event, validator)
        case CommitDetail(candidate=candidate):
            return _commit(store, [candidate], validator)
        case RemoveDetail(key=key, index=index):
            return ReduceResult(store.remove_detail_at(key, index))
        case DeselectStock(key=key):
            if key not in store:
                return ReduceResult(store)
            return ReduceResult(store.remove_line(key))
        case RepackLine(key=key, packing_unit=unit, conversion_factor=factor):
            return ReduceResult(store.repack_line(key, unit, factor))
        case ClearStore():
            return ReduceResult(store.clear())
        case _:
            raise TypeError(f"Unknown draft event: {event!r}")


def _commit(
    store: DraftLineStore,
    candidates: list[AllocationCandidate],
    validator: AllocationValidator,
) -> ReduceResult:
    """Validate and apply candidates one after another; any failure rejects all."""
    working = store
    for candidate in candidates:
        result = validator.validate_local(candidate, working)
        if not result:
            return ReduceResult(store, result.errors)
        working = _apply_candidate(working, candidate, validator)

    logger.info("detail_committed", extra={
        "stock_id": candidates[0].stock.stock_id if candidates else None,
        "line_number": candidates[0].line_number if candidates else None,
        "detail_count": len(candidates),
    })
    return ReduceResult(working)


def _apply_candidate(
    store: DraftLineStore,
    candidate: AllocationCandidate,
    validator: AllocationValidator,
) -> DraftLineStore:
    stock = candidate.stock
    store, line = store.upsert_line(
        stock.stock_id,
        candidate.line_number,
        product=stock.product,
        packing_unit=candidate.packing_unit,
        conversion_factor=candidate.conversion_factor,
    )
    detail = candidate.to_detail(validator.resolve(stock))
    if candidate.replaces_detail is not None:
        return store.replace_detail(line.key, candidate.replaces_detail, detail)
    return store.add_detail(line.key, detail)


def _derived_slice(
    stock: StockRecord,
    quantity_in_stock_unit: Decimal,
    packing_unit: PackingUnit,
    factor: Decimal,
) -> tuple[PackingUnit, Decimal, Decimal]:
    """
    (unit, factor, quantity) for a slice the system sizes itself.

    Written in the requested packing unit when that is exact at its scale,
    otherwise in the stock unit at factor 1.
    """
    quantity = exact_packing_quantity(quantity_in_stock_unit, factor, packing_unit)
    if quantity is not None:
        return packing_unit, factor, quantity
    logger.info("slice_kept_in_stock_unit", extra={
        "stock_id": stock.stock_id,
        "packing_unit": packing_unit.code,
        "conversion_factor": factor,
        "quantity_in_stock_unit": quantity_in_stock_unit,
    })
    return stock.stock_unit, Decimal(1), quantity_in_stock_unit


def _select_stock(
    store: DraftLineStore,
    event: SelectStock,
    validator: AllocationValidator,
) -> ReduceResult:
    stock = event.stock
    key = DraftLineKey(stock.stock_id, event.line_number)
    existing = store.get(key)
    packing_unit = event.packing_unit or (
        existing.packing_unit if existing else stock.packing_unit
    )
    factor = event.conversion_factor
    if factor is None:
        factor = existing.conversion_factor if existing else stock.conversion_factor

    if event.runs:
        original = store
        if existing is not None:
            store = store.remove_detail(key, lambda detail: True)
        candidates = []
        for run in event.runs:
            unit, run_factor, quantity = _derived_slice(
                stock, Decimal(run.quantity), packing_unit, factor,
            )
            candidates.append(AllocationCandidate(
                stock=stock,
                line_number=event.line_number,
                quantity_in_packing_unit=quantity,
                starting_serial_number=run.start,
                ending_serial_number=run.end,
                packing_unit=unit,
                conversion_factor=run_factor,
            ))
        result = _commit(store, candidates, validator)
        if not result.accepted:
            return ReduceResult(original, result.rejections)
        return result

    policy = validator.resolve(stock)
    replaces = None
    if existing is not None:
        for index, detail in enumerate(existing.details):
            if detail.matches(
                stock.attributes,
                packing_unit.code,
                factor,
                ignore_serial=policy.serial_range_tracking,
            ):
                replaces = index
                break

    quantity = event.quantity_in_packing_unit
    if quantity is None:
        residual = validator.ledger.residual_in_stock_unit(
            stock,
            store.lines,
            exclude_detail=(key, replaces) if replaces is not None else None,
        )
        packing_unit, factor, quantity = _derived_slice(
            stock, round_quantity(residual, stock.stock_unit, ROUND_DOWN), packing_unit, factor,
        )
    candidate = AllocationCandidate(
        stock=stock,
        line_number=event.line_number,
        quantity_in_packing_unit=quantity,
        starting_serial_number=stock.serial_number if policy.serial_number_required else None,
        packing_unit=packing_unit,
        conversion_factor=factor,
        replaces_detail=replaces,
    )
    return _commit(store, [candidate], validator)

