"""
Module: stock_engines.ledger
Responsibility:
    For one stock record, compute how much of it the current draft lines
    already consume and how much is left: the residual quantity shown as
    the default/maximum when the user adds another slice.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel and sibling engines.

Invariants enforced:
    - Conservation: residual_in_stock_unit + committed_in_stock_unit ==
      quantity_in_stock_unit - allocated_quantity.
    - A negative residual is never returned from the decision paths
      (residual / residual_in_stock_unit raise NegativeResidualError).
      display_residual is the only place that clamps, and it is used for
      presentation only.
    - For globalReceivedIssued records a slice consumes the count of its
      serial range, not its recorded quantity.
    - Intermediate sums stay at full precision; rounding happens in
      display_residual only.

Failure modes:
    - NegativeResidualError when drafts exceed availability.
    - InvalidConversionFactorError for a non-positive active factor.
    - InvalidSerialFormatError when a range detail's serials are malformed.

Usage:
    from stock_engines.ledger import QuantityLedger

    ledger = QuantityLedger()
    left = ledger.residual(record, store.lines_for(record.stock_id))
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from stock_engines.packing import round_quantity, to_packing_unit
from stock_engines.serial import SerialRange
from stock_engines.tracer import traced_engine
from stock_kernel.domain.drafts import DraftDetail, DraftLine, DraftLineKey
from stock_kernel.domain.stock import StockRecord
from stock_kernel.domain.values import PackingUnit, SerialNumberManagementMode, as_decimal
from stock_kernel.exceptions import NegativeResidualError
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.ledger")

# (line key, detail index) of a detail left out of a sum because it is
# being replaced.
DetailRef = tuple[DraftLineKey, int]


def detail_serial_range(detail: DraftDetail) -> SerialRange | None:
    """
    The serial range a detail covers, or None for a detail without a serial.

    Details with an explicit ending serial use it; otherwise the range is
    derived from the starting serial and the stock-unit quantity.
    """
    if not detail.serial_number:
        return None
    if detail.ending_serial_number:
        return SerialRange(detail.serial_number, detail.ending_serial_number)
    return SerialRange.from_start(detail.serial_number, detail.quantity_in_stock_unit)


class QuantityLedger:
    """
    Committed and residual quantities of a stock record.

    Contract:
        Stateless; every answer is derived from the record and the lines
        passed in.  Calling any method twice with the same inputs returns
        the same value.

    Guarantees:
        - Only lines whose stock_id matches the record are counted.
        - exclude_line leaves a whole line out (the "left to assign on this
          line" view); exclude_detail leaves one detail out (the detail
          being replaced).

    Non-goals:
        - Does not decide acceptance; AllocationValidator does.
        - Does not mutate lines.
    """

    def consumed_in_stock_unit(
        self,
        detail: DraftDetail,
        mode: SerialNumberManagementMode,
    ) -> Decimal:
        """Stock-unit quantity a single detail takes from its record."""
        if mode.tracks_ranges and detail.serial_number:
            serial_range = detail_serial_range(detail)
            return Decimal(serial_range.quantity)
        return detail.quantity_in_stock_unit

    def committed_in_stock_unit(
        self,
        stock: StockRecord,
        lines: Iterable[DraftLine],
        exclude_line: DraftLineKey | None = None,
        exclude_detail: DetailRef | None = None,
    ) -> Decimal:
        """Sum of what the drafts for this record consume, full precision."""
        total = Decimal("0")
        mode = stock.serial_number_management_mode
        for line in lines:
            if line.stock_id != stock.stock_id:
                continue
            if exclude_line is not None and line.key == exclude_line:
                continue
            for index, detail in enumerate(line.details):
                if exclude_detail is not None and exclude_detail == (line.key, index):
                    continue
                total += self.consumed_in_stock_unit(detail, mode)
        return total

    def residual_in_stock_unit(
        self,
        stock: StockRecord,
        lines: Iterable[DraftLine],
        exclude_line: DraftLineKey | None = None,
        exclude_detail: DetailRef | None = None,
    ) -> Decimal:
        """
        Stock-unit quantity still available on the record.

        Raises:
            NegativeResidualError: drafts already exceed availability.
        """
        committed = self.committed_in_stock_unit(
            stock, lines, exclude_line=exclude_line, exclude_detail=exclude_detail,
        )
        available = stock.available_in_stock_unit
        remaining = available - committed
        if remaining < 0:
            logger.error("negative_residual", extra={
                "stock_id": stock.stock_id,
                "available": str(available),
                "committed": str(committed),
            })
            raise NegativeResidualError(stock.stock_id, str(available), str(committed))
        return remaining

    @traced_engine("quantity_ledger", "1.0", fingerprint_fields=("stock", "conversion_factor"))
    def residual(
        self,
        stock: StockRecord,
        lines: Iterable[DraftLine],
        conversion_factor: Decimal | None = None,
        exclude_line: DraftLineKey | None = None,
        exclude_detail: DetailRef | None = None,
    ) -> Decimal:
        """
        Residual quantity in the active packing unit.

        Args:
            stock: The stock record.
            lines: Every draft line of the session (other records' lines are
                ignored).
            conversion_factor: Factor of the active packing unit; defaults to
                the record's own factor.
            exclude_line: Line whose details are left out.
            exclude_detail: Single detail left out.
        """
        factor = stock.conversion_factor if conversion_factor is None else conversion_factor
        remaining = self.residual_in_stock_unit(
            stock, lines, exclude_line=exclude_line, exclude_detail=exclude_detail,
        )
        return to_packing_unit(remaining, factor)

    def display_residual(
        self,
        stock: StockRecord,
        lines: Iterable[DraftLine],
        unit: PackingUnit | None = None,
        conversion_factor: Decimal | None = None,
        exclude_line: DraftLineKey | None = None,
    ) -> Decimal:
        """
        Residual for presentation: rounded at the unit's scale, never below 0.

        Must not feed an acceptance decision.
        """
        unit = unit or stock.packing_unit
        factor = stock.conversion_factor if conversion_factor is None else conversion_factor
        lines = list(lines)
        committed = self.committed_in_stock_unit(stock, lines, exclude_line=exclude_line)
        remaining = max(stock.available_in_stock_unit - committed, Decimal("0"))
        return round_quantity(to_packing_unit(remaining, factor), unit)

    def quantity_to_move(
        self,
        stock: StockRecord,
        lines: Iterable[DraftLine],
        proposed: Decimal | int | str | None = None,
        conversion_factor: Decimal | None = None,
        exclude_line: DraftLineKey | None = None,
        exclude_detail: DetailRef | None = None,
    ) -> Decimal:
        """
        Default quantity for a new slice: min(proposed, residual).

        Used to seed defaults only.  A value the user typed is checked by
        the validator and rejected if too large, never clamped here.
        """
        left = self.residual(
            stock,
            lines,
            conversion_factor=conversion_factor,
            exclude_line=exclude_line,
            exclude_detail=exclude_detail,
        )
        if proposed is None:
            return left
        return min(as_decimal(proposed), left)
