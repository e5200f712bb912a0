"""
Tests for the quantity ledger.

Covers:
- Committed quantity across lines and records
- Residual in the active packing unit, with line / detail exclusion
- Serial-range consumption for range-tracked records
- Negative residual as an invariant violation, display clamping
- quantity_to_move
"""

from decimal import Decimal

import pytest

from stock_engines.ledger import QuantityLedger, detail_serial_range
from stock_kernel.domain.drafts import DraftDetail, DraftLine, DraftLineKey
from stock_kernel.domain.values import PackingUnit, SerialNumberManagementMode
from stock_kernel.exceptions import NegativeResidualError
from tests.helpers import BOX, UN, make_global_stock, make_stock


def _detail(qty_stock, factor="1", unit="UN", serial=None, ending=None) -> DraftDetail:
    qty_stock = Decimal(str(qty_stock))
    return DraftDetail(
        quantity_in_packing_unit=qty_stock / Decimal(factor),
        quantity_in_stock_unit=qty_stock,
        packing_unit=unit,
        conversion_factor=Decimal(factor),
        stock_unit="UN",
        serial_number=serial,
        ending_serial_number=ending,
    )


def _line(stock_id="S1", line_number=1, details=(), product="P1",
          unit: PackingUnit = UN, factor="1") -> DraftLine:
    return DraftLine(
        stock_id=stock_id,
        line_number=line_number,
        product=product,
        packing_unit=unit,
        conversion_factor=Decimal(factor),
        details=tuple(details),
    )


class TestCommitted:
    """Tests for committed_in_stock_unit."""

    def setup_method(self):
        self.ledger = QuantityLedger()

    def test_sums_details_of_matching_record(self):
        stock = make_stock()
        lines = [
            _line(details=[_detail(10), _detail(5)]),
            _line(line_number=2, details=[_detail(7)]),
            _line(stock_id="OTHER", details=[_detail(50)]),
        ]

        assert self.ledger.committed_in_stock_unit(stock, lines) == Decimal("22")

    def test_exclude_line(self):
        stock = make_stock()
        lines = [
            _line(details=[_detail(10)]),
            _line(line_number=2, details=[_detail(7)]),
        ]

        committed = self.ledger.committed_in_stock_unit(
            stock, lines, exclude_line=DraftLineKey("S1", 2),
        )

        assert committed == Decimal("10")

    def test_exclude_detail(self):
        stock = make_stock()
        lines = [_line(details=[_detail(10), _detail(4)])]

        committed = self.ledger.committed_in_stock_unit(
            stock, lines, exclude_detail=(DraftLineKey("S1", 1), 0),
        )

        assert committed == Decimal("4")

    def test_range_records_consume_range_count(self):
        """A range detail consumes the count of its serial range."""
        stock = make_global_stock()
        detail = _detail(3, serial="A100", ending="A104")

        consumed = self.ledger.consumed_in_stock_unit(
            detail, SerialNumberManagementMode.GLOBAL_RECEIVED_ISSUED,
        )

        assert consumed == Decimal("5")
        assert self.ledger.committed_in_stock_unit(
            stock, [_line(stock_id="G1", product="SERIAL-P", details=[detail])],
        ) == Decimal("5")

    def test_non_range_records_consume_quantity(self):
        detail = _detail(3, serial="A100", ending="A104")

        consumed = self.ledger.consumed_in_stock_unit(
            detail, SerialNumberManagementMode.NOT_MANAGED,
        )

        assert consumed == Decimal("3")


class TestResidual:
    """Tests for residual and residual_in_stock_unit."""

    def setup_method(self):
        self.ledger = QuantityLedger()

    def test_scenario_hundred_minus_thirty(self):
        stock = make_stock(quantity=100)
        lines = [_line(details=[_detail(30)])]

        assert self.ledger.residual(stock, lines) == Decimal("70")

    def test_allocated_quantity_is_excluded(self):
        stock = make_stock(quantity=100, allocated=25)

        assert self.ledger.residual(stock, []) == Decimal("75")

    def test_residual_in_active_packing_unit(self):
        """48 UN left is 4 boxes of 12."""
        stock = make_stock(quantity=60, factor=12, packing_unit=BOX)
        lines = [_line(details=[_detail(12, factor="12", unit="BOX")], unit=BOX, factor="12")]

        assert self.ledger.residual(stock, lines) == Decimal("4")

    def test_residual_with_explicit_factor(self):
        stock = make_stock(quantity=60, factor=12, packing_unit=BOX)

        assert self.ledger.residual(stock, [], conversion_factor=Decimal("6")) == Decimal("10")

    def test_residual_for_line_excludes_own_details(self):
        stock = make_stock(quantity=100)
        lines = [
            _line(details=[_detail(30)]),
            _line(line_number=2, details=[_detail(20)]),
        ]

        left = self.ledger.residual(stock, lines, exclude_line=DraftLineKey("S1", 1))

        assert left == Decimal("80")

    def test_idempotent(self):
        stock = make_stock(quantity=100)
        lines = [_line(details=[_detail(30)])]

        assert self.ledger.residual(stock, lines) == self.ledger.residual(stock, lines)

    def test_conservation(self):
        stock = make_stock(quantity=100, allocated=10)
        lines = [_line(details=[_detail(30), _detail(12.5)])]

        left = self.ledger.residual_in_stock_unit(stock, lines)
        committed = self.ledger.committed_in_stock_unit(stock, lines)

        assert left + committed == stock.quantity_in_stock_unit - stock.allocated_quantity

    def test_negative_residual_is_an_invariant_violation(self):
        stock = make_stock(quantity=10)
        lines = [_line(details=[_detail(11)])]

        with pytest.raises(NegativeResidualError) as exc_info:
            self.ledger.residual(stock, lines)

        assert exc_info.value.code == "NEGATIVE_RESIDUAL"
        assert exc_info.value.stock_id == "S1"

    def test_display_residual_clamps_and_rounds(self):
        stock = make_stock(quantity=10)
        over = [_line(details=[_detail(11)])]

        assert self.ledger.display_residual(stock, over) == Decimal("0")

    def test_display_residual_rounds_at_unit_scale(self):
        stock = make_stock(quantity=100, factor=12, packing_unit=BOX)

        assert self.ledger.display_residual(stock, []) == Decimal("8.33")


class TestQuantityToMove:
    """Tests for quantity_to_move."""

    def setup_method(self):
        self.ledger = QuantityLedger()

    def test_defaults_to_residual(self):
        stock = make_stock(quantity=100)

        assert self.ledger.quantity_to_move(stock, [_line(details=[_detail(40)])]) == Decimal("60")

    def test_smaller_proposed_wins(self):
        stock = make_stock(quantity=100)

        assert self.ledger.quantity_to_move(stock, [], proposed=Decimal("5")) == Decimal("5")

    def test_larger_proposed_clamped_to_residual(self):
        stock = make_stock(quantity=100)
        lines = [_line(details=[_detail(90)])]

        assert self.ledger.quantity_to_move(stock, lines, proposed=Decimal("50")) == Decimal("10")


class TestDetailSerialRange:
    """Tests for detail_serial_range."""

    def test_explicit_ending(self):
        serial_range = detail_serial_range(_detail(5, serial="A100", ending="A104"))

        assert (serial_range.start, serial_range.end) == ("A100", "A104")

    def test_derived_from_quantity(self):
        serial_range = detail_serial_range(_detail(3, serial="SN0099"))

        assert serial_range.end == "SN0101"

    def test_no_serial(self):
        assert detail_serial_range(_detail(5)) is None
