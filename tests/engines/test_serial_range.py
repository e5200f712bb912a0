"""
Tests for the serial range calculator.

Covers:
- Ending serial computation, including suffix widening
- Next serial number
- Range overlap (prefixes, boundaries, symmetry, malformed ranges)
- Splitting serial lists into contiguous runs
"""

import pytest

from stock_engines.serial import (
    SerialRange,
    contiguous_runs,
    ending_serial_number,
    next_serial_number,
    ranges_overlap,
    split_serial,
)
from stock_kernel.exceptions import InvalidSerialFormatError


class TestSplitSerial:
    """Tests for prefix / numeric suffix splitting."""

    def test_prefix_and_suffix(self):
        parts = split_serial("SN00042")

        assert parts.prefix == "SN"
        assert parts.number == 42
        assert parts.width == 5

    def test_all_digits(self):
        parts = split_serial("00042")

        assert parts.prefix == ""
        assert parts.number == 42

    def test_digits_inside_prefix(self):
        """Only the trailing run of digits is the suffix."""
        parts = split_serial("LOT7-SN12")

        assert parts.prefix == "LOT7-SN"
        assert parts.number == 12

    def test_no_suffix_rejected(self):
        with pytest.raises(InvalidSerialFormatError) as exc_info:
            split_serial("SNABC")

        assert exc_info.value.code == "INVALID_SERIAL_FORMAT"
        assert exc_info.value.serial_number == "SNABC"

    def test_empty_rejected(self):
        with pytest.raises(InvalidSerialFormatError):
            split_serial("")


class TestEndingSerialNumber:
    """Tests for ending_serial_number."""

    def test_quantity_one_returns_start(self):
        assert ending_serial_number("SN00042", 1) == "SN00042"

    def test_quantity_five(self):
        assert ending_serial_number("SN00042", 5) == "SN00046"

    def test_suffix_widens_instead_of_truncating(self):
        assert ending_serial_number("SN00099", 5) == "SN00103"

    def test_suffix_grows_past_original_width(self):
        assert ending_serial_number("A99", 2) == "A100"

    def test_padding_kept(self):
        assert ending_serial_number("X0001", 10) == "X0010"

    def test_decimal_quantity_accepted_when_whole(self):
        from decimal import Decimal

        assert ending_serial_number("A100", Decimal("10.000")) == "A109"

    def test_fractional_quantity_rejected(self):
        with pytest.raises(ValueError):
            ending_serial_number("A100", "2.5")

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValueError):
            ending_serial_number("A100", 0)

    def test_no_suffix_rejected(self):
        with pytest.raises(InvalidSerialFormatError):
            ending_serial_number("ABC", 3)


class TestNextSerialNumber:
    """Tests for next_serial_number."""

    def test_increment(self):
        assert next_serial_number("SN00042") == "SN00043"

    def test_widening(self):
        assert next_serial_number("Z9") == "Z10"

    def test_no_suffix_rejected(self):
        with pytest.raises(InvalidSerialFormatError):
            next_serial_number("Z")


class TestRangesOverlap:
    """Tests for ranges_overlap."""

    def test_scenario_overlap(self):
        """A100..A109 and A105..A109 overlap."""
        assert ranges_overlap("A100", "A109", "A105", "A109") is True

    def test_disjoint_prefixes_never_overlap(self):
        assert ranges_overlap("SNA001", "SNA005", "SNB001", "SNB005") is False

    def test_adjacent_ranges_do_not_overlap(self):
        assert ranges_overlap("A100", "A104", "A105", "A109") is False

    def test_shared_boundary_overlaps(self):
        """Bounds are inclusive."""
        assert ranges_overlap("A100", "A105", "A105", "A109") is True

    def test_containment_overlaps(self):
        assert ranges_overlap("A100", "A199", "A150", "A150") is True

    def test_symmetry(self):
        assert ranges_overlap("A100", "A109", "A105", "A120") == ranges_overlap(
            "A105", "A120", "A100", "A109"
        )

    def test_malformed_range_is_an_error_not_false(self):
        with pytest.raises(InvalidSerialFormatError):
            ranges_overlap("A100", "A109", "B", "B")

    def test_reversed_range_is_an_error(self):
        with pytest.raises(InvalidSerialFormatError):
            ranges_overlap("A109", "A100", "A105", "A106")

    def test_mixed_prefix_range_is_an_error(self):
        with pytest.raises(InvalidSerialFormatError):
            ranges_overlap("A100", "B109", "A105", "A106")


class TestSerialRange:
    """Tests for the SerialRange value object."""

    def test_from_start(self):
        serial_range = SerialRange.from_start("A100", 10)

        assert serial_range.end == "A109"
        assert serial_range.quantity == 10

    def test_quantity_counts_inclusive(self):
        assert SerialRange("SN0001", "SN0001").quantity == 1
        assert SerialRange("SN0099", "SN0103").quantity == 5

    def test_contains(self):
        serial_range = SerialRange("A100", "A109")

        assert serial_range.contains("A100")
        assert serial_range.contains("A109")
        assert not serial_range.contains("A110")
        assert not serial_range.contains("B105")

    def test_str(self):
        assert str(SerialRange("A1", "A1")) == "A1"
        assert str(SerialRange("A1", "A3")) == "A1..A3"


class TestContiguousRuns:
    """Tests for contiguous_runs."""

    def test_single_run(self):
        runs = contiguous_runs(["A100", "A101", "A102"])

        assert runs == [SerialRange("A100", "A102")]

    def test_gap_starts_new_run(self):
        runs = contiguous_runs(["A100", "A101", "A105", "A106", "A110"])

        assert runs == [
            SerialRange("A100", "A101"),
            SerialRange("A105", "A106"),
            SerialRange("A110", "A110"),
        ]

    def test_prefix_change_starts_new_run(self):
        runs = contiguous_runs(["A9", "B10"])

        assert [r.quantity for r in runs] == [1, 1]

    def test_widening_stays_contiguous(self):
        runs = contiguous_runs(["A98", "A99", "A100"])

        assert runs == [SerialRange("A98", "A100")]

    def test_empty(self):
        assert contiguous_runs([]) == []

    def test_malformed_serial_rejected(self):
        with pytest.raises(InvalidSerialFormatError):
            contiguous_runs(["A1", "NOPE"])
