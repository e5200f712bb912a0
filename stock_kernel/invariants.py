"""
Kernel Invariants Contract.

These invariants are structural law for every draft session. No FieldPolicy
or workflow configuration may switch them off; configuration only decides
which *external* checks run, never whether drafts may over-allocate.

Enforcement is distributed across QuantityLedger (conservation),
AllocationValidator (serial ranges, availability) and DraftLineStore
(line identity, commit-time conversion).
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    CONSERVATION = "conservation"
    """For every stock record, the stock-unit quantities of all draft details
    referencing it never exceed quantity_in_stock_unit - allocated_quantity.
    Enforced by AllocationValidator before commit and asserted by
    QuantityLedger.residual (NegativeResidualError)."""

    SERIAL_RANGE_EXACT = "serial_range_exact"
    """For globalReceivedIssued stock, a detail's quantity equals the length
    of its serial range. Enforced by the sequential-match check."""

    SERIAL_RANGES_DISJOINT = "serial_ranges_disjoint"
    """Serial ranges drafted for one product are pairwise non-overlapping and
    do not overlap committed allocations."""

    COMMIT_TIME_CONVERSION = "commit_time_conversion"
    """quantity_in_stock_unit = quantity_in_packing_unit * factor at the
    moment a detail is committed. Later factor edits on the line never
    rescale committed details."""

    LINE_IDENTITY = "line_identity"
    """At most one DraftLine per (stock_id, line_number). Enforced by
    DraftLineStore.upsert_line."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_layer_boundaries.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "stock_engines",
    "stock_services",
    "stock_config",
)
