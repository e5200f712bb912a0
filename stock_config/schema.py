"""
Allocation configuration schema.

Defines the frozen, typed form of the YAML configuration.  The loader parses
YAML into these types; get_active_config() hands them to callers.

Key distinction:
  FieldPolicy         = source rule set for a workflow (as authored)
  ResolvedFieldPolicy = the same rules applied to one product's serial
                        management mode; what AllocationValidator consumes
"""

from __future__ import annotations

from dataclasses import dataclass, field

from stock_kernel.domain.values import SerialNumberManagementMode

# ---------------------------------------------------------------------------
# Field policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedFieldPolicy:
    """Business rules in force for one candidate."""

    serial_number_required: bool
    serial_range_tracking: bool
    check_local_overlap: bool = True
    check_sequential_match: bool = True
    check_external_sequence: bool = True
    check_external_allocations: bool = True
    enforce_availability: bool = True


@dataclass(frozen=True)
class FieldPolicy:
    """
    Which allocation checks a workflow runs.

    require_serial_number overrides the mode-derived rule when set; None
    means "serial-tracked products require a serial".
    """

    check_local_overlap: bool = True
    check_sequential_match: bool = True
    check_external_sequence: bool = True
    check_external_allocations: bool = True
    enforce_availability: bool = True
    require_serial_number: bool | None = None

    def resolve(self, mode: SerialNumberManagementMode) -> ResolvedFieldPolicy:
        """Apply the policy to a product's serial management mode."""
        mode = SerialNumberManagementMode(mode)
        required = (
            mode.is_serial_tracked
            if self.require_serial_number is None
            else self.require_serial_number
        )
        return ResolvedFieldPolicy(
            serial_number_required=required,
            serial_range_tracking=mode.tracks_ranges,
            check_local_overlap=self.check_local_overlap,
            check_sequential_match=self.check_sequential_match,
            check_external_sequence=self.check_external_sequence,
            check_external_allocations=self.check_external_allocations,
            enforce_availability=self.enforce_availability,
        )


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowConfig:
    """A stock transaction workflow (issue, LPN link, reorder)."""

    name: str
    storage_key: str
    transaction_type: str
    field_policy: FieldPolicy = field(default_factory=FieldPolicy)


@dataclass(frozen=True)
class AllocationConfig:
    """
    Complete allocation configuration.

    Guarantees:
        - workflow names are unique (dict keys)
        - storage keys are unique across workflows
        - checksum is the SHA-256 of the parsed source
    """

    version: int
    workflows: dict[str, WorkflowConfig]
    logging_level: str = "INFO"
    checksum: str = ""

    def workflow(self, name: str) -> WorkflowConfig:
        """
        Look up a workflow by name.

        Raises:
            KeyError: no workflow with that name.
        """
        try:
            return self.workflows[name]
        except KeyError:
            raise KeyError(f"Unknown workflow: {name!r}") from None
