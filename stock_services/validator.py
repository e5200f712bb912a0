"""
stock_services.validator -- AllocationValidator.

Responsibility:
    Decides whether a candidate slice (an Add action or a row selection)
    may be committed to a draft line.  Runs the checks in a fixed order and
    stops at the first failure:

        1. input          serial mandatory, quantity > 0, unit scale,
                          serial format
        2. local overlap  candidate range vs. ranges drafted for the product
        3. sequential     confirmed ending serial == recomputed ending serial
        4. ext. sequence  server count of serials in range == quantity
        5. ext. allocs    candidate range vs. committed allocations
        6. availability   quantity <= available - other drafts

    Steps 2-5 apply to products whose serials are tracked as ranges.

Architecture position:
    Services layer.  Composes the serial and ledger engines with the
    RecordFetch collaborator.  Never mutates a store.

Invariants enforced:
    - A failed check is returned as a Rejection inside a ValidationResult;
      AllocationError never escapes validate().
    - Collaborator failures become a LOOKUP_FAILED rejection.  No retry.
    - Which checks run is decided by the workflow's FieldPolicy, resolved
      against the product's serial management mode.

Failure modes:
    - NegativeResidualError propagates: it means the store already breaks
      conservation, which no candidate can fix.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from stock_config.schema import FieldPolicy, ResolvedFieldPolicy
from stock_engines.ledger import DetailRef, QuantityLedger, detail_serial_range
from stock_engines.packing import fits_scale, round_quantity, to_stock_unit
from stock_engines.serial import SerialRange, split_serial
from stock_kernel.domain.drafts import DraftDetail, DraftLineKey
from stock_kernel.domain.dtos import Rejection, ValidationResult
from stock_kernel.domain.stock import StockRecord
from stock_kernel.domain.values import PackingUnit, as_decimal
from stock_kernel.exceptions import (
    AllocationError,
    InvalidConversionFactorError,
    InvalidSerialFormatError,
    LookupFailedError,
    QuantityExceedsAvailableError,
    QuantityNotPositiveError,
    QuantityPrecisionError,
    SameAmountSerialNumbersRequiredError,
    SerialNumberAlreadyAllocatedError,
    SerialNumberMandatoryError,
    SerialNumberNotSequentialError,
    SerialRangeOverlapError,
)
from stock_kernel.logging_config import get_logger
from stock_services.draft_store import DraftLineStore
from stock_services.ports import RecordFetch

logger = get_logger("services.validator")


@dataclass(frozen=True)
class AllocationCandidate:
    """
    A slice proposed for a draft line.

    Contract:
        quantity_in_packing_unit is in packing_unit (default: the record's
        packing unit) at conversion_factor (default: the record's factor).
        ending_serial_number is the ending serial the user confirmed; None
        means "use the computed one".  replaces_detail names the index of
        an existing detail on the line that this candidate replaces.
    """

    stock: StockRecord
    line_number: int
    quantity_in_packing_unit: Decimal
    starting_serial_number: str | None = None
    ending_serial_number: str | None = None
    packing_unit: PackingUnit | None = None
    conversion_factor: Decimal | None = None
    replaces_detail: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "quantity_in_packing_unit",
            as_decimal(self.quantity_in_packing_unit, "quantity_in_packing_unit"),
        )
        if self.packing_unit is None:
            object.__setattr__(self, "packing_unit", self.stock.packing_unit)
        factor = (
            self.stock.conversion_factor
            if self.conversion_factor is None
            else as_decimal(self.conversion_factor, "conversion_factor")
        )
        if factor <= 0:
            raise InvalidConversionFactorError(factor)
        object.__setattr__(self, "conversion_factor", factor)

    @property
    def line_key(self) -> DraftLineKey:
        return DraftLineKey(self.stock.stock_id, self.line_number)

    @property
    def excluded_detail(self) -> DetailRef | None:
        if self.replaces_detail is None:
            return None
        return (self.line_key, self.replaces_detail)

    @property
    def quantity_in_stock_unit(self) -> Decimal:
        """
        Stock-unit quantity fixed at commit, rounded at the stock unit's scale.

        Once check_input has passed this equals packing quantity x factor
        exactly; the rounding only matters for the positivity check.
        """
        return round_quantity(
            self.quantity_in_packing_unit * self.conversion_factor,
            self.stock.stock_unit,
        )

    def serial_range(self) -> SerialRange:
        """Candidate range from the starting serial and the stock-unit quantity."""
        return SerialRange.from_start(self.starting_serial_number, self.quantity_in_stock_unit)

    def to_detail(self, policy: ResolvedFieldPolicy) -> DraftDetail:
        """The detail committed when the candidate is accepted."""
        serial = self.starting_serial_number or self.stock.serial_number
        ending = None
        if policy.serial_range_tracking and serial:
            ending = self.serial_range().end
        return DraftDetail(
            quantity_in_packing_unit=self.quantity_in_packing_unit,
            quantity_in_stock_unit=self.quantity_in_stock_unit,
            packing_unit=self.packing_unit.code,
            conversion_factor=self.conversion_factor,
            stock_unit=self.stock.stock_unit.code,
            serial_number=serial,
            ending_serial_number=ending,
            attributes=self.stock.attributes,
        )


# ---------------------------------------------------------------------------
# Individual checks -- raise AllocationError subclasses
# ---------------------------------------------------------------------------


def check_precision(candidate: AllocationCandidate) -> None:
    """Both quantities of the committed pair must be written at their unit's scale."""
    packing = candidate.quantity_in_packing_unit
    unit = candidate.packing_unit
    if not fits_scale(packing, unit):
        raise QuantityPrecisionError(packing, unit.code, unit.number_of_decimals)
    exact = to_stock_unit(packing, candidate.conversion_factor)
    stock_unit = candidate.stock.stock_unit
    if not fits_scale(exact, stock_unit):
        raise QuantityPrecisionError(exact, stock_unit.code, stock_unit.number_of_decimals)


def check_input(candidate: AllocationCandidate, policy: ResolvedFieldPolicy) -> None:
    """
    Step 1: serial present when required, quantity > 0 once rounded to the
    stock unit, quantities at their units' scale, serial well formed.
    """
    if policy.serial_number_required and not candidate.starting_serial_number:
        raise SerialNumberMandatoryError(candidate.stock.product, candidate.stock.stock_id)
    if candidate.quantity_in_packing_unit <= 0 or candidate.quantity_in_stock_unit <= 0:
        raise QuantityNotPositiveError(candidate.quantity_in_packing_unit)
    check_precision(candidate)
    if policy.serial_range_tracking and candidate.starting_serial_number:
        split_serial(candidate.starting_serial_number)
        quantity = candidate.quantity_in_stock_unit
        if quantity != quantity.to_integral_value():
            raise SameAmountSerialNumbersRequiredError(
                expected_ending=None,
                confirmed_ending=candidate.ending_serial_number,
            )


def check_local_overlap(
    candidate: AllocationCandidate,
    candidate_range: SerialRange,
    store: DraftLineStore,
) -> None:
    """Step 2: no range drafted for the same product may intersect the candidate."""
    excluded = candidate.excluded_detail
    for line in store.lines_for_product(candidate.stock.product):
        for index, detail in enumerate(line.details):
            if excluded is not None and excluded == (line.key, index):
                continue
            drafted = detail_serial_range(detail)
            if drafted is not None and drafted.overlaps(candidate_range):
                raise SerialRangeOverlapError(
                    candidate_range.start,
                    candidate_range.end,
                    drafted.start,
                    drafted.end,
                )


def check_sequential_match(
    candidate: AllocationCandidate,
    candidate_range: SerialRange,
) -> None:
    """Step 3: the confirmed ending serial must equal the recomputed one."""
    confirmed = candidate.ending_serial_number
    if confirmed is not None and confirmed != candidate_range.end:
        raise SameAmountSerialNumbersRequiredError(candidate_range.end, confirmed)


def check_allocations(candidate_range: SerialRange, allocations) -> None:
    """Step 5 (pure part): no committed allocation may intersect the candidate."""
    for allocation in allocations:
        if not allocation.serial_number or allocation.quantity_in_stock_unit <= 0:
            continue
        try:
            allocated = SerialRange.from_start(
                allocation.serial_number, allocation.quantity_in_stock_unit,
            )
        except (InvalidSerialFormatError, ValueError) as e:
            raise InvalidSerialFormatError(
                allocation.serial_number,
                f"unusable allocation ({e})",
            ) from e
        if allocated.overlaps(candidate_range):
            raise SerialNumberAlreadyAllocatedError(
                candidate_range.start,
                candidate_range.end,
                allocation.serial_number,
                str(allocation.quantity_in_stock_unit),
            )


def check_availability(
    candidate: AllocationCandidate,
    store: DraftLineStore,
    ledger: QuantityLedger,
) -> None:
    """Step 6: requested stock-unit quantity <= available minus other drafts."""
    requested = candidate.quantity_in_stock_unit
    available = ledger.residual_in_stock_unit(
        candidate.stock,
        store.lines,
        exclude_detail=candidate.excluded_detail,
    )
    if requested > available:
        raise QuantityExceedsAvailableError(
            candidate.stock.stock_id, str(requested), str(available),
        )


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


@dataclass
class AllocationValidator:
    """
    Runs the allocation checks for one workflow.

    Contract:
        validate() is a coroutine (steps 4 and 5 call the server);
        validate_local() runs only the steps that need no collaborator and
        is what the reducer re-runs right before committing.

    Guarantees:
        - Never mutates the store it is given.
        - Returns at the first failed check.

    Non-goals:
        - Does not notify the operator; the session reports rejections.
    """

    record_fetch: RecordFetch | None = None
    policy: FieldPolicy = field(default_factory=FieldPolicy)
    ledger: QuantityLedger = field(default_factory=QuantityLedger)

    def resolve(self, stock: StockRecord) -> ResolvedFieldPolicy:
        return self.policy.resolve(stock.serial_number_management_mode)

    def validate_local(
        self,
        candidate: AllocationCandidate,
        store: DraftLineStore,
    ) -> ValidationResult:
        """Steps 1, 2, 3 and 6."""
        policy = self.resolve(candidate.stock)
        try:
            self._local_checks(candidate, store, policy)
            if policy.enforce_availability:
                check_availability(candidate, store, self.ledger)
        except AllocationError as e:
            return self._reject(candidate, e)
        return ValidationResult.success()

    async def validate(
        self,
        candidate: AllocationCandidate,
        store: DraftLineStore,
    ) -> ValidationResult:
        """All six steps, in order."""
        policy = self.resolve(candidate.stock)
        try:
            candidate_range = self._local_checks(candidate, store, policy)
            if candidate_range is not None:
                if policy.check_external_sequence:
                    await self._check_external_sequence(candidate, candidate_range)
                if policy.check_external_allocations:
                    await self._check_external_allocations(candidate, candidate_range)
            if policy.enforce_availability:
                check_availability(candidate, store, self.ledger)
        except AllocationError as e:
            return self._reject(candidate, e)
        except LookupFailedError as e:
            logger.error("lookup_failed", extra={
                "operation": e.operation,
                "stock_id": candidate.stock.stock_id,
                "reason": e.reason,
            }, exc_info=True)
            return ValidationResult.failure(Rejection.from_error(e))

        logger.info("allocation_accepted", extra={
            "stock_id": candidate.stock.stock_id,
            "line_number": candidate.line_number,
            "quantity_in_stock_unit": candidate.quantity_in_stock_unit,
        })
        return ValidationResult.success()

    def _local_checks(
        self,
        candidate: AllocationCandidate,
        store: DraftLineStore,
        policy: ResolvedFieldPolicy,
    ) -> SerialRange | None:
        check_input(candidate, policy)
        if not (policy.serial_range_tracking and candidate.starting_serial_number):
            return None
        candidate_range = candidate.serial_range()
        if policy.check_local_overlap:
            check_local_overlap(candidate, candidate_range, store)
        if policy.check_sequential_match:
            check_sequential_match(candidate, candidate_range)
        return candidate_range

    async def _check_external_sequence(
        self,
        candidate: AllocationCandidate,
        candidate_range: SerialRange,
    ) -> None:
        """Step 4."""
        stock = candidate.stock
        fetch = self._fetch()
        try:
            count = await fetch.count_serials_in_range(
                stock.product,
                stock.site,
                stock.stock_id,
                candidate_range.start,
                candidate_range.end,
            )
        except Exception as e:
            raise LookupFailedError("count_serials_in_range", repr(e)) from e
        if count != candidate_range.quantity:
            raise SerialNumberNotSequentialError(
                candidate_range.start,
                candidate_range.end,
                candidate_range.quantity,
                count,
            )

    async def _check_external_allocations(
        self,
        candidate: AllocationCandidate,
        candidate_range: SerialRange,
    ) -> None:
        """Step 5."""
        stock = candidate.stock
        fetch = self._fetch()
        try:
            allocations = await fetch.fetch_allocations(stock.site, stock.product)
        except Exception as e:
            raise LookupFailedError("fetch_allocations", repr(e)) from e
        check_allocations(candidate_range, allocations)

    def _fetch(self) -> RecordFetch:
        if self.record_fetch is None:
            raise RuntimeError("AllocationValidator has no RecordFetch collaborator")
        return self.record_fetch

    def _reject(self, candidate: AllocationCandidate, error: AllocationError) -> ValidationResult:
        logger.warning("allocation_rejected", extra={
            "code": error.code,
            "stock_id": candidate.stock.stock_id,
            "line_number": candidate.line_number,
            "details": error.details(),
        })
        return ValidationResult.failure(Rejection.from_error(error))
