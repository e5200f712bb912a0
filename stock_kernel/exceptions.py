"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A refused allocation has to reach three audiences: the caller deciding what
to do next, the notifier showing a toast to the operator, and the log. Each
of them needs the same facts (which serial range, which stock record, how
much was available) without re-parsing a message string.

Every class below therefore has:
  1. A class-level CODE attribute (machine-readable, stable)
  2. Structured attributes for the data behind the failure
  3. A default human-readable message matching the operator-facing text

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- AllocationError                     (rejection of a candidate commit)
    |   +-- SerialNumberMandatoryError
    |   +-- QuantityNotPositiveError
    |   +-- QuantityPrecisionError
    |   +-- InvalidSerialFormatError
    |   +-- SerialRangeOverlapError
    |   +-- SameAmountSerialNumbersRequiredError
    |   +-- SerialNumberNotSequentialError
    |   +-- SerialNumberAlreadyAllocatedError
    |   +-- QuantityExceedsAvailableError
    |
    +-- LookupFailedError                   (collaborator / stored state failure)
    |   +-- SessionStateCorruptError
    |   +-- UnsupportedSessionVersionError
    |
    +-- DraftError
    |   +-- DraftLineNotFoundError
    |   +-- DraftDetailNotFoundError
    |   +-- DraftLineLockedError
    |
    +-- ConversionError
    |   +-- InvalidConversionFactorError
    |
    +-- InvariantViolationError
        +-- NegativeResidualError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                                | When Raised
-------------|-------------------------------------|-------------------------------
Allocation   | SERIAL_NUMBER_MANDATORY             | No starting serial, serial-tracked
             | QUANTITY_NOT_POSITIVE               | Proposed quantity <= 0
             | QUANTITY_PRECISION_EXCEEDED         | Quantity finer than its unit's scale
             | INVALID_SERIAL_FORMAT               | Serial has no numeric suffix
             | SERIAL_RANGE_OVERLAP                | Range intersects another draft
             | SAME_AMOUNT_SERIAL_NUMBERS_REQUIRED | Confirmed ending != recomputed
             | SERIAL_NUMBER_NOT_SEQUENTIAL        | Server count != quantity
             | SERIAL_NUMBER_ALREADY_ALLOCATED     | Range intersects an allocation
             | QUANTITY_EXCEEDS_AVAILABLE          | Quantity > residual availability
-------------|-------------------------------------|-------------------------------
Lookup       | LOOKUP_FAILED                       | Collaborator call failed
             | SESSION_STATE_CORRUPT               | Stored blob unparseable
             | UNSUPPORTED_SESSION_VERSION         | Stored blob from unknown version
-------------|-------------------------------------|-------------------------------
Draft        | DRAFT_LINE_NOT_FOUND                | No line for (stock_id, line_number)
             | DRAFT_DETAIL_NOT_FOUND              | Detail index out of range
             | DRAFT_LINE_LOCKED                   | A check is outstanding on the line
-------------|-------------------------------------|-------------------------------
Conversion   | INVALID_CONVERSION_FACTOR           | Factor is zero or negative
-------------|-------------------------------------|-------------------------------
Invariant    | NEGATIVE_RESIDUAL                   | Drafts exceed availability

===============================================================================
HANDLING PATTERNS
===============================================================================

AllocationError subclasses are raised by individual checks and caught by type
inside AllocationValidator, which turns them into Rejection values. They never
escape a commit path half-way through a mutation:

    try:
        check_local_overlap(candidate, store)
    except SerialRangeOverlapError as e:
        return ValidationResult.failure(Rejection.from_error(e))

InvariantViolationError is different: it means an earlier check let something
through that it should not have. It is raised, not returned.
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Allocation rejections


class AllocationError(StockKernelError):
    """Base exception for rejections of a candidate commit."""

    code: str = "ALLOCATION_ERROR"
    default_message: str = "The allocation was rejected."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def details(self) -> dict:
        """Structured attributes for logs and rejection payloads."""
        return {
            k: v for k, v in vars(self).items()
            if not k.startswith("_")
        }


class SerialNumberMandatoryError(AllocationError):
    """Starting serial number missing on a serial-tracked product."""

    code: str = "SERIAL_NUMBER_MANDATORY"
    default_message: str = "The serial number is mandatory"

    def __init__(self, product: str, stock_id: str):
        self.product = product
        self.stock_id = stock_id
        super().__init__()


class QuantityNotPositiveError(AllocationError):
    """Proposed quantity is zero or negative."""

    code: str = "QUANTITY_NOT_POSITIVE"
    default_message: str = "The quantity must be greater than 0."

    def __init__(self, quantity):
        self.quantity = str(quantity)
        super().__init__()


class QuantityPrecisionError(AllocationError):
    """Quantity has more decimals than its unit declares."""

    code: str = "QUANTITY_PRECISION_EXCEEDED"
    default_message: str = "The quantity has more decimals than the unit allows."

    def __init__(self, quantity, unit: str, number_of_decimals: int):
        self.quantity = str(quantity)
        self.unit = unit
        self.number_of_decimals = number_of_decimals
        super().__init__()


class InvalidSerialFormatError(AllocationError):
    """Serial number has no trailing digits to increment."""

    code: str = "INVALID_SERIAL_FORMAT"
    default_message: str = "The serial number has no numeric suffix to increment."

    def __init__(self, serial_number: str | None, reason: str | None = None):
        self.serial_number = serial_number
        self.reason = reason
        message = f"Invalid serial number {serial_number!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SerialRangeOverlapError(AllocationError):
    """Candidate range intersects another locally drafted range."""

    code: str = "SERIAL_RANGE_OVERLAP"
    default_message: str = (
        "The serial numbers are overlapping. "
        "Enter another starting or ending serial number."
    )

    def __init__(
        self,
        starting_serial_number: str,
        ending_serial_number: str,
        conflicting_start: str,
        conflicting_end: str,
    ):
        self.starting_serial_number = starting_serial_number
        self.ending_serial_number = ending_serial_number
        self.conflicting_start = conflicting_start
        self.conflicting_end = conflicting_end
        super().__init__()


class SameAmountSerialNumbersRequiredError(AllocationError):
    """Confirmed ending serial disagrees with the recomputed one."""

    code: str = "SAME_AMOUNT_SERIAL_NUMBERS_REQUIRED"
    default_message: str = (
        "Select the same amount of serial numbers in the range "
        "to match the quantity to issue."
    )

    def __init__(self, expected_ending: str | None, confirmed_ending: str | None):
        self.expected_ending = expected_ending
        self.confirmed_ending = confirmed_ending
        super().__init__()


class SerialNumberNotSequentialError(AllocationError):
    """Server-side count of serials in the range differs from the quantity."""

    code: str = "SERIAL_NUMBER_NOT_SEQUENTIAL"
    default_message: str = "The serial numbers are not sequential. Check your entry."

    def __init__(self, starting_serial_number: str, ending_serial_number: str,
                 expected_count: int, actual_count: int):
        self.starting_serial_number = starting_serial_number
        self.ending_serial_number = ending_serial_number
        self.expected_count = expected_count
        self.actual_count = actual_count
        super().__init__()


class SerialNumberAlreadyAllocatedError(AllocationError):
    """Candidate range intersects a committed allocation on the server."""

    code: str = "SERIAL_NUMBER_ALREADY_ALLOCATED"
    default_message: str = "The serial number is already allocated."

    def __init__(self, starting_serial_number: str, ending_serial_number: str,
                 allocation_serial_number: str, allocation_quantity: str):
        self.starting_serial_number = starting_serial_number
        self.ending_serial_number = ending_serial_number
        self.allocation_serial_number = allocation_serial_number
        self.allocation_quantity = allocation_quantity
        super().__init__()


class QuantityExceedsAvailableError(AllocationError):
    """Proposed quantity exceeds what is left on the stock record."""

    code: str = "QUANTITY_EXCEEDS_AVAILABLE"
    default_message: str = (
        "Enter a quantity less than or equal to the stock quantity "
        "minus the allocated quantity."
    )

    def __init__(self, stock_id: str, requested: str, available: str):
        self.stock_id = stock_id
        self.requested = requested
        self.available = available
        super().__init__()


# Lookup failures


class LookupFailedError(StockKernelError):
    """A collaborator call (fetch, count, store read) failed."""

    code: str = "LOOKUP_FAILED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Lookup failed during {operation}: {reason}")


class SessionStateCorruptError(LookupFailedError):
    """Persisted draft blob could not be parsed or has the wrong shape."""

    code: str = "SESSION_STATE_CORRUPT"

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__("session_state_decode", f"{key}: {reason}")


class UnsupportedSessionVersionError(LookupFailedError):
    """Persisted draft blob was written by an unknown schema version."""

    code: str = "UNSUPPORTED_SESSION_VERSION"

    def __init__(self, key: str, version, supported: tuple[int, ...]):
        self.key = key
        self.version = version
        self.supported = supported
        super().__init__(
            "session_state_decode",
            f"{key}: version {version!r} not in {supported}",
        )


# Draft store errors


class DraftError(StockKernelError):
    """Base exception for draft line store misuse."""

    code: str = "DRAFT_ERROR"


class DraftLineNotFoundError(DraftError):
    """No draft line exists for the given identity."""

    code: str = "DRAFT_LINE_NOT_FOUND"

    def __init__(self, stock_id: str, line_number: int):
        self.stock_id = stock_id
        self.line_number = line_number
        super().__init__(f"No draft line for stock {stock_id} line {line_number}")


class DraftDetailNotFoundError(DraftError):
    """Detail index does not exist on the line."""

    code: str = "DRAFT_DETAIL_NOT_FOUND"

    def __init__(self, stock_id: str, line_number: int, index: int):
        self.stock_id = stock_id
        self.line_number = line_number
        self.index = index
        super().__init__(
            f"No detail {index} on draft line for stock {stock_id} line {line_number}"
        )


class DraftLineLockedError(DraftError):
    """An external check is still outstanding on this line."""

    code: str = "DRAFT_LINE_LOCKED"

    def __init__(self, stock_id: str, line_number: int):
        self.stock_id = stock_id
        self.line_number = line_number
        super().__init__(
            f"A check is already in progress for stock {stock_id} line {line_number}"
        )


# Conversion errors


class ConversionError(StockKernelError):
    """Base exception for unit conversion errors."""

    code: str = "CONVERSION_ERROR"


class InvalidConversionFactorError(ConversionError):
    """Packing-unit to stock-unit factor must be strictly positive."""

    code: str = "INVALID_CONVERSION_FACTOR"

    def __init__(self, factor):
        self.factor = str(factor)
        super().__init__(f"Conversion factor must be > 0, got {factor}")


# Invariant violations


class InvariantViolationError(StockKernelError):
    """A structural invariant was found broken."""

    code: str = "INVARIANT_VIOLATION"


class NegativeResidualError(InvariantViolationError):
    """Drafts for a stock record add up to more than is available."""

    code: str = "NEGATIVE_RESIDUAL"

    def __init__(self, stock_id: str, available: str, committed: str):
        self.stock_id = stock_id
        self.available = available
        self.committed = committed
        super().__init__(
            f"Stock {stock_id}: committed {committed} exceeds available {available}"
        )
