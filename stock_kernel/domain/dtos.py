"""
Data transfer objects for allocation outcomes.

Rejection and ValidationResult carry refused commits back to callers as
values. They are the only form in which an AllocationError leaves the
validator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stock_kernel.exceptions import AllocationError, StockKernelError


@dataclass(frozen=True)
class Rejection:
    """
    A single refused candidate.

    Contract:
        code is the machine-readable code of the AllocationError (or
        LookupFailedError) that caused the refusal; message is the
        operator-facing text.

    Non-goals:
        - Does NOT raise -- it IS the error representation.
    """

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls, error: StockKernelError) -> Rejection:
        if isinstance(error, AllocationError):
            details = error.details()
        else:
            details = {
                k: v for k, v in vars(error).items() if not k.startswith("_")
            }
        return cls(code=error.code, message=str(error), details=details)


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validating one candidate.

    Guarantees:
        - errors is always a tuple (never None)
        - bool(result) == result.is_valid
    """

    is_valid: bool
    errors: tuple[Rejection, ...] = ()

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: Rejection) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors))

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(e.code for e in self.errors)

    def __bool__(self) -> bool:
        return self.is_valid
