"""
Pure domain layer.

This module contains immutable value objects with NO dependencies on:
- ORM (SQLAlchemy)
- Collaborators (record fetch, key/value store, notifier)
- I/O
"""

from stock_kernel.domain.drafts import DraftDetail, DraftLine, DraftLineKey
from stock_kernel.domain.dtos import Rejection, ValidationResult
from stock_kernel.domain.stock import StockAttributes, StockRecord
from stock_kernel.domain.values import (
    PackingUnit,
    SerialNumberManagementMode,
    as_decimal,
)

__all__ = [
    "DraftDetail",
    "DraftLine",
    "DraftLineKey",
    "PackingUnit",
    "Rejection",
    "SerialNumberManagementMode",
    "StockAttributes",
    "StockRecord",
    "ValidationResult",
    "as_decimal",
]
