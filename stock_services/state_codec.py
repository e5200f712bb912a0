"""
stock_services.state_codec -- Versioned JSON blob for drafted session state.

Responsibility:
    Encode a DraftLineStore to the string kept in the key/value store and
    decode it back, validating the blob's shape before any of it is
    trusted.

Blob layout (version 1):

    {
      "schema": "stock-allocation-draft",
      "version": 1,
      "workflow": "miscellaneous_issue",
      "lines": [
        {"stock_id": ..., "line_number": 1, "product": ...,
         "packing_unit": {"code": "BOX", "number_of_decimals": 2},
         "conversion_factor": "12",
         "details": [{"quantity_in_packing_unit": "2", ...,
                      "attributes": {"lot": ..., ...}}]}
      ]
    }

    Decimals are written as strings.

Architecture position:
    Services layer.  Standard-library json only.

Failure modes:
    - SessionStateCorruptError: not JSON, wrong schema tag, wrong
      workflow, missing keys or invalid values.
    - UnsupportedSessionVersionError: a version this code cannot read.
"""

from __future__ import annotations

import json
from typing import Any

from stock_kernel.domain.drafts import DraftDetail, DraftLine
from stock_kernel.domain.stock import StockAttributes
from stock_kernel.domain.values import PackingUnit
from stock_kernel.exceptions import (
    SessionStateCorruptError,
    StockKernelError,
    UnsupportedSessionVersionError,
)
from stock_services.draft_store import DraftLineStore

SCHEMA_NAME = "stock-allocation-draft"
SCHEMA_VERSION = 1
SUPPORTED_VERSIONS = (1,)


def _detail_to_dict(detail: DraftDetail) -> dict[str, Any]:
    return {
        "quantity_in_packing_unit": str(detail.quantity_in_packing_unit),
        "quantity_in_stock_unit": str(detail.quantity_in_stock_unit),
        "packing_unit": detail.packing_unit,
        "conversion_factor": str(detail.conversion_factor),
        "stock_unit": detail.stock_unit,
        "serial_number": detail.serial_number,
        "ending_serial_number": detail.ending_serial_number,
        "attributes": detail.attributes.to_dict(),
    }


def _line_to_dict(line: DraftLine) -> dict[str, Any]:
    return {
        "stock_id": line.stock_id,
        "line_number": line.line_number,
        "product": line.product,
        "packing_unit": {
            "code": line.packing_unit.code,
            "number_of_decimals": line.packing_unit.number_of_decimals,
        },
        "conversion_factor": str(line.conversion_factor),
        "details": [_detail_to_dict(d) for d in line.details],
    }


def encode_store(store: DraftLineStore, workflow: str) -> str:
    """Serialize the whole store; the result replaces the stored blob wholesale."""
    return json.dumps({
        "schema": SCHEMA_NAME,
        "version": SCHEMA_VERSION,
        "workflow": workflow,
        "lines": [_line_to_dict(line) for line in store.lines],
    }, sort_keys=True)


def _string(data: dict[str, Any], name: str) -> str:
    value = data[name]
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {type(value).__name__}")
    return value


def _optional_string(data: dict[str, Any], name: str) -> str | None:
    value = data.get(name)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{name} must be a string or null, got {type(value).__name__}")
    return value


def _decimal_string(data: dict[str, Any], name: str) -> str:
    value = data[name]
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a decimal string, got {type(value).__name__}")
    return value


def _detail_from_dict(data: dict[str, Any]) -> DraftDetail:
    attributes = data.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise ValueError("attributes must be an object")
    return DraftDetail(
        quantity_in_packing_unit=_decimal_string(data, "quantity_in_packing_unit"),
        quantity_in_stock_unit=_decimal_string(data, "quantity_in_stock_unit"),
        packing_unit=_string(data, "packing_unit"),
        conversion_factor=_decimal_string(data, "conversion_factor"),
        stock_unit=_string(data, "stock_unit"),
        serial_number=_optional_string(data, "serial_number"),
        ending_serial_number=_optional_string(data, "ending_serial_number"),
        attributes=StockAttributes.from_dict(attributes),
    )


def _line_from_dict(data: dict[str, Any]) -> DraftLine:
    line_number = data["line_number"]
    if not isinstance(line_number, int) or isinstance(line_number, bool):
        raise ValueError(f"line_number must be an integer, got {line_number!r}")
    unit = data["packing_unit"]
    details = data["details"]
    if not isinstance(details, list):
        raise ValueError("details must be a list")
    return DraftLine(
        stock_id=_string(data, "stock_id"),
        line_number=line_number,
        product=_string(data, "product"),
        packing_unit=PackingUnit(
            code=_string(unit, "code"),
            number_of_decimals=unit.get("number_of_decimals", 0),
        ),
        conversion_factor=_decimal_string(data, "conversion_factor"),
        details=tuple(_detail_from_dict(d) for d in details),
    )


def decode_store(text: str, key: str, workflow: str | None = None) -> DraftLineStore:
    """
    Parse a stored blob.

    Args:
        text: The blob as read from the key/value store.
        key: Storage key, for error reporting.
        workflow: Expected workflow name; None skips the check.

    Raises:
        SessionStateCorruptError: the blob cannot be trusted.
        UnsupportedSessionVersionError: the blob's version is unknown.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise SessionStateCorruptError(key, f"not valid JSON ({e})") from e

    if not isinstance(data, dict) or data.get("schema") != SCHEMA_NAME:
        raise SessionStateCorruptError(key, "missing or unknown schema tag")
    version = data.get("version")
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedSessionVersionError(key, version, SUPPORTED_VERSIONS)
    if workflow is not None and data.get("workflow") != workflow:
        raise SessionStateCorruptError(
            key, f"blob belongs to workflow {data.get('workflow')!r}",
        )

    lines = data.get("lines")
    if not isinstance(lines, list):
        raise SessionStateCorruptError(key, "lines must be a list")
    try:
        return DraftLineStore(tuple(_line_from_dict(line) for line in lines))
    except (KeyError, TypeError, ValueError, AttributeError, StockKernelError) as e:
        raise SessionStateCorruptError(key, f"invalid line ({e!r})") from e
