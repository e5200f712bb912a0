"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads the allocation YAML file and parses it into the typed
``stock_config.schema`` dataclasses.  Callers outside this package use
``stock_config.get_active_config()`` instead.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel's value
types only; no dependency on engines or services.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Non-boolean flag, duplicate storage key, unknown log level
  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import AllocationConfig, FieldPolicy, WorkflowConfig

_FLAG_NAMES = (
    "check_local_overlap",
    "check_sequential_match",
    "check_external_sequence",
    "check_external_allocations",
    "enforce_availability",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _flag(data: dict[str, Any], name: str, default: bool | None) -> bool | None:
    value = data.get(name, default)
    if value is None or isinstance(value, bool):
        return value
    raise ValueError(f"field_policy.{name} must be a boolean, got {value!r}")


def parse_field_policy(data: dict[str, Any] | None) -> FieldPolicy:
    """Parse a FieldPolicy; absent flags take the schema defaults."""
    data = data or {}
    unknown = set(data) - set(_FLAG_NAMES) - {"require_serial_number"}
    if unknown:
        raise ValueError(f"Unknown field_policy keys: {sorted(unknown)}")
    flags = {name: _flag(data, name, True) for name in _FLAG_NAMES}
    return FieldPolicy(
        require_serial_number=_flag(data, "require_serial_number", None),
        **flags,
    )


def parse_workflow(name: str, data: dict[str, Any]) -> WorkflowConfig:
    """
    Parse a WorkflowConfig.

    Raises:
        KeyError: storage_key or transaction_type missing.
    """
    return WorkflowConfig(
        name=name,
        storage_key=data["storage_key"],
        transaction_type=data["transaction_type"],
        field_policy=parse_field_policy(data.get("field_policy")),
    )


def parse_config(data: dict[str, Any]) -> AllocationConfig:
    """
    Parse the whole configuration document.

    Raises:
        KeyError: version or workflows missing.
        ValueError: invalid version, log level or duplicate storage key.
    """
    version = data["version"]
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise ValueError(f"version must be a positive integer, got {version!r}")

    logging_level = str(data.get("logging", {}).get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(logging_level), int):
        raise ValueError(f"Unknown logging level: {logging_level!r}")

    raw_workflows = data["workflows"]
    if not isinstance(raw_workflows, dict) or not raw_workflows:
        raise ValueError("workflows must be a non-empty mapping")

    workflows = {
        name: parse_workflow(name, body or {})
        for name, body in raw_workflows.items()
    }
    storage_keys = [w.storage_key for w in workflows.values()]
    duplicates = sorted({k for k in storage_keys if storage_keys.count(k) > 1})
    if duplicates:
        raise ValueError(f"Duplicate storage keys: {duplicates}")

    return AllocationConfig(
        version=version,
        workflows=workflows,
        logging_level=logging_level,
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
