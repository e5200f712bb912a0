"""
stock_config -- single public entrypoint for allocation configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns an ``AllocationConfig`` holding one
    ``WorkflowConfig`` (storage key, transaction type, ``FieldPolicy``) per
    mobile workflow.

Architecture position:
    Configuration -- YAML-driven.  Sits above ``stock_kernel`` and below
    ``stock_services``.  The kernel MUST NEVER import from
    ``stock_config``.

Invariants enforced:
    - Single entrypoint: runtime config flows through ``get_active_config()``.
    - Deterministic checksum: the same YAML always yields the same
      ``AllocationConfig.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``KeyError`` -- a required key is missing.
    - ``ValueError`` -- a value fails validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``STOCK_CONFIG_TRACE`` log entry with the version, checksum, source
    path and workflow names.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from stock_config.loader import load_yaml_file, parse_config
from stock_config.schema import (
    AllocationConfig,
    FieldPolicy,
    ResolvedFieldPolicy,
    WorkflowConfig,
)

_logger = logging.getLogger("stock_kernel.config")

CONFIG_ENV_VAR = "STOCK_ALLOCATION_CONFIG"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> AllocationConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: the ``path`` argument, then the
    ``STOCK_ALLOCATION_CONFIG`` environment variable, then the packaged
    ``defaults.yaml``.

    Non-goals:
        - Does NOT cache; callers hold the returned config for the life of
          a draft session.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        KeyError: If a required key is missing.
        ValueError: If configuration validation fails.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or _DEFAULT_CONFIG_PATH
    source = Path(path)

    config = parse_config(load_yaml_file(source))

    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "trace_type": "STOCK_CONFIG_TRACE",
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(source),
            "workflows": sorted(config.workflows),
        },
    )
    return config


__all__ = [
    "AllocationConfig",
    "CONFIG_ENV_VAR",
    "FieldPolicy",
    "ResolvedFieldPolicy",
    "WorkflowConfig",
    "get_active_config",
]
