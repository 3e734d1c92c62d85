"""
compliance_config -- single public entrypoint for compliance configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive a ``ComplianceConfig``
    and never read configuration files themselves.

Architecture position:
    Configuration -- YAML-driven settings.  This package sits above
    ``compliance_kernel`` and below ``compliance_services``.  The kernel
    and the engines MUST NEVER import from ``compliance_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Deterministic checksum: the same effective settings always produce
      the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``COMPLIANCE_CONFIG_TRACE`` log entry with the source path and the
    checksum of the effective settings.
"""

from __future__ import annotations

import logging
from pathlib import Path

from compliance_config.loader import compute_checksum, load_config, parse_config
from compliance_config.schema import ComplianceConfig

_logger = logging.getLogger("compliance_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> ComplianceConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a settings file.  Defaults to
            compliance_config/sets/default.yaml.

    Returns:
        The frozen, validated ``ComplianceConfig``.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ValueError: If the settings fail validation.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = load_config(path)

    _logger.info(
        "COMPLIANCE_CONFIG_TRACE",
        extra={
            "trace_type": "COMPLIANCE_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": compute_checksum(config.to_dict()),
            "expiry_window_days": config.expiry_window_days,
            "retention_days": config.retention_days,
            "remainder_policy": config.remainder_policy.value,
        },
    )
    return config


__all__ = [
    "ComplianceConfig",
    "compute_checksum",
    "get_active_config",
    "load_config",
    "parse_config",
]
