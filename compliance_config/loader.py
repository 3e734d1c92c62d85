"""
Configuration Loader (``compliance_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a ``ComplianceConfig``.
Runtime callers go through ``compliance_config.get_active_config()``;
this module is the parsing half of that entry point.

Invariants enforced
-------------------
* The document root must be a mapping with a single ``compliance`` key.
* Unknown settings raise ``ValueError``; nothing is silently ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective settings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong shape or unknown keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from compliance_config.schema import ComplianceConfig

ROOT_KEY = "compliance"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_config(data: dict[str, Any]) -> ComplianceConfig:
    """
    Parse a ``ComplianceConfig`` from a loaded document.

    An empty ``compliance`` section yields the defaults.

    Raises:
        ValueError: if the root key is missing, the section is not a
            mapping, a key is unknown, or a value fails validation.
    """
    if not isinstance(data, dict) or ROOT_KEY not in data:
        raise ValueError(f"Configuration must have a '{ROOT_KEY}' root key")
    extra_roots = set(data) - {ROOT_KEY}
    if extra_roots:
        raise ValueError(f"Unknown top-level keys: {sorted(extra_roots)}")

    section = data[ROOT_KEY] or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{ROOT_KEY}' must be a mapping")

    known = {f.name for f in fields(ComplianceConfig)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    return ComplianceConfig(**section)


def load_config(path: Path | str) -> ComplianceConfig:
    """Load and parse a settings file."""
    return parse_config(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 checksum of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
