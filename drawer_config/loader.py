"""
Configuration Loader (``drawer_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a frozen
``DrawerConfig``.  Callers use ``drawer_config.get_active_config()``;
this module is the parsing half of that entry point.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad denomination list  -> ``InvalidDenominationTableError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from drawer_config.schema import DrawerConfig, RetryPolicy, SignatureWindows
from drawer_engines.denominations import DenominationTable
from drawer_kernel.exceptions import InvalidDenominationTableError
from drawer_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_denominations(data: Any) -> DenominationTable:
    """
    Parse the ``denominations`` list: ``[{id: d500k, face_value: 500000}, ...]``.

    Raises:
        InvalidDenominationTableError: on a missing/empty list or bad entries.
    """
    if not isinstance(data, list) or not data:
        raise InvalidDenominationTableError("denominations must be a non-empty list")
    pairs: list[tuple[str, int]] = []
    for entry in data:
        if not isinstance(entry, dict) or "id" not in entry or "face_value" not in entry:
            raise InvalidDenominationTableError(f"malformed denomination entry {entry!r}")
        pairs.append((str(entry["id"]), entry["face_value"]))
    return DenominationTable.of(pairs)


def parse_config(data: dict[str, Any]) -> DrawerConfig:
    """Parse a whole configuration document."""
    windows = data.get("signature_windows") or {}
    retry = data.get("retry") or {}
    return DrawerConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        currency=data["currency"],
        denominations=parse_denominations(data.get("denominations")),
        default_float_target=int(data.get("default_float_target", 3_000_000)),
        windows=SignatureWindows(
            cold_start_ms=int(windows.get("cold_start_ms", 900)),
            post_save_silence_ms=int(windows.get("post_save_silence_ms", 1200)),
        ),
        retry=RetryPolicy(
            retries=int(retry.get("retries", 1)),
            delay_ms=int(retry.get("delay_ms", 1200)),
        ),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 checksum of the canonical JSON serialization of ``data``."""
    return hash_payload(data)
