"""
drawer_config -- single public entrypoint for drawer configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables.

Architecture position:
    Configuration -- sits above ``drawer_kernel`` and ``drawer_engines``
    and below ``drawer_services`` / ``drawer_modules``.  The kernel MUST
    NEVER import from ``drawer_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested (or ``DRAWER_CONFIG``) file
      does not exist.
    - ``KeyError`` / ``ValueError`` / ``InvalidDenominationTableError`` --
      the YAML is structurally invalid.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``DRAWER_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each closing back to the configuration that computed it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from drawer_config.loader import load_yaml_file, parse_config
from drawer_config.schema import DrawerConfig, RetryPolicy, SignatureWindows

_logger = logging.getLogger("drawer_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

ENV_VAR = "DRAWER_CONFIG"


def get_active_config(path: Path | str | None = None) -> DrawerConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the file: ``path`` argument, then the
    ``DRAWER_CONFIG`` environment variable, then the bundled
    ``sets/default.yaml``.

    Non-goals:
        - No caching; callers hold the returned config for the lifetime of
          their workspace.

    Returns:
        Frozen DrawerConfig.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
    """
    if path is None:
        env_path = os.environ.get(ENV_VAR)
        path = Path(env_path) if env_path else _DEFAULT_CONFIG_PATH
    config_path = Path(path)

    config = parse_config(load_yaml_file(config_path))

    _logger.info(
        "DRAWER_CONFIG_TRACE",
        extra={
            "trace_type": "DRAWER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency": config.currency,
            "denomination_count": len(config.denominations),
            "source": str(config_path),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "DrawerConfig",
    "RetryPolicy",
    "SignatureWindows",
    "ENV_VAR",
]
