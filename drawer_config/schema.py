"""
DrawerConfig schema.

The runtime configuration of the cashier-closing engine: the denomination
set, the system-default float target, the signature tracker's grace
windows and the transient-retry policy.  YAML files are parsed into this
type by the loader; nothing else reads configuration files.
"""

from __future__ import annotations

from dataclasses import dataclass

from drawer_engines.denominations import DenominationTable


@dataclass(frozen=True)
class RetryPolicy:
    """How load/save react to a transient I/O failure."""

    retries: int = 1
    delay_ms: int = 1200

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")


@dataclass(frozen=True)
class SignatureWindows:
    """Grace windows during which dirty notifications are suppressed."""

    cold_start_ms: int = 900
    post_save_silence_ms: int = 1200

    def __post_init__(self) -> None:
        if self.cold_start_ms < 0 or self.post_save_silence_ms < 0:
            raise ValueError("signature windows must be >= 0")


@dataclass(frozen=True)
class DrawerConfig:
    """
    Frozen configuration for one deployment.

    Guarantees:
        - ``denominations`` is a valid DenominationTable (validated when
          the table is built).
        - ``default_float_target`` is non-negative.
        - ``checksum`` identifies the source YAML content.
    """

    config_id: str
    version: int
    currency: str
    denominations: DenominationTable
    default_float_target: int = 3_000_000
    windows: SignatureWindows = SignatureWindows()
    retry: RetryPolicy = RetryPolicy()
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.default_float_target < 0:
            raise ValueError("default_float_target must be >= 0")
