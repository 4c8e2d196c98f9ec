"""
SHA-256 helpers.

``hash_payload`` checksums a loaded configuration; ``hash_text`` gives the
short digest of a record signature that goes into log lines in place of
the signature itself.
"""

import hashlib
import json
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID


def _encode_extra(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value.normalize())
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Compact JSON with sorted keys; equal data gives equal text."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode_extra)


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    return _sha256(canonicalize_json(payload))


def hash_text(text: str, length: int = 16) -> str:
    return _sha256(text)[:length]
