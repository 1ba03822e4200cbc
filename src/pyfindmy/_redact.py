"""Secret masking for debug logs.

The bridge logs its configuration at start-up and the webhook sink logs
request headers. Both carry credentials: the Home Assistant token, the
broker password and the record store key.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from pathlib import PurePath
from typing import Any

_SECRET_FIELDS: frozenset[str] = frozenset({"authorization", "key", "key_hex", "password", "token"})
_MASK = "<redacted>"


def _is_secret(name: str) -> bool:
    return name.lower() in _SECRET_FIELDS


def redact_for_log(value: Any) -> Any:
    """Return a copy of *value* with secret fields masked.

    Config dataclasses become dicts, paths become strings and raw key
    material is reduced to its length.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _MASK if _is_secret(str(k)) else redact_for_log(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact_for_log(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, PurePath):
        return str(value)
    return value
