"""Base model for decrypted record payloads.

Every record model inherits from :class:`RecordModel` which provides:

* ``alias_generator=to_camel`` so the camelCase record keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops blank strings and NaN
  so the field default is used.
* A ``raw`` dict that captures the original decrypted payload.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def ensure_utc(value: Any) -> Any:
    """Treat naive datetimes (as produced by :mod:`plistlib`) as UTC."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime | None, BeforeValidator(ensure_utc)]
"""Annotated type that makes record datetimes timezone aware."""


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


OptionalText = Annotated[str | None, BeforeValidator(_blank_to_none)]


class RecordModel(BaseModel):
    """Base for decrypted record models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        protected_namespaces=(),
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
    """Original decrypted record."""

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
