"""Typed views of the four decrypted record kinds."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator, Field, field_validator

from pyfindmy.models._base import OptionalText, RecordModel, UtcDatetime


def _strip_identifier(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


BeaconIdentifier = Annotated[str, BeforeValidator(_strip_identifier), Field(min_length=1)]


class OwnedBeaconRecord(RecordModel):
    """Identity of a paired beacon. The only record that creates a device."""

    identifier: BeaconIdentifier
    model: OptionalText = None
    pairing_date: UtcDatetime = None


class ProductInfoRecord(RecordModel):
    """Vendor-reported product details."""

    identifier: BeaconIdentifier
    manufacturer_name: OptionalText = None
    model_name: OptionalText = None
    version: OptionalText = None

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class NamingRecord(RecordModel):
    """User-assigned name and emoji."""

    associated_beacon: BeaconIdentifier
    name: OptionalText = None
    emoji: OptionalText = None


class EstimatedLocationRecord(RecordModel):
    """One location fix."""

    associated_beacon: BeaconIdentifier
    latitude: float | None = None
    longitude: float | None = None
    horizontal_accuracy: float | None = None
    timestamp: UtcDatetime = None
    scan_date: UtcDatetime = None
