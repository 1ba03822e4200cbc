"""Tracked device model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Device(BaseModel):
    """Registry-owned snapshot of one tracked device.

    Instances are immutable; the registry replaces the stored snapshot on
    every accepted record. Fields stay ``None`` until a record populates
    them.

    Parameters
    ----------
    identifier : str
        Stable beacon identifier, stored with its original case.
    model : str or None
        Hardware model name from the owned-beacon record.
    pairing_date : datetime or None
        When the beacon was paired.
    manufacturer_name, model_name, version : str or None
        Vendor-reported product info.
    name, emoji : str or None
        User-assigned display name and glyph.
    latitude, longitude : float or None
        Last known position in degrees.
    horizontal_accuracy : float or None
        Position accuracy in meters.
    timestamp : datetime or None
        Time of the last accepted fix.
    scan_date : datetime or None
        When that fix was scanned.
    battery : float or None
        Battery level, when known.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    identifier: str = Field(..., min_length=1)
    model: str | None = None
    pairing_date: datetime | None = None
    manufacturer_name: str | None = None
    model_name: str | None = None
    version: str | None = None
    name: str | None = None
    emoji: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    horizontal_accuracy: float | None = None
    timestamp: datetime | None = None
    scan_date: datetime | None = None
    battery: float | None = None

    @property
    def display_id(self) -> str:
        """Identifier as shown to users and used in sink ids."""
        return self.identifier.upper()

    @property
    def label(self) -> str:
        if self.name and self.emoji:
            return f"{self.emoji} {self.name}"
        return self.name or self.model or self.identifier

    @property
    def has_fix(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __str__(self) -> str:
        return (
            f"Device {self.identifier} model={self.model or ''} name={self.name or ''} "
            f"emoji={self.emoji or ''} manufacturer={self.manufacturer_name or ''} "
            f"model_name={self.model_name or ''} latitude={self.latitude} longitude={self.longitude} "
            f"timestamp={self.timestamp} scan_date={self.scan_date}"
        )
