"""Domain events emitted by the device registry."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from pyfindmy.models.device import Device


class DeviceChangeKind(StrEnum):
    CREATED = "created"
    LOCATION_UPDATED = "location_updated"


class DeviceChangeEvent(BaseModel):
    """A committed registry change, carrying the device snapshot after the change."""

    model_config = ConfigDict(frozen=True)

    kind: DeviceChangeKind
    device: Device
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def created(cls, device: Device) -> DeviceChangeEvent:
        return cls(kind=DeviceChangeKind.CREATED, device=device)

    @classmethod
    def location_updated(cls, device: Device) -> DeviceChangeEvent:
        return cls(kind=DeviceChangeKind.LOCATION_UPDATED, device=device)
