"""Pydantic models for records and devices."""

from pyfindmy.models.device import Device
from pyfindmy.models.records import (
    EstimatedLocationRecord,
    NamingRecord,
    OwnedBeaconRecord,
    ProductInfoRecord,
)

__all__ = [
    "Device",
    "EstimatedLocationRecord",
    "NamingRecord",
    "OwnedBeaconRecord",
    "ProductInfoRecord",
]
