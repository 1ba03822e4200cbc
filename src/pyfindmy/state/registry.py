"""In-memory device registry.

This is the only component allowed to mutate device state. Given the same
set of records it converges to the same devices regardless of delivery
order, except that attribute records arriving before the owning beacon
record are dropped.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from pyfindmy.models.device import Device
from pyfindmy.models.records import (
    EstimatedLocationRecord,
    NamingRecord,
    OwnedBeaconRecord,
    ProductInfoRecord,
)
from pyfindmy.state.events import DeviceChangeEvent
from pyfindmy.state.policy import should_accept_fix

_logger = logging.getLogger(__name__)

ChangeConsumer = Callable[[DeviceChangeEvent], None]


class DeviceRegistry:
    """Authoritative map from beacon identifier to :class:`Device`.

    Every ``apply_*`` call and every read is serialized by one lock, so all
    callers observe a single mutation order. The change consumer runs
    synchronously after the new state is committed, before ``apply_*``
    returns.
    """

    def __init__(self, on_change: ChangeConsumer | None = None) -> None:
        self._devices: dict[str, Device] = {}
        self._lock = threading.RLock()
        self._on_change = on_change

    def set_change_consumer(self, on_change: ChangeConsumer | None) -> None:
        with self._lock:
            self._on_change = on_change

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, identifier: str) -> Device | None:
        with self._lock:
            return self._devices.get(identifier)

    def all_devices(self) -> list[Device]:
        """Snapshot of every device in insertion order."""
        with self._lock:
            return list(self._devices.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._devices

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _update(self, device: Device, changes: dict[str, Any]) -> Device:
        updated = device.model_copy(update=changes)
        self._devices[device.identifier] = updated
        return updated

    def _emit(self, event: DeviceChangeEvent) -> None:
        consumer = self._on_change
        if consumer is None:
            return
        try:
            consumer(event)
        except Exception:
            _logger.warning("Device change consumer failed for %s", event.device.identifier, exc_info=True)

    def apply_owned_beacon(self, record: OwnedBeaconRecord) -> Device:
        """Create the device, or refresh its model and pairing date."""
        with self._lock:
            existing = self._devices.get(record.identifier)
            if existing is not None:
                updated = self._update(existing, {"model": record.model, "pairing_date": record.pairing_date})
                _logger.debug("Owned beacon changed: %s", updated)
                return updated

            device = Device(
                identifier=record.identifier,
                model=record.model,
                pairing_date=record.pairing_date,
            )
            self._devices[device.identifier] = device
            _logger.debug("Device created: %s", device)
            self._emit(DeviceChangeEvent.created(device))
            return device

    def apply_product_info(self, record: ProductInfoRecord) -> Device | None:
        with self._lock:
            existing = self._devices.get(record.identifier)
            if existing is None:
                _logger.debug("Product info for unknown device %s dropped", record.identifier)
                return None
            updated = self._update(
                existing,
                {
                    "manufacturer_name": record.manufacturer_name,
                    "model_name": record.model_name,
                    "version": record.version,
                },
            )
            _logger.debug("Product info changed: %s", updated)
            return updated

    def apply_naming(self, record: NamingRecord) -> Device | None:
        with self._lock:
            existing = self._devices.get(record.associated_beacon)
            if existing is None:
                _logger.debug("Naming for unknown device %s dropped", record.associated_beacon)
                return None
            updated = self._update(existing, {"name": record.name, "emoji": record.emoji})
            _logger.debug("Naming changed: %s", updated)
            return updated

    def apply_estimated_location(self, record: EstimatedLocationRecord) -> Device | None:
        """Apply a location fix if it is newer than the stored one.

        Returns the updated device, or ``None`` when the device is unknown
        or the fix is not newer (a no-op, not an error).
        """
        with self._lock:
            existing = self._devices.get(record.associated_beacon)
            if existing is None:
                _logger.debug("Location for unknown device %s dropped", record.associated_beacon)
                return None
            if not should_accept_fix(current=existing.timestamp, incoming=record.timestamp):
                _logger.debug(
                    "Stale location for %s dropped incoming=%s current=%s",
                    existing.identifier,
                    record.timestamp,
                    existing.timestamp,
                )
                return None

            updated = self._update(
                existing,
                {
                    "latitude": record.latitude,
                    "longitude": record.longitude,
                    "horizontal_accuracy": record.horizontal_accuracy,
                    "timestamp": record.timestamp,
                    "scan_date": record.scan_date,
                },
            )
            _logger.info("Location changed: %s : %s - %s", updated.display_id, updated.label, updated.timestamp)
            self._emit(DeviceChangeEvent.location_updated(updated))
            return updated
