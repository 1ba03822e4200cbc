"""Record store ingestion.

Walks the record store (or reacts to one changed path), decrypts each
record file and routes it to the matching registry operation. A broken
record never stops a scan: it is logged and skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from pyfindmy._crypto.records import decrypt_record
from pyfindmy.exceptions import FindMyCryptoError
from pyfindmy.ingestion.watcher import ChangeFlag
from pyfindmy.keys import CachedKey
from pyfindmy.models.records import (
    EstimatedLocationRecord,
    NamingRecord,
    OwnedBeaconRecord,
    ProductInfoRecord,
)
from pyfindmy.state.registry import DeviceRegistry

_logger = logging.getLogger(__name__)


class RecordKind(StrEnum):
    """Record kinds, valued by the sub-directory that stores them."""

    OWNED_BEACON = "OwnedBeacons"
    PRODUCT_INFO = "BeaconProductInfoRecord"
    NAMING = "BeaconNamingRecord"
    ESTIMATED_LOCATION = "BeaconEstimatedLocation"


# Identity records first so attribute records find their device.
BOOTSTRAP_ORDER: tuple[RecordKind, ...] = (
    RecordKind.OWNED_BEACON,
    RecordKind.NAMING,
    RecordKind.PRODUCT_INFO,
    RecordKind.ESTIMATED_LOCATION,
)

_RECORD_MODELS: dict[RecordKind, type[BaseModel]] = {
    RecordKind.OWNED_BEACON: OwnedBeaconRecord,
    RecordKind.PRODUCT_INFO: ProductInfoRecord,
    RecordKind.NAMING: NamingRecord,
    RecordKind.ESTIMATED_LOCATION: EstimatedLocationRecord,
}


class RecordIngestor:
    """Feed record files from the store at *root* into a :class:`DeviceRegistry`."""

    def __init__(self, root: Path, key: CachedKey, registry: DeviceRegistry) -> None:
        self._root = Path(root)
        self._key = key
        self._registry = registry
        self._appliers: dict[RecordKind, Callable[[Any], Any]] = {
            RecordKind.OWNED_BEACON: registry.apply_owned_beacon,
            RecordKind.PRODUCT_INFO: registry.apply_product_info,
            RecordKind.NAMING: registry.apply_naming,
            RecordKind.ESTIMATED_LOCATION: registry.apply_estimated_location,
        }

    @property
    def root(self) -> Path:
        return self._root

    def directory_for(self, kind: RecordKind) -> Path:
        return self._root / kind.value

    def category_for(self, path: Path) -> RecordKind | None:
        """Map *path* to its record kind by sub-directory prefix."""
        candidate = Path(path)
        for kind in RecordKind:
            if candidate.is_relative_to(self.directory_for(kind)):
                return kind
        return None

    def bootstrap(self) -> int:
        """Full scan of every record directory. Returns the number of records applied."""
        key = self._key.get()
        applied = 0
        for kind in BOOTSTRAP_ORDER:
            applied += self._ingest(self.directory_for(kind), kind, key)
        _logger.info("Bootstrap scan applied %d records, %d devices known", applied, len(self._registry))
        return applied

    def handle_change(self, path: Path, flags: ChangeFlag) -> int:
        """Re-ingest one changed path reported by a change source."""
        if flags & ChangeFlag.REMOVED:
            return 0
        kind = self.category_for(path)
        if kind is None:
            return 0
        return self.ingest(path, kind)

    def ingest(self, path: Path, kind: RecordKind) -> int:
        """Ingest a file, or every file below a directory, as records of *kind*.

        Raises
        ------
        KeyUnavailableError
            If the record store key cannot be obtained. Nothing is read.
        """
        return self._ingest(Path(path), kind, self._key.get())

    def _ingest(self, path: Path, kind: RecordKind, key: bytes) -> int:
        if path.is_dir():
            try:
                entries = sorted(path.iterdir())
            except OSError as exc:
                _logger.warning("Cannot list %s: %s", path, exc)
                return 0
            return sum(self._ingest(entry, kind, key) for entry in entries)
        if not path.is_file():
            return 0
        return 1 if self._ingest_file(path, kind, key) else 0

    def _ingest_file(self, path: Path, kind: RecordKind, key: bytes) -> bool:
        try:
            data = path.read_bytes()
        except OSError as exc:
            _logger.warning("Cannot read record %s: %s", path, exc)
            return False

        try:
            payload = decrypt_record(data, key)
        except FindMyCryptoError as exc:
            _logger.warning("Dropping record %s: %s", path, exc)
            return False

        try:
            record = _RECORD_MODELS[kind].model_validate(payload)
        except ValidationError as exc:
            _logger.warning("Dropping %s record %s: %d invalid fields", kind.name, path, exc.error_count())
            _logger.debug("Record validation errors for %s", path, exc_info=True)
            return False

        _logger.debug("Applying %s record from %s", kind.name, path)
        self._appliers[kind](record)
        return True
