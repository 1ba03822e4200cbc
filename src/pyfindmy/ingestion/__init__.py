"""Ingestion layer.

Adapters that read sealed records from the on-disk store (full scans and
change-driven single files) and route them into the device registry.
"""

from pyfindmy.ingestion.records import BOOTSTRAP_ORDER, RecordIngestor, RecordKind
from pyfindmy.ingestion.watcher import ChangeFlag, ChangeSource, PollingChangeSource

__all__ = [
    "BOOTSTRAP_ORDER",
    "ChangeFlag",
    "ChangeSource",
    "PollingChangeSource",
    "RecordIngestor",
    "RecordKind",
]
