"""pyfindmy - Forward tracked device locations from the encrypted record store to home automation."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyfindmy")
except PackageNotFoundError:
    __version__ = "0+local"

from pyfindmy._crypto import decrypt_record, seal_record
from pyfindmy.bridge import FindMyBridge
from pyfindmy.config import BridgeConfig, HomeAssistantConfig, MqttConfig
from pyfindmy.dispatcher import NotificationDispatcher
from pyfindmy.exceptions import (
    DecodedFormatError,
    FindMyConfigError,
    FindMyCryptoError,
    FindMyError,
    KeyUnavailableError,
    RecordAuthenticationError,
    RecordFormatError,
    SinkUnavailableError,
)
from pyfindmy.ingestion import ChangeFlag, ChangeSource, PollingChangeSource, RecordIngestor, RecordKind
from pyfindmy.keys import CachedKey, KeychainKeyProvider, KeyProvider, StaticKeyProvider
from pyfindmy.models import (
    Device,
    EstimatedLocationRecord,
    NamingRecord,
    OwnedBeaconRecord,
    ProductInfoRecord,
)
from pyfindmy.state.events import DeviceChangeEvent, DeviceChangeKind
from pyfindmy.state.registry import DeviceRegistry

__all__ = [
    "__version__",
    "BridgeConfig",
    "CachedKey",
    "ChangeFlag",
    "ChangeSource",
    "DecodedFormatError",
    "Device",
    "DeviceChangeEvent",
    "DeviceChangeKind",
    "DeviceRegistry",
    "EstimatedLocationRecord",
    "FindMyBridge",
    "FindMyConfigError",
    "FindMyCryptoError",
    "FindMyError",
    "HomeAssistantConfig",
    "KeyProvider",
    "KeyUnavailableError",
    "KeychainKeyProvider",
    "MqttConfig",
    "NamingRecord",
    "NotificationDispatcher",
    "OwnedBeaconRecord",
    "PollingChangeSource",
    "ProductInfoRecord",
    "RecordAuthenticationError",
    "RecordFormatError",
    "RecordIngestor",
    "RecordKind",
    "SinkUnavailableError",
    "StaticKeyProvider",
    "decrypt_record",
    "seal_record",
]
