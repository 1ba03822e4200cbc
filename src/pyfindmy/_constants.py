"""Internal constants shared across the library."""

from pathlib import Path

# Directory written by the location-tracking daemon.
DEFAULT_RECORDS_ROOT = Path.home() / "Library" / "com.apple.icloud.searchpartyd"

# Keychain label of the record store key.
DEFAULT_KEY_LABEL = "BeaconStore"

NONCE_SIZE = 12
TAG_SIZE = 16

# ------------------------------------------------------------------
# Home Assistant
# ------------------------------------------------------------------

DEFAULT_HA_ENDPOINT = "http://homeassistant.local:8123"
HA_SEE_PATH = "/api/services/device_tracker/see"
HOST_NAME = "FindMyDevices"
DEV_ID_PREFIX = "findmy_"
MAC_PREFIX = "FINDMY_"

# ------------------------------------------------------------------
# MQTT
# ------------------------------------------------------------------

MQTT_CLIENT_ID = "FindMyDevices"
MQTT_DEFAULT_PORT = 1883
MQTT_DISCOVERY_PREFIX = "homeassistant/device_tracker"
MQTT_OBJECT_PREFIX = "FMD_"
MQTT_QOS_AT_LEAST_ONCE = 1
PROVIDER = "FindMyDevices"


def mqtt_base_topic(display_id: str) -> str:
    """Return ``homeassistant/device_tracker/FMD_<ID>`` for an uppercase device id."""
    return f"{MQTT_DISCOVERY_PREFIX}/{MQTT_OBJECT_PREFIX}{display_id}"


def mqtt_config_topic(display_id: str) -> str:
    return f"{mqtt_base_topic(display_id)}/config"


def mqtt_attributes_topic(display_id: str) -> str:
    return f"{mqtt_base_topic(display_id)}/attributes"
