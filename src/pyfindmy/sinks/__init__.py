"""Notification sinks (Home Assistant webhook, MQTT broker)."""

from pyfindmy.sinks.home_assistant import HomeAssistantSink, build_see_payload
from pyfindmy.sinks.mqtt import MqttSink, build_attributes_document, build_discovery_document

__all__ = [
    "HomeAssistantSink",
    "MqttSink",
    "build_attributes_document",
    "build_discovery_document",
    "build_see_payload",
]
