"""MQTT sink publishing Home Assistant device-tracker discovery and attributes."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, cast

import paho.mqtt.client as mqtt

from pyfindmy._constants import (
    MQTT_CLIENT_ID,
    MQTT_OBJECT_PREFIX,
    MQTT_QOS_AT_LEAST_ONCE,
    PROVIDER,
    mqtt_attributes_topic,
    mqtt_config_topic,
)
from pyfindmy.config import MqttConfig
from pyfindmy.exceptions import SinkUnavailableError
from pyfindmy.models.device import Device
from pyfindmy.state.events import DeviceChangeEvent, DeviceChangeKind

_logger = logging.getLogger(__name__)

SINK_NAME = "mqtt"

ClientFactory = Callable[[], mqtt.Client]


def _default_client_factory() -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
        client_id=MQTT_CLIENT_ID,
    )


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def build_discovery_document(device: Device) -> dict[str, Any]:
    """Home Assistant MQTT discovery config for one device tracker."""
    display_id = device.display_id
    unique_id = f"{MQTT_OBJECT_PREFIX}{display_id}"
    return {
        "name": device.label,
        "unique_id": unique_id,
        "object_id": f"findmy_{display_id.replace('-', '').lower()}",
        "json_attributes_topic": mqtt_attributes_topic(display_id),
        "source_type": "gps",
        "device": _without_none(
            {
                "identifiers": [unique_id],
                "name": device.label,
                "manufacturer": device.manufacturer_name,
                "model": device.model_name or device.model,
                "sw_version": device.version,
            }
        ),
    }


def build_attributes_document(device: Device) -> dict[str, Any]:
    """Position attributes for a located device.

    Raises :class:`ValueError` if the device has no position.
    """
    if device.latitude is None or device.longitude is None:
        raise ValueError(f"device {device.identifier} has no position")
    attributes: dict[str, Any] = {
        "latitude": device.latitude,
        "longitude": device.longitude,
        "gps_accuracy": device.horizontal_accuracy,
    }
    if device.timestamp is not None:
        attributes["last_update"] = device.timestamp.isoformat()
        attributes["last_update_ts"] = int(device.timestamp.timestamp())
    attributes["battery_level"] = device.battery
    attributes["provider"] = PROVIDER
    attributes["source_type"] = "gps"
    return _without_none(attributes)


def _encode(document: dict[str, Any]) -> str:
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False)


class MqttSink:
    """One lazily connected broker session shared by every device.

    All paho calls run on a single worker thread owned by the sink, so the
    connection handle never escapes it. A failed connect or publish tears
    the connection down; the next event reconnects.
    """

    def __init__(
        self,
        config: MqttConfig,
        *,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or _default_client_factory
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pyfindmy-mqtt")
        self._client: mqtt.Client | None = None
        self._params: tuple[str, int, str, str] | None = None
        self._connected = threading.Event()
        self._handshake = threading.Event()
        self._connect_error: str | None = None
        # display_id -> discovery payload published on the current connection
        self._announced: dict[str, str] = {}

    @property
    def config(self) -> MqttConfig:
        return self._config

    @property
    def is_active(self) -> bool:
        return self._config.is_configured

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._connected.is_set()

    def update_config(self, config: MqttConfig) -> None:
        self._config = config

    async def notify(self, event: DeviceChangeEvent) -> bool:
        """Publish *event* on the sink's worker thread."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.deliver, event)

    async def close(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._teardown)
        self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Worker-thread side
    # ------------------------------------------------------------------

    def deliver(self, event: DeviceChangeEvent) -> bool:
        """Publish discovery and, for located devices, attributes. Blocking."""
        config = self._config
        if not config.is_configured:
            if self._client is not None:
                _logger.debug("MQTT sink disabled, disconnecting")
                self._teardown()
            return False

        device = event.device
        try:
            client = self._ensure_connected(config)
            self._announce(client, device, config)
            if event.kind == DeviceChangeKind.LOCATION_UPDATED and device.has_fix:
                self._publish(
                    client,
                    mqtt_attributes_topic(device.display_id),
                    _encode(build_attributes_document(device)),
                    config,
                )
        except SinkUnavailableError as exc:
            _logger.warning("[%s] MQTT update failed: %s", device.display_id, exc)
            self._teardown()
            return False
        return True

    def _ensure_connected(self, config: MqttConfig) -> mqtt.Client:
        params = config.connection_params
        if self._client is not None:
            if self._params == params and self._connected.is_set():
                return self._client
            if self._params != params:
                _logger.info("MQTT connection settings changed, reconnecting")
            self._teardown()
        return self._connect(config, params)

    def _connect(self, config: MqttConfig, params: tuple[str, int, str, str]) -> mqtt.Client:
        host, port, user, password = params
        _logger.debug("MQTT connect requested host=%s port=%s user=%s", host, port, user or "-")

        self._connected.clear()
        self._handshake.clear()
        self._connect_error = None
        client = self._client_factory()
        client.enable_logger(_logger)
        if user:
            client.username_pw_set(user, password or None)

        def on_connect(
            _client: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._connect_error = str(reason_code)
                _logger.warning("MQTT connect refused: %s", reason_code)
            else:
                _logger.debug("MQTT connected reason=%s", reason_code)
                self._connected.set()
            self._handshake.set()

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._connected.clear()
            _logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_disconnect = on_disconnect

        self._client = client
        self._params = params
        self._announced.clear()

        try:
            client.connect(host, port, keepalive=config.keepalive)
        except (OSError, ValueError) as exc:
            raise SinkUnavailableError(f"Cannot connect to {host}:{port}: {exc}", sink=SINK_NAME) from exc
        client.loop_start()

        self._handshake.wait(config.connect_timeout)
        if not self._connected.is_set():
            reason = self._connect_error or f"no CONNACK within {config.connect_timeout:.1f}s"
            raise SinkUnavailableError(f"Broker {host}:{port} did not accept connection: {reason}", sink=SINK_NAME)
        _logger.info("MQTT connected to %s:%s", host, port)
        return client

    def _announce(self, client: mqtt.Client, device: Device, config: MqttConfig) -> None:
        payload = _encode(build_discovery_document(device))
        if self._announced.get(device.display_id) == payload:
            return
        self._publish(client, mqtt_config_topic(device.display_id), payload, config)
        self._announced[device.display_id] = payload

    def _publish(self, client: mqtt.Client, topic: str, payload: str, config: MqttConfig) -> None:
        _logger.debug("MQTT publish topic=%s payload=%s", topic, payload)
        try:
            info = client.publish(topic, payload, qos=MQTT_QOS_AT_LEAST_ONCE, retain=True)
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                raise SinkUnavailableError(
                    f"Publish to {topic} failed: {mqtt.error_string(info.rc)}",
                    sink=SINK_NAME,
                )
            info.wait_for_publish(timeout=config.connect_timeout)
        except (OSError, RuntimeError, ValueError) as exc:
            raise SinkUnavailableError(f"Publish to {topic} failed: {exc}", sink=SINK_NAME) from exc
        if not info.is_published():
            raise SinkUnavailableError(f"Publish to {topic} was not acknowledged", sink=SINK_NAME)

    def _teardown(self) -> None:
        client = self._client
        self._client = None
        self._params = None
        self._announced.clear()
        was_connected = self._connected.is_set()
        self._connected.clear()
        if client is None:
            return
        try:
            if was_connected:
                client.disconnect()
        finally:
            client.loop_stop()
            _logger.debug("MQTT network loop stopped")
