"""Fan-out of registry change events to the notification sinks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

import aiohttp

from pyfindmy.config import BridgeConfig
from pyfindmy.sinks.home_assistant import HomeAssistantSink
from pyfindmy.sinks.mqtt import ClientFactory, MqttSink
from pyfindmy.state.events import DeviceChangeEvent

_logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Forward :class:`DeviceChangeEvent`s to the webhook and MQTT sinks.

    :meth:`submit` may be called from any thread and never blocks: the
    deliveries run as tasks on the dispatcher's event loop. The two sinks
    are independent; a failure in one never reaches the other.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        loop: asyncio.AbstractEventLoop,
        http_session: aiohttp.ClientSession | None = None,
        mqtt_client_factory: ClientFactory | None = None,
        home_assistant: HomeAssistantSink | None = None,
        mqtt: MqttSink | None = None,
    ) -> None:
        self._loop = loop
        self._home_assistant = home_assistant or HomeAssistantSink(config.home_assistant, session=http_session)
        self._mqtt = mqtt or MqttSink(config.mqtt, client_factory=mqtt_client_factory)
        self._pending: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def home_assistant(self) -> HomeAssistantSink:
        return self._home_assistant

    @property
    def mqtt(self) -> MqttSink:
        return self._mqtt

    def update_config(self, config: BridgeConfig) -> None:
        """Apply new sink settings; they take effect from the next event."""
        self._home_assistant.update_config(config.home_assistant)
        self._mqtt.update_config(config.mqtt)

    def submit(self, event: DeviceChangeEvent) -> None:
        """Hand *event* off for asynchronous delivery.

        A synchronous no-op when no sink is configured, apart from an
        MQTT sink that still holds a connection to tear down.
        """
        if self._closed:
            return
        if not (self._home_assistant.is_active or self._mqtt.is_active or self._mqtt.is_connected):
            return
        self._loop.call_soon_threadsafe(self._schedule, event)

    def _schedule(self, event: DeviceChangeEvent) -> None:
        if self._closed:
            return
        device = event.device
        if self._home_assistant.is_active and device.has_fix:
            self._track(self._home_assistant.notify(device), "home_assistant", event)
        if self._mqtt.is_active or self._mqtt.is_connected:
            self._track(self._mqtt.notify(event), "mqtt", event)

    def _track(self, coro: Coroutine[Any, Any, bool], sink: str, event: DeviceChangeEvent) -> None:
        task = self._loop.create_task(coro, name=f"pyfindmy-{sink}:{event.device.display_id}")
        self._pending.add(task)

        def _done(t: asyncio.Task[Any]) -> None:
            self._pending.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                _logger.warning(
                    "[%s] %s delivery failed: %s",
                    event.device.display_id,
                    sink,
                    exc,
                    exc_info=exc,
                )

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for every delivery handed off so far."""
        # Let handoffs queued with call_soon_threadsafe turn into tasks.
        await asyncio.sleep(0)
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
            await asyncio.sleep(0)

    async def close(self) -> None:
        await self.drain()
        self._closed = True
        await self._home_assistant.close()
        await self._mqtt.close()
