from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from pyfindmy.config import BridgeConfig, HomeAssistantConfig, MqttConfig
from pyfindmy.dispatcher import NotificationDispatcher
from pyfindmy.models.device import Device
from pyfindmy.state.events import DeviceChangeEvent

_HA = HomeAssistantConfig(enabled=True, token="tok")
_MQTT = MqttConfig(enabled=True, server="broker", connect_timeout=0.5)


def _located() -> DeviceChangeEvent:
    device = Device(
        identifier="ab-12",
        name="Keys",
        latitude=52.5,
        longitude=13.4,
        timestamp=datetime(2024, 2, 8, 12, 0, tzinfo=UTC),
    )
    return DeviceChangeEvent.location_updated(device)


@pytest.mark.asyncio
async def test_submit_from_worker_thread_reaches_both_sinks(
    make_session: Callable[..., Any],
    make_mqtt_factory: Callable[..., Any],
) -> None:
    session = make_session()
    factory = make_mqtt_factory()
    dispatcher = NotificationDispatcher(
        BridgeConfig(home_assistant=_HA, mqtt=_MQTT),
        loop=asyncio.get_running_loop(),
        http_session=session,
        mqtt_client_factory=factory,
    )

    await asyncio.to_thread(dispatcher.submit, _located())
    await dispatcher.drain()
    await dispatcher.close()

    assert len(session.calls) == 1
    assert [topic.rsplit("/", 1)[-1] for topic, *_rest in factory.last.published] == ["config", "attributes"]


@pytest.mark.asyncio
async def test_created_event_skips_webhook(
    make_session: Callable[..., Any],
    make_mqtt_factory: Callable[..., Any],
) -> None:
    session = make_session()
    factory = make_mqtt_factory()
    dispatcher = NotificationDispatcher(
        BridgeConfig(home_assistant=_HA, mqtt=_MQTT),
        loop=asyncio.get_running_loop(),
        http_session=session,
        mqtt_client_factory=factory,
    )

    dispatcher.submit(DeviceChangeEvent.created(Device(identifier="ab-12")))
    await dispatcher.close()

    assert session.calls == []
    assert len(factory.last.published) == 1


@pytest.mark.asyncio
async def test_webhook_failure_does_not_affect_mqtt(
    make_session: Callable[..., Any],
    make_mqtt_factory: Callable[..., Any],
) -> None:
    session = make_session(status=500, body=b"boom")
    factory = make_mqtt_factory()
    dispatcher = NotificationDispatcher(
        BridgeConfig(home_assistant=_HA, mqtt=_MQTT),
        loop=asyncio.get_running_loop(),
        http_session=session,
        mqtt_client_factory=factory,
    )

    dispatcher.submit(_located())
    await dispatcher.close()

    assert len(session.calls) == 1
    assert len(factory.last.published) == 2


@pytest.mark.asyncio
async def test_no_configured_sink_is_a_no_op(
    make_session: Callable[..., Any],
    make_mqtt_factory: Callable[..., Any],
) -> None:
    session = make_session()
    factory = make_mqtt_factory()
    dispatcher = NotificationDispatcher(
        BridgeConfig(),
        loop=asyncio.get_running_loop(),
        http_session=session,
        mqtt_client_factory=factory,
    )

    dispatcher.submit(_located())
    await dispatcher.drain()

    assert session.calls == []
    assert factory.clients == []
    await dispatcher.close()


@pytest.mark.asyncio
async def test_update_config_enables_sink_for_next_event(
    make_session: Callable[..., Any],
    make_mqtt_factory: Callable[..., Any],
) -> None:
    session = make_session()
    dispatcher = NotificationDispatcher(
        BridgeConfig(),
        loop=asyncio.get_running_loop(),
        http_session=session,
        mqtt_client_factory=make_mqtt_factory(),
    )

    dispatcher.submit(_located())
    dispatcher.update_config(BridgeConfig(home_assistant=_HA))
    dispatcher.submit(_located())
    await dispatcher.close()

    assert len(session.calls) == 1
