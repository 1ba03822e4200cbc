from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from pyfindmy._crypto.records import seal_record

TEST_KEY = bytes(range(32))


@pytest.fixture
def key() -> bytes:
    return TEST_KEY


@pytest.fixture
def record_root(tmp_path: Path) -> Path:
    root = tmp_path / "searchpartyd"
    for name in ("OwnedBeacons", "BeaconProductInfoRecord", "BeaconNamingRecord", "BeaconEstimatedLocation"):
        (root / name).mkdir(parents=True)
    return root


@pytest.fixture
def write_record(record_root: Path, key: bytes) -> Callable[..., Path]:
    """Seal *payload* into ``<root>/<directory>/<name>``."""

    def _write(directory: str, name: str, payload: dict[str, Any]) -> Path:
        path = record_root / directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(seal_record(payload, key))
        return path

    return _write


class ReasonCode:
    def __init__(self, value: int) -> None:
        self.value = value

    def __str__(self) -> str:
        return "Success" if self.value == 0 else f"Refused({self.value})"


class FakePublishInfo:
    def __init__(self, rc: int = 0, published: bool = True) -> None:
        self.rc = rc
        self._published = published

    def wait_for_publish(self, timeout: float | None = None) -> None:
        return None

    def is_published(self) -> bool:
        return self._published


class FakeMqttClient:
    """In-memory stand-in for ``paho.mqtt.client.Client``."""

    def __init__(
        self,
        *,
        refuse: bool = False,
        fail_connect: bool = False,
        publish_rc: int = 0,
        acked: bool = True,
    ) -> None:
        self.refuse = refuse
        self.fail_connect = fail_connect
        self.publish_rc = publish_rc
        self.acked = acked
        self.connected_to: tuple[str, int] | None = None
        self.credentials: tuple[str, str | None] | None = None
        self.published: list[tuple[str, dict[str, Any], int, bool]] = []
        self.loop_started = False
        self.loop_stopped = False
        self.disconnected = False
        self.on_connect: Any = None
        self.on_disconnect: Any = None

    def enable_logger(self, logger: Any = None) -> None:
        return None

    def username_pw_set(self, username: str, password: str | None = None) -> None:
        self.credentials = (username, password)

    def connect(self, host: str, port: int = 1883, keepalive: int = 60) -> int:
        if self.fail_connect:
            raise ConnectionRefusedError(f"connection to {host}:{port} refused")
        self.connected_to = (host, port)
        return 0

    def loop_start(self) -> None:
        self.loop_started = True
        self.on_connect(self, None, None, ReasonCode(5 if self.refuse else 0), None)

    def loop_stop(self) -> None:
        self.loop_stopped = True

    def disconnect(self) -> int:
        self.disconnected = True
        return 0

    def publish(self, topic: str, payload: str, qos: int = 0, retain: bool = False) -> FakePublishInfo:
        if self.publish_rc == 0:
            self.published.append((topic, json.loads(payload), qos, retain))
        return FakePublishInfo(self.publish_rc, self.acked)


class FakeMqttFactory:
    """Client factory recording every client it hands out."""

    def __init__(self, **client_kwargs: Any) -> None:
        self.client_kwargs = client_kwargs
        self.clients: list[FakeMqttClient] = []

    def __call__(self) -> FakeMqttClient:
        client = FakeMqttClient(**self.client_kwargs)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeMqttClient:
        return self.clients[-1]


class FakeResponse:
    def __init__(self, status: int, body: bytes = b"") -> None:
        self.status = status
        self._body = body

    async def text(self, encoding: str | None = None, errors: str = "strict") -> str:
        return self._body.decode(encoding or "utf-8", errors)


class _FakeRequest:
    def __init__(self, response: FakeResponse) -> None:
        self._response = response

    async def __aenter__(self) -> FakeResponse:
        return self._response

    async def __aexit__(self, *exc: Any) -> None:
        return None


class FakeHttpSession:
    """Records ``post`` calls the way ``aiohttp.ClientSession`` receives them."""

    def __init__(self, status: int = 200, *, body: bytes = b"", error: Exception | None = None) -> None:
        self.status = status
        self.body = body
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    def post(self, url: str, **kwargs: Any) -> _FakeRequest:
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return _FakeRequest(FakeResponse(self.status, self.body))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_session() -> Callable[..., FakeHttpSession]:
    return FakeHttpSession


@pytest.fixture
def make_mqtt_factory() -> Callable[..., FakeMqttFactory]:
    return FakeMqttFactory
