"""Bridge configuration for pyfindmy."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pyfindmy._constants import (
    DEFAULT_HA_ENDPOINT,
    DEFAULT_KEY_LABEL,
    DEFAULT_RECORDS_ROOT,
    HA_SEE_PATH,
    MQTT_DEFAULT_PORT,
)
from pyfindmy.exceptions import FindMyConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(name: str, cast: Callable[[str], Any]) -> Any:
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return cast(value.strip())
    except ValueError as exc:
        raise FindMyConfigError(f"{name} must be a number (got {value!r})") from exc


@dataclasses.dataclass(frozen=True)
class HomeAssistantConfig:
    """Home Assistant webhook sink settings.

    Parameters
    ----------
    enabled : bool
        Whether location updates are posted to Home Assistant.
    endpoint : str
        Base URL of the Home Assistant instance.
    token : str
        Long-lived access token sent as a bearer token.
    request_timeout : float
        Total timeout in seconds for a single POST.
    """

    enabled: bool = False
    endpoint: str = DEFAULT_HA_ENDPOINT
    token: str = ""
    request_timeout: float = 10.0

    @property
    def is_configured(self) -> bool:
        """Whether the sink is enabled and has every required setting."""
        return self.enabled and bool(self.endpoint.strip()) and bool(self.token.strip())

    @property
    def see_url(self) -> str:
        return f"{self.endpoint.strip().rstrip('/')}{HA_SEE_PATH}"


@dataclasses.dataclass(frozen=True)
class MqttConfig:
    """MQTT broker sink settings.

    Parameters
    ----------
    enabled : bool
        Whether devices are published to the broker.
    server : str
        Broker host name or address.
    port : int
        Broker TCP port.
    user : str
        Optional broker user name.
    password : str
        Optional broker password.
    keepalive : int
        MQTT keepalive in seconds.
    connect_timeout : float
        Seconds to wait for the broker CONNACK.
    """

    enabled: bool = False
    server: str = ""
    port: int = MQTT_DEFAULT_PORT
    user: str = ""
    password: str = ""
    keepalive: int = 60
    connect_timeout: float = 5.0

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.server.strip())

    @property
    def connection_params(self) -> tuple[str, int, str, str]:
        """Parameters whose change forces a reconnect."""
        return (self.server.strip(), int(self.port), self.user, self.password)


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Top-level bridge configuration.

    Parameters
    ----------
    records_root : Path
        Root of the record store (the four record sub-directories live here).
    key_label : str
        Keychain label of the record store key.
    key_hex : str or None
        Hex-encoded key. When set, the keychain is not consulted.
    poll_interval : float
        Seconds between change-source scans of the record tree.
    home_assistant : HomeAssistantConfig
        Webhook sink settings.
    mqtt : MqttConfig
        MQTT sink settings.
    """

    records_root: Path = DEFAULT_RECORDS_ROOT
    key_label: str = DEFAULT_KEY_LABEL
    key_hex: str | None = None
    poll_interval: float = 1.0
    home_assistant: HomeAssistantConfig = dataclasses.field(default_factory=HomeAssistantConfig)
    mqtt: MqttConfig = dataclasses.field(default_factory=MqttConfig)

    def __post_init__(self) -> None:
        if not isinstance(self.records_root, Path):
            object.__setattr__(self, "records_root", Path(self.records_root).expanduser())

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from ``FINDMY_*`` environment variables.

        Explicit keyword arguments override environment values. Nested
        sink settings may be overridden with a dict or a config instance.

        Raises
        ------
        FindMyConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        ha_kwargs: dict[str, Any] = {}
        if "FINDMY_HA_ENABLED" in env:
            ha_kwargs["enabled"] = _env_bool(env.get("FINDMY_HA_ENABLED"), False)
        _ENV_HA_MAP = {
            "FINDMY_HA_ENDPOINT": "endpoint",
            "FINDMY_HA_TOKEN": "token",
        }
        for env_key, field_name in _ENV_HA_MAP.items():
            val = env.get(env_key)
            if val is not None:
                ha_kwargs[field_name] = val
        timeout_env = _env_number("FINDMY_HA_TIMEOUT", float)
        if timeout_env is not None:
            ha_kwargs["request_timeout"] = timeout_env

        mqtt_kwargs: dict[str, Any] = {}
        if "FINDMY_MQTT_ENABLED" in env:
            mqtt_kwargs["enabled"] = _env_bool(env.get("FINDMY_MQTT_ENABLED"), False)
        _ENV_MQTT_MAP = {
            "FINDMY_MQTT_SERVER": "server",
            "FINDMY_MQTT_USER": "user",
            "FINDMY_MQTT_PASSWORD": "password",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val
        port_env = _env_number("FINDMY_MQTT_PORT", int)
        if port_env is not None:
            mqtt_kwargs["port"] = port_env

        ha_overrides = overrides.pop("home_assistant", None)
        if isinstance(ha_overrides, dict):
            ha_kwargs.update(ha_overrides)
        elif isinstance(ha_overrides, HomeAssistantConfig):
            ha_kwargs = dataclasses.asdict(ha_overrides)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttConfig):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {
            "home_assistant": HomeAssistantConfig(**ha_kwargs),
            "mqtt": MqttConfig(**mqtt_kwargs),
        }

        root_env = env.get("FINDMY_RECORDS_ROOT")
        if root_env is not None:
            config_kwargs["records_root"] = Path(root_env).expanduser()
        label_env = env.get("FINDMY_KEY_LABEL")
        if label_env is not None:
            config_kwargs["key_label"] = label_env
        key_env = env.get("FINDMY_KEY_HEX")
        if key_env:
            config_kwargs["key_hex"] = key_env
        interval_env = _env_number("FINDMY_POLL_INTERVAL", float)
        if interval_env is not None and "poll_interval" not in overrides:
            config_kwargs["poll_interval"] = interval_env

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
