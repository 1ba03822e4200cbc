"""Home Assistant ``device_tracker.see`` webhook sink."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from pyfindmy._constants import DEV_ID_PREFIX, HOST_NAME, MAC_PREFIX
from pyfindmy._redact import redact_for_log
from pyfindmy.config import HomeAssistantConfig
from pyfindmy.exceptions import SinkUnavailableError
from pyfindmy.models.device import Device

_logger = logging.getLogger(__name__)

SINK_NAME = "home_assistant"


def build_see_payload(device: Device) -> dict[str, Any]:
    """Build the ``device_tracker.see`` service body for a located device.

    Raises :class:`ValueError` if the device has no position.
    """
    if device.latitude is None or device.longitude is None:
        raise ValueError(f"device {device.identifier} has no position")
    display_id = device.display_id
    body: dict[str, Any] = {
        "dev_id": DEV_ID_PREFIX + display_id.replace("-", ""),
        "gps": [device.latitude, device.longitude],
        "mac": MAC_PREFIX + display_id,
        "host_name": HOST_NAME,
    }
    if device.horizontal_accuracy is not None:
        body["gps_accuracy"] = device.horizontal_accuracy
    return body


class HomeAssistantSink:
    """POST one ``device_tracker.see`` call per located device event.

    Delivery is at most once: failures are logged and dropped.
    """

    def __init__(
        self,
        config: HomeAssistantConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http = session

    @property
    def config(self) -> HomeAssistantConfig:
        return self._config

    @property
    def is_active(self) -> bool:
        return self._config.is_configured

    def update_config(self, config: HomeAssistantConfig) -> None:
        self._config = config

    async def notify(self, device: Device) -> bool:
        """Send *device*'s position. Returns ``True`` when Home Assistant accepted it."""
        config = self._config
        if not config.is_configured or not device.has_fix:
            return False
        try:
            await self._post(config, device)
        except SinkUnavailableError as exc:
            _logger.warning("[%s] Home Assistant update failed: %s", device.display_id, exc)
            return False
        return True

    async def _post(self, config: HomeAssistantConfig, device: Device) -> None:
        if self._http is None:
            self._http = aiohttp.ClientSession()

        url = config.see_url
        body = build_see_payload(device)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.token.strip()}",
        }
        _logger.debug("POST %s headers=%s body=%s", url, redact_for_log(headers), body)

        try:
            async with self._http.post(
                url,
                json=body,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=config.request_timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    text = await resp.text(errors="replace")
                    raise SinkUnavailableError(
                        f"HTTP {resp.status}: {text[:200]}",
                        sink=SINK_NAME,
                        status_code=resp.status,
                    )
        except SinkUnavailableError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise SinkUnavailableError(f"Request to {url} failed: {exc!r}", sink=SINK_NAME) from exc

    async def close(self) -> None:
        if not self._external_session and self._http is not None:
            await self._http.close()
        self._http = None
