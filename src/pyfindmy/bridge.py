"""High-level bridge from the record store to the notification sinks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import aiohttp

from pyfindmy._redact import redact_for_log
from pyfindmy.config import BridgeConfig
from pyfindmy.dispatcher import NotificationDispatcher
from pyfindmy.exceptions import FindMyError, KeyUnavailableError
from pyfindmy.ingestion.records import RecordIngestor
from pyfindmy.ingestion.watcher import ChangeCallback, ChangeFlag, ChangeSource, PollingChangeSource
from pyfindmy.keys import CachedKey, KeychainKeyProvider, KeyProvider, StaticKeyProvider
from pyfindmy.models.device import Device
from pyfindmy.sinks.mqtt import ClientFactory
from pyfindmy.state.registry import DeviceRegistry

_logger = logging.getLogger(__name__)

ChangeSourceFactory = Callable[[Path, ChangeCallback, float], ChangeSource]


def _default_change_source(root: Path, on_event: ChangeCallback, interval: float) -> ChangeSource:
    return PollingChangeSource(root, on_event, interval=interval)


class FindMyBridge:
    """Keep the device registry in sync with the record store and notify sinks.

    Usage::

        async with FindMyBridge(BridgeConfig.from_env()) as bridge:
            await stop_event.wait()

    Record ingestion (bootstrap scan and live changes alike) runs on one
    dedicated worker thread, so registry mutations never overlap.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        key_provider: KeyProvider | None = None,
        change_source_factory: ChangeSourceFactory | None = None,
        http_session: aiohttp.ClientSession | None = None,
        mqtt_client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        if key_provider is None:
            key_provider = StaticKeyProvider(config.key_hex) if config.key_hex else KeychainKeyProvider()
        self._key = CachedKey(key_provider, config.key_label)
        self._change_source_factory = change_source_factory or _default_change_source
        self._http_session = http_session
        self._mqtt_client_factory = mqtt_client_factory

        self._registry = DeviceRegistry()
        self._ingestor = RecordIngestor(config.records_root, self._key, self._registry)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._dispatcher: NotificationDispatcher | None = None
        self._change_source: ChangeSource | None = None
        self._ingestion_enabled = False
        self._inflight: set[asyncio.Future[None]] = set()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FindMyBridge:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def devices(self) -> list[Device]:
        """Snapshot of the known devices in discovery order."""
        return self._registry.all_devices()

    @property
    def ingestion_enabled(self) -> bool:
        return self._ingestion_enabled

    def _require_dispatcher(self) -> NotificationDispatcher:
        if self._dispatcher is None:
            raise FindMyError("Bridge not started. Use 'async with FindMyBridge(...) as bridge:'")
        return self._dispatcher

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._require_dispatcher()

    async def start(self) -> None:
        """Start watching the record store, then scan it.

        The change source takes its baseline before the scan, so a record
        written while the scan runs is reported and ingested after it on
        the same worker thread. A missing key disables ingestion but is not
        raised: the bridge keeps running with an empty registry.
        """
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pyfindmy-ingest")
        self._dispatcher = NotificationDispatcher(
            self._config,
            loop=loop,
            http_session=self._http_session,
            mqtt_client_factory=self._mqtt_client_factory,
        )
        self._registry.set_change_consumer(self._dispatcher.submit)
        _logger.debug("Starting bridge config=%s", redact_for_log(self._config))

        self._ingestion_enabled = True
        source = self._change_source_factory(self._config.records_root, self._on_change, self._config.poll_interval)
        await source.start()
        self._change_source = source

        try:
            await loop.run_in_executor(self._executor, self._ingestor.bootstrap)
        except KeyUnavailableError as exc:
            _logger.error("Record store key %r unavailable, ingestion disabled: %s", self._key.label, exc)
            self._ingestion_enabled = False
            self._change_source = None
            source.stop()

    async def stop(self) -> None:
        source = self._change_source
        self._change_source = None
        if source is not None:
            source.stop()
        self._ingestion_enabled = False

        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        executor = self._executor
        self._executor = None
        if executor is not None:
            await asyncio.to_thread(executor.shutdown, True)

        dispatcher = self._dispatcher
        if dispatcher is not None:
            await dispatcher.close()
        self._registry.set_change_consumer(None)

    def update_config(self, config: BridgeConfig) -> None:
        """Apply new sink settings. The record store root is fixed at start."""
        self._config = config
        if self._dispatcher is not None:
            self._dispatcher.update_config(config)

    async def wait_idle(self) -> None:
        """Wait until queued record changes are ingested and their events delivered."""
        await asyncio.sleep(0)
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        if self._dispatcher is not None:
            await self._dispatcher.drain()

    # ------------------------------------------------------------------
    # Change handling
    # ------------------------------------------------------------------

    def _on_change(self, path: Path, flags: ChangeFlag) -> None:
        loop = self._loop
        if loop is None or not self._ingestion_enabled:
            return
        loop.call_soon_threadsafe(self._queue_change, path, flags)

    def _queue_change(self, path: Path, flags: ChangeFlag) -> None:
        executor = self._executor
        if executor is None or self._loop is None or not self._ingestion_enabled:
            return
        future = self._loop.run_in_executor(executor, self._ingest_change, path, flags)
        self._inflight.add(future)
        future.add_done_callback(self._inflight.discard)

    def _ingest_change(self, path: Path, flags: ChangeFlag) -> None:
        if not self._ingestion_enabled:
            return
        try:
            self._ingestor.handle_change(path, flags)
        except KeyUnavailableError as exc:
            _logger.error("Record store key unavailable, change to %s ignored: %s", path, exc)
        except Exception:
            _logger.warning("Ingesting change to %s failed", path, exc_info=True)
