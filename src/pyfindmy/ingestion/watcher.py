"""Change sources for the record store directory tree."""

from __future__ import annotations

import asyncio
import enum
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

_logger = logging.getLogger(__name__)


class ChangeFlag(enum.IntFlag):
    NONE = 0
    CREATED = 1
    MODIFIED = 2
    REMOVED = 4
    IS_FILE = 8
    IS_DIR = 16


ChangeCallback = Callable[[Path, ChangeFlag], None]


class ChangeSource(Protocol):
    """Structural interface of a directory watcher.

    Events may be coalesced, reordered, or reported for paths the consumer
    does not care about; consumers filter by path. Changes made after
    :meth:`start` returns are reported. The owner must call :meth:`stop`
    before dropping the source.
    """

    async def start(self) -> None: ...

    def stop(self) -> None: ...


_Snapshot = dict[Path, tuple[int, int]]


def scan_tree(root: Path) -> _Snapshot:
    """Return ``{path: (mtime_ns, size)}`` for every regular file below *root*."""
    snapshot: _Snapshot = {}
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            path = Path(dirpath) / filename
            try:
                st = path.stat()
            except OSError:
                continue
            snapshot[path] = (st.st_mtime_ns, st.st_size)
    return snapshot


def diff_snapshots(previous: _Snapshot, current: _Snapshot) -> list[tuple[Path, ChangeFlag]]:
    changes: list[tuple[Path, ChangeFlag]] = []
    for path, stamp in current.items():
        old = previous.get(path)
        if old is None:
            changes.append((path, ChangeFlag.CREATED | ChangeFlag.IS_FILE))
        elif old != stamp:
            changes.append((path, ChangeFlag.MODIFIED | ChangeFlag.IS_FILE))
    for path in previous.keys() - current.keys():
        changes.append((path, ChangeFlag.REMOVED | ChangeFlag.IS_FILE))
    return changes


class PollingChangeSource:
    """Snapshot-diffing watcher running as an asyncio task.

    Each tick scans the tree in a worker thread and then invokes
    ``on_event`` on the event loop for every created, modified, or removed
    file. Ticks never overlap. Only changes made after :meth:`start` are
    reported.
    """

    def __init__(
        self,
        root: Path,
        on_event: ChangeCallback,
        *,
        interval: float = 1.0,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._root = Path(root)
        self._on_event = on_event
        self._interval = interval
        self._loop = loop
        self._task: asyncio.Task[None] | None = None
        self._snapshot: _Snapshot = {}

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Take the baseline snapshot and start polling.

        Files present once this returns are part of the baseline; anything
        written later is reported.
        """
        if self.is_running:
            raise RuntimeError("change source already running")
        loop = self._loop or asyncio.get_running_loop()
        self._snapshot = await asyncio.to_thread(scan_tree, self._root)
        self._task = loop.create_task(self._run(), name=f"pyfindmy-watch:{self._root}")
        _logger.debug("Watching %s every %.1fs (%d files)", self._root, self._interval, len(self._snapshot))

    def stop(self) -> None:
        """Stop watching. Redundant calls are accepted."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        _logger.debug("Stopped watching %s", self._root)

    async def poll_once(self) -> list[tuple[Path, ChangeFlag]]:
        """Scan once and dispatch every change found since the previous scan."""
        current = await asyncio.to_thread(scan_tree, self._root)
        changes = diff_snapshots(self._snapshot, current)
        self._snapshot = current
        for path, flags in changes:
            try:
                self._on_event(path, flags)
            except Exception:
                _logger.warning("Change handler failed for %s", path, exc_info=True)
        return changes

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.poll_once()
            except OSError as exc:
                _logger.warning("Scanning %s failed: %s", self._root, exc)
