"""Record store key lookup.

The key is looked up once, lazily, by label and cached for the process
lifetime. Where it comes from is up to the :class:`KeyProvider`.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from typing import Protocol

from pyfindmy.exceptions import KeyUnavailableError

_logger = logging.getLogger(__name__)


def parse_hex_key(value: str, *, label: str = "") -> bytes:
    """Decode a hex key as printed by ``security find-generic-password -w``."""
    text = value.strip()
    if text.startswith("0x") or text.startswith("0X"):
        text = text[2:]
    if not text:
        raise KeyUnavailableError("Key is empty", label=label)
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise KeyUnavailableError("Key must be hex-encoded", label=label) from exc


class KeyProvider(Protocol):
    """Structural interface of a key source."""

    def lookup(self, label: str) -> bytes:
        """Return the key stored under *label* or raise :class:`KeyUnavailableError`."""
        ...


class StaticKeyProvider:
    """Key supplied directly through configuration."""

    def __init__(self, key: bytes | str) -> None:
        self._key = parse_hex_key(key) if isinstance(key, str) else bytes(key)

    def lookup(self, label: str) -> bytes:
        if not self._key:
            raise KeyUnavailableError(f"No key configured for {label!r}", label=label)
        return self._key


class KeychainKeyProvider:
    """Generic-password lookup through the macOS ``security`` tool."""

    def __init__(self, *, executable: str = "security", timeout: float = 10.0) -> None:
        self._executable = executable
        self._timeout = timeout

    def lookup(self, label: str) -> bytes:
        executable = shutil.which(self._executable)
        if executable is None:
            raise KeyUnavailableError(f"{self._executable!r} is not available on this system", label=label)
        try:
            result = subprocess.run(  # noqa: S603
                [executable, "find-generic-password", "-l", label, "-w"],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise KeyUnavailableError(f"Keychain lookup for {label!r} failed: {exc}", label=label) from exc
        if result.returncode != 0:
            raise KeyUnavailableError(
                f"Keychain item {label!r} not found (exit status {result.returncode})",
                label=label,
            )
        return parse_hex_key(result.stdout, label=label)


class CachedKey:
    """Lazily resolved, process-lifetime cached key."""

    def __init__(self, provider: KeyProvider, label: str) -> None:
        self._provider = provider
        self._label = label
        self._key: bytes | None = None
        self._lock = threading.Lock()

    @property
    def label(self) -> str:
        return self._label

    @property
    def is_loaded(self) -> bool:
        return self._key is not None

    def get(self) -> bytes:
        """Return the key, looking it up on first use.

        Raises
        ------
        KeyUnavailableError
            If the provider has no key. Failures are not cached.
        """
        with self._lock:
            if self._key is None:
                key = self._provider.lookup(self._label)
                _logger.debug("Loaded record store key label=%s size=%d", self._label, len(key))
                self._key = key
            return self._key
