"""Command-line entry point.

Usage
-----
Run the bridge with settings from ``FINDMY_*`` environment variables::

    pyfindmy run --root ~/Library/com.apple.icloud.searchpartyd

Decrypt a single record file::

    pyfindmy dump path/to/record --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from pyfindmy._crypto.records import decrypt_record
from pyfindmy.bridge import FindMyBridge
from pyfindmy.config import BridgeConfig
from pyfindmy.exceptions import FindMyConfigError, FindMyCryptoError, KeyUnavailableError
from pyfindmy.keys import CachedKey, KeychainKeyProvider, StaticKeyProvider

_logger = logging.getLogger("pyfindmy")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pyfindmy",
        description="Forward tracked device locations to Home Assistant and MQTT.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    parser.add_argument("--root", type=Path, default=None, help="Record store root directory.")
    parser.add_argument("--key-hex", default=None, help="Record store key (hex). Defaults to the keychain.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run the bridge until interrupted.")

    dump = sub.add_parser("dump", help="Decrypt and print one record file.")
    dump.add_argument("file", type=Path, help="Record file to decrypt.")
    dump.add_argument("--json", action="store_true", help="Print as JSON.")
    return parser.parse_args(argv)


def _json_default(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, datetime):
        return value.isoformat()
    return repr(value)


def _build_config(args: argparse.Namespace) -> BridgeConfig:
    overrides: dict[str, Any] = {}
    if args.root is not None:
        overrides["records_root"] = args.root.expanduser()
    if args.key_hex:
        overrides["key_hex"] = args.key_hex
    return BridgeConfig.from_env(**overrides)


def _dump(config: BridgeConfig, path: Path, as_json: bool) -> int:
    provider = StaticKeyProvider(config.key_hex) if config.key_hex else KeychainKeyProvider()
    key = CachedKey(provider, config.key_label)
    try:
        record = decrypt_record(path.read_bytes(), key.get())
    except KeyUnavailableError as exc:
        print(f"Key unavailable: {exc}", file=sys.stderr)
        return 2
    except (OSError, FindMyCryptoError) as exc:
        print(f"Cannot decrypt {path}: {exc}", file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps(record, indent=2, sort_keys=True, default=_json_default, ensure_ascii=False))
    else:
        for name in sorted(record):
            value = record[name]
            if isinstance(value, (bytes, datetime)):
                value = _json_default(value)
            print(f"{name}: {value}")
    return 0


async def _run(config: BridgeConfig) -> int:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # pragma: no cover - platform specific
            pass

    async with FindMyBridge(config) as bridge:
        if not bridge.ingestion_enabled:
            _logger.warning("Ingestion disabled; waiting for shutdown")
        for device in bridge.devices:
            _logger.info("%s", device)
        await stop.wait()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = _build_config(args)
    except FindMyConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    if args.command == "dump":
        return _dump(config, args.file, args.json)
    return asyncio.run(_run(config))


if __name__ == "__main__":
    sys.exit(main())
