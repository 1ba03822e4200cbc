"""Sealed record container codec.

Every record file written by the tracking daemon is a property list
holding ``[nonce, tag, ciphertext]``. The ciphertext decrypts to a second
property list: a string-keyed dictionary of scalar values.
"""

from __future__ import annotations

import os
import plistlib
from collections.abc import Mapping
from typing import Any

from pyfindmy._constants import NONCE_SIZE, TAG_SIZE
from pyfindmy._crypto.aes import aes_gcm_decrypt, aes_gcm_encrypt
from pyfindmy.exceptions import DecodedFormatError, RecordFormatError


def _load_plist(data: bytes) -> Any:
    # plistlib raises InvalidFileException (a ValueError) for garbage, but
    # malformed binary offsets can surface as other errors as well.
    return plistlib.loads(data)


def _parse_container(data: bytes) -> tuple[bytes, bytes, bytes]:
    try:
        container = _load_plist(data)
    except Exception as exc:
        raise RecordFormatError(f"Record is not a property list: {exc}") from exc

    if not isinstance(container, list):
        raise RecordFormatError(f"Record container must be a list (got {type(container).__name__})")
    if len(container) < 3:
        raise RecordFormatError(f"Record container must hold 3 elements (got {len(container)})")

    nonce, tag, ciphertext = container[0], container[1], container[2]
    for name, value in (("nonce", nonce), ("tag", tag), ("ciphertext", ciphertext)):
        if not isinstance(value, bytes):
            raise RecordFormatError(f"Record {name} must be a data blob (got {type(value).__name__})")

    if len(nonce) != NONCE_SIZE:
        raise RecordFormatError(f"Record nonce must be {NONCE_SIZE} bytes (got {len(nonce)})")
    if len(tag) != TAG_SIZE:
        raise RecordFormatError(f"Record tag must be {TAG_SIZE} bytes (got {len(tag)})")
    return nonce, tag, ciphertext


def decrypt_record(data: bytes, key: bytes) -> dict[str, Any]:
    """Decode and decrypt one sealed record.

    Parameters
    ----------
    data : bytes
        Raw record file content.
    key : bytes
        Record store key.

    Returns
    -------
    dict[str, Any]
        Decrypted key/value record.

    Raises
    ------
    RecordFormatError
        If the outer container is malformed.
    RecordAuthenticationError
        If the tag does not verify against *key*.
    DecodedFormatError
        If the plaintext is not a string-keyed dictionary.

    Notes
    -----
    Only the top level is checked. Values are passed through as decoded,
    nested arrays and dictionaries included; the record models pick the
    scalar fields they know and ignore the rest.
    """
    nonce, tag, ciphertext = _parse_container(data)
    plaintext = aes_gcm_decrypt(ciphertext, tag, key, nonce)

    try:
        record = _load_plist(plaintext)
    except Exception as exc:
        raise DecodedFormatError(f"Decrypted record is not a property list: {exc}") from exc

    if not isinstance(record, dict):
        raise DecodedFormatError(f"Decrypted record must be a dictionary (got {type(record).__name__})")
    if not all(isinstance(k, str) for k in record):
        raise DecodedFormatError("Decrypted record keys must be strings")
    return record


def seal_record(
    payload: Mapping[str, Any],
    key: bytes,
    *,
    nonce: bytes | None = None,
    fmt: plistlib.PlistFormat = plistlib.FMT_BINARY,
) -> bytes:
    """Encrypt *payload* into the on-disk container format.

    Inverse of :func:`decrypt_record`. A random nonce is drawn when none
    is given.
    """
    if nonce is None:
        nonce = os.urandom(NONCE_SIZE)
    plaintext = plistlib.dumps(dict(payload), fmt=plistlib.FMT_BINARY)
    ciphertext, tag = aes_gcm_encrypt(plaintext, key, nonce)
    return plistlib.dumps([nonce, tag, ciphertext], fmt=fmt)
