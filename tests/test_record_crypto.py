from __future__ import annotations

import plistlib
from datetime import datetime

import pytest

from pyfindmy._crypto.aes import aes_gcm_encrypt
from pyfindmy._crypto.records import decrypt_record, seal_record
from pyfindmy.exceptions import DecodedFormatError, RecordAuthenticationError, RecordFormatError

_NONCE = bytes(12)


def _container(data: bytes) -> list[bytes]:
    return plistlib.loads(data)


def _flip(blob: bytes, bit: int) -> bytes:
    buf = bytearray(blob)
    buf[bit // 8] ^= 1 << (bit % 8)
    return bytes(buf)


def _pack(plaintext: bytes, key: bytes) -> bytes:
    ciphertext, tag = aes_gcm_encrypt(plaintext, key, _NONCE)
    return plistlib.dumps([_NONCE, tag, ciphertext], fmt=plistlib.FMT_BINARY)


def test_sealed_record_decrypts_to_payload(key: bytes) -> None:
    payload = {
        "identifier": "1a2b-3c",
        "model": "AirTag",
        "pairingDate": datetime(2024, 2, 8, 12, 0),
        "count": 3,
    }

    assert decrypt_record(seal_record(payload, key), key) == payload


def test_xml_container_is_accepted(key: bytes) -> None:
    data = seal_record({"name": "Keys"}, key, nonce=_NONCE, fmt=plistlib.FMT_XML)

    assert data.startswith(b"<?xml")
    assert decrypt_record(data, key) == {"name": "Keys"}


def test_seal_draws_fresh_nonce(key: bytes) -> None:
    first = _container(seal_record({"name": "Keys"}, key))
    second = _container(seal_record({"name": "Keys"}, key))

    assert len(first[0]) == 12
    assert first[0] != second[0]


@pytest.mark.parametrize("bit", [0, 7, 64, 127])
def test_tampered_tag_is_rejected(key: bytes, bit: int) -> None:
    nonce, tag, ciphertext = _container(seal_record({"name": "Keys"}, key))
    tampered = plistlib.dumps([nonce, _flip(tag, bit), ciphertext])

    with pytest.raises(RecordAuthenticationError):
        decrypt_record(tampered, key)


@pytest.mark.parametrize("bit", [0, 9, 31])
def test_tampered_ciphertext_is_rejected(key: bytes, bit: int) -> None:
    nonce, tag, ciphertext = _container(seal_record({"name": "Keys"}, key))
    tampered = plistlib.dumps([nonce, tag, _flip(ciphertext, bit)])

    with pytest.raises(RecordAuthenticationError):
        decrypt_record(tampered, key)


def test_wrong_key_is_rejected(key: bytes) -> None:
    data = seal_record({"name": "Keys"}, key)

    with pytest.raises(RecordAuthenticationError) as excinfo:
        decrypt_record(data, bytes(32))

    assert "Keys" not in str(excinfo.value)


def test_two_element_container_is_a_format_error(key: bytes) -> None:
    data = plistlib.dumps([bytes(12), bytes(16)])

    with pytest.raises(RecordFormatError):
        decrypt_record(data, key)


def test_non_blob_elements_are_a_format_error(key: bytes) -> None:
    data = plistlib.dumps(["nonce", "tag", "ciphertext"])

    with pytest.raises(RecordFormatError):
        decrypt_record(data, key)


def test_short_nonce_is_a_format_error(key: bytes) -> None:
    data = plistlib.dumps([bytes(8), bytes(16), b"xyz"])

    with pytest.raises(RecordFormatError):
        decrypt_record(data, key)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"not a property list",
        plistlib.dumps({"nonce": b"x"}),
    ],
)
def test_garbage_container_is_a_format_error(key: bytes, data: bytes) -> None:
    with pytest.raises(RecordFormatError):
        decrypt_record(data, key)


def test_non_dictionary_plaintext_is_rejected(key: bytes) -> None:
    data = _pack(plistlib.dumps([1, 2, 3]), key)

    with pytest.raises(DecodedFormatError):
        decrypt_record(data, key)


def test_non_plist_plaintext_is_rejected(key: bytes) -> None:
    data = _pack(b"plain text", key)

    with pytest.raises(DecodedFormatError):
        decrypt_record(data, key)


def test_nested_values_pass_through(key: bytes) -> None:
    payload = {"identifier": "A", "extra": {"history": [1, 2]}, "tags": ["x"]}

    assert decrypt_record(seal_record(payload, key), key) == payload
