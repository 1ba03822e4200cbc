"""AES-GCM primitives for sealed record payloads."""

from __future__ import annotations

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from pyfindmy._constants import NONCE_SIZE, TAG_SIZE
from pyfindmy.exceptions import FindMyCryptoError, RecordAuthenticationError

_ALLOWED_KEY_SIZES = frozenset({16, 24, 32})


def _check_key(key: bytes, *, error: type[FindMyCryptoError]) -> None:
    if len(key) not in _ALLOWED_KEY_SIZES:
        allowed = ", ".join(str(n) for n in sorted(_ALLOWED_KEY_SIZES))
        raise error(f"AES key must be {allowed} bytes (got {len(key)})")


def aes_gcm_encrypt(plaintext: bytes, key: bytes, nonce: bytes) -> tuple[bytes, bytes]:
    """AES-GCM encrypt, returning ``(ciphertext, tag)``.

    Parameters
    ----------
    plaintext : bytes
        Data to seal.
    key : bytes
        16, 24 or 32 byte AES key.
    nonce : bytes
        12-byte nonce. Must never be reused with the same key.

    Returns
    -------
    tuple[bytes, bytes]
        Ciphertext and the detached 16-byte authentication tag.

    Raises
    ------
    FindMyCryptoError
        If the key or nonce has the wrong size.
    """
    _check_key(key, error=FindMyCryptoError)
    if len(nonce) != NONCE_SIZE:
        raise FindMyCryptoError(f"nonce must be {NONCE_SIZE} bytes (got {len(nonce)})")
    sealed = AESGCM(key).encrypt(nonce, plaintext, None)
    return sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]


def aes_gcm_decrypt(ciphertext: bytes, tag: bytes, key: bytes, nonce: bytes) -> bytes:
    """AES-GCM decrypt with a detached tag.

    Raises
    ------
    RecordAuthenticationError
        If the key is unusable or the tag does not verify. No plaintext
        is produced in either case.
    """
    _check_key(key, error=RecordAuthenticationError)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as exc:
        raise RecordAuthenticationError("AES-GCM authentication failed") from exc
