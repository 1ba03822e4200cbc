"""Custom exception hierarchy for pyfindmy."""

from __future__ import annotations


class FindMyError(Exception):
    """Base exception for all pyfindmy errors."""


class FindMyConfigError(FindMyError):
    """Invalid or missing configuration."""


class FindMyCryptoError(FindMyError):
    """Record decoding or decryption failure."""


class RecordFormatError(FindMyCryptoError):
    """The sealed container is not a ``[nonce, tag, ciphertext]`` list of byte blobs."""


class RecordAuthenticationError(FindMyCryptoError):
    """AES-GCM tag verification failed (wrong key or tampered data).

    Never carries any part of the plaintext.
    """


class DecodedFormatError(FindMyCryptoError):
    """The decrypted payload is not a string-keyed property-list dictionary."""


class KeyUnavailableError(FindMyError):
    """The record store key could not be found.

    Ingestion stays disabled until a key becomes available.
    """

    def __init__(self, message: str, *, label: str = "") -> None:
        self.label = label
        super().__init__(message)


class SinkUnavailableError(FindMyError):
    """A notification sink failed to connect or deliver."""

    def __init__(
        self,
        message: str,
        *,
        sink: str = "",
        status_code: int | None = None,
    ) -> None:
        self.sink = sink
        self.status_code = status_code
        super().__init__(message)
