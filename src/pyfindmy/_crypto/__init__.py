"""Cryptographic primitives for the sealed record store."""

from __future__ import annotations

from pyfindmy._crypto.aes import aes_gcm_decrypt, aes_gcm_encrypt
from pyfindmy._crypto.records import decrypt_record, seal_record

__all__ = [
    "aes_gcm_decrypt",
    "aes_gcm_encrypt",
    "decrypt_record",
    "seal_record",
]
