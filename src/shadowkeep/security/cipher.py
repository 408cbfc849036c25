"""AES-256-GCM helpers producing self-contained base64 blobs.

Blob layout (before base64):
- 12 bytes: random nonce
- N bytes: ciphertext followed by the 16-byte GCM tag

The functions are stateless; the caller supplies the 32-byte key. Nonces are
random rather than counters, which is fine for the small number of secrets a
desktop app writes under one key but would need revisiting for high-volume use.
"""
from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from shadowkeep.core.exceptions import (
    AuthenticationFailure,
    CryptoTooShortError,
    EncodingError,
    KeyAccessError,
)


NONCE_SIZE = 12
KEY_SIZE = 32
TAG_SIZE = 16


def _aead(key: bytes) -> AESGCM:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise KeyAccessError(f"encryption key must be {KEY_SIZE} bytes")
    return AESGCM(bytes(key))


def encrypt(plaintext: bytes, key: bytes) -> str:
    """Encrypt ``plaintext`` and return ``base64(nonce || ciphertext)``.

    A fresh nonce is drawn from ``os.urandom`` on every call, so encrypting the
    same plaintext twice yields different blobs.
    """
    aead = _aead(key)
    nonce = os.urandom(NONCE_SIZE)
    ct = aead.encrypt(nonce, bytes(plaintext), None)
    return base64.b64encode(nonce + ct).decode("ascii")


def decode_blob(blob: str | bytes) -> bytes:
    """Strictly base64-decode ``blob``; raise EncodingError on bad input."""
    if isinstance(blob, str):
        try:
            blob = blob.encode("ascii")
        except UnicodeEncodeError as e:
            raise EncodingError("Failed to decode base64: non-ASCII input") from e
    try:
        return base64.b64decode(blob.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"Failed to decode base64: {e}") from e


def decrypt(blob: str | bytes, key: bytes) -> bytes:
    """Decrypt a blob produced by :func:`encrypt`.

    Raises:
        EncodingError: ``blob`` is not valid base64.
        CryptoTooShortError: the decoded payload cannot hold a nonce.
        AuthenticationFailure: the tag did not verify (wrong key or corruption).
    """
    aead = _aead(key)
    data = decode_blob(blob)
    if len(data) < NONCE_SIZE:
        raise CryptoTooShortError(
            f"Encrypted data too short: {len(data)} bytes (minimum {NONCE_SIZE})"
        )
    nonce, ct = data[:NONCE_SIZE], data[NONCE_SIZE:]
    try:
        return aead.decrypt(nonce, ct, None)
    except InvalidTag as e:
        raise AuthenticationFailure("Decryption failed: authentication tag mismatch") from e
