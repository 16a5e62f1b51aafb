# datagate/cryptography/envelope.py
"""
DataGate Cryptography: Password Envelope

Symmetric envelope encryption for whole file payloads, keyed by a
password-like secret (the user's wallet-derived key).

Envelope Format:
    magic (4) = b"DGE1"
    log2_n (1)            scrypt cost parameter, 10..20
    content (1)           0 = bytes, 1 = UTF-8 text
    salt (16)
    nonce (12)
    ciphertext || tag (16)   AES-256-GCM

The header is authenticated as associated data, so tampering with the
parameters fails the same way as a wrong secret.

Usage:
    envelope = seal(b"payload", secret)
    assert open_envelope(envelope, secret) == b"payload"

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import os
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..errors import DecryptionError, ValidationError, WrongKeyError


# =============================================================================
# Constants
# =============================================================================

MAGIC = b"DGE1"
SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32

DEFAULT_LOG2_N = 14
MIN_LOG2_N = 10
MAX_LOG2_N = 20
SCRYPT_R = 8
SCRYPT_P = 1

CONTENT_BINARY = 0
CONTENT_TEXT = 1

HEADER_SIZE = len(MAGIC) + 2 + SALT_SIZE + NONCE_SIZE

Secret = Union[str, bytes]
Payload = Union[str, bytes]


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _derive_key(secret: bytes, salt: bytes, log2_n: int) -> bytes:
    kdf = Scrypt(salt=salt, length=KEY_SIZE, n=2 ** log2_n, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret)


def check_log2_n(log2_n: int) -> int:
    """Reject scrypt cost exponents outside [MIN_LOG2_N, MAX_LOG2_N]."""
    if isinstance(log2_n, bool) or not isinstance(log2_n, int) \
            or not MIN_LOG2_N <= log2_n <= MAX_LOG2_N:
        raise ValidationError(
            f"scrypt cost exponent must be an integer in {MIN_LOG2_N}..{MAX_LOG2_N}, "
            f"got {log2_n!r}",
            field="log2_n",
        )
    return log2_n


# =============================================================================
# Public API
# =============================================================================

def seal(data: Payload, secret: Secret, log2_n: int = DEFAULT_LOG2_N) -> bytes:
    """
    Encrypt ``data`` under ``secret``.

    Args:
        data: Bytes, or text (sealed as UTF-8 and opened back as text)
        secret: Password-like secret
        log2_n: scrypt cost exponent

    Returns:
        Envelope bytes

    Raises:
        ValidationError: ``log2_n`` outside the range open_envelope accepts
    """
    check_log2_n(log2_n)
    content = CONTENT_TEXT if isinstance(data, str) else CONTENT_BINARY
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    header = MAGIC + bytes([log2_n, content]) + salt + nonce

    key = _derive_key(_to_bytes(secret), salt, log2_n)
    ciphertext = AESGCM(key).encrypt(nonce, _to_bytes(data), header)
    return header + ciphertext


def open_envelope(envelope: bytes, secret: Secret) -> Payload:
    """
    Decrypt an envelope produced by :func:`seal`.

    Returns:
        ``str`` if the envelope was sealed from text, else ``bytes``

    Raises:
        DecryptionError: Not a DataGate envelope, or truncated
        WrongKeyError: Secret does not open the envelope
    """
    envelope = bytes(envelope)
    if len(envelope) < HEADER_SIZE + TAG_SIZE:
        raise DecryptionError(f"Envelope too short: {len(envelope)} bytes")
    if envelope[:len(MAGIC)] != MAGIC:
        raise DecryptionError("Not a DataGate envelope (bad magic)")

    offset = len(MAGIC)
    log2_n = envelope[offset]
    if not MIN_LOG2_N <= log2_n <= MAX_LOG2_N:
        raise DecryptionError(f"Unsupported scrypt cost: 2^{log2_n}")
    content = envelope[offset + 1]
    if content not in (CONTENT_BINARY, CONTENT_TEXT):
        raise DecryptionError(f"Unknown envelope content type: {content}")
    offset += 2
    salt = envelope[offset:offset + SALT_SIZE]
    offset += SALT_SIZE
    nonce = envelope[offset:offset + NONCE_SIZE]
    offset += NONCE_SIZE

    key = _derive_key(_to_bytes(secret), salt, log2_n)
    try:
        plaintext = AESGCM(key).decrypt(nonce, envelope[offset:], envelope[:offset])
    except InvalidTag as e:
        raise WrongKeyError() from e

    if content == CONTENT_TEXT:
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError(f"Text envelope is not valid UTF-8: {e}") from e
    return plaintext
