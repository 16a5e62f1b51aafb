# datagate/cryptography/ecies.py
"""
DataGate Cryptography: secp256k1 ECIES

Wraps short secrets (file keys) under a recipient's secp256k1 public key
so only the matching private key can recover them.

Wire Format (eccrypto compatible):
    iv (16) || ephemeral_public_key (65, uncompressed) || ciphertext || mac (32)

    shared  = ECDH(ephemeral_private, recipient_public).x
    digest  = SHA-512(shared)
    enc_key = digest[:32]   (AES-256-CBC, PKCS#7 padding)
    mac_key = digest[32:]   (HMAC-SHA256 over iv || ephemeral || ciphertext)

Usage:
    private_key, public_key = generate_key_pair()
    blob = encrypt(public_key, b"file key")
    assert decrypt(private_key, blob) == b"file key"

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import os
from typing import Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..errors import DecryptionError, ValidationError, WrongKeyError


# =============================================================================
# Constants
# =============================================================================

CURVE = ec.SECP256K1()

IV_SIZE = 16
EPHEMERAL_KEY_SIZE = 65
MAC_SIZE = 32
PRIVATE_KEY_SIZE = 32

MIN_BLOB_SIZE = IV_SIZE + EPHEMERAL_KEY_SIZE + 16 + MAC_SIZE

KeyLike = Union[str, bytes]


# =============================================================================
# Key Helpers
# =============================================================================

def _key_bytes(key: KeyLike) -> bytes:
    """Accept raw bytes or hex with/without 0x."""
    if isinstance(key, bytes):
        return key
    text = key.strip()
    if text.startswith(("0x", "0X")):
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise ValidationError(f"Key is not valid hex: {e}") from e


def load_public_key(key: KeyLike) -> ec.EllipticCurvePublicKey:
    """
    Parse a secp256k1 public key.

    Accepts 33-byte compressed, 65-byte uncompressed or 64-byte raw
    (uncompressed without the 0x04 prefix) encodings.
    """
    raw = _key_bytes(key)
    if len(raw) == 64:
        raw = b"\x04" + raw
    if len(raw) not in (33, 65):
        raise ValidationError(
            f"Invalid public key length: {len(raw)} bytes", field="public_key"
        )
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, raw)
    except ValueError as e:
        raise ValidationError(f"Invalid public key: {e}", field="public_key") from e


def load_private_key(key: KeyLike) -> ec.EllipticCurvePrivateKey:
    raw = _key_bytes(key)
    if len(raw) != PRIVATE_KEY_SIZE:
        raise ValidationError(
            f"Invalid private key length: {len(raw)} bytes", field="private_key"
        )
    try:
        return ec.derive_private_key(int.from_bytes(raw, "big"), CURVE)
    except ValueError as e:
        raise ValidationError(f"Invalid private key: {e}", field="private_key") from e


def public_key_bytes(public_key: ec.EllipticCurvePublicKey, compressed: bool = False) -> bytes:
    fmt = (
        serialization.PublicFormat.CompressedPoint
        if compressed
        else serialization.PublicFormat.UncompressedPoint
    )
    return public_key.public_bytes(serialization.Encoding.X962, fmt)


def private_key_bytes(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return private_key.private_numbers().private_value.to_bytes(PRIVATE_KEY_SIZE, "big")


def generate_key_pair() -> Tuple[bytes, bytes]:
    """
    Generate a fresh secp256k1 key pair.

    Returns:
        (private_key 32 bytes, public_key 65 bytes uncompressed)
    """
    private_key = ec.generate_private_key(CURVE)
    return private_key_bytes(private_key), public_key_bytes(private_key.public_key())


# =============================================================================
# Internal Primitives
# =============================================================================

def _derive_keys(
    private_key: ec.EllipticCurvePrivateKey,
    public_key: ec.EllipticCurvePublicKey,
) -> Tuple[bytes, bytes]:
    shared = private_key.exchange(ec.ECDH(), public_key)
    digest = hashes.Hash(hashes.SHA512())
    digest.update(shared)
    material = digest.finalize()
    return material[:32], material[32:]


def _mac(mac_key: bytes, data: bytes) -> hmac.HMAC:
    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(data)
    return h


def _aes_cbc(key: bytes, iv: bytes, data: bytes, encrypt: bool) -> bytes:
    cipher = Cipher(algorithms.AES(key), modes.CBC(iv))
    if encrypt:
        padder = padding.PKCS7(128).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = cipher.encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    decryptor = cipher.decryptor()
    padded = decryptor.update(data) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


# =============================================================================
# Public API
# =============================================================================

def encrypt(public_key: KeyLike, plaintext: bytes) -> bytes:
    """
    Encrypt ``plaintext`` for the holder of ``public_key``.

    Args:
        public_key: Recipient secp256k1 public key
        plaintext: Data to encrypt

    Returns:
        iv || ephemeral_public_key || ciphertext || mac
    """
    recipient = load_public_key(public_key)
    ephemeral = ec.generate_private_key(CURVE)
    enc_key, mac_key = _derive_keys(ephemeral, recipient)

    iv = os.urandom(IV_SIZE)
    ephemeral_bytes = public_key_bytes(ephemeral.public_key())
    ciphertext = _aes_cbc(enc_key, iv, plaintext, encrypt=True)

    body = iv + ephemeral_bytes + ciphertext
    return body + _mac(mac_key, body).finalize()


def decrypt(private_key: KeyLike, blob: bytes) -> bytes:
    """
    Decrypt an ECIES blob produced by :func:`encrypt`.

    Raises:
        DecryptionError: Blob is truncated or malformed
        WrongKeyError: MAC does not verify under this private key
    """
    if len(blob) < MIN_BLOB_SIZE:
        raise DecryptionError(f"ECIES payload too short: {len(blob)} bytes")

    recipient = load_private_key(private_key)

    iv = blob[:IV_SIZE]
    ephemeral_bytes = blob[IV_SIZE:IV_SIZE + EPHEMERAL_KEY_SIZE]
    ciphertext = blob[IV_SIZE + EPHEMERAL_KEY_SIZE:-MAC_SIZE]
    mac = blob[-MAC_SIZE:]

    try:
        ephemeral = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, ephemeral_bytes)
    except ValueError as e:
        raise DecryptionError(f"Invalid ephemeral public key: {e}") from e

    enc_key, mac_key = _derive_keys(recipient, ephemeral)

    try:
        _mac(mac_key, blob[:-MAC_SIZE]).verify(mac)
    except InvalidSignature as e:
        raise WrongKeyError("ECIES MAC mismatch: wrong private key") from e

    try:
        return _aes_cbc(enc_key, iv, ciphertext, encrypt=False)
    except ValueError as e:
        raise DecryptionError(f"ECIES ciphertext is corrupted: {e}") from e
