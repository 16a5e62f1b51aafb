# tests/test_crypto.py
"""
DataGate Cryptography Tests

Categories:
  C1. Password envelope
  C2. ECIES key wrapping
  C3. KeyEncryptionService
"""

import asyncio

import pytest

from datagate.block.adapters import LocalAccountAdapter
from datagate.cryptography import DefaultCryptoBackend, envelope, ecies
from datagate.errors import (
    DecryptionError,
    MissingAccountError,
    UserRejectedSignatureError,
    ValidationError,
    WrongKeyError,
)

from conftest import OTHER_KEY, OWNER_KEY


# =============================================================================
# C1. Password Envelope
# =============================================================================

def test_c1_1_envelope_roundtrip_bytes_and_text():
    sealed = envelope.seal(b"\x00\x01binary\xff", "secret", log2_n=10)
    assert envelope.open_envelope(sealed, "secret") == b"\x00\x01binary\xff"

    sealed = envelope.seal("héllo wörld", b"secret", log2_n=10)
    assert envelope.open_envelope(sealed, "secret") == "héllo wörld"


def test_c1_2_envelope_is_randomized():
    a = envelope.seal(b"same", "secret", log2_n=10)
    b = envelope.seal(b"same", "secret", log2_n=10)
    assert a != b


def test_c1_3_wrong_secret():
    sealed = envelope.seal(b"data", "right", log2_n=10)
    with pytest.raises(WrongKeyError):
        envelope.open_envelope(sealed, "wrong")


def test_c1_4_tampered_and_malformed():
    sealed = bytearray(envelope.seal(b"data", "secret", log2_n=10))
    sealed[-1] ^= 0x01
    with pytest.raises(WrongKeyError):
        envelope.open_envelope(bytes(sealed), "secret")

    with pytest.raises(DecryptionError):
        envelope.open_envelope(b"short", "secret")
    with pytest.raises(DecryptionError):
        envelope.open_envelope(b"XXXX" + bytes(64), "secret")


def test_c1_5_payload_keeps_content_type(keys):
    assert keys.decrypt_payload(keys.encrypt_payload("hello", "s"), "s") == "hello"
    assert keys.decrypt_payload(keys.encrypt_payload(b"hello", "s"), "s") == b"hello"

    sealed = bytearray(envelope.seal("hello", "s", log2_n=10))
    sealed[len(envelope.MAGIC) + 1] = envelope.CONTENT_BINARY
    with pytest.raises(WrongKeyError):
        envelope.open_envelope(bytes(sealed), "s")


def test_c1_6_scrypt_cost_bounds():
    for log2_n in (9, 21, "14"):
        with pytest.raises(ValidationError):
            envelope.seal(b"data", "secret", log2_n=log2_n)
        with pytest.raises(ValidationError):
            DefaultCryptoBackend(scrypt_log2_n=log2_n)

    sealed = envelope.seal(b"data", "secret", log2_n=envelope.MIN_LOG2_N)
    assert envelope.open_envelope(sealed, "secret") == b"data"


# =============================================================================
# C2. ECIES
# =============================================================================

def test_c2_1_ecies_roundtrip_with_hex_keys(keys):
    private_key, public_key = keys.generate_key_pair()
    blob = ecies.encrypt(public_key, b"file key")
    assert ecies.decrypt(private_key, blob) == b"file key"
    assert ecies.decrypt("0x" + private_key, blob) == b"file key"


def test_c2_2_ecies_wrong_private_key(keys):
    _, public_key = keys.generate_key_pair()
    other_private, _ = keys.generate_key_pair()
    blob = ecies.encrypt(public_key, b"file key")
    with pytest.raises(WrongKeyError):
        ecies.decrypt(other_private, blob)


def test_c2_3_ecies_truncated(keys):
    private_key, _ = keys.generate_key_pair()
    with pytest.raises(DecryptionError):
        ecies.decrypt(private_key, b"\x00" * 10)


# =============================================================================
# C3. KeyEncryptionService
# =============================================================================

def test_c3_1_derive_user_key_is_deterministic(keys, wallet):
    first = asyncio.run(keys.derive_user_key(wallet))
    second = asyncio.run(keys.derive_user_key(wallet))
    assert first == second
    assert first.startswith("0x")

    other = LocalAccountAdapter(OTHER_KEY)
    assert asyncio.run(keys.derive_user_key(other)) != first
    assert asyncio.run(keys.derive_user_key(wallet, seed="another seed")) != first


def test_c3_2_derive_user_key_requires_account(keys, wallet):
    asyncio.run(wallet.disconnect())
    with pytest.raises(MissingAccountError):
        asyncio.run(keys.derive_user_key(wallet))


def test_c3_3_derive_user_key_rejected(keys):
    wallet = LocalAccountAdapter(OWNER_KEY, auto_approve=False)
    with pytest.raises(UserRejectedSignatureError):
        asyncio.run(keys.derive_user_key(wallet))


def test_c3_4_wrap_for_recipients_preserves_order(keys):
    pairs = [keys.generate_key_pair() for _ in range(3)]
    recipients = {
        "0x" + f"{i + 1:040x}": public_key
        for i, (_, public_key) in enumerate(pairs)
    }

    entries = asyncio.run(keys.wrap_key_for_recipients("0xfilekey", recipients))

    assert [e.account.lower() for e in entries] == [a.lower() for a in recipients]
    for entry, (private_key, _) in zip(entries, pairs):
        assert keys.unwrap_key_with_private_key(entry.key, private_key) == "0xfilekey"


def test_c3_5_wrap_rejects_bad_recipient_before_wrapping(keys):
    _, public_key = keys.generate_key_pair()
    with pytest.raises(ValidationError):
        asyncio.run(keys.wrap_key_for_recipients("k", {"not-an-address": public_key}))


def test_c3_6_unwrap_bad_hex(keys):
    private_key, _ = keys.generate_key_pair()
    with pytest.raises(DecryptionError):
        keys.unwrap_key_with_private_key("zz-not-hex", private_key)
