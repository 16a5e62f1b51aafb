# datagate/cryptography/__init__.py
"""
DataGate Cryptography

Modules:
    ecies:    secp256k1 ECIES (recipient key wrapping)
    envelope: scrypt + AES-256-GCM password envelope (file payloads)
    backend:  CryptoBackend interface and default implementation
    keys:     KeyEncryptionService

Usage:
    from datagate.cryptography import KeyEncryptionService

    service = KeyEncryptionService()
    key = await service.derive_user_key(wallet)
    envelope = service.encrypt_payload(data, key)
"""

from .backend import CryptoBackend, DefaultCryptoBackend
from .keys import DEFAULT_ENCRYPTION_SEED, KeyEncryptionService

__all__ = [
    "CryptoBackend",
    "DefaultCryptoBackend",
    "KeyEncryptionService",
    "DEFAULT_ENCRYPTION_SEED",
]

__version__ = "0.4.0"
