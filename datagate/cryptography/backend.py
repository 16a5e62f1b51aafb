# datagate/cryptography/backend.py
"""
DataGate Cryptography: Backend Interface

The crypto capability injected into KeyEncryptionService. Swap the
implementation (HSM, browser bridge, test double) by passing a different
backend at construction.

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple, Union

from . import ecies, envelope


class CryptoBackend(ABC):
    """Abstract crypto capability."""

    @abstractmethod
    def encrypt_with_public_key(self, data: bytes, public_key: Union[str, bytes]) -> bytes:
        """Asymmetric encryption for one recipient."""
        pass

    @abstractmethod
    def decrypt_with_private_key(self, data: bytes, private_key: Union[str, bytes]) -> bytes:
        pass

    @abstractmethod
    def encrypt_with_password(self, data: Union[str, bytes], password: Union[str, bytes]) -> bytes:
        """Symmetric envelope encryption."""
        pass

    @abstractmethod
    def decrypt_with_password(
        self, data: bytes, password: Union[str, bytes]
    ) -> Union[str, bytes]:
        pass

    @abstractmethod
    def generate_key_pair(self) -> Tuple[bytes, bytes]:
        """Returns (private_key, public_key)."""
        pass


class DefaultCryptoBackend(CryptoBackend):
    """secp256k1 ECIES + scrypt/AES-GCM envelope, backed by ``cryptography``."""

    def __init__(self, scrypt_log2_n: int = envelope.DEFAULT_LOG2_N):
        self._log2_n = envelope.check_log2_n(scrypt_log2_n)

    def encrypt_with_public_key(self, data, public_key):
        return ecies.encrypt(public_key, data)

    def decrypt_with_private_key(self, data, private_key):
        return ecies.decrypt(private_key, data)

    def encrypt_with_password(self, data, password):
        return envelope.seal(data, password, log2_n=self._log2_n)

    def decrypt_with_password(self, data, password):
        return envelope.open_envelope(data, password)

    def generate_key_pair(self):
        return ecies.generate_key_pair()
