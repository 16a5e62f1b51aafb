# datagate/cryptography/keys.py
"""
DataGate Cryptography: Key Encryption Service

Derives the user's symmetric secret from a wallet signature, encrypts
file payloads with it, and wraps it for each recipient allowed to
decrypt a file.

Key Flow:
    user_key = sign(DEFAULT_ENCRYPTION_SEED)      # same wallet => same key
    envelope = encrypt_payload(file_bytes, user_key)
    wrapped  = wrap_key_for_recipient(user_key, recipient_public_key)
    ...
    user_key = unwrap_key_with_private_key(wrapped, recipient_private_key)
    data     = decrypt_payload(envelope, user_key)

Usage:
    service = KeyEncryptionService()
    key = await service.derive_user_key(wallet)
    envelope = service.encrypt_payload(b"hello", key)
    entries = await service.wrap_key_for_recipients(key, {server: server_pk})

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union

from ..errors import (
    DataGateError,
    DecryptionError,
    MissingAccountError,
    SignatureError,
)
from ..validation import require_address
from ..block.registry.models import FilePermissionEntry
from .backend import CryptoBackend, DefaultCryptoBackend

if TYPE_CHECKING:
    from ..block.adapters.base import WalletAdapter

logger = logging.getLogger(__name__)

DEFAULT_ENCRYPTION_SEED = "Please sign to retrieve your encryption key"

KeyLike = Union[str, bytes]


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


class KeyEncryptionService:
    """
    Pure crypto transformations over an injected CryptoBackend.

    The only suspension point is ``derive_user_key``, which waits for
    the wallet to approve a signature.
    """

    def __init__(self, backend: Optional[CryptoBackend] = None):
        self._backend = backend or DefaultCryptoBackend()

    @property
    def backend(self) -> CryptoBackend:
        return self._backend

    # =========================================================================
    # User Key
    # =========================================================================

    async def derive_user_key(
        self,
        wallet: "WalletAdapter",
        seed: str = DEFAULT_ENCRYPTION_SEED,
    ) -> str:
        """
        Derive the user's secret by signing ``seed``.

        The 0x-hex signature itself is the secret. Deterministic ECDSA
        signing makes it stable for a given wallet and seed.

        Raises:
            MissingAccountError: Wallet has no bound account
            UserRejectedSignatureError: User declined the prompt
            SignatureError: Any other signing failure
        """
        if not wallet.address:
            raise MissingAccountError()

        try:
            result = await wallet.sign_message(seed.encode("utf-8"))
        except DataGateError:
            raise
        except Exception as e:
            raise SignatureError(f"Failed to derive encryption key: {e}") from e

        return result.hex

    # =========================================================================
    # Payload Envelope
    # =========================================================================

    def encrypt_payload(self, data: Union[str, bytes], secret: str) -> bytes:
        """Encrypt a whole file payload (bytes or text) under ``secret``."""
        return self._backend.encrypt_with_password(data, secret)

    def decrypt_payload(self, envelope: bytes, secret: str) -> Union[str, bytes]:
        """
        Decrypt a payload envelope. Text payloads come back as ``str``.

        Raises:
            WrongKeyError: ``secret`` does not open the envelope
            DecryptionError: Envelope is malformed
        """
        return self._backend.decrypt_with_password(envelope, secret)

    # =========================================================================
    # Recipient Key Wrapping
    # =========================================================================

    def wrap_key_for_recipient(self, file_key: str, recipient_public_key: KeyLike) -> str:
        """
        Encrypt ``file_key`` for one recipient.

        Returns:
            Hex string (no 0x prefix)
        """
        wrapped = self._backend.encrypt_with_public_key(
            file_key.encode("utf-8"), recipient_public_key
        )
        return wrapped.hex()

    def unwrap_key_with_private_key(self, wrapped_key: str, private_key: KeyLike) -> str:
        try:
            blob = bytes.fromhex(_strip_0x(wrapped_key))
        except ValueError as e:
            raise DecryptionError(f"Wrapped key is not valid hex: {e}") from e

        plaintext = self._backend.decrypt_with_private_key(blob, private_key)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError(f"Unwrapped key is not valid text: {e}") from e

    async def wrap_key_for_recipients(
        self,
        file_key: str,
        recipients: Dict[str, KeyLike],
    ) -> List[FilePermissionEntry]:
        """
        Wrap ``file_key`` once per recipient, concurrently.

        Every recipient address is validated before any wrap runs.

        Args:
            file_key: Secret to share
            recipients: account address -> public key

        Returns:
            One FilePermissionEntry per recipient, in input order
        """
        accounts = [require_address(account, "recipient") for account in recipients]

        wrapped = await asyncio.gather(*(
            asyncio.to_thread(self.wrap_key_for_recipient, file_key, public_key)
            for public_key in recipients.values()
        ))

        logger.debug("Wrapped file key for %d recipients", len(accounts))
        return [
            FilePermissionEntry(account=account, key=key)
            for account, key in zip(accounts, wrapped)
        ]

    def generate_key_pair(self) -> Tuple[str, str]:
        """
        Returns:
            (private_key_hex, public_key_hex), both without 0x
        """
        private_key, public_key = self._backend.generate_key_pair()
        return private_key.hex(), public_key.hex()
