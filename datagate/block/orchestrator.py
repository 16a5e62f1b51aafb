# datagate/block/orchestrator.py
"""
DataGate Block: Encrypted Upload Orchestrator

End-to-end file flow for a data owner:

    upload:
        1. derive user key     wallet personal_sign of the encryption seed
        2. encrypt payload     password envelope under the user key
        3. store               StorageProvider.upload -> url
        4. wrap keys           user key ECIES-wrapped per recipient, concurrently
        5. register            SubmissionRouter.add_file_with_permissions

    decrypt:
        fetch (gateway fallback or storage) -> decrypt with the user key

Recipients decrypt with their own private key via
``decrypt_with_private_key`` and the wrapped key registered for them.

Usage:
    orchestrator = EncryptedUploadOrchestrator(wallet, storage, router)
    result = await orchestrator.upload(b"...", {server_address: server_public_key})
    data = await orchestrator.decrypt(result.url)

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from ..cryptography import KeyEncryptionService
from ..cryptography.keys import KeyLike
from ..errors import MissingAccountError
from ..validation import require_address, require_text, require_uint
from .adapters.base import WalletAdapter
from .registry.models import FilePermissionEntry
from .router import SubmissionRouter
from .transport.ipfs import ContentFetcher
from .transport.storage import StorageProvider

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "data.bin"


@dataclass
class UploadResult:
    file_id: int
    url: str
    transaction_hash: Optional[str]
    permissions: List[FilePermissionEntry] = field(default_factory=list)
    size: int = 0


class EncryptedUploadOrchestrator:
    """Encrypt, store, share and register a file in one call."""

    def __init__(
        self,
        wallet: WalletAdapter,
        storage: StorageProvider,
        router: SubmissionRouter,
        keys: Optional[KeyEncryptionService] = None,
        fetcher: Optional[ContentFetcher] = None,
    ):
        """
        Args:
            wallet: Owner's wallet (key derivation and file ownership)
            storage: Where encrypted payloads are stored
            router: File registration
            keys: Key service (default backend if None)
            fetcher: Gateway fetcher for decrypt (falls back to storage.download)
        """
        self._wallet = wallet
        self._storage = storage
        self._router = router
        self._keys = keys or KeyEncryptionService()
        self._fetcher = fetcher

    async def upload(
        self,
        data: Union[bytes, str],
        recipients: Optional[Dict[str, KeyLike]] = None,
        filename: str = DEFAULT_FILENAME,
        schema_id: int = 0,
    ) -> UploadResult:
        """
        Args:
            data: Plaintext payload (text is stored as UTF-8 bytes)
            recipients: account address -> secp256k1 public key
            filename: Name handed to the storage provider
            schema_id: Schema the file conforms to (0 = none)

        Raises:
            ValidationError: Bad recipient address or schema id
            MissingAccountError: Wallet not connected
            UserRejectedSignatureError: Key derivation declined
        """
        recipients = dict(recipients or {})
        for account in recipients:
            require_address(account, "recipient")
        schema_id = require_uint(schema_id, "schema_id")
        filename = require_text(filename, "filename")
        owner = self._wallet.address
        if not owner:
            raise MissingAccountError()

        if isinstance(data, str):
            data = data.encode("utf-8")

        user_key = await self._keys.derive_user_key(self._wallet)
        envelope = self._keys.encrypt_payload(data, user_key)
        stored = await self._storage.upload(envelope, filename)
        logger.info("Stored %d encrypted bytes at %s", len(envelope), stored.url)

        permissions = await self._keys.wrap_key_for_recipients(user_key, recipients)
        registration = await self._router.add_file_with_permissions(
            stored.url, owner, permissions, schema_id,
        )
        return UploadResult(
            file_id=registration.identifier,
            url=stored.url,
            transaction_hash=registration.transaction_hash,
            permissions=permissions,
            size=len(envelope),
        )

    async def _fetch(self, url: str, gateways: Optional[Sequence[str]]) -> bytes:
        if self._fetcher is not None:
            return await self._fetcher.fetch(url, gateways)
        return await self._storage.download(url)

    async def decrypt(self, url: str, gateways: Optional[Sequence[str]] = None) -> bytes:
        """Fetch and decrypt a file uploaded by this wallet."""
        user_key = await self._keys.derive_user_key(self._wallet)
        envelope = await self._fetch(url, gateways)
        return self._keys.decrypt_payload(envelope, user_key)

    async def decrypt_with_private_key(
        self,
        url: str,
        wrapped_key: str,
        private_key: KeyLike,
        gateways: Optional[Sequence[str]] = None,
    ) -> bytes:
        """Decrypt as a recipient holding ``private_key``."""
        user_key = self._keys.unwrap_key_with_private_key(wrapped_key, private_key)
        envelope = await self._fetch(url, gateways)
        return self._keys.decrypt_payload(envelope, user_key)
