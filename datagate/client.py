# datagate/client.py
"""
DataGate: Client

One object wiring wallet, chain, relay, indexer and storage together.
Every collaborator can be injected; anything not injected is built from
ClientConfig.

Operations:
    grant / revoke                         permission lifecycle
    trust_server / untrust_server          server trust set
    add_and_trust_server                   register + trust in one signature
    add_server_files_and_permissions       files + grant in one signature
    get_user_permissions / get_trusted_servers   dual-mode reads
    upload / decrypt                       encrypted file flow
    fetch_grant                            grant document by URI

A StaleNonceError on submission triggers one re-sign with a fresh nonce.

Usage:
    client = DataGateClient.create(config, LocalAccountAdapter(pk, chain_id=14800))
    result = await client.grant(GrantParams(grantee, 3, "llm_inference", file_ids=[12]))
    page = await client.get_user_permissions()
    await client.aclose()

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

from .block.adapters.base import WalletAdapter
from .block.orchestrator import EncryptedUploadOrchestrator, UploadResult
from .block.registry.chain import ChainClient, Web3ChainClient
from .block.registry.indexer import IndexedQueryClient
from .block.registry.models import PagedResult, Permission, TrustedServer
from .block.registry.resolver import DualModeStateResolver
from .block.registry.schemas import SchemaRegistry
from .block.router import SubmissionResult, SubmissionRouter
from .block.signing.grants import GrantDocument, fetch_grant_document
from .block.signing.messages import SignedAuthorization
from .block.signing.signer import (
    AuthorizationSigner,
    GrantParams,
    ServerFilesAndPermissionParams,
)
from .block.transport.http import HTTPTransport, HttpxTransport
from .block.transport.ipfs import ContentFetcher
from .block.transport.relay import HttpRelayer, RelayCallbacks
from .block.transport.storage import StorageProvider
from .config import ClientConfig
from .cryptography import CryptoBackend, KeyEncryptionService
from .cryptography.keys import KeyLike
from .errors import MissingAccountError, StaleNonceError, ValidationError
from .resilience import Notifier

logger = logging.getLogger(__name__)


class DataGateClient:
    """Facade over signer, router, resolver and upload orchestrator."""

    def __init__(
        self,
        config: ClientConfig,
        wallet: WalletAdapter,
        chain: Optional[ChainClient] = None,
        transport: Optional[HTTPTransport] = None,
        storage: Optional[StorageProvider] = None,
        relay_callbacks: Optional[RelayCallbacks] = None,
        crypto_backend: Optional[CryptoBackend] = None,
        notifier: Optional[Notifier] = None,
    ):
        """
        Args:
            config: Client configuration
            wallet: User's wallet adapter
            chain: Chain client (built from config.rpc_url if None)
            transport: HTTP transport (httpx if None)
            storage: Blob storage for uploads and grant documents
            relay_callbacks: Relay hooks (built from config.relayer_url if None)
            crypto_backend: Crypto implementation (default if None)
            notifier: Submission result channel
        """
        config.validate()
        self.config = config
        self.wallet = wallet

        if chain is None:
            chain = Web3ChainClient(
                addresses=config.addresses.as_dict(),
                chain_id=config.chain_id,
                rpc_url=config.rpc_url,
                private_key=config.private_key,
                multicall_address=config.addresses.multicall,
                max_calls_per_batch=config.max_calls_per_batch,
            )
        self.chain = chain

        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(timeout=config.http_timeout)

        if relay_callbacks is None and config.relayer_url:
            relay_callbacks = HttpRelayer(
                config.relayer_url,
                self.transport,
                chain_id=config.chain_id,
                expected_user_address=lambda: wallet.address,
            ).callbacks()
        self.relay_callbacks = relay_callbacks or RelayCallbacks()

        indexer = (
            IndexedQueryClient(config.subgraph_url, self.transport)
            if config.subgraph_url else None
        )
        self.fetcher = ContentFetcher(self.transport, config.ipfs_gateways)
        self.keys = KeyEncryptionService(crypto_backend)
        self.signer = AuthorizationSigner(
            wallet, chain, self.relay_callbacks, storage, config.domain_version,
        )
        self.router = SubmissionRouter(chain, self.relay_callbacks, config.retry, notifier)
        self.resolver = DualModeStateResolver(chain, indexer, config.default_page_size)
        self.schemas = SchemaRegistry(chain, config.retry)
        self._storage = storage
        self._uploads = (
            EncryptedUploadOrchestrator(wallet, storage, self.router, self.keys, self.fetcher)
            if storage is not None else None
        )

    @classmethod
    def create(cls, config: ClientConfig, wallet: WalletAdapter, **kwargs: Any) -> DataGateClient:
        return cls(config, wallet, **kwargs)

    @property
    def notifier(self) -> Notifier:
        return self.router.notifier

    def on_submission(self, observer: Callable[[SubmissionResult], Any]) -> Callable[[], None]:
        """Subscribe to submission results; returns an unsubscribe callable."""
        return self.router.notifier.subscribe(observer)

    async def aclose(self) -> None:
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> DataGateClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    # =========================================================================
    # Signed Submissions
    # =========================================================================

    async def _sign_and_submit(
        self,
        prepare: Callable[[], Awaitable[SignedAuthorization]],
    ) -> SubmissionResult:
        signed = await prepare()
        try:
            return await self.router.submit(signed)
        except StaleNonceError as e:
            logger.warning("Stale nonce for %s, re-signing: %s", signed.kind.value, e)
            return await self.router.submit(await prepare())

    async def grant(self, params: GrantParams) -> SubmissionResult:
        """Grant a permission; ``identifier`` is the new permission id when confirmed."""
        return await self._sign_and_submit(lambda: self.signer.prepare_grant(params))

    async def revoke(self, permission_id: Union[int, str, bytes]) -> SubmissionResult:
        return await self._sign_and_submit(lambda: self.signer.prepare_revoke(permission_id))

    async def trust_server(self, server_id: str, server_url: str) -> SubmissionResult:
        return await self._sign_and_submit(
            lambda: self.signer.prepare_trust_server(server_id, server_url)
        )

    async def untrust_server(self, server_id: str) -> SubmissionResult:
        return await self._sign_and_submit(lambda: self.signer.prepare_untrust_server(server_id))

    async def add_and_trust_server(
        self,
        server_address: str,
        server_url: str,
        public_key: str,
    ) -> SubmissionResult:
        return await self._sign_and_submit(
            lambda: self.signer.prepare_add_and_trust_server(server_address, server_url, public_key)
        )

    async def add_server_files_and_permissions(
        self,
        params: ServerFilesAndPermissionParams,
    ) -> SubmissionResult:
        return await self._sign_and_submit(
            lambda: self.signer.prepare_server_files_and_permissions(params)
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def _user(self, user: Optional[str]) -> str:
        user = user or self.wallet.address
        if not user:
            raise MissingAccountError()
        return user

    async def get_user_permissions(
        self,
        user: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
        mode: str = "auto",
    ) -> PagedResult[Permission]:
        """Permissions granted by ``user`` (default: the connected wallet)."""
        return await self.resolver.get_user_permissions(self._user(user), offset, limit, mode)

    async def get_trusted_servers(
        self,
        user: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
        mode: str = "auto",
    ) -> PagedResult[TrustedServer]:
        return await self.resolver.get_trusted_servers(self._user(user), offset, limit, mode)

    async def get_user_nonce(self, user: Optional[str] = None) -> int:
        return await self.resolver.get_user_nonce(self._user(user))

    async def fetch_grant(self, url: str) -> GrantDocument:
        return await fetch_grant_document(url, self.fetcher)

    # =========================================================================
    # Files
    # =========================================================================

    def _require_uploads(self) -> EncryptedUploadOrchestrator:
        if self._uploads is None:
            raise ValidationError("A storage provider is required for file uploads", field="storage")
        return self._uploads

    async def upload(
        self,
        data: Union[bytes, str],
        recipients: Optional[Dict[str, KeyLike]] = None,
        filename: str = "data.bin",
        schema_id: int = 0,
    ) -> UploadResult:
        return await self._require_uploads().upload(data, recipients, filename, schema_id)

    async def decrypt(self, url: str, gateways: Optional[Sequence[str]] = None) -> bytes:
        return await self._require_uploads().decrypt(url, gateways)
