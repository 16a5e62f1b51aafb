# datagate/block/signing/signer.py
"""
DataGate Block Signing: Authorization Signer

Turns caller intent into a SignedAuthorization: validated, domain-bound,
signed by the user's wallet with their current on-chain nonce.

Flow (every prepare_* method):
    1. validate        all input, before any I/O or wallet prompt
    2. grant document  (grant kinds) store it unless grant_url is given
    3. nonce           userNonce(signer) on the verifying contract, never cached
    4. sign            eth_signTypedData_v4 through the wallet adapter
    5. return          SignedAuthorization(typed message, signature, signer)

Domains:
    Permission kinds sign under "DataPortabilityPermissions", server
    kinds under "DataPortabilityServers"; verifyingContract is that
    contract's address on the client's chain.

Usage:
    signer = AuthorizationSigner(wallet, chain, relay_callbacks=callbacks)
    signed = await signer.prepare_grant(GrantParams(
        grantee="0x...", grantee_id=3, operation="llm_inference",
        parameters={"prompt": "..."}, file_ids=[12],
    ))
    result = await router.submit(signed)

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from ...errors import (
    MissingAccountError,
    NonceFetchError,
    SignatureError,
    UserRejectedSignatureError,
    ValidationError,
)
from ...validation import (
    normalize_permission_id,
    require_address,
    require_http_url,
    require_same_length,
    require_text,
    require_uint,
)
from ..adapters.base import EIP712Domain, WalletAdapter
from ..registry.chain import ChainClient
from ..registry.models import FilePermissionEntry
from ..transport.relay import RelayCallbacks
from ..transport.storage import StorageProvider
from .grants import GrantDocument, store_grant_document
from .messages import (
    AuthorizationKind,
    SignedAuthorization,
    TypedMessage,
    add_server_message,
    grant_message,
    revoke_message,
    server_files_and_permission_message,
    trust_server_message,
    untrust_server_message,
)

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN_VERSION = "1"


# =============================================================================
# Parameters
# =============================================================================

@dataclass
class GrantParams:
    """
    Attributes:
        grantee: Grantee address, recorded in the grant document
        grantee_id: Grantee's registry id, signed into the message
        operation: Operation the grantee may perform
        parameters: Operation parameters
        file_ids: Files covered by the grant
        expires: Optional unix expiry
        grant_url: Pre-stored grant document URI (skips storage)
    """
    grantee: str
    grantee_id: int
    operation: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    file_ids: Sequence[int] = ()
    expires: Optional[int] = None
    grant_url: Optional[str] = None


@dataclass
class ServerFilesAndPermissionParams:
    """Register files on a server and grant access in one signature."""
    grantee: str
    grantee_id: int
    operation: str
    file_urls: Sequence[str]
    schema_ids: Sequence[int]
    server_address: str
    server_url: str
    server_public_key: str
    file_permissions: Sequence[Sequence[FilePermissionEntry]]
    parameters: Dict[str, Any] = field(default_factory=dict)
    expires: Optional[int] = None
    grant_url: Optional[str] = None


# =============================================================================
# Signer
# =============================================================================

class AuthorizationSigner:
    """Builds and signs typed authorization messages."""

    def __init__(
        self,
        wallet: WalletAdapter,
        chain: ChainClient,
        relay_callbacks: Optional[RelayCallbacks] = None,
        storage: Optional[StorageProvider] = None,
        domain_version: str = DEFAULT_DOMAIN_VERSION,
    ):
        """
        Args:
            wallet: Signing wallet
            chain: Chain client (nonce reads, verifying contract addresses)
            relay_callbacks: Used for ``store_grant_file`` when present
            storage: Fallback grant document storage
            domain_version: EIP-712 domain version
        """
        self._wallet = wallet
        self._chain = chain
        self._relay = relay_callbacks or RelayCallbacks()
        self._storage = storage
        self.domain_version = domain_version

    def domain(self, kind: AuthorizationKind) -> EIP712Domain:
        """EIP-712 domain of ``kind``'s verifying contract."""
        return EIP712Domain(
            name=kind.verifier,
            version=self.domain_version,
            chain_id=self._chain.chain_id,
            verifying_contract=self._chain.address_of(kind.verifier),
        )

    # =========================================================================
    # Permissions
    # =========================================================================

    async def prepare_grant(self, params: GrantParams) -> SignedAuthorization:
        """
        Raises:
            ValidationError: Invalid params (nothing stored, nothing signed)
            NonceFetchError: Nonce read failed
            UserRejectedSignatureError: Wallet declined
            SignatureError: Other signing failure
        """
        grantee_id = require_uint(params.grantee_id, "grantee_id")
        file_ids = [require_uint(f, "file_ids") for f in params.file_ids]
        document = self._grant_document(params.grantee, params.operation,
                                        params.parameters, file_ids, params.expires)
        signer = self._signer_address()

        grant_url = await self._grant_url(document, params.grant_url)
        nonce = await self._nonce(AuthorizationKind.GRANT, signer)
        typed = grant_message(
            self.domain(AuthorizationKind.GRANT), nonce, grantee_id, grant_url, file_ids,
        )
        return await self._sign(typed, signer)

    async def prepare_revoke(self, permission_id: Union[int, str, bytes]) -> SignedAuthorization:
        """Sign a revocation of ``permission_id`` (int, decimal, or 0x-hex)."""
        permission_id = normalize_permission_id(permission_id)
        signer = self._signer_address()

        nonce = await self._nonce(AuthorizationKind.REVOKE, signer)
        typed = revoke_message(self.domain(AuthorizationKind.REVOKE), nonce, permission_id)
        return await self._sign(typed, signer)

    async def prepare_server_files_and_permissions(
        self,
        params: ServerFilesAndPermissionParams,
    ) -> SignedAuthorization:
        """
        Every per-file array must have ``len(file_urls)`` entries; this is
        checked before anything is stored or signed.
        """
        file_urls = [require_text(url, "file_urls") for url in params.file_urls]
        if not file_urls:
            raise ValidationError("file_urls must not be empty", field="file_urls")
        require_same_length("schemaIds", params.schema_ids, "fileUrls", file_urls)
        require_same_length("filePermissions", params.file_permissions, "fileUrls", file_urls)

        schema_ids = [require_uint(s, "schema_ids") for s in params.schema_ids]
        file_permissions = [
            [
                FilePermissionEntry(
                    account=require_address(entry.account, "file_permissions.account"),
                    key=require_text(entry.key, "file_permissions.key"),
                )
                for entry in entries
            ]
            for entries in params.file_permissions
        ]
        server_address = require_address(params.server_address, "server_address")
        server_url = require_http_url(params.server_url, "server_url")
        server_public_key = require_text(params.server_public_key, "server_public_key")
        grantee_id = require_uint(params.grantee_id, "grantee_id")
        document = self._grant_document(params.grantee, params.operation,
                                        params.parameters, [], params.expires)
        signer = self._signer_address()

        grant_url = await self._grant_url(document, params.grant_url)
        kind = AuthorizationKind.SERVER_FILES_AND_PERMISSIONS
        nonce = await self._nonce(kind, signer)
        typed = server_files_and_permission_message(
            self.domain(kind),
            nonce,
            grantee_id,
            grant_url,
            file_urls,
            schema_ids,
            server_address,
            server_url,
            server_public_key,
            file_permissions,
        )
        return await self._sign(typed, signer)

    # =========================================================================
    # Servers
    # =========================================================================

    async def prepare_trust_server(self, server_id: str, server_url: str) -> SignedAuthorization:
        server_id = require_address(server_id, "server_id")
        server_url = require_http_url(server_url, "server_url")
        signer = self._signer_address()

        nonce = await self._nonce(AuthorizationKind.TRUST_SERVER, signer)
        typed = trust_server_message(
            self.domain(AuthorizationKind.TRUST_SERVER), nonce, server_id, server_url,
        )
        return await self._sign(typed, signer)

    async def prepare_untrust_server(self, server_id: str) -> SignedAuthorization:
        server_id = require_address(server_id, "server_id")
        signer = self._signer_address()

        nonce = await self._nonce(AuthorizationKind.UNTRUST_SERVER, signer)
        typed = untrust_server_message(
            self.domain(AuthorizationKind.UNTRUST_SERVER), nonce, server_id,
        )
        return await self._sign(typed, signer)

    async def prepare_add_and_trust_server(
        self,
        server_address: str,
        server_url: str,
        public_key: str,
    ) -> SignedAuthorization:
        server_address = require_address(server_address, "server_address")
        server_url = require_http_url(server_url, "server_url")
        public_key = require_text(public_key, "public_key")
        signer = self._signer_address()

        kind = AuthorizationKind.ADD_AND_TRUST_SERVER
        nonce = await self._nonce(kind, signer)
        typed = add_server_message(self.domain(kind), nonce, server_address, server_url, public_key)
        return await self._sign(typed, signer)

    # =========================================================================
    # Steps
    # =========================================================================

    def _signer_address(self) -> str:
        if not self._wallet.address:
            raise MissingAccountError()
        return self._wallet.address

    @staticmethod
    def _grant_document(
        grantee: str,
        operation: str,
        parameters: Dict[str, Any],
        files: List[int],
        expires: Optional[int],
    ) -> GrantDocument:
        return GrantDocument.create(
            grantee=require_address(grantee, "grantee"),
            operation=operation,
            parameters=parameters,
            files=files,
            expires=expires,
        )

    async def _grant_url(self, document: GrantDocument, grant_url: Optional[str]) -> str:
        if grant_url is not None:
            return require_text(grant_url, "grant_url")
        if self._relay.store_grant_file is not None:
            return await self._relay.store_grant_file(document.to_dict())
        if self._storage is not None:
            return await store_grant_document(document, self._storage)
        raise ValidationError(
            "grant_url is required when no grant storage is configured",
            field="grant_url",
        )

    async def _nonce(self, kind: AuthorizationKind, signer: str) -> int:
        try:
            return int(await self._chain.read(kind.verifier, "userNonce", signer))
        except Exception as e:
            raise NonceFetchError(signer, e) from e

    async def _sign(self, typed: TypedMessage, signer: str) -> SignedAuthorization:
        try:
            result = await self._wallet.sign_typed_data(
                typed.domain, typed.types, typed.primary_type, typed.message,
            )
        except (UserRejectedSignatureError, MissingAccountError, SignatureError):
            raise
        except Exception as e:
            raise SignatureError(f"Failed to sign typed data: {e}") from e

        logger.info("Signed %s (nonce %d) for %s", typed.primary_type, typed.nonce, signer)
        return SignedAuthorization(typed_message=typed, signature=result.hex, signer=signer)
