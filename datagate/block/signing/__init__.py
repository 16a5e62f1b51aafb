# datagate/block/signing/__init__.py
"""
DataGate Block Signing Layer

Typed authorization messages, grant documents and the signer that ties
them to a wallet and the user's on-chain nonce.

Components:
    AuthorizationSigner: prepare_* -> SignedAuthorization
    GrantDocument: off-chain grant JSON
    TypedMessage / SignedAuthorization: EIP-712 payloads

Usage:
    from datagate.block.signing import AuthorizationSigner, GrantParams

    signer = AuthorizationSigner(wallet, chain, storage=storage)
    signed = await signer.prepare_revoke(42)
"""

from .messages import (
    AuthorizationKind,
    TypedMessage,
    SignedAuthorization,
    MESSAGE_TYPES,
    PRIMARY_TYPES,
    KIND_BY_PRIMARY_TYPE,
)

from .grants import (
    GrantDocument,
    store_grant_document,
    fetch_grant_document,
)

from .signer import (
    AuthorizationSigner,
    GrantParams,
    ServerFilesAndPermissionParams,
)

__all__ = [
    # Messages
    "AuthorizationKind",
    "TypedMessage",
    "SignedAuthorization",
    "MESSAGE_TYPES",
    "PRIMARY_TYPES",
    "KIND_BY_PRIMARY_TYPE",
    # Grants
    "GrantDocument",
    "store_grant_document",
    "fetch_grant_document",
    # Signer
    "AuthorizationSigner",
    "GrantParams",
    "ServerFilesAndPermissionParams",
]

__version__ = "0.4.0"
