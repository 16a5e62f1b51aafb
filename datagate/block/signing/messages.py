# datagate/block/signing/messages.py
"""
DataGate Block Signing: Typed Authorization Messages

EIP-712 schemas for every authorization kind, and builders that turn
validated inputs into a TypedMessage.

Message Kinds:
    GRANT                         Permission
    REVOKE                        RevokePermission
    TRUST_SERVER                  TrustServer
    UNTRUST_SERVER                UntrustServer
    ADD_AND_TRUST_SERVER          AddServer
    SERVER_FILES_AND_PERMISSIONS  ServerFilesAndPermission

Permission kinds are verified by the permissions contract, server kinds
by the servers contract; each kind is signed under its verifier's domain.

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Sequence

from ..adapters.base import EIP712Domain, build_typed_data
from ..registry.models import FilePermissionEntry


# =============================================================================
# Kinds
# =============================================================================

class AuthorizationKind(Enum):
    GRANT = "grant"
    REVOKE = "revoke"
    TRUST_SERVER = "trust_server"
    UNTRUST_SERVER = "untrust_server"
    ADD_AND_TRUST_SERVER = "add_and_trust_server"
    SERVER_FILES_AND_PERMISSIONS = "server_files_and_permissions"

    @property
    def verifier(self) -> str:
        """Contract that verifies messages of this kind."""
        if self in SERVER_KINDS:
            return "DataPortabilityServers"
        return "DataPortabilityPermissions"


SERVER_KINDS = frozenset({
    AuthorizationKind.TRUST_SERVER,
    AuthorizationKind.UNTRUST_SERVER,
    AuthorizationKind.ADD_AND_TRUST_SERVER,
})


# =============================================================================
# Schemas
# =============================================================================

FILE_PERMISSION_TYPE = [
    {"name": "account", "type": "address"},
    {"name": "key", "type": "string"},
]

MESSAGE_TYPES: Dict[AuthorizationKind, Dict[str, List[Dict[str, str]]]] = {
    AuthorizationKind.GRANT: {
        "Permission": [
            {"name": "nonce", "type": "uint256"},
            {"name": "granteeId", "type": "uint256"},
            {"name": "grant", "type": "string"},
            {"name": "fileIds", "type": "uint256[]"},
        ],
    },
    AuthorizationKind.REVOKE: {
        "RevokePermission": [
            {"name": "nonce", "type": "uint256"},
            {"name": "permissionId", "type": "uint256"},
        ],
    },
    AuthorizationKind.TRUST_SERVER: {
        "TrustServer": [
            {"name": "nonce", "type": "uint256"},
            {"name": "serverId", "type": "address"},
            {"name": "serverUrl", "type": "string"},
        ],
    },
    AuthorizationKind.UNTRUST_SERVER: {
        "UntrustServer": [
            {"name": "nonce", "type": "uint256"},
            {"name": "serverId", "type": "address"},
        ],
    },
    AuthorizationKind.ADD_AND_TRUST_SERVER: {
        "AddServer": [
            {"name": "nonce", "type": "uint256"},
            {"name": "serverAddress", "type": "address"},
            {"name": "serverUrl", "type": "string"},
            {"name": "publicKey", "type": "string"},
        ],
    },
    AuthorizationKind.SERVER_FILES_AND_PERMISSIONS: {
        "ServerFilesAndPermission": [
            {"name": "nonce", "type": "uint256"},
            {"name": "granteeId", "type": "uint256"},
            {"name": "grant", "type": "string"},
            {"name": "fileUrls", "type": "string[]"},
            {"name": "schemaIds", "type": "uint256[]"},
            {"name": "serverAddress", "type": "address"},
            {"name": "serverUrl", "type": "string"},
            {"name": "serverPublicKey", "type": "string"},
            {"name": "filePermissions", "type": "FilePermission[][]"},
        ],
        "FilePermission": FILE_PERMISSION_TYPE,
    },
}

PRIMARY_TYPES: Dict[AuthorizationKind, str] = {
    AuthorizationKind.GRANT: "Permission",
    AuthorizationKind.REVOKE: "RevokePermission",
    AuthorizationKind.TRUST_SERVER: "TrustServer",
    AuthorizationKind.UNTRUST_SERVER: "UntrustServer",
    AuthorizationKind.ADD_AND_TRUST_SERVER: "AddServer",
    AuthorizationKind.SERVER_FILES_AND_PERMISSIONS: "ServerFilesAndPermission",
}

KIND_BY_PRIMARY_TYPE = {v: k for k, v in PRIMARY_TYPES.items()}


# =============================================================================
# Typed Message
# =============================================================================

@dataclass
class TypedMessage:
    """A domain-bound, strongly typed message ready to be signed."""
    kind: AuthorizationKind
    domain: EIP712Domain
    message: Dict[str, Any]

    @property
    def primary_type(self) -> str:
        return PRIMARY_TYPES[self.kind]

    @property
    def types(self) -> Dict[str, List[Dict[str, str]]]:
        return MESSAGE_TYPES[self.kind]

    @property
    def nonce(self) -> int:
        return self.message["nonce"]

    def to_dict(self) -> Dict[str, Any]:
        """Full EIP-712 payload, including the EIP712Domain type."""
        return build_typed_data(self.domain, self.types, self.primary_type, self.message)


@dataclass
class SignedAuthorization:
    """Typed message plus the signer's signature."""
    typed_message: TypedMessage
    signature: str
    signer: str

    @property
    def kind(self) -> AuthorizationKind:
        return self.typed_message.kind

    @property
    def domain(self) -> EIP712Domain:
        return self.typed_message.domain

    @property
    def message(self) -> Dict[str, Any]:
        return self.typed_message.message

    @property
    def signature_bytes(self) -> bytes:
        return bytes.fromhex(self.signature[2:])


# =============================================================================
# Builders
# =============================================================================

def grant_message(
    domain: EIP712Domain,
    nonce: int,
    grantee_id: int,
    grant_url: str,
    file_ids: Sequence[int],
) -> TypedMessage:
    return TypedMessage(AuthorizationKind.GRANT, domain, {
        "nonce": nonce,
        "granteeId": grantee_id,
        "grant": grant_url,
        "fileIds": list(file_ids),
    })


def revoke_message(domain: EIP712Domain, nonce: int, permission_id: int) -> TypedMessage:
    return TypedMessage(AuthorizationKind.REVOKE, domain, {
        "nonce": nonce,
        "permissionId": permission_id,
    })


def trust_server_message(
    domain: EIP712Domain,
    nonce: int,
    server_id: str,
    server_url: str,
) -> TypedMessage:
    return TypedMessage(AuthorizationKind.TRUST_SERVER, domain, {
        "nonce": nonce,
        "serverId": server_id,
        "serverUrl": server_url,
    })


def untrust_server_message(domain: EIP712Domain, nonce: int, server_id: str) -> TypedMessage:
    return TypedMessage(AuthorizationKind.UNTRUST_SERVER, domain, {
        "nonce": nonce,
        "serverId": server_id,
    })


def add_server_message(
    domain: EIP712Domain,
    nonce: int,
    server_address: str,
    server_url: str,
    public_key: str,
) -> TypedMessage:
    return TypedMessage(AuthorizationKind.ADD_AND_TRUST_SERVER, domain, {
        "nonce": nonce,
        "serverAddress": server_address,
        "serverUrl": server_url,
        "publicKey": public_key,
    })


def server_files_and_permission_message(
    domain: EIP712Domain,
    nonce: int,
    grantee_id: int,
    grant_url: str,
    file_urls: Sequence[str],
    schema_ids: Sequence[int],
    server_address: str,
    server_url: str,
    server_public_key: str,
    file_permissions: Sequence[Sequence[FilePermissionEntry]],
) -> TypedMessage:
    return TypedMessage(AuthorizationKind.SERVER_FILES_AND_PERMISSIONS, domain, {
        "nonce": nonce,
        "granteeId": grantee_id,
        "grant": grant_url,
        "fileUrls": list(file_urls),
        "schemaIds": list(schema_ids),
        "serverAddress": server_address,
        "serverUrl": server_url,
        "serverPublicKey": server_public_key,
        "filePermissions": [
            [entry.to_dict() for entry in entries] for entries in file_permissions
        ],
    })
