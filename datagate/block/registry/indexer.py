# datagate/block/registry/indexer.py
"""
DataGate Block Registry: Indexed Query Client

GraphQL client for the subgraph that indexes permission and server-trust
events. One POST returns a user's whole set, sorted by recency.

Any transport, HTTP, GraphQL or response-shape problem raises; the
resolver turns that into a fallback to direct contract reads. A
``user: null`` response is a valid, empty answer.

Usage:
    indexer = IndexedQueryClient(subgraph_url, transport)
    permissions = await indexer.get_user_permissions(user)

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from web3 import Web3

from ...errors import SerializationError, TransientNetworkError
from ..transport.http import HTTPTransport
from .models import Permission, TrustedServer

logger = logging.getLogger(__name__)


USER_PERMISSIONS_QUERY = """
query GetUserPermissions($userId: ID!) {
  user(id: $userId) {
    id
    permissions {
      id
      grant
      nonce
      signature
      startBlock
      endBlock
      addedAtBlock
      addedAtTimestamp
      transactionHash
      grantee { id address }
      fileIds
    }
  }
}
"""

USER_TRUSTED_SERVERS_QUERY = """
query GetUserTrustedServers($userId: ID!) {
  user(id: $userId) {
    id
    serverTrusts {
      id
      server { id serverAddress url publicKey owner { id } }
      trustedAt
      trustedAtBlock
      untrustedAtBlock
      transactionHash
    }
  }
}
"""


def _int(value: Any, default: int = 0) -> int:
    if value in (None, ""):
        return default
    if isinstance(value, str) and value.startswith("0x"):
        return int(value, 16)
    return int(value)


class IndexedQueryClient:
    """Subgraph client for permission and trusted-server sets."""

    def __init__(self, endpoint: str, transport: HTTPTransport):
        self.endpoint = endpoint
        self._transport = transport

    async def query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        POST a GraphQL query and return its ``data`` object.

        Raises:
            TransientNetworkError: HTTP failure
            SerializationError: GraphQL errors or malformed response
        """
        response = await self._transport.post_json(
            self.endpoint, {"query": query, "variables": variables or {}}
        )
        if not response.ok:
            raise TransientNetworkError(
                f"Subgraph returned HTTP {response.status_code}"
            )

        body = response.json()
        if not isinstance(body, dict):
            raise SerializationError("Subgraph response is not a JSON object")
        if body.get("errors"):
            messages = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e)
                for e in body["errors"]
            )
            raise SerializationError(f"Subgraph errors: {messages}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise SerializationError("Subgraph response missing data")
        return data

    async def _user(self, query: str, user: str) -> Optional[Dict[str, Any]]:
        data = await self.query(query, {"userId": user.lower()})
        logger.debug("Subgraph answered for %s", user)
        if "user" not in data:
            raise SerializationError("Subgraph response missing user field")
        return data["user"]

    # =========================================================================
    # Permissions
    # =========================================================================

    async def get_user_permissions(self, user: str) -> List[Permission]:
        """All of ``user``'s permissions, newest first."""
        record = await self._user(USER_PERMISSIONS_QUERY, user)
        if record is None:
            return []

        try:
            permissions = [
                self._permission(entry, user) for entry in record.get("permissions") or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Malformed permission in subgraph response: {e}") from e

        permissions.sort(key=lambda p: p.added_at_timestamp or 0, reverse=True)
        return permissions

    @staticmethod
    def _permission(entry: Dict[str, Any], user: str) -> Permission:
        grantee = entry.get("grantee") or {}
        return Permission(
            id=int(entry["id"]),
            grantor=Web3.to_checksum_address(user),
            grantee_id=_int(grantee.get("id")),
            grant=entry["grant"],
            nonce=_int(entry.get("nonce")),
            file_ids=[int(f) for f in entry.get("fileIds") or []],
            start_block=_int(entry.get("startBlock")),
            end_block=_int(entry.get("endBlock")),
            added_at_block=_int(entry.get("addedAtBlock")),
            added_at_timestamp=_int(entry.get("addedAtTimestamp")),
            transaction_hash=entry.get("transactionHash"),
        )

    # =========================================================================
    # Trusted Servers
    # =========================================================================

    async def get_user_trusted_servers(self, user: str) -> List[TrustedServer]:
        """Servers ``user`` currently trusts, newest first."""
        record = await self._user(USER_TRUSTED_SERVERS_QUERY, user)
        if record is None:
            return []

        try:
            servers = [
                self._server(entry)
                for entry in record.get("serverTrusts") or []
                if entry.get("untrustedAtBlock") is None
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Malformed server in subgraph response: {e}") from e

        servers.sort(key=lambda s: s.trusted_at or 0, reverse=True)
        return servers

    @staticmethod
    def _server(entry: Dict[str, Any]) -> TrustedServer:
        server = entry["server"]
        owner = (server.get("owner") or {}).get("id") or ""
        return TrustedServer(
            id=_int(server.get("id")),
            server_id=Web3.to_checksum_address(server["serverAddress"]),
            server_url=server["url"],
            owner=Web3.to_checksum_address(owner) if owner else "",
            public_key=server.get("publicKey") or "",
            trusted_at=_int(entry.get("trustedAt")),
            trusted_at_block=_int(entry.get("trustedAtBlock")),
            transaction_hash=entry.get("transactionHash"),
        )
