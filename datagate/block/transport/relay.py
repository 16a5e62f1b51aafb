# datagate/block/transport/relay.py
"""
DataGate Block Transport: Relay

Gasless submission. A relay receives a signed authorization, verifies
it, and pays gas to put it on chain. DataGate talks to relays through
caller-supplied async callbacks (RelayCallbacks); HttpRelayer provides
callbacks for a relayer speaking the unified JSON protocol below.

Unified Relayer Protocol (single POST endpoint):
    Signed:   {"type": "signed", "typedData": {...}, "signature": "0x...",
               "expectedUserAddress": "0x...", "chainId": 14800}
              -> {"type": "signed", "hash": "0x..."}

    Direct:   {"type": "direct", "operation": "submitFileAddition",
               "params": {"url": ..., "userAddress": ...}, "chainId": ...}
              -> {"type": "direct", "result": {"fileId": 7, "transactionHash": "0x..."}}

              operations: submitFileAddition,
                          submitFileAdditionWithPermissions,
                          submitFileAdditionComplete,
                          storeGrantFile (-> {"result": {"url": ...}})

    Failure:  {"type": "error", "error": "..."}

Status Handling:
    5xx / connection failure -> TransientNetworkError (retryable)
    4xx / {"type": "error"}  -> RelayerError

Usage:
    relayer = HttpRelayer("https://app.example/api/relay", transport, chain_id=14800)
    client = DataGateClient(config, wallet, relay_callbacks=relayer.callbacks())

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from ...errors import RelayerError, SerializationError, TransientNetworkError
from ..registry.models import FilePermissionEntry
from .http import HTTPTransport

logger = logging.getLogger(__name__)


# =============================================================================
# Callback Types
# =============================================================================

@dataclass
class FileAddition:
    file_id: int
    transaction_hash: str


SignedCallback = Callable[[Dict[str, Any], str], Awaitable[str]]
FileCallback = Callable[[str, str], Awaitable[FileAddition]]
FileWithPermissionsCallback = Callable[
    [str, str, List[FilePermissionEntry]], Awaitable[FileAddition]
]
FileCompleteCallback = Callable[
    [str, str, List[FilePermissionEntry], int], Awaitable[FileAddition]
]
GrantStoreCallback = Callable[[Dict[str, Any]], Awaitable[str]]


@dataclass
class RelayCallbacks:
    """
    Per-operation relay hooks. A missing hook means "submit directly".

    Signed hooks receive the full EIP-712 payload and the signature and
    return a transaction hash.
    """
    submit_permission_grant: Optional[SignedCallback] = None
    submit_permission_revoke: Optional[SignedCallback] = None
    submit_trust_server: Optional[SignedCallback] = None
    submit_untrust_server: Optional[SignedCallback] = None
    submit_add_and_trust_server: Optional[SignedCallback] = None
    submit_add_server_files_and_permissions: Optional[SignedCallback] = None
    submit_file_addition: Optional[FileCallback] = None
    submit_file_addition_with_permissions: Optional[FileWithPermissionsCallback] = None
    submit_file_addition_complete: Optional[FileCompleteCallback] = None
    store_grant_file: Optional[GrantStoreCallback] = None

    def configured(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]


# =============================================================================
# HTTP Relayer
# =============================================================================

class HttpRelayer:
    """Client for a relayer speaking the unified JSON protocol."""

    def __init__(
        self,
        relayer_url: str,
        transport: HTTPTransport,
        chain_id: int,
        expected_user_address: Union[str, Callable[[], Optional[str]], None] = None,
    ):
        """
        Args:
            relayer_url: Relayer POST endpoint
            transport: HTTP transport
            chain_id: Chain the relayer should submit to
            expected_user_address: Address (or callable returning it, read
                per submission) the relayer should verify as signer
        """
        self._url = relayer_url
        self._transport = transport
        self._chain_id = chain_id
        self._expected_user = expected_user_address

    @property
    def expected_user_address(self) -> Optional[str]:
        if callable(self._expected_user):
            return self._expected_user()
        return self._expected_user

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = {**payload, "chainId": self._chain_id}
        response = await self._transport.post_json(self._url, payload)

        if response.status_code >= 500:
            raise TransientNetworkError(
                f"Relayer returned HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            body = response.json()
        except SerializationError:
            if not response.ok:
                raise RelayerError(
                    f"Relayer returned HTTP {response.status_code}",
                    status_code=response.status_code,
                    response=response.text,
                )
            raise

        if not response.ok or not isinstance(body, dict) or body.get("type") == "error":
            message = body.get("error") if isinstance(body, dict) else None
            raise RelayerError(
                f"Relayer rejected request: {message or f'HTTP {response.status_code}'}",
                status_code=response.status_code,
                response=body,
            )
        return body

    # =========================================================================
    # Signed Operations
    # =========================================================================

    async def submit_signed(self, typed_data: Dict[str, Any], signature: str) -> str:
        """Relay a signed authorization; returns the transaction hash."""
        payload: Dict[str, Any] = {
            "type": "signed",
            "typedData": typed_data,
            "signature": signature,
        }
        expected_user = self.expected_user_address
        if expected_user:
            payload["expectedUserAddress"] = expected_user

        body = await self._post(payload)
        tx_hash = body.get("hash")
        if not tx_hash:
            raise RelayerError("Relayer response missing transaction hash", response=body)
        logger.info("Relayed %s: %s", typed_data.get("primaryType"), tx_hash)
        return tx_hash

    # =========================================================================
    # Direct Operations
    # =========================================================================

    async def _direct(self, operation: str, params: Any) -> Dict[str, Any]:
        body = await self._post({"type": "direct", "operation": operation, "params": params})
        result = body.get("result")
        if not isinstance(result, dict):
            raise RelayerError(f"Relayer response for {operation} missing result", response=body)
        return result

    @staticmethod
    def _file_addition(result: Dict[str, Any]) -> FileAddition:
        try:
            return FileAddition(
                file_id=int(result["fileId"]),
                transaction_hash=result["transactionHash"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RelayerError(f"Malformed file addition result: {e}", response=result) from e

    async def submit_file_addition(self, url: str, user_address: str) -> FileAddition:
        result = await self._direct("submitFileAddition", {
            "url": url,
            "userAddress": user_address,
        })
        return self._file_addition(result)

    async def submit_file_addition_with_permissions(
        self,
        url: str,
        user_address: str,
        permissions: Sequence[FilePermissionEntry],
    ) -> FileAddition:
        result = await self._direct("submitFileAdditionWithPermissions", {
            "url": url,
            "userAddress": user_address,
            "permissions": [p.to_dict() for p in permissions],
        })
        return self._file_addition(result)

    async def submit_file_addition_complete(
        self,
        url: str,
        user_address: str,
        permissions: Sequence[FilePermissionEntry],
        schema_id: int,
    ) -> FileAddition:
        result = await self._direct("submitFileAdditionComplete", {
            "url": url,
            "userAddress": user_address,
            "permissions": [p.to_dict() for p in permissions],
            "schemaId": schema_id,
        })
        return self._file_addition(result)

    async def store_grant_file(self, grant: Dict[str, Any]) -> str:
        result = await self._direct("storeGrantFile", grant)
        url = result.get("url")
        if not url:
            raise RelayerError("Relayer did not return a grant file URL", response=result)
        return url

    def callbacks(self) -> RelayCallbacks:
        """RelayCallbacks routing every operation through this relayer."""
        return RelayCallbacks(
            submit_permission_grant=self.submit_signed,
            submit_permission_revoke=self.submit_signed,
            submit_trust_server=self.submit_signed,
            submit_untrust_server=self.submit_signed,
            submit_add_and_trust_server=self.submit_signed,
            submit_add_server_files_and_permissions=self.submit_signed,
            submit_file_addition=self.submit_file_addition,
            submit_file_addition_with_permissions=self.submit_file_addition_with_permissions,
            submit_file_addition_complete=self.submit_file_addition_complete,
            store_grant_file=self.store_grant_file,
        )
