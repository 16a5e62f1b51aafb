# datagate/block/router.py
"""
DataGate Block: Submission Router

Delivers a SignedAuthorization (or a file registration) to the chain,
through a relay when the caller configured one for that operation and
as a direct contract write otherwise.

State Machine:
    BUILT ──relay callback──► RELAYED   (hash returned, not awaited)
      │
      └──direct write──────► DIRECT ──receipt + event──► CONFIRMED
                                 └──────any failure─────► FAILED

Direct Writes:
    grant                        addPermission(input, signature)          PermissionAdded.permissionId
    revoke                       revokePermission(permissionId)           PermissionRevoked
    trust_server                 trustServer(serverId)                    ServerTrusted
    untrust_server               untrustServer(serverId)                  ServerUntrusted
    add_and_trust_server         addAndTrustServer(input)                 ServerRegistered.serverId
    server_files_and_permissions addServerFilesAndPermissions(input, sig) PermissionAdded.permissionId
    add_file                     DataRegistry.addFile(url)                FileAdded.fileId
    add_file_with_permissions    DataRegistry.addFileWithPermissionsAndSchema

Retry:
    Relay calls and receipt polling retry TransientNetworkError only.
    Contract writes are never retried.

Usage:
    router = SubmissionRouter(chain, relay_callbacks=relayer.callbacks())
    result = await router.submit(signed)
    result.state, result.transaction_hash, result.identifier

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import (
    BlockchainError,
    DataGateError,
    MissingAccountError,
    ValidationError,
)
from ..resilience import Notifier, RetryPolicy, is_transient, with_retry
from ..validation import require_address, require_text, require_uint
from .registry.chain import ChainClient
from .registry.events import DecodedEvent, find_event, receipt_hash, receipt_succeeded
from .registry.models import FilePermissionEntry
from .signing.messages import AuthorizationKind, SignedAuthorization
from .transport.relay import RelayCallbacks

logger = logging.getLogger(__name__)

DATA_REGISTRY = "DataRegistry"

ADD_FILE = "add_file"
ADD_FILE_WITH_PERMISSIONS = "add_file_with_permissions"


# =============================================================================
# Result
# =============================================================================

class SubmissionState(Enum):
    BUILT = auto()
    RELAYED = auto()
    DIRECT = auto()
    CONFIRMED = auto()
    FAILED = auto()


@dataclass
class SubmissionResult:
    """
    Outcome of one submission.

    ``identifier`` is the id carried by the expected event (permission,
    server or file id), when the route waited for it.
    """
    kind: str
    state: SubmissionState
    transaction_hash: Optional[str] = None
    identifier: Optional[int] = None
    event: Optional[DecodedEvent] = None
    error: Optional[Exception] = None
    states: List[SubmissionState] = field(default_factory=list)

    @property
    def relayed(self) -> bool:
        return SubmissionState.RELAYED in self.states


@dataclass
class _Route:
    contract: str
    function: str
    event: str
    id_arg: Optional[str]
    relay_field: str
    sender_bound: bool
    build_args: Callable[[SignedAuthorization], Tuple[Any, ...]]


def _grant_args(signed: SignedAuthorization) -> Tuple[Any, ...]:
    m = signed.message
    return ((m["nonce"], m["granteeId"], m["grant"], list(m["fileIds"])), signed.signature_bytes)


def _server_files_args(signed: SignedAuthorization) -> Tuple[Any, ...]:
    m = signed.message
    return (
        (
            m["nonce"],
            m["granteeId"],
            m["grant"],
            list(m["fileUrls"]),
            list(m["schemaIds"]),
            m["serverAddress"],
            m["serverUrl"],
            m["serverPublicKey"],
            [[(p["account"], p["key"]) for p in entries] for entries in m["filePermissions"]],
        ),
        signed.signature_bytes,
    )


ROUTES: Dict[AuthorizationKind, _Route] = {
    AuthorizationKind.GRANT: _Route(
        "DataPortabilityPermissions", "addPermission", "PermissionAdded", "permissionId",
        "submit_permission_grant", False, _grant_args,
    ),
    AuthorizationKind.REVOKE: _Route(
        "DataPortabilityPermissions", "revokePermission", "PermissionRevoked", "permissionId",
        "submit_permission_revoke", True, lambda s: (s.message["permissionId"],),
    ),
    AuthorizationKind.TRUST_SERVER: _Route(
        "DataPortabilityServers", "trustServer", "ServerTrusted", None,
        "submit_trust_server", True, lambda s: (s.message["serverId"],),
    ),
    AuthorizationKind.UNTRUST_SERVER: _Route(
        "DataPortabilityServers", "untrustServer", "ServerUntrusted", None,
        "submit_untrust_server", True, lambda s: (s.message["serverId"],),
    ),
    AuthorizationKind.ADD_AND_TRUST_SERVER: _Route(
        "DataPortabilityServers", "addAndTrustServer", "ServerRegistered", "serverId",
        "submit_add_and_trust_server", True,
        lambda s: ((s.message["serverAddress"], s.message["serverUrl"], s.message["publicKey"]),),
    ),
    AuthorizationKind.SERVER_FILES_AND_PERMISSIONS: _Route(
        "DataPortabilityPermissions", "addServerFilesAndPermissions", "PermissionAdded",
        "permissionId", "submit_add_server_files_and_permissions", False, _server_files_args,
    ),
}


# =============================================================================
# Router
# =============================================================================

class SubmissionRouter:
    """Relay-or-direct delivery with receipt and event confirmation."""

    def __init__(
        self,
        chain: ChainClient,
        relay_callbacks: Optional[RelayCallbacks] = None,
        retry: Optional[RetryPolicy] = None,
        notifier: Optional[Notifier] = None,
    ):
        """
        Args:
            chain: Chain client for direct writes
            relay_callbacks: Per-operation relay hooks (missing hook = direct)
            retry: Retry policy for relay calls and receipt polling
            notifier: Receives every SubmissionResult, successful or not
        """
        self._chain = chain
        self._relay = relay_callbacks or RelayCallbacks()
        self._retry = retry or RetryPolicy()
        self.notifier: Notifier = notifier or Notifier(name="submissions")

    async def _retrying(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        return await with_retry(
            operation,
            max_attempts=self._retry.max_attempts,
            delay=self._retry.delay,
            should_retry=is_transient,
        )

    # =========================================================================
    # Signed Authorizations
    # =========================================================================

    async def submit(self, signed: SignedAuthorization) -> SubmissionResult:
        """
        Submit a signed authorization.

        Raises:
            RelayerError / TransientNetworkError: Relay failed
            StaleNonceError: Chain rejected the message nonce
            MissingExpectedEventError: Receipt lacks the expected event
            BlockchainError: Reverted or unreadable transaction
        """
        route = ROUTES[signed.kind]
        result = SubmissionResult(kind=signed.kind.value, state=SubmissionState.BUILT)
        result.states.append(SubmissionState.BUILT)

        try:
            callback = getattr(self._relay, route.relay_field)
            if callback is not None:
                typed_data = signed.typed_message.to_dict()
                tx_hash = await self._retrying(lambda: callback(typed_data, signed.signature))
                self._advance(result, SubmissionState.RELAYED)
                result.transaction_hash = tx_hash
                logger.info("Relayed %s: %s", signed.kind.value, tx_hash)
            else:
                self._require_sender(signed, route)
                self._advance(result, SubmissionState.DIRECT)
                await self._direct(
                    result, route.contract, route.function, route.build_args(signed),
                    route.event, route.id_arg,
                )
        except Exception as e:
            await self._fail(result, e)
            raise

        await self.notifier.emit(result)
        return result

    def _require_sender(self, signed: SignedAuthorization, route: _Route) -> None:
        sender = self._chain.account_address
        if sender is None:
            raise MissingAccountError(
                f"No relay configured for {signed.kind.value} and no local account for direct writes"
            )
        if route.sender_bound and sender.lower() != signed.signer.lower():
            raise ValidationError(
                f"Direct {signed.kind.value} must be sent by the signer {signed.signer}, "
                f"not {sender}",
                field="signer",
            )

    async def _direct(
        self,
        result: SubmissionResult,
        contract: str,
        function: str,
        args: Tuple[Any, ...],
        event_name: str,
        id_arg: Optional[str],
    ) -> None:
        tx_hash = await self._chain.write(contract, function, *args)
        result.transaction_hash = tx_hash

        receipt = await self._retrying(lambda: self._chain.wait_for_receipt(tx_hash))
        if not receipt_succeeded(receipt):
            raise BlockchainError(f"{contract}.{function} reverted in {receipt_hash(receipt, tx_hash)}")

        event = find_event(self._chain.decode_events(contract, receipt), event_name, tx_hash)
        result.event = event
        if id_arg is not None:
            result.identifier = int(event.args[id_arg])
        self._advance(result, SubmissionState.CONFIRMED)
        logger.info("Confirmed %s.%s: %s", contract, function, tx_hash)

    @staticmethod
    def _advance(result: SubmissionResult, state: SubmissionState) -> None:
        result.state = state
        result.states.append(state)

    async def _fail(self, result: SubmissionResult, error: Exception) -> None:
        self._advance(result, SubmissionState.FAILED)
        result.error = error
        logger.warning("Submission %s failed: %s", result.kind, error)
        await self.notifier.emit(result)

    # =========================================================================
    # File Registration
    # =========================================================================

    async def add_file(self, url: str, owner: str) -> SubmissionResult:
        """Register ``url`` for ``owner``; ``identifier`` is the file id."""
        url = require_text(url, "url")
        owner = require_address(owner, "owner")
        result = SubmissionResult(kind=ADD_FILE, state=SubmissionState.BUILT)
        result.states.append(SubmissionState.BUILT)

        try:
            callback = self._relay.submit_file_addition
            if callback is not None:
                addition = await self._retrying(lambda: callback(url, owner))
                self._relayed_file(result, addition)
            else:
                self._advance(result, SubmissionState.DIRECT)
                await self._direct(
                    result, DATA_REGISTRY, "addFile", (url,), "FileAdded", "fileId",
                )
        except Exception as e:
            await self._fail(result, e)
            raise

        await self.notifier.emit(result)
        return result

    async def add_file_with_permissions(
        self,
        url: str,
        owner: str,
        permissions: Sequence[FilePermissionEntry],
        schema_id: int = 0,
    ) -> SubmissionResult:
        """
        Register a file together with recipient-wrapped keys.

        ``schema_id`` 0 means no schema. Failures that are not already
        DataGate errors are wrapped with the operation name.
        """
        url = require_text(url, "url")
        owner = require_address(owner, "owner")
        schema_id = require_uint(schema_id, "schema_id")
        permissions = [
            FilePermissionEntry(require_address(p.account, "permissions.account"), p.key)
            for p in permissions
        ]
        result = SubmissionResult(kind=ADD_FILE_WITH_PERMISSIONS, state=SubmissionState.BUILT)
        result.states.append(SubmissionState.BUILT)

        try:
            complete = self._relay.submit_file_addition_complete
            with_permissions = self._relay.submit_file_addition_with_permissions
            if complete is not None:
                addition = await self._retrying(lambda: complete(url, owner, permissions, schema_id))
                self._relayed_file(result, addition)
            elif with_permissions is not None and schema_id == 0:
                addition = await self._retrying(lambda: with_permissions(url, owner, permissions))
                self._relayed_file(result, addition)
            else:
                self._advance(result, SubmissionState.DIRECT)
                await self._direct(
                    result,
                    DATA_REGISTRY,
                    "addFileWithPermissionsAndSchema",
                    (url, owner, [p.to_tuple() for p in permissions], schema_id),
                    "FileAdded",
                    "fileId",
                )
        except DataGateError as e:
            await self._fail(result, e)
            raise
        except Exception as e:
            wrapped = BlockchainError(f"Failed to add file with permissions and schema: {e}")
            await self._fail(result, wrapped)
            raise wrapped from e

        await self.notifier.emit(result)
        return result

    def _relayed_file(self, result: SubmissionResult, addition: Any) -> None:
        self._advance(result, SubmissionState.RELAYED)
        result.transaction_hash = addition.transaction_hash
        result.identifier = int(addition.file_id)
        logger.info("Relayed %s: file %s in %s", result.kind, addition.file_id, addition.transaction_hash)
