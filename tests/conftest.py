# tests/conftest.py
"""
DataGate Test Fixtures

FakeChainClient keeps contract state in memory and answers the same
contract/function names the real client sends, so signer, router and
resolver run unmodified against it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from datagate.block.adapters import LocalAccountAdapter
from datagate.block.registry.chain import ChainClient
from datagate.block.registry.events import DecodedEvent
from datagate.block.registry.multicall import CallResult, ContractCall, Failure, Success
from datagate.block.transport.storage import StorageProvider, StorageUpload
from datagate.cryptography import DefaultCryptoBackend, KeyEncryptionService
from datagate.errors import BlockchainError

OWNER_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32

CHAIN_ID = 14800

ADDRESSES = {
    "DataPortabilityPermissions": "0x1111111111111111111111111111111111111111",
    "DataPortabilityServers": "0x2222222222222222222222222222222222222222",
    "DataRegistry": "0x3333333333333333333333333333333333333333",
    "DataRefinerRegistry": "0x4444444444444444444444444444444444444444",
}

SERVER_ADDRESS = "0x5555555555555555555555555555555555555555"
GRANTEE_ADDRESS = "0x6666666666666666666666666666666666666666"

DEFAULT_EVENTS = {
    "addPermission": [("PermissionAdded", {"permissionId": 77}, "permissionId")],
    "addServerFilesAndPermissions": [("PermissionAdded", {"permissionId": 78}, None)],
    "revokePermission": [("PermissionRevoked", {"permissionId": 0}, None)],
    "trustServer": [("ServerTrusted", {}, None)],
    "untrustServer": [("ServerUntrusted", {}, None)],
    "addAndTrustServer": [("ServerRegistered", {"serverId": 9}, None), ("ServerTrusted", {}, None)],
    "addFile": [("FileAdded", {"fileId": 501}, None)],
    "addFileWithPermissionsAndSchema": [("FileAdded", {"fileId": 502}, None)],
    "addSchema": [("SchemaAdded", {"schemaId": 3}, None)],
    "addRefinerWithSchemaId": [("RefinerAdded", {"refinerId": 12}, None)],
    "updateSchemaId": [("SchemaIdUpdated", {"refinerId": 12, "oldSchemaId": 3, "newSchemaId": 4}, None)],
}


# =============================================================================
# Fake Chain
# =============================================================================

class FakeChainClient(ChainClient):
    """In-memory ChainClient."""

    def __init__(self, account_address: Optional[str] = None, chain_id: int = CHAIN_ID):
        self._chain_id = chain_id
        self._account = account_address
        self.nonces: Dict[str, int] = {}
        self.permission_ids: Dict[str, List[int]] = {}
        self.permissions: Dict[int, Tuple] = {}
        self.server_ids: Dict[str, List[int]] = {}
        self.servers: Dict[int, Tuple] = {}
        self.schemas: Dict[int, Tuple] = {}
        self.refiners: Dict[int, Tuple] = {}

        self.reads: List[Tuple[str, str, Tuple]] = []
        self.multicalls: List[Tuple[List[ContractCall], bool]] = []
        self.writes: List[Tuple[str, str, Tuple]] = []
        self.receipts: Dict[str, Dict[str, Any]] = {}

        self.read_error: Optional[Exception] = None
        self.failing_calls: set = set()
        self.write_error: Optional[Exception] = None
        self.receipt_errors: List[Exception] = []
        self.receipt_status = 1
        self.events: Dict[str, List[DecodedEvent]] = {}
        self.noise_logs = True

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def account_address(self) -> Optional[str]:
        return self._account

    def address_of(self, contract: str) -> str:
        return ADDRESSES[contract]

    # =========================================================================
    # Reads
    # =========================================================================

    def _key(self, user: str) -> str:
        return user.lower()

    def _call(self, contract: str, function: str, args: Tuple) -> Any:
        if (function, args) in self.failing_calls:
            raise BlockchainError(f"{function}{args} reverted")
        if function == "userNonce":
            return self.nonces.get(self._key(args[0]), 0)
        if function == "userPermissionIdsLength":
            return len(self.permission_ids.get(self._key(args[0]), []))
        if function == "userPermissionIdsAt":
            return self.permission_ids[self._key(args[0])][args[1]]
        if function == "permissions":
            return self.permissions[args[0]]
        if function == "userServerIdsLength":
            return len(self.server_ids.get(self._key(args[0]), []))
        if function == "userServerIdsAt":
            return self.server_ids[self._key(args[0])][args[1]]
        if function == "servers":
            return self.servers[args[0]]
        if function == "schemasCount":
            return len(self.schemas)
        if function == "schemas":
            return self.schemas[args[0]]
        if function == "isValidSchemaId":
            return args[0] in self.schemas
        if function == "refiners":
            return self.refiners[args[0]]
        raise BlockchainError(f"FakeChainClient cannot read {contract}.{function}")

    async def read(self, contract: str, function: str, *args: Any) -> Any:
        self.reads.append((contract, function, args))
        if self.read_error is not None:
            raise self.read_error
        return self._call(contract, function, tuple(args))

    async def multicall(
        self,
        calls: Sequence[ContractCall],
        allow_failure: bool = True,
    ) -> List[CallResult]:
        self.multicalls.append((list(calls), allow_failure))
        if self.read_error is not None:
            raise self.read_error
        results: List[CallResult] = []
        for call in calls:
            try:
                results.append(Success(self._call(call.contract, call.function, tuple(call.args))))
            except (BlockchainError, KeyError, IndexError) as e:
                if not allow_failure:
                    raise BlockchainError(f"multicall reverted: {e}") from e
                results.append(Failure(e))
        return results

    # =========================================================================
    # Writes
    # =========================================================================

    async def write(self, contract: str, function: str, *args: Any) -> str:
        self.writes.append((contract, function, args))
        if self.write_error is not None:
            raise self.write_error
        tx_hash = "0x" + f"{len(self.writes):064x}"

        if function in self.events:
            events = list(self.events[function])
        else:
            events = [
                DecodedEvent(name=name, args=dict(event_args))
                for name, event_args, _ in DEFAULT_EVENTS.get(function, [])
            ]
        if self.noise_logs:
            events.insert(0, DecodedEvent(name="Transfer", args={"value": 1}))
            events.append(DecodedEvent(name="Upgraded", args={}))
        for index, event in enumerate(events):
            event.log_index = index

        self.receipts[tx_hash] = {
            "status": self.receipt_status,
            "transactionHash": tx_hash,
            "_events": events,
        }
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        if self.receipt_errors:
            raise self.receipt_errors.pop(0)
        return self.receipts[tx_hash]

    def decode_events(self, contract: str, receipt: Dict[str, Any]) -> List[DecodedEvent]:
        return list(receipt["_events"])


# =============================================================================
# Storage
# =============================================================================

class MemoryStorage(StorageProvider):
    """Content-addressed in-memory storage."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.uploads: List[str] = []

    async def upload(self, data: bytes, filename: str) -> StorageUpload:
        url = f"ipfs://bafy{len(self.blobs):04d}{'a' * 20}"
        self.blobs[url] = bytes(data)
        self.uploads.append(filename)
        return StorageUpload(url=url, size=len(data))

    async def download(self, url: str) -> bytes:
        return self.blobs[url]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def wallet() -> LocalAccountAdapter:
    return LocalAccountAdapter(OWNER_KEY, chain_id=CHAIN_ID)


@pytest.fixture
def chain(wallet) -> FakeChainClient:
    return FakeChainClient(account_address=wallet.address)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def keys() -> KeyEncryptionService:
    return KeyEncryptionService(DefaultCryptoBackend(scrypt_log2_n=10))
