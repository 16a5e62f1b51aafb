# tests/test_client.py
"""
DataGate Client Facade Tests

Categories:
  F1. Configuration
  F2. Submissions through the facade
  F3. Reads, uploads and schemas
"""

import asyncio

import pytest

from datagate import ClientConfig, ContractAddresses, DataGateClient, GrantParams
from datagate.block.adapters import LocalAccountAdapter
from datagate.block.registry import SchemaRegistry
from datagate.block.router import SubmissionState
from datagate.block.transport import MockHTTPTransport
from datagate.errors import RelayerError, StaleNonceError, TransientNetworkError, ValidationError
from datagate.resilience import RetryPolicy

from conftest import ADDRESSES, FakeChainClient, GRANTEE_ADDRESS, OWNER_KEY, SERVER_ADDRESS


def _config(**overrides):
    config = dict(
        chain_id=14800,
        addresses=ContractAddresses(
            permissions=ADDRESSES["DataPortabilityPermissions"],
            servers=ADDRESSES["DataPortabilityServers"],
            data_registry=ADDRESSES["DataRegistry"],
            refiners=ADDRESSES["DataRefinerRegistry"],
        ),
    )
    config.update(overrides)
    return ClientConfig(**config)


class StaleOnceChain(FakeChainClient):
    """Rejects the first write with a stale nonce and bumps the nonce."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.rejected = False

    async def write(self, contract, function, *args):
        if not self.rejected:
            self.rejected = True
            self.nonces[self.account_address.lower()] = 1
            raise StaleNonceError("InvalidNonce")
        return await super().write(contract, function, *args)


# =============================================================================
# F1. Configuration
# =============================================================================

def test_f1_1_config_validation():
    with pytest.raises(ValidationError):
        _config(chain_id=0).validate()
    with pytest.raises(ValidationError):
        _config(rpc_url="not a url").validate()
    with pytest.raises(ValidationError):
        _config(addresses=ContractAddresses("0x1", "0x2", "0x3")).validate()
    _config(rpc_url="https://rpc.example", ipfs_gateways=["https://gw.example/ipfs/"]).validate()


def test_f1_2_addresses_as_contract_names():
    assert _config().addresses.as_dict() == ADDRESSES


def test_f1_3_relayer_url_builds_relay_callbacks(wallet, chain):
    client = DataGateClient(
        _config(relayer_url="https://relay.example/api"),
        wallet, chain=chain, transport=MockHTTPTransport(),
    )
    assert client.relay_callbacks.submit_permission_grant is not None
    assert client.relay_callbacks.store_grant_file is not None


def test_f1_4_relayer_reads_wallet_address_at_submission(chain):
    wallet = LocalAccountAdapter(OWNER_KEY, chain_id=14800)
    asyncio.run(wallet.disconnect())
    transport = MockHTTPTransport()
    client = DataGateClient(
        _config(relayer_url="https://relay.example/api"),
        wallet, chain=chain, transport=transport,
    )

    asyncio.run(wallet.connect())
    transport.queue_response(200, {"type": "signed", "hash": "0xabc"})
    result = asyncio.run(client.trust_server(SERVER_ADDRESS, "https://s.example"))

    assert result.state is SubmissionState.RELAYED
    assert transport.requests[0]["json"]["expectedUserAddress"] == wallet.address


def test_f1_5_missing_rpc_url_fails_before_opening_transport(wallet, monkeypatch):
    opened = []
    monkeypatch.setattr("datagate.client.HttpxTransport", lambda **kw: opened.append(kw))

    with pytest.raises(ValidationError, match="rpc_url"):
        DataGateClient(_config(), wallet)
    assert opened == []


# =============================================================================
# F2. Submissions
# =============================================================================

def test_f2_1_stale_nonce_resigns_once(wallet):
    chain = StaleOnceChain(account_address=wallet.address)
    client = DataGateClient(_config(), wallet, chain=chain, transport=MockHTTPTransport())
    seen = []
    client.on_submission(seen.append)

    result = asyncio.run(client.grant(GrantParams(
        GRANTEE_ADDRESS, 3, "llm_inference", file_ids=[1], grant_url="ipfs://bafygrant",
    )))

    assert result.state is SubmissionState.CONFIRMED
    assert chain.writes[0][2][0][0] == 1
    assert [r.state for r in seen] == [SubmissionState.FAILED, SubmissionState.CONFIRMED]


def test_f2_2_server_lifecycle(wallet, chain):
    client = DataGateClient(_config(), wallet, chain=chain, transport=MockHTTPTransport())

    async def run():
        added = await client.add_and_trust_server(SERVER_ADDRESS, "https://s.example", "0x04ab")
        untrusted = await client.untrust_server(SERVER_ADDRESS)
        return added, untrusted

    added, untrusted = asyncio.run(run())
    assert added.identifier == 9
    assert untrusted.state is SubmissionState.CONFIRMED
    assert [w[1] for w in chain.writes] == ["addAndTrustServer", "untrustServer"]


# =============================================================================
# F3. Reads, Uploads and Schemas
# =============================================================================

def test_f3_1_reads_default_to_wallet(wallet, chain):
    chain.nonces[wallet.address.lower()] = 4
    client = DataGateClient(_config(), wallet, chain=chain, transport=MockHTTPTransport())

    assert asyncio.run(client.get_user_nonce()) == 4
    page = asyncio.run(client.get_trusted_servers())
    assert page.used_mode == "rpc"
    assert chain.reads[-1] == ("DataPortabilityServers", "userServerIdsLength", (wallet.address,))


def test_f3_2_upload_requires_storage(wallet, chain):
    client = DataGateClient(_config(), wallet, chain=chain, transport=MockHTTPTransport())
    with pytest.raises(ValidationError, match="storage"):
        asyncio.run(client.upload(b"x"))


def test_f3_3_upload_and_decrypt(wallet, chain, storage):
    transport = MockHTTPTransport()
    client = DataGateClient(_config(), wallet, chain=chain, transport=transport, storage=storage)
    result = asyncio.run(client.upload(b"payload"))
    transport.queue_response(200, content=storage.blobs[result.url])

    plaintext = asyncio.run(client.decrypt(result.url, gateways=["https://gw.example/ipfs/"]))

    assert result.file_id == 502
    assert plaintext == b"payload"
    assert transport.requests[0]["url"].startswith("https://gw.example/ipfs/bafy")


def test_f3_4_schema_registry(wallet, chain):
    chain.schemas[0] = ("profile", "json", "ipfs://schema")
    client = DataGateClient(_config(), wallet, chain=chain, transport=MockHTTPTransport())

    async def run():
        schema_id = await client.schemas.add_schema("profile", "json", "ipfs://schema")
        refiner_id = await client.schemas.add_refiner(1, "refiner", schema_id, "ipfs://instructions")
        tx_hash = await client.schemas.update_schema_id(refiner_id, 0)
        schema = await client.schemas.get_schema(0)
        return schema_id, refiner_id, tx_hash, schema

    schema_id, refiner_id, tx_hash, schema = asyncio.run(run())
    assert schema_id == 3
    assert refiner_id == 12
    assert tx_hash.startswith("0x")
    assert schema.definition_url == "ipfs://schema"
    assert chain.writes[1] == (
        "DataRefinerRegistry", "addRefinerWithSchemaId", (1, "refiner", 3, "ipfs://instructions"),
    )


def test_f3_5_schema_receipt_poll_retries_transient_errors(chain):
    chain.receipt_errors = [TransientNetworkError("timeout"), TransientNetworkError("timeout")]
    registry = SchemaRegistry(chain, RetryPolicy(max_attempts=3, delay=0))

    assert asyncio.run(registry.add_schema("profile", "json", "ipfs://schema")) == 3
    assert len(chain.writes) == 1

    chain.receipt_errors = [RelayerError("bad gateway")]
    with pytest.raises(RelayerError):
        asyncio.run(registry.add_schema("profile", "json", "ipfs://schema"))
    assert len(chain.writes) == 2
