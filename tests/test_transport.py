# tests/test_transport.py
"""
DataGate Transport Tests

Categories:
  H1. Relayer protocol
  H2. Content fetching
  H3. Grant documents
  H4. Indexed queries
"""

import asyncio

import pytest

from datagate.block.registry import IndexedQueryClient
from datagate.block.registry.models import FilePermissionEntry
from datagate.block.signing import GrantDocument
from datagate.block.signing.grants import fetch_grant_document
from datagate.block.transport import ContentFetcher, HttpRelayer, MockHTTPTransport
from datagate.block.transport.ipfs import DEFAULT_IPFS_GATEWAYS, extract_cid
from datagate.errors import (
    ContentFetchError,
    RelayerError,
    SerializationError,
    TransientNetworkError,
    ValidationError,
)

from conftest import GRANTEE_ADDRESS

RELAYER = "https://relay.example/api"
CID = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"


# =============================================================================
# H1. Relayer Protocol
# =============================================================================

def test_h1_1_file_addition_complete_payload():
    transport = MockHTTPTransport()
    transport.queue_response(200, {"type": "direct", "result": {"fileId": "42", "transactionHash": "0xf"}})
    relayer = HttpRelayer(RELAYER, transport, chain_id=14800)

    addition = asyncio.run(relayer.submit_file_addition_complete(
        "ipfs://bafyfile", GRANTEE_ADDRESS, [FilePermissionEntry(GRANTEE_ADDRESS, "k")], 5,
    ))

    assert addition.file_id == 42
    assert addition.transaction_hash == "0xf"
    request = transport.requests[0]
    assert request["method"] == "POST"
    assert request["url"] == RELAYER
    assert request["json"] == {
        "type": "direct",
        "operation": "submitFileAdditionComplete",
        "params": {
            "url": "ipfs://bafyfile",
            "userAddress": GRANTEE_ADDRESS,
            "permissions": [{"account": GRANTEE_ADDRESS, "key": "k"}],
            "schemaId": 5,
        },
        "chainId": 14800,
    }


def test_h1_2_store_grant_file():
    transport = MockHTTPTransport()
    transport.queue_response(200, {"type": "direct", "result": {"url": "ipfs://bafygrant"}})
    relayer = HttpRelayer(RELAYER, transport, chain_id=1)

    url = asyncio.run(relayer.store_grant_file({"grantee": GRANTEE_ADDRESS}))

    assert url == "ipfs://bafygrant"
    assert transport.requests[0]["json"]["operation"] == "storeGrantFile"
    assert transport.requests[0]["json"]["params"] == {"grantee": GRANTEE_ADDRESS}


def test_h1_3_error_and_malformed_responses():
    transport = MockHTTPTransport()
    transport.queue_response(200, {"type": "error", "error": "quota exceeded"})
    transport.queue_response(200, {"type": "signed"})
    transport.queue_response(500, content=b"oops")
    transport.queue_response(200, {"type": "direct", "result": {"fileId": "x"}})
    relayer = HttpRelayer(RELAYER, transport, chain_id=1)

    with pytest.raises(RelayerError, match="quota exceeded"):
        asyncio.run(relayer.submit_signed({"primaryType": "Permission"}, "0x00"))
    with pytest.raises(RelayerError, match="missing transaction hash"):
        asyncio.run(relayer.submit_signed({"primaryType": "Permission"}, "0x00"))
    with pytest.raises(TransientNetworkError):
        asyncio.run(relayer.submit_signed({"primaryType": "Permission"}, "0x00"))
    with pytest.raises(RelayerError, match="Malformed file addition"):
        asyncio.run(relayer.submit_file_addition("ipfs://bafyfile", GRANTEE_ADDRESS))


def test_h1_4_callbacks_cover_every_operation():
    relayer = HttpRelayer(RELAYER, MockHTTPTransport(), chain_id=1)
    callbacks = relayer.callbacks()
    assert callbacks.submit_permission_grant == relayer.submit_signed
    assert callbacks.store_grant_file == relayer.store_grant_file
    assert "submit_file_addition_complete" in callbacks.configured()


def test_h1_5_expected_user_follows_current_account():
    transport = MockHTTPTransport()
    account = {"address": None}
    relayer = HttpRelayer(RELAYER, transport, chain_id=1,
                          expected_user_address=lambda: account["address"])

    async def run():
        for address in (None, GRANTEE_ADDRESS, "0x7777777777777777777777777777777777777777"):
            account["address"] = address
            transport.queue_response(200, {"type": "signed", "hash": "0xabc"})
            await relayer.submit_signed({"primaryType": "TrustServer"}, "0xsig")

    asyncio.run(run())
    sent = [r["json"].get("expectedUserAddress") for r in transport.requests]
    assert sent == [None, GRANTEE_ADDRESS, "0x7777777777777777777777777777777777777777"]


# =============================================================================
# H2. Content Fetching
# =============================================================================

def test_h2_1_extract_cid():
    assert extract_cid(f"ipfs://{CID}") == CID
    assert extract_cid(f"https://ipfs.io/ipfs/{CID}/data.json") == f"{CID}/data.json"
    assert extract_cid(CID) == CID
    assert extract_cid("https://example.com/file.bin") is None


def test_h2_2_gateway_order_and_override():
    fetcher = ContentFetcher(MockHTTPTransport(), ["https://a.example/ipfs", "https://b.example/ipfs/"])

    assert fetcher.candidate_urls(f"ipfs://{CID}") == [
        f"https://a.example/ipfs/{CID}",
        f"https://b.example/ipfs/{CID}",
    ]
    assert fetcher.candidate_urls(f"ipfs://{CID}", ["https://c.example/ipfs/"]) == [
        f"https://c.example/ipfs/{CID}",
    ]
    assert fetcher.candidate_urls("https://example.com/file.bin") == ["https://example.com/file.bin"]
    assert ContentFetcher(MockHTTPTransport()).gateways == DEFAULT_IPFS_GATEWAYS

    with pytest.raises(ValidationError):
        fetcher.candidate_urls("ftp://nowhere")


def test_h2_3_fetch_falls_through_gateways():
    transport = MockHTTPTransport()
    transport.queue_error(TransientNetworkError("connect timeout"))
    transport.queue_response(429)
    transport.queue_response(200, content=b"payload")
    fetcher = ContentFetcher(transport, [
        "https://a.example/ipfs/", "https://b.example/ipfs/", "https://c.example/ipfs/",
    ])

    assert asyncio.run(fetcher.fetch(f"ipfs://{CID}")) == b"payload"
    assert [r["url"] for r in transport.requests] == [
        f"https://a.example/ipfs/{CID}",
        f"https://b.example/ipfs/{CID}",
        f"https://c.example/ipfs/{CID}",
    ]


def test_h2_4_fetch_exhausted():
    transport = MockHTTPTransport()
    fetcher = ContentFetcher(transport, ["https://a.example/ipfs/", "https://b.example/ipfs/"])

    with pytest.raises(ContentFetchError) as exc:
        asyncio.run(fetcher.fetch(f"ipfs://{CID}"))
    assert "HTTP 404" in str(exc.value.attempts)


# =============================================================================
# H3. Grant Documents
# =============================================================================

def test_h3_1_hash_ignores_key_order():
    a = GrantDocument.create(GRANTEE_ADDRESS, "op", {"a": 1, "b": {"x": 1, "y": 2}}, files=[1])
    b = GrantDocument.create(GRANTEE_ADDRESS, "op", {"b": {"y": 2, "x": 1}, "a": 1}, files=[1])
    c = GrantDocument.create(GRANTEE_ADDRESS, "op", {"a": 2, "b": {"x": 1, "y": 2}}, files=[1])

    assert a.hash() == b.hash()
    assert a.hash() != c.hash()
    assert a.to_json() == b.to_json()
    assert a.hash().startswith("0x") and len(a.hash()) == 66


def test_h3_2_from_json_validates():
    doc = GrantDocument.from_json(
        '{"grantee": "%s", "operation": "op", "parameters": {}, "expires": 10}' % GRANTEE_ADDRESS
    )
    assert doc.is_expired(now=11)
    assert not doc.is_expired(now=9)

    with pytest.raises(SerializationError):
        GrantDocument.from_json("not json")
    with pytest.raises(ValidationError):
        GrantDocument.from_json('{"grantee": "0x12", "operation": "op"}')


def test_h3_3_fetch_grant_document():
    transport = MockHTTPTransport()
    doc = GrantDocument.create(GRANTEE_ADDRESS, "llm_inference", {"prompt": "hi"})
    transport.queue_response(200, content=doc.to_json().encode())
    fetcher = ContentFetcher(transport, ["https://a.example/ipfs/"])

    fetched = asyncio.run(fetch_grant_document(f"ipfs://{CID}", fetcher))
    assert fetched.hash() == doc.hash()


# =============================================================================
# H4. Indexed Queries
# =============================================================================

def test_h4_1_graphql_errors_and_bad_bodies():
    transport = MockHTTPTransport()
    transport.queue_response(200, {"errors": [{"message": "bad field"}]})
    transport.queue_response(200, [1, 2])
    transport.queue_response(200, {"data": {}})
    transport.queue_response(503)
    indexer = IndexedQueryClient("https://subgraph.example", transport)

    with pytest.raises(SerializationError, match="bad field"):
        asyncio.run(indexer.get_user_permissions(GRANTEE_ADDRESS))
    with pytest.raises(SerializationError):
        asyncio.run(indexer.get_user_permissions(GRANTEE_ADDRESS))
    with pytest.raises(SerializationError, match="missing user"):
        asyncio.run(indexer.get_user_permissions(GRANTEE_ADDRESS))
    with pytest.raises(TransientNetworkError):
        asyncio.run(indexer.get_user_permissions(GRANTEE_ADDRESS))


def test_h4_2_hex_and_null_numbers():
    transport = MockHTTPTransport()
    transport.queue_response(200, {"data": {"user": {"permissions": [
        {"id": "5", "grant": "ipfs://g", "nonce": "0x2", "startBlock": None,
         "endBlock": "", "grantee": None, "fileIds": None},
    ]}}})
    indexer = IndexedQueryClient("https://subgraph.example", transport)

    [permission] = asyncio.run(indexer.get_user_permissions(GRANTEE_ADDRESS))
    assert permission.nonce == 2
    assert permission.start_block == 0
    assert permission.end_block == 0
    assert permission.grantee_id == 0
    assert permission.file_ids == []
    assert permission.active
