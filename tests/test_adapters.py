# tests/test_adapters.py
"""
DataGate Wallet Adapter Tests

Categories:
  W1. Local account
  W2. EIP-1193 provider
"""

import asyncio
import json

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from datagate.block.adapters import (
    ConnectionError,
    EIP712Domain,
    EthereumProvider,
    LocalAccountAdapter,
    ProviderWalletAdapter,
    UnsupportedOperationError,
    WalletEvent,
    is_user_rejection,
)
from datagate.block.signing import AuthorizationSigner
from datagate.errors import MissingAccountError, UserRejectedSignatureError

from conftest import FakeChainClient, OTHER_KEY, OWNER_KEY, SERVER_ADDRESS


class ProviderError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


class SigningProvider(EthereumProvider):
    """EIP-1193 provider backed by a local key."""

    def __init__(self, private_key, chain_id=14800, fail_with=None):
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.fail_with = fail_with
        self.calls = []
        self.listeners = {}

    async def request(self, method, params=None):
        self.calls.append((method, params))
        if method in ("eth_requestAccounts", "eth_accounts"):
            return [self.account.address]
        if method == "eth_chainId":
            return hex(self.chain_id)
        if self.fail_with is not None:
            raise self.fail_with
        if method == "personal_sign":
            message = bytes.fromhex(params[0][2:])
            return Account.sign_message(encode_defunct(primitive=message), self.account.key).signature.hex()
        if method == "eth_signTypedData_v4":
            signable = encode_typed_data(full_message=json.loads(params[1]))
            return "0x" + bytes(Account.sign_message(signable, self.account.key).signature).hex()
        raise ProviderError(f"unsupported {method}", 4200)

    def on(self, event, callback):
        self.listeners[event] = callback

    def remove_listener(self, event, callback):
        self.listeners.pop(event, None)


DOMAIN = EIP712Domain(name="DataPortabilityPermissions", version="1", chain_id=14800,
                      verifying_contract="0x1111111111111111111111111111111111111111")
TYPES = {"RevokePermission": [
    {"name": "nonce", "type": "uint256"},
    {"name": "permissionId", "type": "uint256"},
]}


# =============================================================================
# W1. Local Account
# =============================================================================

def test_w1_1_local_signatures_recover():
    wallet = LocalAccountAdapter(OWNER_KEY, chain_id=14800)

    signed = asyncio.run(wallet.sign_message(b"hello"))
    assert Account.recover_message(encode_defunct(primitive=b"hello"), signature=signed.signature) \
        == wallet.address

    typed = asyncio.run(wallet.sign_typed_data(DOMAIN, TYPES, "RevokePermission",
                                               {"nonce": 0, "permissionId": 1}))
    assert len(typed.signature) == 65
    assert typed.hex.startswith("0x")


def test_w1_2_disconnected_wallet():
    wallet = LocalAccountAdapter(OWNER_KEY)
    events = []
    wallet.on(WalletEvent.DISCONNECTED, events.append)

    asyncio.run(wallet.disconnect())

    assert wallet.address is None
    assert events == [None]
    with pytest.raises(MissingAccountError):
        asyncio.run(wallet.sign_message(b"x"))


# =============================================================================
# W2. EIP-1193 Provider
# =============================================================================

def test_w2_1_connect_and_sign_authorization():
    provider = SigningProvider(OTHER_KEY)
    wallet = ProviderWalletAdapter(provider)
    info = asyncio.run(wallet.connect())

    assert info.chain_id == 14800
    assert wallet.address == provider.account.address

    chain = FakeChainClient(account_address=wallet.address)
    signed = asyncio.run(AuthorizationSigner(wallet, chain).prepare_untrust_server(SERVER_ADDRESS))
    signable = encode_typed_data(full_message=signed.typed_message.to_dict())
    assert Account.recover_message(signable, signature=signed.signature) == wallet.address
    assert provider.calls[-1][0] == "eth_signTypedData_v4"


def test_w2_2_rejection_and_unsupported_codes():
    rejecting = ProviderWalletAdapter(SigningProvider(OTHER_KEY, fail_with=ProviderError("nope", 4001)))
    asyncio.run(rejecting.connect())
    with pytest.raises(UserRejectedSignatureError):
        asyncio.run(rejecting.sign_message(b"x"))

    unsupported = ProviderWalletAdapter(
        SigningProvider(OTHER_KEY, fail_with=ProviderError("method not found", 4200))
    )
    asyncio.run(unsupported.connect())
    with pytest.raises(UnsupportedOperationError):
        asyncio.run(unsupported.sign_message(b"x"))

    assert is_user_rejection(Exception("User denied message signature"))
    assert not is_user_rejection(Exception("timeout"))


def test_w2_3_no_provider():
    with pytest.raises(ConnectionError):
        asyncio.run(ProviderWalletAdapter(None).connect())


def test_w2_4_account_change_events():
    provider = SigningProvider(OTHER_KEY)
    wallet = ProviderWalletAdapter(provider)
    asyncio.run(wallet.connect())
    changes = []
    wallet.on(WalletEvent.ACCOUNT_CHANGED, changes.append)

    asyncio.run(provider.listeners["accountsChanged"]([SERVER_ADDRESS]))

    assert changes == [SERVER_ADDRESS]
    assert wallet.address == SERVER_ADDRESS
