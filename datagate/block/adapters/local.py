# datagate/block/adapters/local.py
"""
DataGate Block Adapters: Local Account

Signs with an in-process eth_account key. Intended for backend
services, scripts and tests; browser wallets go through
ProviderWalletAdapter instead.

Usage:
    adapter = LocalAccountAdapter("0x...", chain_id=14800)
    result = await adapter.sign_message(b"hello")

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from typing import Any, Dict, List

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from .base import (
    EIP712Domain,
    SignatureRejectedError,
    SignatureType,
    SignResult,
    WalletAdapter,
    WalletEvent,
    WalletInfo,
    WalletState,
    build_typed_data,
)


class LocalAccountAdapter(WalletAdapter):
    """
    Wallet adapter over a local private key.

    The account is bound at construction, so the adapter starts
    connected. ``auto_approve=False`` makes every signature request fail
    as if the user had declined it.
    """

    def __init__(
        self,
        private_key: str,
        chain_id: int = 1,
        auto_approve: bool = True,
    ):
        super().__init__(chain_id=chain_id)
        self._account = Account.from_key(private_key)
        self.auto_approve = auto_approve
        self._bind()

    @classmethod
    def create(cls, chain_id: int = 1) -> LocalAccountAdapter:
        """Adapter over a freshly generated key."""
        account = Account.create()
        return cls("0x" + bytes(account.key).hex(), chain_id=chain_id)

    def _bind(self) -> None:
        self._info = WalletInfo(
            name=self.name,
            chain_id=self._chain_id,
            address=self._account.address,
        )
        self._state = WalletState.CONNECTED

    @property
    def name(self) -> str:
        return "LocalAccount"

    @property
    def private_key(self) -> str:
        return "0x" + bytes(self._account.key).hex()

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(self) -> WalletInfo:
        self._bind()
        await self._emit(WalletEvent.CONNECTED, self._info)
        return self._info

    async def disconnect(self) -> None:
        self._state = WalletState.DISCONNECTED
        self._info = None
        await self._emit(WalletEvent.DISCONNECTED)

    async def get_accounts(self) -> List[str]:
        self._require_connected()
        return [self._account.address]

    # =========================================================================
    # Signing
    # =========================================================================

    def _check_approval(self) -> None:
        if not self.auto_approve:
            raise SignatureRejectedError()

    async def sign_message(self, message: bytes) -> SignResult:
        self._require_connected()
        self._check_approval()

        signed = Account.sign_message(encode_defunct(primitive=message), self._account.key)
        return SignResult(
            signature=bytes(signed.signature),
            recovery_id=signed.v - 27,
            sig_type=SignatureType.PERSONAL,
        )

    async def sign_typed_data(
        self,
        domain: EIP712Domain,
        types: Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message: Dict[str, Any],
    ) -> SignResult:
        self._require_connected()
        self._check_approval()

        signable = encode_typed_data(
            full_message=build_typed_data(domain, types, primary_type, message)
        )
        signed = Account.sign_message(signable, self._account.key)
        return SignResult(
            signature=bytes(signed.signature),
            recovery_id=signed.v - 27,
            sig_type=SignatureType.TYPED_DATA,
        )

