# datagate/block/adapters/provider.py
"""
DataGate Block Adapters: EIP-1193 Provider Wallets

Drives any wallet that exposes the EIP-1193 ``request`` interface
(browser extensions bridged into Python, embedded wallets, remote
signers speaking JSON-RPC).

Provider Methods Used:
    eth_requestAccounts   - Connect and list accounts
    eth_accounts          - List accounts
    eth_chainId           - Current chain
    personal_sign         - Message signing
    eth_signTypedData_v4  - EIP-712 signing

Rejection Detection:
    EIP-1193 error code 4001, or an error message containing
    "rejected" / "denied", maps to SignatureRejectedError. Code 4200
    maps to UnsupportedOperationError.

Usage:
    adapter = ProviderWalletAdapter(provider)
    await adapter.connect()
    result = await adapter.sign_typed_data(domain, types, "Permission", message)

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .base import (
    ConnectionError,
    EIP712Domain,
    SignatureRejectedError,
    SignatureType,
    SignResult,
    UnsupportedOperationError,
    WalletAdapter,
    WalletAdapterError,
    WalletEvent,
    WalletInfo,
    WalletState,
    build_typed_data,
)


# =============================================================================
# Constants
# =============================================================================

ETH_REQUEST_ACCOUNTS = "eth_requestAccounts"
ETH_ACCOUNTS = "eth_accounts"
ETH_CHAIN_ID = "eth_chainId"
ETH_SIGN = "personal_sign"
ETH_SIGN_TYPED_DATA = "eth_signTypedData_v4"

USER_REJECTED_CODE = 4001
UNSUPPORTED_METHOD_CODE = 4200


# =============================================================================
# Provider Interface
# =============================================================================

class EthereumProvider(ABC):
    """
    Abstract EIP-1193 provider interface.

    Represents window.ethereum (through a bridge) or a remote signer.
    """

    @abstractmethod
    async def request(self, method: str, params: Any = None) -> Any:
        """Send JSON-RPC request."""
        pass

    @abstractmethod
    def on(self, event: str, callback: Callable) -> None:
        """Subscribe to events."""
        pass

    @abstractmethod
    def remove_listener(self, event: str, callback: Callable) -> None:
        """Unsubscribe from events."""
        pass


def is_user_rejection(error: BaseException) -> bool:
    if getattr(error, "code", None) == USER_REJECTED_CODE:
        return True
    text = str(error).lower()
    return "rejected" in text or "denied" in text


# =============================================================================
# Provider Adapter
# =============================================================================

class ProviderWalletAdapter(WalletAdapter):
    """Wallet adapter over an EIP-1193 provider."""

    def __init__(
        self,
        provider: Optional[EthereumProvider] = None,
        chain_id: int = 1,
        name: str = "EIP-1193",
    ):
        super().__init__(chain_id=chain_id)
        self._provider = provider
        self._name = name
        self._listeners: Dict[str, Callable] = {}

    @property
    def name(self) -> str:
        return self._name

    def _require_provider(self) -> EthereumProvider:
        """Get provider, raising if not available."""
        if self._provider is None:
            raise ConnectionError("No Ethereum provider available")
        return self._provider

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(self) -> WalletInfo:
        self._state = WalletState.CONNECTING
        provider = self._require_provider()

        try:
            accounts = await provider.request(ETH_REQUEST_ACCOUNTS)
            if not accounts:
                raise ConnectionError("No accounts available")
            chain_id = int(await provider.request(ETH_CHAIN_ID), 16)
        except ConnectionError:
            self._state = WalletState.ERROR
            raise
        except Exception as e:
            self._state = WalletState.ERROR
            raise ConnectionError(f"Failed to connect: {e}") from e

        self._info = WalletInfo(name=self.name, chain_id=chain_id, address=accounts[0])
        self._chain_id = chain_id
        self._state = WalletState.CONNECTED
        self._setup_event_listeners()

        await self._emit(WalletEvent.CONNECTED, self._info)
        return self._info

    async def disconnect(self) -> None:
        provider = self._provider
        if provider is not None:
            for event, callback in self._listeners.items():
                provider.remove_listener(event, callback)
        self._listeners.clear()

        self._state = WalletState.DISCONNECTED
        self._info = None
        await self._emit(WalletEvent.DISCONNECTED)

    def _setup_event_listeners(self) -> None:
        provider = self._provider
        if provider is None or self._listeners:
            return

        async def on_accounts_changed(accounts: List[str]) -> None:
            if accounts and self._info:
                self._info.address = accounts[0]
                await self._emit(WalletEvent.ACCOUNT_CHANGED, accounts[0])

        async def on_chain_changed(chain_id_hex: str) -> None:
            chain_id = int(chain_id_hex, 16)
            self._chain_id = chain_id
            if self._info:
                self._info.chain_id = chain_id
            await self._emit(WalletEvent.CHAIN_CHANGED, chain_id)

        self._listeners = {
            "accountsChanged": on_accounts_changed,
            "chainChanged": on_chain_changed,
        }
        for event, callback in self._listeners.items():
            provider.on(event, callback)

    async def get_accounts(self) -> List[str]:
        self._require_connected()
        return list(await self._require_provider().request(ETH_ACCOUNTS))

    # =========================================================================
    # Signing
    # =========================================================================

    async def _sign(self, method: str, params: List[Any], sig_type: SignatureType) -> SignResult:
        provider = self._require_provider()
        try:
            signature_hex = await provider.request(method, params)
        except Exception as e:
            if is_user_rejection(e):
                raise SignatureRejectedError() from e
            if getattr(e, "code", None) == UNSUPPORTED_METHOD_CODE:
                raise UnsupportedOperationError(f"{self.name} does not support {method}") from e
            raise WalletAdapterError(f"Signing failed: {e}") from e
        return SignResult.from_hex(signature_hex, sig_type)

    async def sign_message(self, message: bytes) -> SignResult:
        address = self._require_connected()
        return await self._sign(
            ETH_SIGN,
            ["0x" + message.hex(), address],
            SignatureType.PERSONAL,
        )

    async def sign_typed_data(
        self,
        domain: EIP712Domain,
        types: Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message: Dict[str, Any],
    ) -> SignResult:
        address = self._require_connected()
        typed_data = build_typed_data(domain, types, primary_type, message)
        return await self._sign(
            ETH_SIGN_TYPED_DATA,
            [address, json.dumps(typed_data)],
            SignatureType.TYPED_DATA,
        )
