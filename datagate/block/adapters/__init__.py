# datagate/block/adapters/__init__.py
"""
DataGate Block Adapters: Wallet Integration Layer

Adapters:
    WalletAdapter         - Abstract base class for all wallet adapters
    LocalAccountAdapter   - In-process eth_account key
    ProviderWalletAdapter - Any EIP-1193 provider

Quick Start:
    from datagate.block.adapters import LocalAccountAdapter

    adapter = LocalAccountAdapter(private_key, chain_id=14800)
    result = await adapter.sign_message(b"hello")

Updated: 2025-03-02
Version: 0.4.0
"""

from .base import (
    WalletAdapter,
    WalletState,
    SignatureType,
    WalletEvent,
    WalletInfo,
    SignResult,
    EIP712Domain,
    build_typed_data,
    WalletAdapterError,
    NotConnectedError,
    UnsupportedOperationError,
    SignatureRejectedError,
    ConnectionError,
)

from .local import LocalAccountAdapter

from .provider import (
    ProviderWalletAdapter,
    EthereumProvider,
    is_user_rejection,
)

__all__ = [
    # === Base ===
    "WalletAdapter",
    "WalletState",
    "SignatureType",
    "WalletEvent",
    "WalletInfo",
    "SignResult",
    "EIP712Domain",
    "build_typed_data",
    "WalletAdapterError",
    "NotConnectedError",
    "UnsupportedOperationError",
    "SignatureRejectedError",
    "ConnectionError",

    # === Local ===
    "LocalAccountAdapter",

    # === Provider ===
    "ProviderWalletAdapter",
    "EthereumProvider",
    "is_user_rejection",
]

__version__ = "0.4.0"
