# datagate/block/transport/__init__.py
"""
DataGate Block Transport Layer

Everything that leaves the process over HTTP.

Modules:
    http:    HTTPTransport interface, httpx implementation, mock
    relay:   RelayCallbacks and the unified-protocol HttpRelayer
    ipfs:    ContentFetcher with ordered gateway fallback
    storage: StorageProvider interface for blob storage collaborators

Usage:
    from datagate.block.transport import HttpxTransport, HttpRelayer

    transport = HttpxTransport()
    relayer = HttpRelayer(relayer_url, transport, chain_id=14800)
    callbacks = relayer.callbacks()
"""

from .http import (
    HTTPTransport,
    HTTPResponse,
    HttpxTransport,
    MockHTTPTransport,
)

from .relay import (
    FileAddition,
    RelayCallbacks,
    HttpRelayer,
)

from .ipfs import (
    ContentFetcher,
    DEFAULT_IPFS_GATEWAYS,
    extract_cid,
)

from .storage import (
    StorageProvider,
    StorageUpload,
    CallbackStorage,
)

__all__ = [
    "HTTPTransport",
    "HTTPResponse",
    "HttpxTransport",
    "MockHTTPTransport",
    "FileAddition",
    "RelayCallbacks",
    "HttpRelayer",
    "ContentFetcher",
    "DEFAULT_IPFS_GATEWAYS",
    "extract_cid",
    "StorageProvider",
    "StorageUpload",
    "CallbackStorage",
]

__version__ = "0.4.0"
