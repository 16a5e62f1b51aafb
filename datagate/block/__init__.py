# datagate/block/__init__.py
"""
DataGate Block: Chain Integration Layer

Submodules:
    adapters/   - Wallet integration (signing seam)
                  - LocalAccountAdapter: in-process eth_account key
                  - ProviderWalletAdapter: any EIP-1193 provider
    signing/    - Typed authorization messages
                  - AuthorizationSigner: validate -> store grant -> nonce -> sign
                  - GrantDocument: off-chain grant JSON
    transport/  - Off-chain I/O
                  - HttpxTransport / MockHTTPTransport
                  - HttpRelayer: unified relayer protocol
                  - ContentFetcher: IPFS gateway fallback
    registry/   - Contracts and indexer
                  - Web3ChainClient: reads, Multicall3 batches, writes
                  - DualModeStateResolver: indexed-first reads with RPC fallback
                  - SchemaRegistry: schemas and refiners
    router      - SubmissionRouter: relay or direct write, receipt, event
    orchestrator - EncryptedUploadOrchestrator (import from datagate.block.orchestrator)

Quick Start:
    from datagate.block import (
        LocalAccountAdapter, Web3ChainClient, AuthorizationSigner, SubmissionRouter,
    )

    wallet = LocalAccountAdapter(private_key, chain_id=14800)
    chain = Web3ChainClient(addresses, chain_id=14800, rpc_url=rpc_url, private_key=private_key)
    signer = AuthorizationSigner(wallet, chain, storage=storage)
    router = SubmissionRouter(chain)

    result = await router.submit(await signer.prepare_trust_server(server, url))

Updated: 2025-03-02
Version: 0.4.0
"""

# =============================================================================
# Adapters
# =============================================================================
from .adapters import (
    WalletAdapter,
    WalletState,
    WalletInfo,
    WalletEvent,
    SignResult,
    SignatureType,
    EIP712Domain,
    LocalAccountAdapter,
    ProviderWalletAdapter,
    EthereumProvider,
)

# =============================================================================
# Transport
# =============================================================================
from .transport import (
    HTTPTransport,
    HTTPResponse,
    HttpxTransport,
    MockHTTPTransport,
    RelayCallbacks,
    HttpRelayer,
    FileAddition,
    ContentFetcher,
    StorageProvider,
    StorageUpload,
    CallbackStorage,
)

# =============================================================================
# Registry
# =============================================================================
from .registry import (
    ChainClient,
    Web3ChainClient,
    ContractCall,
    Success,
    Failure,
    DecodedEvent,
    IndexedQueryClient,
    DualModeStateResolver,
    ResolverState,
    SchemaRegistry,
    Permission,
    TrustedServer,
    FilePermissionEntry,
    PagedResult,
)

# =============================================================================
# Signing / Submission
# =============================================================================
from .signing import (
    AuthorizationKind,
    TypedMessage,
    SignedAuthorization,
    GrantDocument,
    AuthorizationSigner,
    GrantParams,
    ServerFilesAndPermissionParams,
)

from .router import (
    SubmissionRouter,
    SubmissionResult,
    SubmissionState,
)

__all__ = [
    # Adapters
    "WalletAdapter",
    "WalletState",
    "WalletInfo",
    "WalletEvent",
    "SignResult",
    "SignatureType",
    "EIP712Domain",
    "LocalAccountAdapter",
    "ProviderWalletAdapter",
    "EthereumProvider",
    # Transport
    "HTTPTransport",
    "HTTPResponse",
    "HttpxTransport",
    "MockHTTPTransport",
    "RelayCallbacks",
    "HttpRelayer",
    "FileAddition",
    "ContentFetcher",
    "StorageProvider",
    "StorageUpload",
    "CallbackStorage",
    # Registry
    "ChainClient",
    "Web3ChainClient",
    "ContractCall",
    "Success",
    "Failure",
    "DecodedEvent",
    "IndexedQueryClient",
    "DualModeStateResolver",
    "ResolverState",
    "SchemaRegistry",
    "Permission",
    "TrustedServer",
    "FilePermissionEntry",
    "PagedResult",
    # Signing / Submission
    "AuthorizationKind",
    "TypedMessage",
    "SignedAuthorization",
    "GrantDocument",
    "AuthorizationSigner",
    "GrantParams",
    "ServerFilesAndPermissionParams",
    "SubmissionRouter",
    "SubmissionResult",
    "SubmissionState",
]

__version__ = "0.4.0"
