# datagate/__init__.py
"""
DataGate: Client-Side Data Access Control

Lets a data owner grant, revoke and delegate scoped access to their
encrypted files on a permissioned data-registry chain.

Components:
    DataGateClient                facade over everything below
    KeyEncryptionService          user key derivation, envelopes, key wrapping
    AuthorizationSigner           typed, nonce-bound EIP-712 authorizations
    SubmissionRouter              relay or direct write, receipt, event
    DualModeStateResolver         indexed reads with RPC fallback
    EncryptedUploadOrchestrator   encrypt -> store -> wrap -> register
    with_retry / Notifier         resilience helpers

Quick Start:
    from datagate import ClientConfig, ContractAddresses, DataGateClient, GrantParams
    from datagate.block import LocalAccountAdapter

    wallet = LocalAccountAdapter(private_key, chain_id=14800)
    async with DataGateClient(config, wallet, storage=storage) as client:
        result = await client.grant(GrantParams(grantee, 3, "llm_inference", file_ids=[12]))
        page = await client.get_user_permissions()

Updated: 2025-03-02
Version: 0.4.0
"""

from importlib import metadata

__version__ = "0.4.0"

# =============================================================================
# Errors / Resilience / Config
# =============================================================================
from .errors import (
    DataGateError,
    ValidationError,
    MissingAccountError,
    UserRejectedSignatureError,
    UserRejectedError,
    SignatureError,
    NonceFetchError,
    StaleNonceError,
    TransientNetworkError,
    RelayerError,
    BlockchainError,
    MissingExpectedEventError,
    PartialBatchFailure,
    DualSourceExhaustedError,
    DecryptionError,
    WrongKeyError,
    SerializationError,
    ContentFetchError,
)

from .resilience import (
    Notifier,
    RetryPolicy,
    with_retry,
    is_transient,
)

from .config import (
    ClientConfig,
    ContractAddresses,
    MULTICALL3,
)

# =============================================================================
# Cryptography
# =============================================================================
from .cryptography import (
    CryptoBackend,
    DefaultCryptoBackend,
    KeyEncryptionService,
    DEFAULT_ENCRYPTION_SEED,
)

# =============================================================================
# Block
# =============================================================================
from .block.signing import (
    AuthorizationSigner,
    GrantParams,
    ServerFilesAndPermissionParams,
    SignedAuthorization,
    GrantDocument,
)
from .block.router import SubmissionRouter, SubmissionResult, SubmissionState
from .block.registry import DualModeStateResolver, PagedResult, Permission, TrustedServer
from .block.orchestrator import EncryptedUploadOrchestrator, UploadResult

from .client import DataGateClient


def _dist_version(name: str):
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return None


def status() -> dict:
    """
    Versions of DataGate and the libraries it runs on.

    Example:
        >>> import datagate
        >>> datagate.status()
        {
            'version': '0.4.0',
            'web3': '7.6.0',
            'eth-account': '0.13.4',
            ...
        }
    """
    return {
        'version': __version__,
        'web3': _dist_version("web3"),
        'eth-account': _dist_version("eth-account"),
        'eth-abi': _dist_version("eth-abi"),
        'cryptography': _dist_version("cryptography"),
        'httpx': _dist_version("httpx"),
    }


__all__ = [
    "__version__",
    "status",
    # Errors
    "DataGateError",
    "ValidationError",
    "MissingAccountError",
    "UserRejectedSignatureError",
    "UserRejectedError",
    "SignatureError",
    "NonceFetchError",
    "StaleNonceError",
    "TransientNetworkError",
    "RelayerError",
    "BlockchainError",
    "MissingExpectedEventError",
    "PartialBatchFailure",
    "DualSourceExhaustedError",
    "DecryptionError",
    "WrongKeyError",
    "SerializationError",
    "ContentFetchError",
    # Resilience / Config
    "Notifier",
    "RetryPolicy",
    "with_retry",
    "is_transient",
    "ClientConfig",
    "ContractAddresses",
    "MULTICALL3",
    # Cryptography
    "CryptoBackend",
    "DefaultCryptoBackend",
    "KeyEncryptionService",
    "DEFAULT_ENCRYPTION_SEED",
    # Block
    "AuthorizationSigner",
    "GrantParams",
    "ServerFilesAndPermissionParams",
    "SignedAuthorization",
    "GrantDocument",
    "SubmissionRouter",
    "SubmissionResult",
    "SubmissionState",
    "DualModeStateResolver",
    "PagedResult",
    "Permission",
    "TrustedServer",
    "EncryptedUploadOrchestrator",
    "UploadResult",
    # Client
    "DataGateClient",
]
