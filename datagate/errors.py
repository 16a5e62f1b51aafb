# datagate/errors.py
"""
DataGate: Error Taxonomy

Every error raised by DataGate derives from DataGateError and carries a
stable ``code`` so callers can branch on the kind of failure without
inspecting transport internals.

Hierarchy:
    DataGateError
    ├── ValidationError            malformed input, raised before any I/O
    ├── MissingAccountError        wallet has no bound account
    ├── UserRejectedSignatureError wallet declined to sign
    ├── SignatureError             signing failed for another reason
    ├── NonceFetchError            nonce read failed
    ├── StaleNonceError            chain rejected a stale nonce
    ├── TransientNetworkError      RPC/HTTP hiccup, safe to retry
    ├── RelayerError               relay refused the submission
    ├── BlockchainError            contract read/write failed
    │   └── MissingExpectedEventError
    ├── PartialBatchFailure        one entry of a read batch failed
    ├── DualSourceExhaustedError   indexed and direct reads both failed
    ├── DecryptionError            envelope or ciphertext is unusable
    │   └── WrongKeyError          key or secret does not match
    ├── SerializationError
    └── ContentFetchError          every content gateway failed

Usage:
    try:
        await client.grant(params)
    except UserRejectedSignatureError:
        ...
    except DataGateError as e:
        print(e.code, e)

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


# =============================================================================
# Base
# =============================================================================

class DataGateError(Exception):
    """Base DataGate error."""

    code = "DATAGATE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


# =============================================================================
# Input / Wallet
# =============================================================================

class ValidationError(DataGateError):
    """Malformed input. Never reaches the wallet or the network."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class MissingAccountError(DataGateError):
    """Wallet has no bound account."""

    code = "MISSING_ACCOUNT"

    def __init__(self, message: str = "Wallet has no connected account"):
        super().__init__(message)


class UserRejectedSignatureError(DataGateError):
    """User rejected the signature request."""

    code = "USER_REJECTED_REQUEST"

    def __init__(self, message: str = "User rejected the signature request"):
        super().__init__(message)


UserRejectedError = UserRejectedSignatureError


class SignatureError(DataGateError):
    code = "SIGNATURE_ERROR"


class NonceFetchError(DataGateError):
    """Could not read the signer's nonce."""

    code = "NONCE_ERROR"

    def __init__(self, address: str, cause: Any):
        self.address = address
        super().__init__(f"Failed to retrieve user nonce for {address}: {cause}")


class StaleNonceError(DataGateError):
    """
    The chain rejected the signed message's nonce.

    Re-fetch the nonce, re-sign and submit again.
    """

    code = "STALE_NONCE"


# =============================================================================
# Network / Chain
# =============================================================================

class TransientNetworkError(DataGateError):
    """RPC or HTTP failure that is safe to retry."""

    code = "NETWORK_ERROR"


class RelayerError(DataGateError):
    """Relay refused or failed the submission."""

    code = "RELAYER_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class BlockchainError(DataGateError):
    code = "BLOCKCHAIN_ERROR"


class MissingExpectedEventError(BlockchainError):
    """Transaction succeeded but the expected event was not emitted."""

    code = "MISSING_EXPECTED_EVENT"

    def __init__(self, event_name: str, tx_hash: str):
        self.event_name = event_name
        self.tx_hash = tx_hash
        super().__init__(
            f"Expected event {event_name} not found in receipt of {tx_hash}"
        )


class PartialBatchFailure(DataGateError):
    """One entry of a batched read failed; the rest of the batch is intact."""

    code = "PARTIAL_BATCH_FAILURE"

    def __init__(self, index: int, cause: Any):
        self.index = index
        self.cause = cause
        super().__init__(f"Batch entry {index} failed: {cause}")


class DualSourceExhaustedError(DataGateError):
    """Both the indexed and the direct read path failed."""

    code = "DUAL_SOURCE_EXHAUSTED"

    def __init__(self, operation: str, indexed_cause: Any, direct_cause: Any):
        self.operation = operation
        self.indexed_cause = indexed_cause
        self.direct_cause = direct_cause
        super().__init__(
            f"{operation} failed on both sources. "
            f"Indexed: {indexed_cause}; RPC: {direct_cause}"
        )


# =============================================================================
# Crypto / Content
# =============================================================================

class DecryptionError(DataGateError):
    code = "DECRYPTION_ERROR"


class WrongKeyError(DecryptionError):
    """Ciphertext is well formed but the key does not open it."""

    code = "WRONG_KEY"

    def __init__(self, message: str = "Decryption failed: wrong key or secret"):
        super().__init__(message)


class SerializationError(DataGateError):
    code = "SERIALIZATION_ERROR"


class ContentFetchError(DataGateError):
    """Content could not be retrieved from any gateway."""

    code = "CONTENT_FETCH_ERROR"

    def __init__(self, url: str, attempts: Sequence[str] = ()):
        self.url = url
        self.attempts = list(attempts)
        detail = "; ".join(self.attempts) if self.attempts else "no gateways"
        super().__init__(f"Failed to fetch {url}: {detail}")

