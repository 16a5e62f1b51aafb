# datagate/block/adapters/base.py
"""
DataGate Block Adapters: Abstract Wallet Interface

The signing seam between DataGate and whatever holds the user's key.
DataGate never takes custody of private keys; it asks an adapter to
sign and waits (possibly indefinitely) for approval or rejection.

Supported Operations:
    - Connection management (connect, disconnect)
    - Account discovery
    - Message signing (personal_sign)
    - Typed data signing (EIP-712, eth_signTypedData_v4)
    - Wallet events (accountChanged, chainChanged, ...)

Wallet Implementations:
    - LocalAccountAdapter: in-process eth_account key (servers, scripts, tests)
    - ProviderWalletAdapter: any EIP-1193 provider (request/on/removeListener)

Usage:
    adapter = LocalAccountAdapter(private_key, chain_id=14800)
    await adapter.connect()

    result = await adapter.sign_typed_data(domain, types, "Permission", message)
    signature = result.hex

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

from ...errors import DataGateError, MissingAccountError, UserRejectedSignatureError
from ...resilience import Notifier


# =============================================================================
# Enums
# =============================================================================

class WalletState(Enum):
    """Wallet connection state."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    ERROR = auto()


class SignatureType(Enum):
    """Signature type for signing operations."""
    PERSONAL = "personal_sign"
    TYPED_DATA = "eth_signTypedData_v4"


class WalletEvent(Enum):
    """Wallet events."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ACCOUNT_CHANGED = "accountChanged"
    CHAIN_CHANGED = "chainChanged"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class WalletInfo:
    """Information about connected wallet."""
    name: str
    chain_id: int
    address: str


@dataclass
class SignResult:
    """Signature result."""
    signature: bytes
    recovery_id: Optional[int] = None
    sig_type: SignatureType = SignatureType.PERSONAL

    @property
    def hex(self) -> str:
        """0x-prefixed hex signature."""
        return "0x" + self.signature.hex()

    @classmethod
    def from_hex(cls, signature_hex: str, sig_type: SignatureType) -> SignResult:
        text = signature_hex[2:] if signature_hex.startswith("0x") else signature_hex
        signature = bytes.fromhex(text)
        return cls(
            signature=signature,
            recovery_id=signature[-1] - 27 if len(signature) == 65 and signature[-1] >= 27 else None,
            sig_type=sig_type,
        )


@dataclass
class EIP712Domain:
    """EIP-712 domain separator."""
    name: str
    version: str
    chain_id: int
    verifying_contract: Optional[str] = None
    salt: Optional[bytes] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to EIP-712 format."""
        domain = {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
        }
        if self.verifying_contract:
            domain["verifyingContract"] = self.verifying_contract
        if self.salt:
            domain["salt"] = "0x" + self.salt.hex()
        return domain

    def type_fields(self) -> List[Dict[str, str]]:
        """``EIP712Domain`` type entry matching :meth:`to_dict`."""
        fields = [
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
        ]
        if self.verifying_contract:
            fields.append({"name": "verifyingContract", "type": "address"})
        if self.salt:
            fields.append({"name": "salt", "type": "bytes32"})
        return fields


def build_typed_data(
    domain: EIP712Domain,
    types: Dict[str, List[Dict[str, str]]],
    primary_type: str,
    message: Dict[str, Any],
) -> Dict[str, Any]:
    """Assemble the full eth_signTypedData_v4 payload."""
    return {
        "types": {"EIP712Domain": domain.type_fields(), **types},
        "primaryType": primary_type,
        "domain": domain.to_dict(),
        "message": message,
    }


EventCallback = Callable[[Any], Any]


# =============================================================================
# Exceptions
# =============================================================================

class WalletAdapterError(DataGateError):
    """Base exception for wallet adapter errors."""
    code = "WALLET_ERROR"


class NotConnectedError(WalletAdapterError, MissingAccountError):
    """Wallet not connected."""

    code = "MISSING_ACCOUNT"

    def __init__(self, message: str = "Wallet not connected"):
        super().__init__(message)


class UnsupportedOperationError(WalletAdapterError):
    """Operation not supported by wallet."""
    pass


class SignatureRejectedError(WalletAdapterError, UserRejectedSignatureError):
    """User rejected signature request."""

    code = "USER_REJECTED_REQUEST"

    def __init__(self, message: str = "User rejected the signature request"):
        super().__init__(message)


class ConnectionError(WalletAdapterError):
    """Failed to connect to wallet."""
    pass


# =============================================================================
# Abstract Base Class
# =============================================================================

class WalletAdapter(ABC):
    """
    Abstract base class for wallet adapters.

    Provides unified interface for:
    - Wallet connection/disconnection
    - Account management
    - Message signing (personal_sign, EIP-712)
    - Wallet events
    """

    def __init__(self, chain_id: int = 1):
        """
        Initialize wallet adapter.

        Args:
            chain_id: Default chain ID
        """
        self._chain_id = chain_id
        self._state = WalletState.DISCONNECTED
        self._info: Optional[WalletInfo] = None
        self._events: Dict[WalletEvent, Notifier] = {
            e: Notifier(name=f"wallet.{e.value}") for e in WalletEvent
        }

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> WalletState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == WalletState.CONNECTED

    @property
    def info(self) -> Optional[WalletInfo]:
        return self._info

    @property
    def address(self) -> Optional[str]:
        """Connected address, or None."""
        return self._info.address if self._info else None

    @property
    def chain_id(self) -> int:
        return self._info.chain_id if self._info else self._chain_id

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    # =========================================================================
    # Connection Management
    # =========================================================================

    @abstractmethod
    async def connect(self) -> WalletInfo:
        """
        Connect to wallet.

        Returns:
            WalletInfo with connection details

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def get_accounts(self) -> List[str]:
        pass

    # =========================================================================
    # Signing Operations
    # =========================================================================

    @abstractmethod
    async def sign_message(self, message: bytes) -> SignResult:
        """
        Sign a message using personal_sign.

        Args:
            message: Message to sign

        Returns:
            SignResult with signature

        Raises:
            SignatureRejectedError: If user rejects
        """
        pass

    @abstractmethod
    async def sign_typed_data(
        self,
        domain: EIP712Domain,
        types: Dict[str, List[Dict[str, str]]],
        primary_type: str,
        message: Dict[str, Any],
    ) -> SignResult:
        """
        Sign typed data using EIP-712.

        Args:
            domain: EIP-712 domain
            types: Type definitions (without EIP712Domain)
            primary_type: Name of the signed struct
            message: Struct value

        Returns:
            SignResult with signature

        Raises:
            SignatureRejectedError: If user rejects
        """
        pass

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, event: WalletEvent, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to a wallet event. Returns an unsubscribe callable."""
        return self._events[event].subscribe(callback)

    def off(self, event: WalletEvent, callback: EventCallback) -> None:
        self._events[event].unsubscribe(callback)

    async def _emit(self, event: WalletEvent, data: Any = None) -> None:
        await self._events[event].emit(data)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_connected(self) -> str:
        """Return the connected address or raise NotConnectedError."""
        if not self.is_connected or not self.address:
            raise NotConnectedError()
        return self.address
