# datagate/block/registry/chain.py
"""
DataGate Block Registry: Chain Client

Contract access for the registry, signing and submission layers. Every
contract is addressed by its name; ABIs are loaded from
``contracts/abi/<Name>.json``.

Operations:
    read             single view call
    multicall        batched view calls via Multicall3 aggregate3,
                     split into batches of at most max_calls_per_batch
    write            build, sign and send a transaction from the local account
    wait_for_receipt poll for the transaction receipt
    decode_events    decode every known event of a contract in a receipt

Error Mapping:
    revert containing "InvalidNonce"      -> StaleNonceError
    other revert / RPC error              -> BlockchainError
    timeout / connection failure          -> TransientNetworkError

Usage:
    chain = Web3ChainClient(
        addresses=config.addresses.as_dict(),
        chain_id=14800,
        rpc_url="https://rpc.moksha.vana.org",
        private_key="0x...",  # Optional, for direct writes
    )
    nonce = await chain.read("DataPortabilityPermissions", "userNonce", user)

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import eth_abi
from eth_account import Account
from web3 import AsyncWeb3, Web3
from web3.exceptions import (
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    Web3RPCError,
)
from web3.logs import DISCARD

from ...errors import (
    BlockchainError,
    DataGateError,
    MissingAccountError,
    StaleNonceError,
    TransientNetworkError,
    ValidationError,
)
from .events import DecodedEvent
from .multicall import (
    DEFAULT_MAX_CALLS_PER_BATCH,
    MULTICALL3_ADDRESS,
    CallResult,
    ContractCall,
    Failure,
    Success,
    chunked,
)

logger = logging.getLogger(__name__)


# =============================================================================
# ABI
# =============================================================================

ABI_DIR = Path(__file__).parent / "contracts" / "abi"


@lru_cache(maxsize=None)
def load_abi(name: str) -> List[Dict[str, Any]]:
    """Load a contract ABI from ``contracts/abi/<name>.json``."""
    path = ABI_DIR / f"{name}.json"
    if not path.exists():
        raise ValidationError(f"Unknown contract: {name}", field="contract")
    with open(path) as f:
        data = json.load(f)
    return data.get("abi", data) if isinstance(data, dict) else data


def function_abi(name: str, function: str) -> Dict[str, Any]:
    for entry in load_abi(name):
        if entry.get("type") == "function" and entry.get("name") == function:
            return entry
    raise ValidationError(f"{name} has no function {function}", field="function")


def _abi_type(param: Dict[str, Any]) -> str:
    """Canonical eth_abi type string, expanding tuples."""
    kind = param["type"]
    if kind.startswith("tuple"):
        inner = ",".join(_abi_type(c) for c in param["components"])
        return f"({inner}){kind[len('tuple'):]}"
    return kind


def _normalize(param: Dict[str, Any], value: Any) -> Any:
    """Checksum decoded addresses, matching web3's own call() results."""
    kind = param["type"]
    if kind.endswith("]"):
        element = dict(param, type=kind[:kind.rindex("[")])
        return [_normalize(element, v) for v in value]
    if kind == "tuple":
        return tuple(_normalize(c, v) for c, v in zip(param["components"], value))
    if kind == "address":
        return Web3.to_checksum_address(value)
    return value


def decode_output(name: str, function: str, data: bytes) -> Any:
    """Decode raw return data the way ``call()`` would."""
    outputs = function_abi(name, function).get("outputs", [])
    decoded = eth_abi.decode([_abi_type(o) for o in outputs], data)
    values = [_normalize(o, v) for o, v in zip(outputs, decoded)]
    return values[0] if len(values) == 1 else tuple(values)


def map_chain_error(error: Exception, action: str) -> DataGateError:
    """Translate a web3/transport failure into the DataGate taxonomy."""
    if isinstance(error, DataGateError):
        return error
    text = str(error)
    if "InvalidNonce" in text:
        return StaleNonceError(f"{action} rejected: stale nonce ({text})")
    if isinstance(error, (TimeExhausted, ProviderConnectionError, OSError, asyncio.TimeoutError)):
        return TransientNetworkError(f"{action} failed: {text or type(error).__name__}")
    if isinstance(error, (ContractLogicError, Web3RPCError)):
        return BlockchainError(f"{action} reverted: {text}")
    return BlockchainError(f"{action} failed: {text}")


# =============================================================================
# Interface
# =============================================================================

class ChainClient(ABC):
    """Abstract contract access by contract name."""

    @property
    @abstractmethod
    def chain_id(self) -> int:
        pass

    @property
    @abstractmethod
    def account_address(self) -> Optional[str]:
        """Sender of direct writes, or None if read-only."""
        pass

    @abstractmethod
    async def read(self, contract: str, function: str, *args: Any) -> Any:
        pass

    @abstractmethod
    async def multicall(
        self,
        calls: Sequence[ContractCall],
        allow_failure: bool = True,
    ) -> List[CallResult]:
        """
        Execute ``calls`` in batches.

        With ``allow_failure=False`` any failing entry fails the whole read.
        """
        pass

    @abstractmethod
    async def write(self, contract: str, function: str, *args: Any) -> str:
        """Send a transaction; returns its hash."""
        pass

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def decode_events(self, contract: str, receipt: Dict[str, Any]) -> List[DecodedEvent]:
        pass

    @abstractmethod
    def address_of(self, contract: str) -> str:
        """Deployed address of ``contract``."""
        pass


# =============================================================================
# web3 Implementation
# =============================================================================

class Web3ChainClient(ChainClient):
    """ChainClient over AsyncWeb3."""

    def __init__(
        self,
        addresses: Dict[str, str],
        chain_id: int,
        rpc_url: Optional[str] = None,
        w3: Optional[AsyncWeb3] = None,
        private_key: Optional[str] = None,
        multicall_address: str = MULTICALL3_ADDRESS,
        max_calls_per_batch: int = DEFAULT_MAX_CALLS_PER_BATCH,
        receipt_timeout: float = 120.0,
    ):
        """
        Args:
            addresses: Contract name -> deployed address
            chain_id: Chain ID used for transactions
            rpc_url: RPC endpoint (ignored when ``w3`` is given)
            w3: Preconfigured AsyncWeb3 instance
            private_key: Key for direct writes (optional)
            multicall_address: Multicall3 deployment
            max_calls_per_batch: Upper bound on calls per aggregate3
            receipt_timeout: Seconds to wait for a receipt
        """
        if w3 is None:
            if not rpc_url:
                raise ValidationError("rpc_url or w3 is required", field="rpc_url")
            w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        if max_calls_per_batch < 1:
            raise ValidationError("max_calls_per_batch must be >= 1", field="max_calls_per_batch")

        self._w3 = w3
        self._chain_id = chain_id
        self._addresses = {
            name: Web3.to_checksum_address(address)
            for name, address in addresses.items() if address
        }
        self._contracts: Dict[str, Any] = {}
        self._multicall = w3.eth.contract(
            address=Web3.to_checksum_address(multicall_address),
            abi=load_abi("Multicall3"),
        )
        self._max_calls = max_calls_per_batch
        self._receipt_timeout = receipt_timeout
        self._account = Account.from_key(private_key) if private_key else None

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def account_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    def address_of(self, contract: str) -> str:
        try:
            return self._addresses[contract]
        except KeyError:
            raise ValidationError(f"No address configured for {contract}", field=contract) from None

    def contract(self, name: str) -> Any:
        if name not in self._contracts:
            self._contracts[name] = self._w3.eth.contract(
                address=self.address_of(name),
                abi=load_abi(name),
            )
        return self._contracts[name]

    # =========================================================================
    # Reads
    # =========================================================================

    async def read(self, contract: str, function: str, *args: Any) -> Any:
        fn = getattr(self.contract(contract).functions, function)
        try:
            return await fn(*args).call()
        except Exception as e:
            raise map_chain_error(e, f"{contract}.{function}") from e

    async def multicall(
        self,
        calls: Sequence[ContractCall],
        allow_failure: bool = True,
    ) -> List[CallResult]:
        if not calls:
            return []
        batches = list(chunked(calls, self._max_calls))
        results = await asyncio.gather(
            *(self._aggregate(batch, allow_failure) for batch in batches)
        )
        return [r for batch in results for r in batch]

    async def _aggregate(
        self,
        calls: Sequence[ContractCall],
        allow_failure: bool,
    ) -> List[CallResult]:
        encoded = [
            (
                self.address_of(call.contract),
                allow_failure,
                self.contract(call.contract).encode_abi(call.function, args=list(call.args)),
            )
            for call in calls
        ]
        try:
            raw = await self._multicall.functions.aggregate3(encoded).call()
        except Exception as e:
            raise map_chain_error(e, f"multicall of {len(calls)} calls") from e

        results: List[CallResult] = []
        for call, (success, data) in zip(calls, raw):
            if not success:
                results.append(Failure(BlockchainError(
                    f"{call.contract}.{call.function}{tuple(call.args)} reverted"
                )))
                continue
            try:
                results.append(Success(decode_output(call.contract, call.function, data)))
            except Exception as e:
                results.append(Failure(BlockchainError(
                    f"{call.contract}.{call.function} returned undecodable data: {e}"
                )))
        return results

    # =========================================================================
    # Writes
    # =========================================================================

    async def write(self, contract: str, function: str, *args: Any) -> str:
        if self._account is None:
            raise MissingAccountError("A private key is required for direct contract writes")

        action = f"{contract}.{function}"
        fn = getattr(self.contract(contract).functions, function)(*args)
        try:
            tx = await fn.build_transaction({
                "from": self._account.address,
                "chainId": self._chain_id,
                "nonce": await self._w3.eth.get_transaction_count(self._account.address),
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise map_chain_error(e, action) from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.info("Sent %s: %s", action, tx_hex)
        return tx_hex

    async def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout,
            )
        except Exception as e:
            raise map_chain_error(e, f"receipt for {tx_hash}") from e
        return dict(receipt)

    def decode_events(self, contract: str, receipt: Dict[str, Any]) -> List[DecodedEvent]:
        instance = self.contract(contract)
        decoded: List[DecodedEvent] = []
        for entry in load_abi(contract):
            if entry.get("type") != "event":
                continue
            event = getattr(instance.events, entry["name"])()
            for log in event.process_receipt(receipt, errors=DISCARD):
                decoded.append(DecodedEvent(
                    name=log["event"],
                    args=dict(log["args"]),
                    log_index=log.get("logIndex", 0),
                    address=log.get("address"),
                ))
        decoded.sort(key=lambda e: e.log_index)
        return decoded
