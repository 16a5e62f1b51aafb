# datagate/block/registry/events.py
"""
DataGate Block Registry: Receipt Events

Decoded logs from a transaction receipt and helpers to pick the one a
write was expected to emit. Receipts routinely carry unrelated logs
(token transfers, proxy upgrades, other contracts); lookups match on the
event name only and ignore everything else.

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ...errors import BlockchainError, MissingExpectedEventError


@dataclass
class DecodedEvent:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    log_index: int = 0
    address: Optional[str] = None


def find_event(events: Sequence[DecodedEvent], name: str, tx_hash: str) -> DecodedEvent:
    """
    First event called ``name``.

    Raises:
        MissingExpectedEventError: No such event in the receipt
    """
    for event in events:
        if event.name == name:
            return event
    raise MissingExpectedEventError(name, tx_hash)


def event_arg(event: DecodedEvent, arg: str) -> Any:
    try:
        return event.args[arg]
    except KeyError:
        raise BlockchainError(f"Event {event.name} has no argument {arg!r}") from None


def receipt_succeeded(receipt: Dict[str, Any]) -> bool:
    return int(receipt.get("status", 0)) == 1


def receipt_hash(receipt: Dict[str, Any], default: str = "") -> str:
    value = receipt.get("transactionHash", default)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value
