# datagate/block/registry/multicall.py
"""
DataGate Block Registry: Batched Reads

Calls are described as plain ContractCall records and their outcomes
come back tagged, one per call, in call order:

    Success(value)   the call returned and decoded
    Failure(cause)   the call reverted or could not be decoded

Batches are executed by a ChainClient (Multicall3 ``aggregate3`` on a
live chain). A failed entry never poisons its neighbours; callers that
need all-or-nothing semantics use :func:`unwrap_all`.

Usage:
    calls = [ContractCall("DataPortabilityPermissions", "permissions", (pid,)) for pid in ids]
    results = await chain.multicall(calls)
    for call, result in zip(calls, results):
        if result.ok:
            ...

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Sequence, Tuple, TypeVar, Union

from ...errors import PartialBatchFailure

T = TypeVar("T")

MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"
DEFAULT_MAX_CALLS_PER_BATCH = 100


@dataclass
class ContractCall:
    """One read: ``contract.function(*args)``."""
    contract: str
    function: str
    args: Tuple[Any, ...] = field(default_factory=tuple)


@dataclass
class Success:
    value: Any
    ok = True


@dataclass
class Failure:
    cause: Any
    ok = False


CallResult = Union[Success, Failure]


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split ``items`` into consecutive lists of at most ``size``."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def unwrap_all(results: Sequence[CallResult]) -> List[Any]:
    """
    Values of an all-or-nothing batch.

    Raises:
        PartialBatchFailure: For the first failed entry
    """
    values = []
    for index, result in enumerate(results):
        if isinstance(result, Failure):
            raise PartialBatchFailure(index, result.cause)
        values.append(result.value)
    return values
