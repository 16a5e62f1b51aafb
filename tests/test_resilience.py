# tests/test_resilience.py
"""
DataGate Resilience Tests

Categories:
  R1. with_retry
  R2. Notifier
"""

import asyncio
import logging

import pytest

from datagate.errors import RelayerError, TransientNetworkError
from datagate.resilience import Notifier, is_transient, with_retry


# =============================================================================
# R1. with_retry
# =============================================================================

def test_r1_1_exhausts_exactly_max_attempts():
    calls = []

    async def operation():
        calls.append(1)
        raise TransientNetworkError("down")

    with pytest.raises(TransientNetworkError):
        asyncio.run(with_retry(operation, max_attempts=4, delay=0))
    assert len(calls) == 4


def test_r1_2_returns_first_success():
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) < 3:
            raise TransientNetworkError("flaky")
        return "ok"

    assert asyncio.run(with_retry(operation, max_attempts=5, delay=0)) == "ok"
    assert len(calls) == 3


def test_r1_3_predicate_false_stops_immediately():
    calls = []

    async def operation():
        calls.append(1)
        raise RelayerError("rejected", status_code=400)

    with pytest.raises(RelayerError):
        asyncio.run(with_retry(operation, max_attempts=5, delay=0, should_retry=is_transient))
    assert len(calls) == 1


def test_r1_4_rejects_zero_attempts():
    async def operation():
        return None

    with pytest.raises(ValueError):
        asyncio.run(with_retry(operation, max_attempts=0))


# =============================================================================
# R2. Notifier
# =============================================================================

def test_r2_1_failing_observers_do_not_block_others(caplog):
    notifier = Notifier(name="test")
    seen = []
    broken_calls = []

    def broken_sync(value):
        broken_calls.append(("sync", value))
        raise RuntimeError("sync observer failed")

    async def broken_async(value):
        broken_calls.append(("async", value))
        raise RuntimeError("async observer failed")

    async def good_async(value):
        seen.append(("async", value))

    notifier.subscribe(broken_sync)
    notifier.subscribe(broken_async)
    notifier.subscribe(lambda value: seen.append(("sync", value)))
    notifier.subscribe(good_async)

    async def emit_twice():
        await notifier.emit(7)
        await notifier.emit(8)

    with caplog.at_level(logging.ERROR, logger="datagate.resilience"):
        asyncio.run(emit_twice())

    assert seen == [("sync", 7), ("async", 7), ("sync", 8), ("async", 8)]
    assert broken_calls == [("sync", 7), ("async", 7), ("sync", 8), ("async", 8)]
    assert len([r for r in caplog.records if "failed" in r.getMessage()]) == 4
    assert len(notifier) == 4


def test_r2_2_unsubscribe():
    notifier = Notifier()
    seen = []
    unsubscribe = notifier.subscribe(seen.append)

    asyncio.run(notifier.emit(1))
    unsubscribe()
    asyncio.run(notifier.emit(2))

    assert seen == [1]
    assert len(notifier) == 0
