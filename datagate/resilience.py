# datagate/resilience.py
"""
DataGate: Resilience Kit

Retry-with-backoff for flaky I/O and an async-safe notification channel.

Usage:
    tx_hash = await with_retry(
        lambda: relayer.submit(payload),
        max_attempts=3,
        delay=0.5,
        should_retry=is_transient,
    )

    notifier = Notifier()
    unsubscribe = notifier.subscribe(lambda result: print(result))
    await notifier.emit(result)
    unsubscribe()

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from .errors import TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Observer = Callable[[T], Any]


# =============================================================================
# Retry
# =============================================================================

@dataclass
class RetryPolicy:
    """Attempts and base delay for ``with_retry``."""
    max_attempts: int = 3
    delay: float = 0.5


def is_transient(error: BaseException) -> bool:
    """Default retry predicate: only transient network failures."""
    return isinstance(error, TransientNetworkError)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 0.5,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
) -> T:
    """
    Run ``operation`` until it succeeds or attempts run out.

    Waits ``delay * attempt`` seconds between tries. No wait follows the
    last attempt.

    Args:
        operation: Zero-argument coroutine factory
        max_attempts: Total number of calls, including the first
        delay: Base delay in seconds
        should_retry: Predicate on the raised error; False stops immediately

    Returns:
        The operation's result

    Raises:
        The last error raised by ``operation``, unchanged
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if should_retry is not None and not should_retry(e):
                raise
            if attempt >= max_attempts:
                raise
            logger.debug(
                "Attempt %d/%d failed: %s; retrying", attempt, max_attempts, e
            )
            if delay > 0:
                await asyncio.sleep(delay * attempt)


# =============================================================================
# Notifier
# =============================================================================

class Notifier(Generic[T]):
    """
    Explicit emission channel with independent observers.

    Observers may be plain callables or coroutine functions. A failing
    observer is logged and skipped; it never stops the others and stays
    subscribed for later emissions.
    """

    def __init__(self, name: str = "notifier"):
        self.name = name
        self._observers: List[Observer] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer.

        Returns:
            Callable that unsubscribes the observer
        """
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def clear(self) -> None:
        self._observers.clear()

    def __len__(self) -> int:
        return len(self._observers)

    async def emit(self, value: T) -> None:
        """Invoke every observer with ``value``."""
        for observer in list(self._observers):
            try:
                result = observer(value)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Observer %r on %s failed", observer, self.name
                )
