"""
Cancellation for LLM calls.

A ``CancellationToken`` is passed explicitly into recognize/enrich so a
caller can abandon in-flight LLM work and still receive the best
deterministic result, instead of cancelling the whole task.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from memoria.errors import LLMCancelledError, LLMTimeoutError

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal backed by an ``asyncio.Event``."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise LLMCancelledError(self.reason or "cancelled")


async def run_guarded(
    awaitable: Awaitable[T],
    timeout: Optional[float] = None,
    token: Optional[CancellationToken] = None,
) -> T:
    """
    Await ``awaitable`` unless it times out or ``token`` fires first.

    The underlying task is cancelled in both cases.

    Raises:
        LLMTimeoutError: ``timeout`` seconds elapsed
        LLMCancelledError: the token was cancelled
    """
    if token is not None and token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancelled()

    task = asyncio.ensure_future(awaitable)
    waiters = {task}
    watcher = None
    if token is not None:
        watcher = asyncio.ensure_future(token.wait())
        waiters.add(watcher)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        if watcher is not None:
            watcher.cancel()

    if task in done:
        return task.result()

    task.cancel()
    if watcher is not None and watcher in done:
        raise LLMCancelledError(token.reason or "cancelled")
    raise LLMTimeoutError(f"LLM call timed out after {timeout}s")
