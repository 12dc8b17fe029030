"""Scan serialization primitives.

Two independent mechanisms guard repository scans:

- ScanQueue: one global "scan active" flag plus a FIFO of waiters, so at
  most one scan runs at a time and waiters run in arrival order.
- SourceLocks: an advisory set of normalized URLs with a scan in flight,
  so the same source is not scanned twice by overlapping callers.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

from hubcatalog.sources.validation import normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScanQueue:
    """Run scan operations one at a time in FIFO order."""

    def __init__(self) -> None:
        self._active = False
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def active(self) -> bool:
        return self._active

    @property
    def pending(self) -> int:
        """Number of operations waiting for their turn."""
        return sum(1 for fut in self._waiters if not fut.done())

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` once every earlier operation has finished.

        Args:
            operation: Zero-argument coroutine function

        Returns:
            Whatever ``operation`` returns; its exceptions propagate
        """
        await self._acquire()
        try:
            return await operation()
        finally:
            self._release()

    async def _acquire(self) -> None:
        if not self._active:
            self._active = True
            return

        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        logger.debug(f"Scan in progress, queued ({len(self._waiters)} waiting)")
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # The turn was already handed to us; pass it on
                self._release()
            else:
                try:
                    self._waiters.remove(fut)
                except ValueError:
                    pass
            raise

    def _release(self) -> None:
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(None)
                return
        self._active = False


class SourceLocks:
    """Advisory per-source locks for in-flight scans.

    URLs are keyed by their normalized form, so spellings that differ only
    in case or whitespace share one lock.
    """

    def __init__(self) -> None:
        self._locked: set[str] = set()

    def try_acquire(self, url: str) -> bool:
        """Lock ``url``; False if it is already locked."""
        key = normalize(url)
        if key in self._locked:
            return False
        self._locked.add(key)
        return True

    def release(self, url: str) -> None:
        self._locked.discard(normalize(url))

    def is_locked(self, url: str) -> bool:
        return normalize(url) in self._locked

    def __len__(self) -> int:
        return len(self._locked)
