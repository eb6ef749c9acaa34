"""
Ledger Lock

One named lock serializes every writer of the ledger: transaction
commits, edits, deletions and the reconciliation that follows them.
Readers never take it.

The lock is re-entrant per task: a commit holds it and then runs the
reconciliation, which takes it again without deadlocking. Acquisition
waits at most timeout_seconds and then raises ConcurrencyTimeoutError;
the caller's write is never attempted.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog

from finbot.errors import ConcurrencyTimeoutError


logger = structlog.get_logger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 30.0


class LedgerLock:
    """Task-reentrant asyncio lock with an acquisition timeout."""

    def __init__(
        self,
        name: str = "ledger",
        timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ):
        self.name = name
        self.timeout_seconds = timeout_seconds
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None
        self._depth = 0

    @asynccontextmanager
    async def hold(self, operation: str = "write") -> AsyncIterator[None]:
        """
        Hold the lock for the duration of the block.

        Raises:
            ConcurrencyTimeoutError: If the lock is not free in time
        """
        task = asyncio.current_task()
        if self._owner is not None and self._owner is task:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "ledger_lock_timeout",
                lock=self.name,
                operation=operation,
                timeout_seconds=self.timeout_seconds,
            )
            raise ConcurrencyTimeoutError(
                f"Lock '{self.name}' not acquired within {self.timeout_seconds}s for {operation}"
            )

        self._owner = task
        self._depth = 1
        try:
            yield
        finally:
            self._owner = None
            self._depth = 0
            self._lock.release()
