"""Per-account write locks.

Transactions that write the same account must not interleave. Before a
transaction runs, the runtime takes one asyncio lock per writable account,
in sorted address order so that two transactions with overlapping account
sets cannot deadlock. Locks live in a weak-value map and disappear once no
transaction holds or waits for them.

These locks only serialize work inside one process. Across processes the
ORM version counters on ledger rows catch the conflict instead.
"""

from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from token_escrow.domain.exceptions import AccountInUseError
from token_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from solders.pubkey import Pubkey

logger = get_logger(__name__)


class AccountLocks:
    """Registry of account locks with bounded waiting."""

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self._timeout = timeout_seconds
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, address: Pubkey) -> bool:
        lock = self._locks.get(str(address))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, addresses: Iterable[Pubkey]) -> AsyncIterator[None]:
        """Hold the locks of all given accounts for the duration of the block."""
        keys = sorted({str(address) for address in addresses})
        locks = [self._lock_for(key) for key in keys]
        acquired: list[asyncio.Lock] = []
        try:
            for key, lock in zip(keys, locks, strict=True):
                try:
                    async with asyncio.timeout(self._timeout):
                        await lock.acquire()
                except TimeoutError as err:
                    logger.warning("runtime.account_lock_timeout", account=key)
                    raise AccountInUseError(key) from err
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
