"""Per-account serialization of balance and quota mutations"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class AccountLocks:
    """
    One asyncio.Lock per account id.

    Every read-modify-write of a balance or quota-relevant field runs while
    holding the owning account's lock, so two approvals or two publishers
    racing on the same account cannot lose an update.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        if account_id not in self._locks:
            self._locks[account_id] = asyncio.Lock()
        return self._locks[account_id]

    @asynccontextmanager
    async def hold(self, *account_ids: str) -> AsyncIterator[None]:
        """Acquire the locks of several accounts in a fixed (sorted) order"""
        locks = [self._lock_for(account_id) for account_id in sorted(set(account_ids))]
        for index, lock in enumerate(locks):
            try:
                await lock.acquire()
            except BaseException:
                for acquired in locks[:index]:
                    acquired.release()
                raise
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()
