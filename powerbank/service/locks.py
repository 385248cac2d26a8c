"""
Locks
-----

Provides exclusive access to individual rows for the duration of
an operation. Every operation that touches more than one row
acquires its locks through a single call to :meth:`LockManager.acquire`,
which always takes them in the same global order:

1. user rows, by ascending id (the treasury is an ordinary user here)
2. device rows, by ascending id

Since every writer agrees on that order, two operations can never
wait on each other in a cycle. The battery scheduler only ever
holds a single device lock.

Locks are taken before the database transaction is opened and
released after it is committed or rolled back.

.. code-block:: python

    async with locks.acquire(UserKey(user.id), DeviceKey(device.id)):
        async with in_transaction() as connection:
            ...
"""

import asyncio
from contextlib import asynccontextmanager
from typing import NamedTuple, Union, List, Tuple, Optional
from weakref import WeakValueDictionary

from powerbank.service.exceptions import LockTimeoutError


class UserKey(NamedTuple):
    id: int


class DeviceKey(NamedTuple):
    id: int


LockKey = Union[UserKey, DeviceKey]


def lock_order(key: LockKey) -> Tuple[int, int]:
    """The position of the key in the global lock order."""
    if isinstance(key, UserKey):
        return 0, key.id
    elif isinstance(key, DeviceKey):
        return 1, key.id
    else:
        raise TypeError(f"Cannot lock {key!r}, expected a UserKey or DeviceKey.")


class LockManager:
    """
    Hands out per-row :class:`asyncio.Lock` objects.

    Locks are created on demand and forgotten once nobody
    holds or waits on them.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        """The default number of seconds to wait for each lock."""

        self._locks: "WeakValueDictionary[LockKey, asyncio.Lock]" = WeakValueDictionary()

    def _lock_for(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, key: LockKey) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def acquire(self, *keys: LockKey, timeout: Optional[float] = None):
        """
        Acquires exclusive access to all the given rows.

        :param keys: The rows to lock, in any order.
        :param timeout: Seconds to wait for each lock, defaulting to the manager's timeout.
        :raises LockTimeoutError: If any lock could not be acquired in time. No locks are held afterwards.
        """
        timeout = self.timeout if timeout is None else timeout
        ordered = sorted(set(keys), key=lock_order)
        held: List[asyncio.Lock] = []

        try:
            for key in ordered:
                lock = self._lock_for(key)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout)
                except asyncio.TimeoutError:
                    raise LockTimeoutError(f"Timed out waiting for exclusive access to {key}.", key=key)
                held.append(lock)

            yield
        finally:
            for lock in reversed(held):
                lock.release()
