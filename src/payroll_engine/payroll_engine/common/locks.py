from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator


class KeyedLocks:
    """One lock per key (employee+date, employee+period, ...).

    Locks are only held around in-process work and short repository writes.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable, *, timeout: float = 5.0) -> Iterator[bool]:
        """Serialize on key; yields False when the lock could not be taken in time."""
        lock = self._lock_for(key)
        acquired = lock.acquire(timeout=timeout)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()

    @contextmanager
    def try_hold(self, key: Hashable) -> Iterator[bool]:
        """Non-blocking variant: yields False immediately if key is busy."""
        lock = self._lock_for(key)
        acquired = lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()
