# booking/locking.py

"""
In-process write serialization.

An availability check and the write that follows it must not interleave with
another booking for the same provider. Each provider gets its own re-entrant
lock; blocked-period writes share a single lock. Conflicts never span
providers, so bookings for different providers run in parallel.

Multi-process deployments additionally rely on the row lock taken by
``AppointmentStore.lock_provider`` inside the same transaction, and on the
table lock taken by ``BlockedPeriodStore.lock_for_write`` (PostgreSQL only).
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional


class WriteLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._providers: Dict[int, threading.RLock] = {}
        self._blocked_periods = threading.RLock()

    def _provider_lock(self, provider_id: int) -> threading.RLock:
        with self._guard:
            lock = self._providers.get(provider_id)
            if lock is None:
                lock = self._providers[provider_id] = threading.RLock()
            return lock

    @contextmanager
    def providers(self, *provider_ids: Optional[int]) -> Iterator[None]:
        """Hold the locks of every given provider, acquired in ascending id order."""
        locks = [self._provider_lock(pid) for pid in sorted({p for p in provider_ids if p is not None})]
        acquired = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    @contextmanager
    def blocked_periods(self) -> Iterator[None]:
        with self._blocked_periods:
            yield
