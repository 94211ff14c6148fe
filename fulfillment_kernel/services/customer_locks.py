"""
Per-customer write locks for trust mutations.

Responsibility:
    Serializes trust writes for the same customer inside one process.  A
    lock is held across read, compute, write and commit so an automatic
    evaluation and a manual override for one customer can never interleave.
    Different customers get different locks and proceed in parallel.

    Locks only live while someone holds or waits for them; the last
    holder to leave evicts the entry, so a long-running scheduler does not
    accumulate one lock per customer it has ever seen.

Architecture position:
    Kernel > Services.  Used by TrustOverrideManager.  Cross-process
    serialization comes from ``SELECT ... FOR UPDATE`` on the profile row.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class CustomerLockRegistry:
    """Reference-counted ``threading.Lock`` per customer id."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, customer_id: str) -> Iterator[None]:
        lock = self._checkout(customer_id)
        try:
            with lock:
                yield
        finally:
            self._release(customer_id)

    def _checkout(self, customer_id: str) -> threading.Lock:
        # Waiters count as holders so the entry survives until they finish.
        with self._guard:
            lock = self._locks.get(customer_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[customer_id] = lock
            self._holders[customer_id] = self._holders.get(customer_id, 0) + 1
            return lock

    def _release(self, customer_id: str) -> None:
        with self._guard:
            remaining = self._holders[customer_id] - 1
            if remaining:
                self._holders[customer_id] = remaining
            else:
                del self._holders[customer_id]
                del self._locks[customer_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Shared by every manager that is not given its own registry.
DEFAULT_CUSTOMER_LOCKS = CustomerLockRegistry()
