"""
Per-key mutual exclusion for in-process shared state.

Each logical record (a recipient, an OTP challenge, a credential) gets its
own lock so unrelated requests never serialize on each other. Locks are
reference counted and dropped once no thread holds or waits on them.

Usage::

    locks = KeyedLock()

    with locks.hold(f"recipient:{recipient}"):
        ...  # read-modify-write for this recipient only
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLock:
    """A registry of lazily created, reference-counted locks keyed by string."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._refcounts: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._refcounts[key] = self._refcounts.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._refcounts[key] -= 1
                if self._refcounts[key] == 0:
                    del self._refcounts[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
