"""
lcbridge Keyed Locks

Serializes state transitions per record key. Two operations on the same
lock, proof or HTLC run one after the other; operations on different keys
run concurrently.

Locks are re-entrant: an asset ledger that calls back into the engine from
the same thread does not deadlock. Such a nested call is instead rejected
by the replay guard, whose consumption is written before value moves.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class KeyedLocks:
    """Reference-counted pool of ``threading.RLock`` keyed by record key."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.RLock] = {}
        self._refs: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            self._refs[key] = self._refs.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._refs[key] -= 1
                if self._refs[key] == 0:
                    del self._refs[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
