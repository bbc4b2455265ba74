"""
KeyedLocks -- per-entity mutual exclusion.

Responsibility:
    Hands out one re-entrant lock per key (request id, account id) so that
    read-modify-write sequences on one entity are serialized while work on
    different entities runs in parallel.

Architecture position:
    Kernel > Services -- in-process infrastructure.  Cross-process safety
    comes from the repositories' version checks.

Invariants enforced:
    - While any thread holds or waits on a key, every caller for that key
      gets the same lock object.
    - A key's entry is evicted when its last holder or waiter leaves, so
      the registry only tracks keys in use.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class KeyedLocks:
    """Registry of reference-counted ``threading.RLock`` objects keyed by string."""

    def __init__(self, namespace: str = "") -> None:
        self._namespace = namespace
        self._entries: dict[str, _Entry] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"KeyedLocks({self._namespace!r}, active={len(self)})"
