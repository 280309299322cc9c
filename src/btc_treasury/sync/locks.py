from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional


class LockTimeout(RuntimeError):
    """Raised when a keyed lock could not be acquired in time."""


class _KeyedLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        # Holders plus waiters; the entry is dropped when this reaches zero
        self.users = 0


class KeyedLocks:
    """
    Registry of per-key locks.

    One lock per dataset key gives single-flight syncs inside a process; one
    lock per entity serialises admin edits against entity syncs. Keys only
    live in the registry while someone holds or waits for them.
    """

    def __init__(self, default_timeout_s: float = 30.0) -> None:
        self._locks: Dict[str, _KeyedLock] = {}
        self._guard = threading.Lock()
        self.default_timeout_s = default_timeout_s

    def _checkout(self, key: str) -> _KeyedLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyedLock()
                self._locks[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _KeyedLock) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout_s: Optional[float] = None) -> Iterator[None]:
        entry = self._checkout(key)
        try:
            wait = self.default_timeout_s if timeout_s is None else timeout_s
            if not entry.lock.acquire(timeout=wait):
                raise LockTimeout(f"Timed out after {wait:.1f}s waiting for lock {key}")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    def locked(self, key: str) -> bool:
        with self._guard:
            entry = self._locks.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
