from __future__ import annotations

import json
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from btc_treasury.cache.types import CacheStore


class InMemoryCache(CacheStore):
    """
    A simple thread-safe in-process cache with lazy expiry.

    Values are stored as JSON text so callers never share mutable objects.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return payload

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            payload = self._live(key)
        return json.loads(payload) if payload is not None else None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = json.dumps(value)
        with self._lock:
            self._entries[key] = (payload, self._clock() + max(1, int(ttl_seconds)))

    def add(self, key: str, value: Any, ttl_seconds: int) -> bool:
        payload = json.dumps(value)
        with self._lock:
            if self._live(key) is not None:
                return False
            self._entries[key] = (payload, self._clock() + max(1, int(ttl_seconds)))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
