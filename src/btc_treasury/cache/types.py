from __future__ import annotations

from typing import Any, Optional, Protocol


class CacheStore(Protocol):
    """Cache interface; values must be JSON-serialisable and every entry expires."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    def add(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Set only when the key is absent or expired; return True when stored."""
        ...

    def delete(self, key: str) -> None:
        ...
