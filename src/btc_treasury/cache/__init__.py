"""Key-value cache abstractions with per-entry expiry."""

from btc_treasury.cache.memory import InMemoryCache
from btc_treasury.cache.sql import SqlCache
from btc_treasury.cache.types import CacheStore

__all__ = ["CacheStore", "InMemoryCache", "SqlCache"]
