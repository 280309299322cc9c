"""Cache-aside read path with demand-driven upstream synchronisation.

``SyncedDataset.read`` answers from the cache when it can. On a miss it
checks durable-store freshness, runs at most one sync per key at a time,
re-reads canonical rows and republishes them with the dataset's TTL.
"""
from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from btc_treasury.api.errors import UpstreamError
from btc_treasury.cache.types import CacheStore
from btc_treasury.db.db_conn import DbConn
from btc_treasury.db.sync_states_repo import SyncStatesRepo
from btc_treasury.sync.locks import KeyedLocks, LockTimeout
from btc_treasury.sync.policies import RowValidationError
from btc_treasury.sync.reconcilers import Reconciler
from btc_treasury.sync.staleness import needs_refresh

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def busy_key(cache_key: str) -> str:
    return f"{cache_key}_busy"


def read_through(cache: CacheStore, key: str, ttl_seconds: int, loader: Callable[[], Any], force: bool = False) -> Any:
    """Plain cache-aside for datasets computed purely from durable storage."""
    if not force:
        cached = cache.get(key)
        if cached is not None:
            return cached
    value = loader()
    cache.set(key, value, ttl_seconds)
    return value


class SyncOutcome(str, enum.Enum):
    SYNCED = "synced"
    FRESH = "fresh"
    BUSY = "busy"
    FAILED = "failed"


class SyncedDataset:
    """
    One logical dataset: cache key, freshness window, TTL and reconciler.

    Per-entity datasets are addressed with a ``scope`` (the entity slug) and
    cached under ``<name>_<slug>``.
    """

    def __init__(
        self,
        name: str,
        reconciler: Reconciler,
        *,
        db: DbConn,
        cache: CacheStore,
        locks: KeyedLocks,
        freshness_window: timedelta,
        cache_ttl_s: int,
        busy_ttl_s: int = 60,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.name = name
        self.reconciler = reconciler
        self.db = db
        self.cache = cache
        self.locks = locks
        self.freshness_window = freshness_window
        self.cache_ttl_s = cache_ttl_s
        self.busy_ttl_s = busy_ttl_s
        self.clock = clock
        self.sync_states = SyncStatesRepo()

    def cache_key(self, scope: Optional[str] = None) -> str:
        return self.name if scope is None else f"{self.name}_{scope}"

    def read(self, scope: Optional[str] = None, force: bool = False) -> Any:
        """Return the dataset, syncing from upstream first when local data is stale.

        Upstream and row-validation failures are logged and the durable rows
        are served instead. ``EntityNotFoundError`` and database errors propagate.
        """
        key = self.cache_key(scope)
        if not force:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        try:
            with self.locks.hold(key):
                if not force:
                    # Another reader may have populated the cache while we waited
                    cached = self.cache.get(key)
                    if cached is not None:
                        return cached
                outcome = self.refresh(scope, force=force)
                payload = self.load(scope)
        except LockTimeout:
            logger.warning("Sync of %s still running elsewhere; serving durable rows", key)
            return self.load(scope)

        if outcome is SyncOutcome.BUSY or (outcome is SyncOutcome.FAILED and not self._has_local_rows(scope)):
            return payload
        self.cache.set(key, payload, self.cache_ttl_s)
        return payload

    def _has_local_rows(self, scope: Optional[str]) -> bool:
        with self.db.session_scope() as session:
            return self.reconciler.count(session, scope) > 0

    def load(self, scope: Optional[str] = None) -> Any:
        with self.db.session_scope() as session:
            return self.reconciler.load(session, scope)

    def refresh(self, scope: Optional[str] = None, force: bool = False) -> SyncOutcome:
        """Sync when forced or when the freshness window has lapsed."""
        key = self.cache_key(scope)
        with self.db.session_scope() as session:
            row_count = self.reconciler.count(session, scope)
            last_synced = self.sync_states.last_synced_at(session, key)
            upstream_key = self.reconciler.upstream_key(session, scope)

        if not force and not needs_refresh(last_synced, row_count, self.freshness_window, now=self.clock()):
            return SyncOutcome.FRESH
        return self._sync(key, scope, upstream_key)

    def _sync(self, key: str, scope: Optional[str], upstream_key: Optional[str]) -> SyncOutcome:
        flag = busy_key(key)
        if not self.cache.add(flag, True, self.busy_ttl_s):
            logger.info("Sync of %s already in progress; skipping", key)
            return SyncOutcome.BUSY

        try:
            logger.info("Fetching fresh %s data from upstream", key)
            try:
                payload = self.reconciler.fetch(upstream_key)
            except UpstreamError as exc:
                logger.warning("Upstream fetch for %s failed: %s", key, exc)
                return SyncOutcome.FAILED

            write_lock = self.reconciler.write_lock(scope)
            try:
                if write_lock:
                    with self.locks.hold(write_lock):
                        rows = self._write(key, scope, payload)
                else:
                    rows = self._write(key, scope, payload)
            except RowValidationError as exc:
                logger.error("Sync of %s aborted, nothing written: %s", key, exc)
                return SyncOutcome.FAILED
            except LockTimeout as exc:
                logger.warning("Sync of %s skipped: %s", key, exc)
                return SyncOutcome.FAILED

            logger.info("Sync of %s wrote %d rows", key, rows)
            return SyncOutcome.SYNCED
        finally:
            self.cache.delete(flag)

    def _write(self, key: str, scope: Optional[str], payload: Any) -> int:
        synced_at = self.clock()
        with self.db.session_scope() as session:
            rows = self.reconciler.apply(session, scope, payload, synced_at)
            self.sync_states.mark_synced(session, key, synced_at, rows)
        return rows

    def invalidate(self, scope: Optional[str] = None) -> None:
        self.cache.delete(self.cache_key(scope))
