from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from btc_treasury.cache.types import CacheStore
from btc_treasury.db.db_conn import DbConn
from btc_treasury.db.poco.data_cache import DataCacheEntry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class SqlCache(CacheStore):
    """Cache backed by the ``data_cache`` table, shared by every process using the database."""

    def __init__(self, db: DbConn, clock: Callable[[], datetime] = _utcnow) -> None:
        self._db = db
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        with self._db.session_scope() as session:
            entry = session.get(DataCacheEntry, key)
            if entry is None:
                return None
            if _as_utc(entry.expires_at) <= self._clock():
                session.delete(entry)
                return None
            return json.loads(entry.payload)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = self._clock()
        with self._db.session_scope() as session:
            session.merge(
                DataCacheEntry(
                    key=key,
                    payload=json.dumps(value),
                    fetched_at=now,
                    expires_at=now + timedelta(seconds=max(1, int(ttl_seconds))),
                )
            )

    def add(self, key: str, value: Any, ttl_seconds: int) -> bool:
        now = self._clock()
        try:
            with self._db.session_scope() as session:
                entry = session.get(DataCacheEntry, key)
                if entry is not None:
                    if _as_utc(entry.expires_at) > now:
                        return False
                    session.delete(entry)
                    session.flush()
                session.add(
                    DataCacheEntry(
                        key=key,
                        payload=json.dumps(value),
                        fetched_at=now,
                        expires_at=now + timedelta(seconds=max(1, int(ttl_seconds))),
                    )
                )
        except IntegrityError:
            # Another process inserted the same key first
            logger.debug("Cache key %s claimed concurrently", key)
            return False
        return True

    def delete(self, key: str) -> None:
        with self._db.session_scope() as session:
            session.execute(delete(DataCacheEntry).where(DataCacheEntry.key == key))
