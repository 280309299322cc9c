from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String

from btc_treasury.db.base import Base


class SyncState(Base):
    __tablename__ = "sync_states"

    # Dataset cache key, e.g. aggregate-balances or entity-balance-sheet_strategy.
    dataset_key = Column(String(255), primary_key=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=False)
    rows_written = Column(Integer, nullable=False, default=0)
