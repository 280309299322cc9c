from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, String, Text, func

from btc_treasury.db.base import Base


class DataCacheEntry(Base):
    __tablename__ = "data_cache"

    key = Column(String(255), primary_key=True)
    payload = Column(Text, nullable=False)  # JSON string
    fetched_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_data_cache_expires_at", "expires_at"),)
