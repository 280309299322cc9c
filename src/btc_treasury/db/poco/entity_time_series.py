from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint

from btc_treasury.db.base import Base

# Upstream series key -> stored series type.
TIME_SERIES_KEYS = {
    "btcBalances": "BTC_BALANCE",
    "btcPrices": "BTC_PRICE",
    "stockPrices": "STOCK_PRICE",
    "btcPerShare": "BTC_PER_SHARE",
    "fiatValues": "FIAT_VALUE",
    "navMultipliers": "NAV_MULTIPLIER",
}


class EntityTimeSeriesPoint(Base):
    __tablename__ = "entity_time_series"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(Integer, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(30), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    value = Column(Float, nullable=False, default=0.0)
    # Date token exactly as the upstream sent it.
    timestamp_token = Column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("entity_id", "type", "date", name="uq_entity_ts_entity_type_date"),
        Index("ix_entity_ts_entity_date", "entity_id", "date"),
    )
