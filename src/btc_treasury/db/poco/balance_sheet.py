from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer

from btc_treasury.db.base import Base


class BalanceSheetRow(Base):
    __tablename__ = "balance_sheet_rows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(Integer, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)

    btc_balance = Column(Float, nullable=False, default=0.0)
    # Period change in BTC balance.
    change = Column(Float, nullable=False, default=0.0)
    cost_basis = Column(Float, nullable=False, default=0.0)
    market_price = Column(Float, nullable=False, default=0.0)
    stock_price = Column(Float, nullable=False, default=0.0)

    __table_args__ = (Index("ix_balance_sheet_entity_date", "entity_id", "date"),)
