from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, Float

from btc_treasury.db.base import Base


class AggregateHoldingsPoint(Base):
    __tablename__ = "aggregate_holdings"

    # Epoch milliseconds; natural key of the snapshot.
    timestamp = Column(BigInteger, primary_key=True, autoincrement=False)
    date = Column(DateTime(timezone=True), nullable=False)

    total_private_held = Column(Float, nullable=False, default=0.0)
    total_public_held = Column(Float, nullable=False, default=0.0)
    total_government_held = Column(Float, nullable=False, default=0.0)
    total_defi_held = Column(Float, nullable=False, default=0.0)
    total_exchange_held = Column(Float, nullable=False, default=0.0)
    total_fund_held = Column(Float, nullable=False, default=0.0)
    # Sum of the six sector totals above.
    total_bitcoin_held = Column(Float, nullable=False, default=0.0)
