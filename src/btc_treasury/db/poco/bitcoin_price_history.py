from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, Float

from btc_treasury.db.base import Base


class BitcoinPricePoint(Base):
    __tablename__ = "bitcoin_price_history"

    # Epoch milliseconds of the sample.
    timestamp = Column(BigInteger, primary_key=True, autoincrement=False)
    date = Column(DateTime(timezone=True), nullable=False)
    price = Column(Float, nullable=False)
