from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Mapping, Optional

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from btc_treasury.db.poco.bitcoin_price_history import BitcoinPricePoint


@dataclass(frozen=True)
class PriceRow:
    timestamp: int
    date: datetime
    price: float


class PriceHistoryRepo:
    """Repository for the global Bitcoin spot price history."""

    def latest_timestamp(self, session: Session) -> Optional[int]:
        return session.scalar(select(func.max(BitcoinPricePoint.timestamp)))

    def count(self, session: Session) -> int:
        return int(session.scalar(select(func.count()).select_from(BitcoinPricePoint)) or 0)

    def delete_all(self, session: Session) -> None:
        session.execute(delete(BitcoinPricePoint))

    def insert_many(self, session: Session, rows: Iterable[PriceRow]) -> int:
        payload: List[Mapping[str, object]] = [
            {"timestamp": r.timestamp, "date": r.date, "price": r.price} for r in rows
        ]
        if not payload:
            return 0
        session.execute(insert(BitcoinPricePoint), payload)
        return len(payload)

    def list_ascending(self, session: Session) -> List[BitcoinPricePoint]:
        stmt = select(BitcoinPricePoint).order_by(BitcoinPricePoint.timestamp.asc())
        return list(session.scalars(stmt).all())

    def latest(self, session: Session) -> Optional[BitcoinPricePoint]:
        stmt = select(BitcoinPricePoint).order_by(BitcoinPricePoint.timestamp.desc()).limit(1)
        return session.scalars(stmt).first()
