from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Mapping, Optional

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from btc_treasury.db.poco.aggregate_holdings import AggregateHoldingsPoint


@dataclass(frozen=True)
class AggregateRow:
    timestamp: int
    date: datetime
    total_private_held: float
    total_public_held: float
    total_government_held: float
    total_defi_held: float
    total_exchange_held: float
    total_fund_held: float
    total_bitcoin_held: float


class AggregateHoldingsRepo:
    """Repository for sector-level aggregate holdings snapshots."""

    def latest_timestamp(self, session: Session) -> Optional[int]:
        return session.scalar(select(func.max(AggregateHoldingsPoint.timestamp)))

    def count(self, session: Session) -> int:
        return int(session.scalar(select(func.count()).select_from(AggregateHoldingsPoint)) or 0)

    def delete_all(self, session: Session) -> None:
        session.execute(delete(AggregateHoldingsPoint))

    def insert_many(self, session: Session, rows: Iterable[AggregateRow]) -> int:
        payload: List[Mapping[str, object]] = [
            {
                "timestamp": r.timestamp,
                "date": r.date,
                "total_private_held": r.total_private_held,
                "total_public_held": r.total_public_held,
                "total_government_held": r.total_government_held,
                "total_defi_held": r.total_defi_held,
                "total_exchange_held": r.total_exchange_held,
                "total_fund_held": r.total_fund_held,
                "total_bitcoin_held": r.total_bitcoin_held,
            }
            for r in rows
        ]
        if not payload:
            return 0
        session.execute(insert(AggregateHoldingsPoint), payload)
        return len(payload)

    def list_ascending(self, session: Session) -> List[AggregateHoldingsPoint]:
        stmt = select(AggregateHoldingsPoint).order_by(AggregateHoldingsPoint.timestamp.asc())
        return list(session.scalars(stmt).all())
