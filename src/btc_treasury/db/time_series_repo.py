from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Mapping, Optional

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from btc_treasury.db.poco.entity_time_series import EntityTimeSeriesPoint


@dataclass(frozen=True)
class TimeSeriesRow:
    type: str
    date: datetime
    value: float
    timestamp_token: Optional[str]


class TimeSeriesRepo:
    """Repository for per-entity named time series."""

    def count_for_entity(self, session: Session, entity_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(EntityTimeSeriesPoint)
            .where(EntityTimeSeriesPoint.entity_id == entity_id)
        )
        return int(session.scalar(stmt) or 0)

    def delete_for_entity(self, session: Session, entity_id: int) -> None:
        session.execute(delete(EntityTimeSeriesPoint).where(EntityTimeSeriesPoint.entity_id == entity_id))

    def insert_many(self, session: Session, entity_id: int, rows: Iterable[TimeSeriesRow]) -> int:
        payload: List[Mapping[str, object]] = [
            {
                "entity_id": entity_id,
                "type": r.type,
                "date": r.date,
                "value": r.value,
                "timestamp_token": r.timestamp_token,
            }
            for r in rows
        ]
        if not payload:
            return 0
        session.execute(insert(EntityTimeSeriesPoint), payload)
        return len(payload)

    def list_for_entity(self, session: Session, entity_id: int) -> List[EntityTimeSeriesPoint]:
        """Points for one entity, oldest first."""
        stmt = (
            select(EntityTimeSeriesPoint)
            .where(EntityTimeSeriesPoint.entity_id == entity_id)
            .order_by(EntityTimeSeriesPoint.date.asc(), EntityTimeSeriesPoint.type.asc())
        )
        return list(session.scalars(stmt).all())
