from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Mapping

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from btc_treasury.db.poco.balance_sheet import BalanceSheetRow


@dataclass(frozen=True)
class BalanceRow:
    date: datetime
    btc_balance: float
    change: float
    cost_basis: float
    market_price: float
    stock_price: float


class BalanceSheetRepo:
    """Repository for per-entity balance sheet rows."""

    def count_for_entity(self, session: Session, entity_id: int) -> int:
        stmt = select(func.count()).select_from(BalanceSheetRow).where(BalanceSheetRow.entity_id == entity_id)
        return int(session.scalar(stmt) or 0)

    def delete_for_entity(self, session: Session, entity_id: int) -> None:
        session.execute(delete(BalanceSheetRow).where(BalanceSheetRow.entity_id == entity_id))

    def insert_many(self, session: Session, entity_id: int, rows: Iterable[BalanceRow]) -> int:
        payload: List[Mapping[str, object]] = [
            {
                "entity_id": entity_id,
                "date": r.date,
                "btc_balance": r.btc_balance,
                "change": r.change,
                "cost_basis": r.cost_basis,
                "market_price": r.market_price,
                "stock_price": r.stock_price,
            }
            for r in rows
        ]
        if not payload:
            return 0
        session.execute(insert(BalanceSheetRow), payload)
        return len(payload)

    def list_for_entity(self, session: Session, entity_id: int) -> List[BalanceSheetRow]:
        """Rows for one entity, newest first."""
        stmt = (
            select(BalanceSheetRow)
            .where(BalanceSheetRow.entity_id == entity_id)
            .order_by(BalanceSheetRow.date.desc())
        )
        return list(session.scalars(stmt).all())
