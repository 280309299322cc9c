from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from btc_treasury.db.poco.sync_state import SyncState


class SyncStatesRepo:
    """Tracks when each dataset last completed a successful sync."""

    def last_synced_at(self, session: Session, dataset_key: str) -> Optional[datetime]:
        state = session.get(SyncState, dataset_key)
        return state.last_synced_at if state else None

    def mark_synced(self, session: Session, dataset_key: str, synced_at: datetime, rows_written: int) -> None:
        state = session.get(SyncState, dataset_key)
        if state is None:
            state = SyncState(dataset_key=dataset_key, last_synced_at=synced_at, rows_written=rows_written)
            session.add(state)
        else:
            state.last_synced_at = synced_at
            state.rows_written = rows_written
        session.flush()

    def list_all(self, session: Session) -> List[SyncState]:
        return list(session.execute(select(SyncState).order_by(SyncState.dataset_key)).scalars())
