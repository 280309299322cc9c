from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

# Global series are cheap upstream and read constantly; per-entity bundles are not.
SHORT_WINDOW = timedelta(minutes=5)
LONG_WINDOW = timedelta(hours=12)


def needs_refresh(
    last_known: Optional[datetime],
    local_row_count: int,
    freshness_window: timedelta,
    now: Optional[datetime] = None,
) -> bool:
    """Return True when local rows are missing or older than ``freshness_window``."""
    if local_row_count <= 0 or last_known is None:
        return True
    if last_known.tzinfo is None:
        last_known = last_known.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return current - last_known > freshness_window
