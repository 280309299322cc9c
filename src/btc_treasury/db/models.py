"""Import every mapped class so ``Base.metadata`` is complete."""
from __future__ import annotations

from btc_treasury.db.poco.aggregate_holdings import AggregateHoldingsPoint
from btc_treasury.db.poco.balance_sheet import BalanceSheetRow
from btc_treasury.db.poco.bitcoin_price_history import BitcoinPricePoint
from btc_treasury.db.poco.data_cache import DataCacheEntry
from btc_treasury.db.poco.entity import Entity, EntityAbout, EntityLink
from btc_treasury.db.poco.entity_time_series import EntityTimeSeriesPoint
from btc_treasury.db.poco.sync_state import SyncState

__all__ = [
    "AggregateHoldingsPoint",
    "BalanceSheetRow",
    "BitcoinPricePoint",
    "DataCacheEntry",
    "Entity",
    "EntityAbout",
    "EntityLink",
    "EntityTimeSeriesPoint",
    "SyncState",
]
