"""Wire datasets, caches and upstream clients into one service bundle."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from btc_treasury.api.cmc_quotes_client import CmcQuotesClient
from btc_treasury.api.treasury_api_client import TreasuryApiClient
from btc_treasury.cache.memory import InMemoryCache
from btc_treasury.cache.sql import SqlCache
from btc_treasury.cache.types import CacheStore
from btc_treasury.config import SyncSettings, get_cache_backend, get_sync_settings
from btc_treasury.db.db_conn import DbConn
from btc_treasury.sync.entity_catalog import EntityCatalog
from btc_treasury.sync.locks import KeyedLocks
from btc_treasury.sync.reconcilers import (
    AggregateHoldingsReconciler,
    BalanceSheetReconciler,
    EntityDetailReconciler,
    PriceHistoryReconciler,
    TimeSeriesReconciler,
)
from btc_treasury.sync.spot_price import SpotPriceService
from btc_treasury.sync.summary import SummaryService
from btc_treasury.sync.synced_dataset import SyncedDataset

logger = logging.getLogger(__name__)

PRICE_HISTORY = "bitcoin-historical-price"
AGGREGATE_BALANCES = "aggregate-balances"
ENTITY_BALANCE_SHEET = "entity-balance-sheet"
ENTITY_TIMESERIES = "entity-timeseries"
ENTITY_DETAIL = "entity-detail"

GLOBAL_DATASETS = (PRICE_HISTORY, AGGREGATE_BALANCES)
ENTITY_DATASETS = (ENTITY_BALANCE_SHEET, ENTITY_TIMESERIES, ENTITY_DETAIL)


@dataclass
class TreasuryServices:
    datasets: Dict[str, SyncedDataset]
    spot_price: SpotPriceService
    summary: SummaryService
    catalog: EntityCatalog
    cache: CacheStore
    locks: KeyedLocks

    def dataset(self, name: str) -> SyncedDataset:
        try:
            return self.datasets[name]
        except KeyError:
            raise ValueError(f"Unknown dataset '{name}'. Known: {sorted(self.datasets)}") from None

    def invalidate_entity(self, slug: str) -> None:
        """Drop every per-entity cache entry for ``slug`` plus the summary."""
        for name in ENTITY_DATASETS:
            self.datasets[name].invalidate(slug)
        self.cache.delete(SummaryService.cache_key)


def build_cache(db: DbConn, backend: Optional[str] = None) -> CacheStore:
    backend = backend or get_cache_backend()
    if backend == "sql":
        return SqlCache(db)
    if backend != "memory":
        raise ValueError(f"Unsupported CACHE_BACKEND '{backend}'. Use 'memory' or 'sql'.")
    return InMemoryCache()


def build_services(
    db: DbConn,
    cache: Optional[CacheStore] = None,
    client: Optional[TreasuryApiClient] = None,
    cmc_client: Optional[CmcQuotesClient] = None,
    settings: Optional[SyncSettings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> TreasuryServices:
    settings = settings or get_sync_settings()
    cache = cache if cache is not None else build_cache(db)
    client = client or TreasuryApiClient()
    cmc_client = cmc_client or CmcQuotesClient()
    locks = KeyedLocks(default_timeout_s=settings.lock_timeout_s)

    short_window = timedelta(seconds=settings.price_freshness_s)
    long_window = timedelta(seconds=settings.entity_freshness_s)

    def dataset(name, reconciler, window: timedelta, ttl_s: int) -> SyncedDataset:
        extra = {"clock": clock} if clock is not None else {}
        return SyncedDataset(
            name,
            reconciler,
            db=db,
            cache=cache,
            locks=locks,
            freshness_window=window,
            cache_ttl_s=ttl_s,
            busy_ttl_s=settings.busy_ttl_s,
            **extra,
        )

    datasets = {
        PRICE_HISTORY: dataset(PRICE_HISTORY, PriceHistoryReconciler(client), short_window, settings.price_history_ttl_s),
        AGGREGATE_BALANCES: dataset(
            AGGREGATE_BALANCES, AggregateHoldingsReconciler(client), short_window, settings.aggregate_ttl_s
        ),
        ENTITY_BALANCE_SHEET: dataset(
            ENTITY_BALANCE_SHEET, BalanceSheetReconciler(client), long_window, settings.entity_ttl_s
        ),
        ENTITY_TIMESERIES: dataset(ENTITY_TIMESERIES, TimeSeriesReconciler(client), long_window, settings.entity_ttl_s),
        ENTITY_DETAIL: dataset(ENTITY_DETAIL, EntityDetailReconciler(client), long_window, settings.entity_ttl_s),
    }

    spot_price = SpotPriceService(
        cmc_client,
        cache,
        ttl_s=settings.spot_price_ttl_s,
        busy_ttl_s=settings.busy_ttl_s,
    )
    summary = SummaryService(
        db,
        cache,
        spot_price,
        ttl_s=settings.summary_ttl_s,
        fallback_price=settings.fallback_btc_price,
    )
    catalog = EntityCatalog(
        db,
        cache,
        locks,
        all_entities_ttl_s=settings.all_entities_ttl_s,
        admin_entities_ttl_s=settings.admin_entities_ttl_s,
    )
    services = TreasuryServices(
        datasets=datasets,
        spot_price=spot_price,
        summary=summary,
        catalog=catalog,
        cache=cache,
        locks=locks,
    )
    catalog.on_entity_changed = services.invalidate_entity
    logger.info("Treasury services ready (cache=%s)", type(cache).__name__)
    return services
