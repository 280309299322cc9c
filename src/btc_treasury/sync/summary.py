"""Treasury-wide summary statistics computed from the entity table."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from btc_treasury.api.errors import UpstreamError
from btc_treasury.cache.types import CacheStore
from btc_treasury.db.db_conn import DbConn
from btc_treasury.db.entities_repo import EntitiesRepo
from btc_treasury.db.price_history_repo import PriceHistoryRepo
from btc_treasury.sync.spot_price import SpotPriceService
from btc_treasury.sync.synced_dataset import read_through

logger = logging.getLogger(__name__)

BTC_MAX_SUPPLY = 21_000_000

# Response label for each entity type.
TYPE_LABELS = {
    "PUBLIC": "public_companies",
    "PRIVATE": "private_companies",
    "GOVERNMENT": "governments",
    "DEFI": "defi",
    "EXCHANGE": "exchange",
    "ETF": "etf",
}


def percentages(data: Mapping[str, float], total: float) -> Dict[str, float]:
    return {key: (value / total) * 100 if total > 0 else 0.0 for key, value in data.items()}


class SummaryService:
    """Builds and caches ``bitcoin-treasury-summary``."""

    cache_key = "bitcoin-treasury-summary"

    def __init__(
        self,
        db: DbConn,
        cache: CacheStore,
        spot_price: SpotPriceService,
        ttl_s: int = 300,
        fallback_price: float = 100_000.0,
    ) -> None:
        self.db = db
        self.cache = cache
        self.spot_price = spot_price
        self.ttl_s = ttl_s
        self.fallback_price = fallback_price
        self.entities = EntitiesRepo()
        self.prices = PriceHistoryRepo()

    def read(self, force: bool = False) -> Dict[str, Any]:
        return read_through(self.cache, self.cache_key, self.ttl_s, self.build, force=force)

    def bitcoin_price(self) -> float:
        """Spot quote, else the newest price-history sample, else the configured fallback."""
        try:
            quote = self.spot_price.get()
        except UpstreamError as exc:
            logger.warning("Spot price unavailable for summary: %s", exc)
            quote = None
        if quote and quote.get("price"):
            return float(quote["price"])

        with self.db.session_scope() as session:
            latest = self.prices.latest(session)
            if latest is not None:
                return float(latest.price)
        return self.fallback_price

    def build(self) -> Dict[str, Any]:
        with self.db.session_scope() as session:
            holdings_by_type = self.entities.holdings_by_type(session)
            counts_by_type = self.entities.counts_by_type(session)
            top_countries = self.entities.top_countries(session, limit=5)

        holdings = {label: holdings_by_type.get(t, 0.0) for t, label in TYPE_LABELS.items()}
        entities = {label: counts_by_type.get(t, 0) for t, label in TYPE_LABELS.items()}
        total_bitcoin = sum(holdings.values())
        total_entities = sum(entities.values())
        bitcoin_price = self.bitcoin_price()

        return {
            "summary": {
                "total_entities": total_entities,
                "total_bitcoin": total_bitcoin,
                "holdings": holdings,
                "entities": entities,
                "holdings_percentages": percentages(holdings, total_bitcoin),
                "entities_percentages": percentages(entities, total_entities),
                "percentage_of_supply": (total_bitcoin / BTC_MAX_SUPPLY) * 100,
                "total_value_usd": total_bitcoin * bitcoin_price,
                "bitcoin_price": bitcoin_price,
                "bitcoin_market_cap": bitcoin_price * BTC_MAX_SUPPLY,
                "source": "database",
                "last_updated": datetime.now(timezone.utc).isoformat(),
                "top_countries_by_entity_count": top_countries,
            }
        }
