from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from btc_treasury.api.cmc_quotes_client import BITCOIN_CMC_ID, CmcQuotesClient
from btc_treasury.cache.types import CacheStore
from btc_treasury.sync.synced_dataset import busy_key

logger = logging.getLogger(__name__)


class SpotPriceService:
    """Latest Bitcoin quote, cached under ``price_<id>`` with a TTL'd busy marker."""

    def __init__(
        self,
        client: CmcQuotesClient,
        cache: CacheStore,
        ttl_s: int = 600,
        busy_ttl_s: int = 60,
        cmc_id: str = BITCOIN_CMC_ID,
    ) -> None:
        self.client = client
        self.cache = cache
        self.ttl_s = ttl_s
        self.busy_ttl_s = busy_ttl_s
        self.cmc_id = cmc_id

    @property
    def cache_key(self) -> str:
        return f"price_{self.cmc_id}"

    def get(self, force: bool = False) -> Optional[Dict[str, Any]]:
        """Return the cached quote, fetching it when absent or when ``force`` is set.

        While another caller is fetching, the last cached quote (possibly None)
        is returned instead of issuing a second request. Upstream errors propagate.
        """
        if not force:
            cached = self.cache.get(self.cache_key)
            if cached is not None:
                return cached

        flag = busy_key(self.cache_key)
        if not self.cache.add(flag, True, self.busy_ttl_s):
            logger.info("Quote refresh for %s in progress; serving cached value", self.cache_key)
            return self.cache.get(self.cache_key)

        try:
            quote = self.client.get_quote(self.cmc_id)
            self.cache.set(self.cache_key, quote, self.ttl_s)
            return quote
        finally:
            self.cache.delete(flag)
