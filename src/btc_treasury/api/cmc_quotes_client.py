"""CoinMarketCap client for the latest Bitcoin quote."""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from btc_treasury.api.errors import UpstreamShapeError, UpstreamTransportError
from btc_treasury.config import get_upstream_config

BITCOIN_CMC_ID = "1"


class CmcQuotesClient:
    """Fetch and flatten ``/v2/cryptocurrency/quotes/latest`` for a single asset."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        cfg = get_upstream_config()
        self.api_key = api_key or cfg.cmc_api_key
        self.base_url = (base_url or cfg.cmc_base_url).rstrip("/")
        timeout = timeout_s if timeout_s is not None else cfg.timeout_s
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(timeout, connect=min(timeout, 3.0)))

    def close(self) -> None:
        self._client.close()

    def get_quote(self, cmc_id: str = BITCOIN_CMC_ID) -> Dict[str, Any]:
        """Return the USD quote for ``cmc_id`` as a flat dict."""
        url = f"{self.base_url}/v2/cryptocurrency/quotes/latest"
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-CMC_PRO_API_KEY"] = self.api_key
        try:
            response = self._client.get(url, params={"id": cmc_id}, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamTransportError(f"Failed to fetch CMC quote: {exc}") from exc
        if not response.is_success:
            raise UpstreamTransportError(
                f"CMC quote request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamShapeError(f"Invalid JSON from CMC: {exc}") from exc

        if not isinstance(payload, dict):
            raise UpstreamShapeError(f"Expected an object from CMC, got {type(payload).__name__}")
        status = payload.get("status") or {}
        if status.get("error_code"):
            message = status.get("error_message")
            raise UpstreamShapeError(f"CMC error {status.get('error_code')}: {message}", upstream_message=message)

        try:
            asset = payload["data"][cmc_id]
            usd = asset["quote"]["USD"]
        except (KeyError, TypeError) as exc:
            raise UpstreamShapeError(f"CMC quote missing field: {exc}") from exc

        return {
            "price": usd.get("price"),
            "price_change_1h": usd.get("percent_change_1h"),
            "price_change_24h": usd.get("percent_change_24h"),
            "price_change_7d": usd.get("percent_change_7d"),
            "price_change_30d": usd.get("percent_change_30d"),
            "price_change_90d": usd.get("percent_change_90d"),
            "volume": usd.get("volume_24h"),
            "volume_change_24h": usd.get("volume_change_24h"),
            "market_cap": usd.get("market_cap"),
            "circulating_supply": asset.get("circulating_supply"),
            "max_supply": asset.get("max_supply"),
            "total_supply": asset.get("total_supply"),
            "fdv": usd.get("fully_diluted_market_cap"),
        }
