"""Treasury API client responsible for price, aggregate and entity datasets."""
from __future__ import annotations

import enum
import logging
from typing import Any, Dict, List, Optional

import httpx

from btc_treasury.api.errors import UpstreamShapeError, UpstreamTransportError
from btc_treasury.config import get_upstream_config

logger = logging.getLogger(__name__)


class DatasetKind(str, enum.Enum):
    SPOT_PRICE_SERIES = "spot-price-series"
    AGGREGATE_HOLDINGS_SERIES = "aggregate-holdings-series"
    ENTITY_DETAIL_BUNDLE = "entity-detail-bundle"


class TreasuryApiClient:
    """High level helper for the treasury data API.

    Reads the base URL and timeout from the central config module (see
    ``btc_treasury/config.py``) unless they are passed explicitly. Every
    call is a single GET without retries; callers decide how to degrade.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Create a new treasury API client.

        Parameters:
            base_url: API root, e.g. https://api.example.com/api/v1.
            timeout_s: Per-request timeout. Defaults to UPSTREAM_TIMEOUT_SECONDS.
            http_client: Optional pre-built httpx client (tests pass one with a mock transport).
        """
        cfg = get_upstream_config()
        self.base_url = (base_url or cfg.base_url).rstrip("/")
        timeout = timeout_s if timeout_s is not None else cfg.timeout_s
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(timeout, connect=min(timeout, 3.0)))

    def close(self) -> None:
        self._client.close()

    def fetch_dataset(self, kind: DatasetKind, key: Optional[str] = None) -> Any:
        """
        Retrieve one raw dataset payload.

        Parameters:
            kind: Which dataset to fetch.
            key: Entity slug; required for ``ENTITY_DETAIL_BUNDLE`` only.

        Returns:
            The decoded JSON payload. For entity bundles, the ``data`` object.

        Raises:
            UpstreamTransportError: Network error, timeout or non-2xx status.
            UpstreamShapeError: Undecodable JSON, unexpected structure or ``success: false``.
        """
        if kind is DatasetKind.SPOT_PRICE_SERIES:
            return self.get_price_series()
        if kind is DatasetKind.AGGREGATE_HOLDINGS_SERIES:
            return self.get_aggregate_series()
        if kind is DatasetKind.ENTITY_DETAIL_BUNDLE:
            if not key:
                raise ValueError("Entity detail requires an entity slug")
            return self.get_entity_bundle(key)
        raise ValueError(f"Unknown dataset kind: {kind}")

    def get_price_series(self) -> List[Any]:
        payload = self._get_json("/bitcoin/prices")
        if not isinstance(payload, list):
            raise UpstreamShapeError(f"Expected a list of price points, got {type(payload).__name__}")
        return payload

    def get_aggregate_series(self) -> List[Any]:
        payload = self._get_json("/bitcoin/aggregate")
        if not isinstance(payload, list):
            raise UpstreamShapeError(f"Expected a list of sector series, got {type(payload).__name__}")
        return payload

    def get_entity_bundle(self, slug: str) -> Dict[str, Any]:
        payload = self._get_json(f"/bitcoin/entity/{slug}")
        if not isinstance(payload, dict):
            raise UpstreamShapeError(f"Expected an object for entity {slug}, got {type(payload).__name__}")
        if not payload.get("success"):
            message = payload.get("error") or payload.get("message") or "unknown error"
            raise UpstreamShapeError(f"Treasury API error for entity {slug}: {message}", upstream_message=str(message))
        data = payload.get("data")
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise UpstreamShapeError(f"Expected 'data' object for entity {slug}, got {type(data).__name__}")
        return data

    def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("GET %s", url)
        try:
            response = self._client.get(url, headers={"Accept": "application/json"})
        except httpx.TimeoutException as exc:
            raise UpstreamTransportError(f"Timed out fetching {url}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamTransportError(f"Failed to fetch {url}: {exc}") from exc

        if not response.is_success:
            raise UpstreamTransportError(
                f"Treasury API request {url} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamShapeError(f"Invalid JSON from {url}: {exc}") from exc
