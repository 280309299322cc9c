"""Turn ORM rows into the JSON structures served to readers and cached."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from btc_treasury.db.poco.aggregate_holdings import AggregateHoldingsPoint
from btc_treasury.db.poco.balance_sheet import BalanceSheetRow
from btc_treasury.db.poco.bitcoin_price_history import BitcoinPricePoint
from btc_treasury.db.poco.entity import Entity
from btc_treasury.db.poco.entity_time_series import EntityTimeSeriesPoint

ENTITY_SCALAR_FIELDS = (
    "slug",
    "name",
    "ticker",
    "type",
    "rank",
    "country_name",
    "country_flag",
    "external_id",
    "external_slug",
    "holding_since",
    "market_cap",
    "enterprise_value",
    "share_price",
    "bitcoin_holdings",
    "btc_per_share",
    "cost_basis",
    "usd_value",
    "ngu",
    "m_nav",
    "market_cap_percentage",
    "supply_percentage",
    "profit_loss_percentage",
    "avg_cost_per_btc",
    "bitcoin_value_in_usd",
)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def price_points(rows: Sequence[BitcoinPricePoint]) -> List[List[Any]]:
    return [[int(r.timestamp), r.price] for r in rows]


def aggregate_series(rows: Sequence[AggregateHoldingsPoint], sector_fields: Dict[str, str]) -> List[List[Any]]:
    """One ``[sector, [[timestamp, value], ...]]`` pair per sector, in ``sector_fields`` order."""
    return [
        [sector, [[int(r.timestamp), getattr(r, field) or 0.0] for r in rows]]
        for sector, field in sector_fields.items()
    ]


def balance_sheet(rows: Sequence[BalanceSheetRow]) -> List[Dict[str, Any]]:
    return [
        {
            "date": isoformat_utc(r.date),
            "btc_balance": r.btc_balance,
            "change": r.change,
            "cost_basis": r.cost_basis,
            "market_price": r.market_price,
            "stock_price": r.stock_price,
        }
        for r in rows
    ]


def time_series(rows: Sequence[EntityTimeSeriesPoint]) -> List[Dict[str, Any]]:
    return [
        {
            "type": r.type,
            "date": isoformat_utc(r.date),
            "value": r.value,
            "timestamp": r.timestamp_token,
        }
        for r in rows
    ]


def entity(obj: Entity, include_details: bool = False) -> Dict[str, Any]:
    data: Dict[str, Any] = {field: getattr(obj, field) for field in ENTITY_SCALAR_FIELDS}
    data["last_updated"] = isoformat_utc(obj.last_updated)
    data["created_at"] = isoformat_utc(obj.created_at)
    data["updated_at"] = isoformat_utc(obj.updated_at)
    if include_details:
        data["about"] = [
            {
                "title": a.title,
                "content": a.content,
                "headings": list(a.headings or []),
                "key_points": list(a.key_points or []),
            }
            for a in obj.about
        ]
        data["links"] = [{"text": link.text, "url": link.url, "type": link.type} for link in obj.links]
    return data
