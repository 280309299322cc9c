"""Validate raw upstream rows and derive canonical row sets.

Every builder follows the same skeleton: normalise each row, hand invalid
rows to the dataset's ``RowPolicy``, and return rows ready for a bulk
insert. The aggregate builder additionally unions six sector series by
timestamp.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from btc_treasury.api.errors import UpstreamShapeError
from btc_treasury.db.aggregate_holdings_repo import AggregateRow
from btc_treasury.db.balance_sheet_repo import BalanceRow
from btc_treasury.db.entities_repo import AboutItem, LinkItem
from btc_treasury.db.poco.entity_time_series import TIME_SERIES_KEYS
from btc_treasury.db.price_history_repo import PriceRow
from btc_treasury.db.time_series_repo import TimeSeriesRow
from btc_treasury.sync.normalize import normalize_date, normalize_epoch_ms, normalize_number
from btc_treasury.sync.policies import RowPolicy, reject_row

logger = logging.getLogger(__name__)

# Fold order of the aggregate merge; also the order sectors are served in.
SECTOR_FIELDS: Dict[str, str] = {
    "PRIVATE_COMPANY": "total_private_held",
    "PUBLIC_COMPANY": "total_public_held",
    "GOVERNMENT": "total_government_held",
    "DEFI": "total_defi_held",
    "EXCHANGE": "total_exchange_held",
    "FUND": "total_fund_held",
}
SECTOR_ALIASES = {"ETF": "FUND"}
_BUNDLE_OBJECTS = ("bitcoinHoldings", "stockFinancials", "aboutEntity", "balanceSheet", "timeseries")


def _expect(value: Any, kind: type, what: str) -> None:
    if value is not None and not isinstance(value, kind):
        raise UpstreamShapeError(f"Expected {what} to be {kind.__name__}, got {type(value).__name__}")


def check_entity_bundle(bundle: Any, context: str = "") -> Mapping[str, Any]:
    """Reject entity bundles whose nested fields have the wrong JSON type.

    Missing fields are fine; a field that is present must be an object or a
    list as the upstream documents it.
    """
    if bundle is None:
        return {}
    _expect(bundle, Mapping, f"entity bundle{context}")
    for name in _BUNDLE_OBJECTS:
        _expect(bundle.get(name), Mapping, f"'{name}'{context}")

    _expect((bundle.get("balanceSheet") or {}).get("rows"), list, f"'balanceSheet.rows'{context}")
    timeseries = bundle.get("timeseries") or {}
    for key in TIME_SERIES_KEYS:
        _expect(timeseries.get(key), list, f"'timeseries.{key}'{context}")

    about = bundle.get("aboutEntity") or {}
    for name in ("headings", "keyPoints", "links"):
        _expect(about.get(name), list, f"'aboutEntity.{name}'{context}")
    for index, link in enumerate(about.get("links") or []):
        _expect(link, Mapping, f"link #{index}{context}")
    return bundle


def _pair(item: Any) -> Optional[Tuple[Any, Any]]:
    if isinstance(item, (list, tuple)) and len(item) >= 2:
        return item[0], item[1]
    return None


def _timestamp_and_date(raw: Any) -> Tuple[Optional[int], Optional[datetime]]:
    ts = normalize_epoch_ms(raw)
    if ts is None:
        return None, None
    return ts, normalize_date(ts)


def build_price_rows(payload: Sequence[Any], policy: RowPolicy = RowPolicy.SKIP_INVALID_ROWS) -> List[PriceRow]:
    """``[[epoch_ms, price], ...]`` -> one row per distinct timestamp (last one wins)."""
    by_ts: Dict[int, PriceRow] = {}
    for index, item in enumerate(payload):
        pair = _pair(item)
        if pair is None:
            reject_row(policy, f"price point #{index} is not a [timestamp, price] pair: {item!r}")
            continue
        ts, date = _timestamp_and_date(pair[0])
        if ts is None or date is None:
            reject_row(policy, f"price point #{index} has an invalid timestamp: {pair[0]!r}")
            continue
        price = normalize_number(pair[1], default=None)
        if price is None:
            reject_row(policy, f"price point #{index} has an invalid price: {pair[1]!r}")
            continue
        by_ts[ts] = PriceRow(timestamp=ts, date=date, price=price)
    return list(by_ts.values())


def _sector_series(payload: Sequence[Any], policy: RowPolicy) -> Dict[str, Sequence[Any]]:
    series: Dict[str, Sequence[Any]] = {}
    for index, item in enumerate(payload):
        pair = _pair(item)
        if pair is None or not isinstance(pair[1], (list, tuple)):
            reject_row(policy, f"aggregate entry #{index} is not a [sector, series] pair: {item!r}")
            continue
        tag = str(pair[0]).strip().upper()
        tag = SECTOR_ALIASES.get(tag, tag)
        if tag not in SECTOR_FIELDS:
            logger.info("Ignoring unknown aggregate sector %r", pair[0])
            continue
        # First series per sector wins
        series.setdefault(tag, pair[1])
    return series


def merge_aggregate_series(
    payload: Sequence[Any],
    policy: RowPolicy = RowPolicy.SKIP_INVALID_ROWS,
) -> List[AggregateRow]:
    """Union six ``(timestamp, value)`` sector series into one row per timestamp.

    Sectors are folded in ``SECTOR_FIELDS`` order. A timestamp first seen in
    a later sector starts with zeros for every other sector, and the grand
    total is recomputed after each fold so it always equals the sum of the
    sector fields.
    """
    series = _sector_series(payload, policy)
    merged: Dict[int, Dict[str, float]] = {}
    dates: Dict[int, datetime] = {}

    for sector, field in SECTOR_FIELDS.items():
        for index, point in enumerate(series.get(sector, ())):
            pair = _pair(point)
            if pair is None:
                reject_row(policy, f"{sector} point #{index} is not a [timestamp, value] pair: {point!r}")
                continue
            ts, date = _timestamp_and_date(pair[0])
            if ts is None or date is None:
                reject_row(policy, f"{sector} point #{index} has an invalid timestamp: {pair[0]!r}")
                continue
            value = normalize_number(pair[1], default=None)
            if value is None:
                reject_row(policy, f"{sector} point #{index} has an invalid value: {pair[1]!r}")
                continue

            entry = merged.get(ts)
            if entry is None:
                entry = {name: 0.0 for name in SECTOR_FIELDS.values()}
                merged[ts] = entry
                dates[ts] = date
            entry[field] = value
            entry["total_bitcoin_held"] = sum(entry[name] for name in SECTOR_FIELDS.values())

    return [AggregateRow(timestamp=ts, date=dates[ts], **fields) for ts, fields in merged.items()]


def build_balance_sheet_rows(
    rows: Sequence[Any],
    policy: RowPolicy,
    context: str = "",
) -> List[BalanceRow]:
    """Upstream ``balanceSheet.rows`` -> ``BalanceRow`` list; numeric fields default to 0."""
    result: List[BalanceRow] = []
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            reject_row(policy, f"balance sheet row #{index}{context} is not an object: {row!r}")
            continue
        raw_date = row.get("date")
        if not raw_date:
            reject_row(policy, f"missing date in balance sheet row #{index}{context}")
            continue
        date = normalize_date(raw_date)
        if date is None:
            reject_row(policy, f"invalid balance sheet date{context}: {raw_date!r}")
            continue
        result.append(
            BalanceRow(
                date=date,
                btc_balance=normalize_number(row.get("btcBalance")),
                change=normalize_number(row.get("change")),
                cost_basis=normalize_number(row.get("costBasis")),
                market_price=normalize_number(row.get("marketPrice")),
                stock_price=normalize_number(row.get("stockPrice")),
            )
        )
    return result


def build_time_series_rows(
    timeseries: Mapping[str, Any],
    policy: RowPolicy,
    context: str = "",
) -> List[TimeSeriesRow]:
    """Upstream ``timeseries`` object -> rows, deduplicated on (type, date) with the last point winning."""
    by_key: Dict[Tuple[str, datetime], TimeSeriesRow] = {}
    for key, series_type in TIME_SERIES_KEYS.items():
        points = timeseries.get(key) or []
        for index, point in enumerate(points):
            pair = _pair(point)
            raw_date = pair[0] if pair else None
            if not raw_date:
                reject_row(policy, f"missing date in {key} point #{index}{context}")
                continue
            date = normalize_date(raw_date)
            if date is None:
                reject_row(policy, f"invalid date format in {key}{context}: {raw_date!r}")
                continue
            by_key[(series_type, date)] = TimeSeriesRow(
                type=series_type,
                date=date,
                value=normalize_number(pair[1]),
                timestamp_token=str(raw_date),
            )
    return list(by_key.values())


def snapshot_fields(bundle: Mapping[str, Any]) -> Dict[str, Any]:
    """Scalar entity fields that every entity-detail sync overwrites."""
    holdings = bundle.get("bitcoinHoldings") or {}
    stock = bundle.get("stockFinancials") or {}
    external_id = bundle.get("entityId")
    rank = bundle.get("rank", external_id)
    return {
        "external_id": str(external_id) if external_id is not None else None,
        "rank": str(rank) if rank is not None else None,
        "holding_since": holdings.get("holdingSince") or "",
        "profit_loss_percentage": normalize_number(holdings.get("profitLossPercent"), default=None),
        "avg_cost_per_btc": normalize_number(holdings.get("avgCostPerBTC"), default=None),
        "share_price": normalize_number(stock.get("sharePrice"), default=None),
    }


def about_items(about: Mapping[str, Any]) -> List[AboutItem]:
    if not about or not about.get("content"):
        return []
    return [
        AboutItem(
            title=about.get("title") or "",
            content=about.get("content") or "",
            headings=list(about.get("headings") or []),
            key_points=list(about.get("keyPoints") or []),
        )
    ]


def link_items(about: Mapping[str, Any]) -> List[LinkItem]:
    links = (about or {}).get("links") or []
    return [
        LinkItem(
            text=link.get("text") or "",
            url=link.get("url") or "",
            type=str(link.get("type") or "UNOFFICIAL").upper(),
        )
        for link in links
        if isinstance(link, Mapping)
    ]
