"""Tests for per-dataset merge rules: replace, union and populate-once."""
from datetime import datetime, timezone

import pytest

from btc_treasury.db.aggregate_holdings_repo import AggregateHoldingsRepo
from btc_treasury.db.balance_sheet_repo import BalanceRow, BalanceSheetRepo
from btc_treasury.db.entities_repo import EntitiesRepo
from btc_treasury.db.price_history_repo import PriceHistoryRepo, PriceRow
from btc_treasury.db.time_series_repo import TimeSeriesRepo
from btc_treasury.sync.registry import (
    AGGREGATE_BALANCES,
    ENTITY_DETAIL,
    ENTITY_TIMESERIES,
    PRICE_HISTORY,
)
from btc_treasury.sync.synced_dataset import SyncOutcome


def _bundle(balance_rows=None, timeseries=None):
    return {
        "entityId": 42,
        "bitcoinHoldings": {"holdingSince": "Aug 2020", "profitLossPercent": "45.2%", "avgCostPerBTC": "$66.4K"},
        "stockFinancials": {"sharePrice": "$350.10"},
        "aboutEntity": {
            "title": "About Strategy",
            "content": "Business intelligence company holding bitcoin.",
            "headings": ["History"],
            "keyPoints": ["Largest corporate holder"],
            "links": [
                {"text": "Website", "url": "https://example.com", "type": "official"},
                {"text": "Filing", "url": "https://example.com/10k"},
            ],
        },
        "balanceSheet": {"rows": balance_rows if balance_rows is not None else []},
        "timeseries": timeseries or {},
    }


def _entity_id(db, slug):
    with db.session_scope() as session:
        return EntitiesRepo().get_by_slug(session, slug).id


def test_price_history_replace_discards_old_rows(services, fake_api, db):
    with db.session_scope() as session:
        now = datetime(2020, 1, 1, tzinfo=timezone.utc)
        PriceHistoryRepo().insert_many(session, [PriceRow(timestamp=t, date=now, price=1.0) for t in (1, 2, 3)])

    fake_api.prices = [[1000, 50000], [2000, 51000], [2000, 51000]]
    services.dataset(PRICE_HISTORY).read(force=True)

    with db.session_scope() as session:
        assert PriceHistoryRepo().count(session) == 2
        assert [p.timestamp for p in PriceHistoryRepo().list_ascending(session)] == [1000, 2000]


def test_aggregate_replace_row_count_matches_distinct_timestamps(services, fake_api, db):
    fake_api.aggregate = [
        ["PRIVATE_COMPANY", [[1000, 10]]],
        ["PUBLIC_COMPANY", [[1000, 5], [2000, 7]]],
        ["FUND", [[3000, 1]]],
    ]
    payload = services.dataset(AGGREGATE_BALANCES).read()

    with db.session_scope() as session:
        assert AggregateHoldingsRepo().count(session) == 3
    sectors = dict((sector, points) for sector, points in payload)
    assert sectors["PUBLIC_COMPANY"] == [[1000, 5], [2000, 7], [3000, 0]]
    assert sectors["FUND"] == [[1000, 0], [2000, 0], [3000, 1]]


def test_empty_upstream_keeps_existing_rows(services, fake_api, db):
    fake_api.prices = [[1000, 50000]]
    dataset = services.dataset(PRICE_HISTORY)
    dataset.read()

    fake_api.prices = []
    assert dataset.refresh(force=True) is SyncOutcome.SYNCED
    with db.session_scope() as session:
        assert PriceHistoryRepo().count(session) == 1


def test_entity_detail_populates_nested_collections_once(services, fake_api, db, make_entity):
    make_entity("strategy")
    entity_id = _entity_id(db, "strategy")
    with db.session_scope() as session:
        BalanceSheetRepo().insert_many(
            session,
            entity_id,
            [BalanceRow(datetime(2023, 6, 1, tzinfo=timezone.utc), 100.0, 0.0, 1.0, 2.0, 3.0)],
        )

    fake_api.bundles["strategy"] = _bundle(
        balance_rows=[
            {"date": "2024-01-01", "btcBalance": "500"},
            {"date": "2024-02-01", "btcBalance": "600"},
        ],
        timeseries={"btcBalances": [["2024-01-01", 500]]},
    )
    data = services.dataset(ENTITY_DETAIL).read("strategy")

    with db.session_scope() as session:
        rows = BalanceSheetRepo().list_for_entity(session, entity_id)
        assert [r.btc_balance for r in rows] == [100.0]
        assert TimeSeriesRepo().count_for_entity(session, entity_id) == 1

    assert data["profit_loss_percentage"] == 45.2
    assert data["avg_cost_per_btc"] == pytest.approx(66400.0)
    assert data["holding_since"] == "Aug 2020"
    assert data["rank"] == "42"
    assert data["about"][0]["title"] == "About Strategy"
    assert data["about"][0]["key_points"] == ["Largest corporate holder"]
    assert [(link["text"], link["type"]) for link in data["links"]] == [
        ("Website", "OFFICIAL"),
        ("Filing", "UNOFFICIAL"),
    ]
    assert data["last_updated"] is not None


def test_entity_detail_keeps_curated_about_text(services, fake_api, db, make_entity):
    make_entity("strategy")
    dataset = services.dataset(ENTITY_DETAIL)
    fake_api.bundles["strategy"] = _bundle()
    dataset.read("strategy")

    changed = _bundle()
    changed["aboutEntity"]["content"] = "Rewritten upstream"
    changed["bitcoinHoldings"]["profitLossPercent"] = "10%"
    fake_api.bundles["strategy"] = changed
    data = dataset.read("strategy", force=True)

    assert data["about"][0]["content"] == "Business intelligence company holding bitcoin."
    assert len(data["links"]) == 2
    assert data["profit_loss_percentage"] == 10.0


def test_entity_detail_aborts_on_invalid_ledger_row(services, fake_api, db, make_entity):
    make_entity("strategy")
    entity_id = _entity_id(db, "strategy")
    fake_api.bundles["strategy"] = _bundle(
        balance_rows=[
            {"date": "2024-01-01", "btcBalance": "500"},
            {"date": "not-a-date", "btcBalance": "600"},
        ],
        timeseries={"btcBalances": [["2024-01-01", 500]]},
    )

    assert services.dataset(ENTITY_DETAIL).refresh("strategy") is SyncOutcome.FAILED

    entities = EntitiesRepo()
    with db.session_scope() as session:
        assert BalanceSheetRepo().count_for_entity(session, entity_id) == 0
        assert TimeSeriesRepo().count_for_entity(session, entity_id) == 0
        assert entities.about_count(session, entity_id) == 0
        assert entities.links_count(session, entity_id) == 0
        assert entities.get_by_slug(session, "strategy").profit_loss_percentage is None


def test_timeseries_read_path_skips_invalid_points(services, fake_api, make_entity):
    make_entity("strategy")
    fake_api.bundles["strategy"] = _bundle(
        timeseries={
            "btcBalances": [["2024-01-02", 2], ["bad", 3], ["2024-01-01", 1]],
            "navMultipliers": [["2024-01-01", "1.8x"]],
        }
    )
    points = services.dataset(ENTITY_TIMESERIES).read("strategy")

    assert [(p["type"], p["value"]) for p in points if p["type"] == "BTC_BALANCE"] == [
        ("BTC_BALANCE", 1.0),
        ("BTC_BALANCE", 2.0),
    ]
    assert [p["value"] for p in points if p["type"] == "NAV_MULTIPLIER"] == [1.8]


def test_entity_upstream_uses_external_slug(services, fake_api, make_entity):
    make_entity("microstrategy", external_slug="strategy")
    fake_api.bundles["strategy"] = _bundle(balance_rows=[{"date": "2024-01-01", "btcBalance": "5"}])

    services.dataset(ENTITY_DETAIL).read("microstrategy")

    assert fake_api.calls[-1][1] == "strategy"


def test_latest_timestamps_follow_sync(services, fake_api, db):
    fake_api.prices = [[1000, 50000], [2000, 51000]]
    fake_api.aggregate = [["DEFI", [[5000, 1], [4000, 2]]]]
    services.dataset(PRICE_HISTORY).read()
    services.dataset(AGGREGATE_BALANCES).read()

    with db.session_scope() as session:
        assert PriceHistoryRepo().latest_timestamp(session) == 2000
        assert AggregateHoldingsRepo().latest_timestamp(session) == 5000


@pytest.mark.parametrize(
    "name, broken",
    [
        (ENTITY_TIMESERIES, {"timeseries": [["2024-01-01", 1]]}),
        (ENTITY_DETAIL, {"bitcoinHoldings": "n/a"}),
        (ENTITY_DETAIL, {"aboutEntity": {"content": "x", "links": ["x"]}}),
    ],
)
def test_malformed_bundle_serves_durable_rows(services, fake_api, cache, make_entity, name, broken):
    make_entity("strategy")
    dataset = services.dataset(name)
    fake_api.bundles["strategy"] = _bundle(timeseries={"btcBalances": [["2024-01-01", 500]]})
    before = dataset.read("strategy")

    fake_api.bundles["strategy"] = broken
    assert dataset.refresh("strategy", force=True) is SyncOutcome.FAILED
    assert dataset.read("strategy", force=True) == before
    assert cache.get(dataset.cache_key("strategy")) == before
