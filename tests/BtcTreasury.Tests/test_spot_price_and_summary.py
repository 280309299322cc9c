"""Tests for the spot quote cache and the treasury summary."""
import pytest

from btc_treasury.api.errors import UpstreamTransportError
from btc_treasury.sync.registry import PRICE_HISTORY
from btc_treasury.sync.synced_dataset import busy_key


def test_spot_price_is_cached(services, fake_cmc, cache):
    first = services.spot_price.get()
    second = services.spot_price.get()

    assert first == second == {"price": 60000.0, "price_change_24h": 1.5}
    assert fake_cmc.calls == 1
    assert cache.get("price_1") == first


def test_spot_price_force_refetches(services, fake_cmc):
    services.spot_price.get()
    fake_cmc.quote = {"price": 61000.0}

    assert services.spot_price.get(force=True) == {"price": 61000.0}
    assert fake_cmc.calls == 2


def test_spot_price_busy_serves_last_cached_value(services, fake_cmc, cache):
    cache.set("price_1", {"price": 1.0}, 600)
    cache.add(busy_key("price_1"), True, 60)

    assert services.spot_price.get(force=True) == {"price": 1.0}
    assert fake_cmc.calls == 0


def test_spot_price_error_propagates_and_clears_flag(services, fake_cmc, cache):
    fake_cmc.exception = UpstreamTransportError("down")

    with pytest.raises(UpstreamTransportError):
        services.spot_price.get()

    assert cache.get(busy_key("price_1")) is None


def _seed(make_entity):
    make_entity("strategy", type="PUBLIC", bitcoin_holdings=100.0, country_name="United States")
    make_entity("tether", type="PRIVATE", bitcoin_holdings=50.0, country_name="United States")
    make_entity("china", type="GOVERNMENT", bitcoin_holdings=50.0, country_name="China")


def test_summary_totals_and_percentages(services, make_entity):
    _seed(make_entity)

    summary = services.summary.read()["summary"]

    assert summary["total_entities"] == 3
    assert summary["total_bitcoin"] == 200.0
    assert summary["holdings"]["public_companies"] == 100.0
    assert summary["holdings"]["etf"] == 0.0
    assert summary["entities"]["governments"] == 1
    assert summary["holdings_percentages"]["public_companies"] == 50.0
    assert summary["entities_percentages"]["defi"] == 0.0
    assert summary["percentage_of_supply"] == pytest.approx(200 / 21_000_000 * 100)
    assert summary["bitcoin_price"] == 60000.0
    assert summary["total_value_usd"] == 200 * 60000.0
    assert summary["bitcoin_market_cap"] == 60000.0 * 21_000_000
    assert summary["top_countries_by_entity_count"] == [
        {"country_name": "United States", "count": 2},
        {"country_name": "China", "count": 1},
    ]


def test_summary_is_cached_until_forced(services, make_entity):
    _seed(make_entity)
    services.summary.read()
    make_entity("extra", type="DEFI", bitcoin_holdings=10.0)

    assert services.summary.read()["summary"]["total_entities"] == 3
    assert services.summary.read(force=True)["summary"]["total_entities"] == 4


def test_summary_price_falls_back_to_history_then_constant(services, fake_api, fake_cmc, make_entity):
    _seed(make_entity)
    fake_cmc.exception = UpstreamTransportError("down")

    assert services.summary.read(force=True)["summary"]["bitcoin_price"] == 100_000.0

    fake_api.prices = [[1000, 40000], [2000, 42000]]
    services.dataset(PRICE_HISTORY).read()
    assert services.summary.read(force=True)["summary"]["bitcoin_price"] == 42000.0


def test_summary_on_empty_table(services):
    summary = services.summary.read()["summary"]

    assert summary["total_bitcoin"] == 0.0
    assert summary["holdings_percentages"]["public_companies"] == 0.0
    assert summary["top_countries_by_entity_count"] == []
