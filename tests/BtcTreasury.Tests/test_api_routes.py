"""End-to-end route tests through FastAPI's TestClient."""
import pytest
from fastapi.testclient import TestClient

from btc_treasury.api.errors import UpstreamTransportError
from btc_treasury.app import create_app
from btc_treasury.db.base import Base
from btc_treasury.web.deps import get_services


@pytest.fixture
def client(services):
    app = create_app()
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_historical_price_envelope(client, fake_api):
    fake_api.prices = [[2000, 51000], [1000, 50000]]

    resp = client.get("/bitcoin/historical-price")

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "data": [[1000, 50000.0], [2000, 51000.0]]}


def test_aggregate_balances(client, fake_api):
    fake_api.aggregate = [["PUBLIC_COMPANY", [[1000, 5]]]]

    data = client.get("/aggregate-balances").json()["data"]

    assert dict((sector, points) for sector, points in data)["PUBLIC_COMPANY"] == [[1000, 5.0]]


def test_entity_requires_slug(client):
    resp = client.get("/entity")
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Slug is required"}


def test_unknown_entity_is_404(client):
    resp = client.get("/entity/balance-sheet", params={"slug": "missing"})
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_entity_balance_sheet_and_timeseries(client, fake_api, make_entity):
    make_entity("strategy")
    fake_api.bundles["strategy"] = {
        "balanceSheet": {
            "rows": [
                {"date": "2024-01-01", "btcBalance": "100"},
                {"date": "2024-02-01", "btcBalance": "150"},
            ]
        },
        "timeseries": {"btcPrices": [["2024-01-01", "42K"]]},
    }

    sheet = client.get("/entity/balance-sheet", params={"slug": "strategy"}).json()["data"]
    series = client.get("/entity/timeseries", params={"slug": "strategy"}).json()["data"]

    assert [r["btc_balance"] for r in sheet] == [150.0, 100.0]
    assert series[0]["type"] == "BTC_PRICE"
    assert series[0]["value"] == 42000.0


def test_spot_price_upstream_failure_is_502(client, fake_cmc):
    fake_cmc.exception = UpstreamTransportError("down")

    resp = client.get("/bitcoin/price")

    assert resp.status_code == 502
    assert resp.json()["success"] is False


def test_summary_route(client, make_entity):
    make_entity("strategy", bitcoin_holdings=10.0)

    body = client.get("/summary").json()

    assert body["success"] is True
    assert body["data"]["summary"]["total_bitcoin"] == 10.0


def test_entity_lists(client, make_entity):
    make_entity("strategy", type="PUBLIC", bitcoin_holdings=10.0)
    make_entity("metaplanet", type="PUBLIC", bitcoin_holdings=5.0)
    make_entity("lido", type="DEFI")

    companies = client.get("/entities/companies").json()["data"]
    defi = client.get("/entities/companies", params={"type": "DEFI"}).json()["data"]
    everything = client.get("/entities/all").json()["data"]
    similar = client.get("/entities/similar/strategy").json()["data"]

    assert [e["slug"] for e in companies] == ["strategy", "metaplanet"]
    assert [e["slug"] for e in defi] == ["lido"]
    assert len(everything) == 3
    assert [e["slug"] for e in similar] == ["metaplanet"]


def test_admin_create_and_conflict(client):
    body = {"slug": "strategy", "name": "Strategy", "type": "PUBLIC", "bitcoin_holdings": 1.0}

    created = client.post("/admin/entities", json=body)
    duplicate = client.post("/admin/entities", json=body)
    bad_type = client.post("/admin/entities", json={"slug": "x", "name": "X", "type": "NOPE"})

    assert created.status_code == 201
    assert created.json()["data"]["bitcoin_holdings"] == 1.0
    assert duplicate.status_code == 409
    assert bad_type.status_code == 400
    assert [e["slug"] for e in client.get("/admin/entities", params={"type": "PUBLIC"}).json()["data"]] == ["strategy"]


def test_admin_edit(client, make_entity):
    make_entity("strategy")

    resp = client.put(
        "/admin/entities/strategy",
        json={
            "name": "Strategy Inc",
            "links": [{"text": "Site", "url": "https://example.com", "type": "official"}],
        },
    )
    bad = client.put("/admin/entities/strategy", json={"balance_sheet": [{"date": "garbage"}]})
    missing = client.put("/admin/entities/missing", json={"name": "x"})

    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Strategy Inc"
    assert resp.json()["data"]["links"][0]["type"] == "OFFICIAL"
    assert bad.status_code == 400
    assert missing.status_code == 404


def test_database_failure_is_500(client, db):
    Base.metadata.drop_all(db.engine)

    resp = client.get("/bitcoin/historical-price")

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Database error"}
