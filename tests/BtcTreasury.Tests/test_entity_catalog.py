"""Tests for entity listings and admin edits."""
import pytest

from btc_treasury.db.balance_sheet_repo import BalanceSheetRepo
from btc_treasury.db.entities_repo import AboutItem, EntitiesRepo, LinkItem, NewEntity
from btc_treasury.sync.entity_catalog import ALL_ENTITIES_KEY, DuplicateSlugError, admin_entities_key
from btc_treasury.sync.errors import EntityNotFoundError
from btc_treasury.sync.policies import RowValidationError
from btc_treasury.sync.registry import ENTITY_DETAIL


def test_create_rejects_duplicate_slug(services):
    services.catalog.create(NewEntity(slug="strategy", name="Strategy"))

    with pytest.raises(DuplicateSlugError):
        services.catalog.create(NewEntity(slug="strategy", name="Other"))


def test_create_rejects_unknown_type(services):
    with pytest.raises(ValueError):
        services.catalog.create(NewEntity(slug="x", name="X", type="HEDGE_FUND"))


def test_create_stores_numeric_fields(services):
    created = services.catalog.create(
        NewEntity(slug="strategy", name="Strategy", ticker="MSTR", fields={"bitcoin_holdings": 1.5, "bogus": 1})
    )
    assert created["bitcoin_holdings"] == 1.5
    assert created["ticker"] == "MSTR"
    assert created["created_at"] is not None


def test_list_defaults_to_companies_and_governments(services, make_entity):
    make_entity("strategy", type="PUBLIC", bitcoin_holdings=10.0)
    make_entity("us", type="GOVERNMENT", bitcoin_holdings=200.0)
    make_entity("lido", type="DEFI", bitcoin_holdings=5.0)
    make_entity("unknown", type="PRIVATE")

    assert [e["slug"] for e in services.catalog.list_entities()] == ["us", "strategy", "unknown"]
    assert [e["slug"] for e in services.catalog.list_entities(["defi"])] == ["lido"]


def test_similar_returns_same_type_without_self(services, make_entity):
    for slug in ("a", "b", "c"):
        make_entity(slug, type="PUBLIC")
    make_entity("gov", type="GOVERNMENT")

    similar = services.catalog.similar("a")

    assert sorted(e["slug"] for e in similar) == ["b", "c"]
    with pytest.raises(EntityNotFoundError):
        services.catalog.similar("missing")


def test_admin_list_is_cached_per_type(services, make_entity, cache):
    make_entity("strategy", type="PUBLIC")
    assert len(services.catalog.admin_entities("PUBLIC")) == 1
    assert cache.get(admin_entities_key("PUBLIC")) is not None

    make_entity("metaplanet", type="PUBLIC")
    assert len(services.catalog.admin_entities("PUBLIC")) == 1
    assert len(services.catalog.admin_entities("PUBLIC", force=True)) == 2


def test_edit_updates_fields_and_collections(services, make_entity, db):
    make_entity("strategy", type="PUBLIC")

    updated = services.catalog.edit(
        "strategy",
        {"name": "Strategy Inc", "ticker": "", "bitcoin_holdings": 500.0, "unknown": 1},
        about=[AboutItem(title="About", content="Text")],
        links=[LinkItem(text="Site", url="https://example.com", type="OFFICIAL")],
        balance_sheet=[{"date": "2024-01-01", "btcBalance": "500"}],
    )

    assert updated["name"] == "Strategy Inc"
    assert updated["ticker"] is None
    assert updated["bitcoin_holdings"] == 500.0
    assert [a["content"] for a in updated["about"]] == ["Text"]
    assert [link["url"] for link in updated["links"]] == ["https://example.com"]
    with db.session_scope() as session:
        entity = EntitiesRepo().get_by_slug(session, "strategy")
        assert [r.btc_balance for r in BalanceSheetRepo().list_for_entity(session, entity.id)] == [500.0]


def test_edit_with_bad_ledger_row_writes_nothing(services, make_entity, db):
    make_entity("strategy", type="PUBLIC")

    with pytest.raises(RowValidationError):
        services.catalog.edit("strategy", {"name": "Renamed"}, balance_sheet=[{"date": "garbage"}])

    with db.session_scope() as session:
        assert EntitiesRepo().get_by_slug(session, "strategy").name == "Strategy"


def test_edit_unknown_entity(services):
    with pytest.raises(EntityNotFoundError):
        services.catalog.edit("missing", {"name": "x"})


def test_edit_invalidates_entity_and_list_caches(services, make_entity, cache):
    make_entity("strategy", type="PUBLIC")
    detail = services.dataset(ENTITY_DETAIL)
    detail.read("strategy")
    services.catalog.all_entities()
    services.summary.read()
    assert cache.get(detail.cache_key("strategy")) is not None

    services.catalog.edit("strategy", {"name": "Renamed"})

    assert cache.get(detail.cache_key("strategy")) is None
    assert cache.get(ALL_ENTITIES_KEY) is None
    assert cache.get("bitcoin-treasury-summary") is None
    assert services.catalog.all_entities()[0]["name"] == "Renamed"


def test_edit_slug_collision(services, make_entity):
    make_entity("a")
    make_entity("b")

    with pytest.raises(DuplicateSlugError):
        services.catalog.edit("a", {"slug": "b"})
