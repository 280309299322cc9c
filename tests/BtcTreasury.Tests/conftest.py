"""Shared fixtures: in-memory SQLite, a controllable clock and fake upstream clients."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from btc_treasury.api.treasury_api_client import DatasetKind
from btc_treasury.cache.memory import InMemoryCache
from btc_treasury.config import SyncSettings
from btc_treasury.db.db_conn import DbConn
from btc_treasury.db.entities_repo import EntitiesRepo, NewEntity
from btc_treasury.sync.registry import build_services


class FakeClock:
    """Wall clock for staleness checks and a monotonic view of it for the cache."""

    def __init__(self, start=None) -> None:
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        self._origin = self.current

    def __call__(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return (self.current - self._origin).total_seconds()

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


class FakeTreasuryApi:
    """Lightweight stub emulating TreasuryApiClient.fetch_dataset."""

    def __init__(self, prices=None, aggregate=None, bundles=None, exception=None) -> None:
        self.prices = prices if prices is not None else []
        self.aggregate = aggregate if aggregate is not None else []
        self.bundles = bundles or {}
        self.exception = exception
        self.calls = []

    def fetch_dataset(self, kind, key=None):
        self.calls.append((kind, key))
        if self.exception:
            raise self.exception
        if kind is DatasetKind.SPOT_PRICE_SERIES:
            return self.prices
        if kind is DatasetKind.AGGREGATE_HOLDINGS_SERIES:
            return self.aggregate
        return self.bundles.get(key, {})

    def calls_for(self, kind):
        return [c for c in self.calls if c[0] is kind]


class FakeCmcClient:
    """Stub for CmcQuotesClient.get_quote."""

    def __init__(self, quote=None, exception=None) -> None:
        self.quote = quote if quote is not None else {"price": 60000.0, "price_change_24h": 1.5}
        self.exception = exception
        self.calls = 0

    def get_quote(self, cmc_id="1"):
        self.calls += 1
        if self.exception:
            raise self.exception
        return dict(self.quote)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db():
    conn = DbConn(db_url="sqlite://")
    conn.create_all()
    yield conn
    conn.engine.dispose()


@pytest.fixture
def cache(clock):
    return InMemoryCache(clock=clock.monotonic)


@pytest.fixture
def fake_api():
    return FakeTreasuryApi()


@pytest.fixture
def fake_cmc():
    return FakeCmcClient()


@pytest.fixture
def settings():
    return SyncSettings(lock_timeout_s=2.0)


@pytest.fixture
def services(db, cache, fake_api, fake_cmc, settings, clock):
    return build_services(db, cache=cache, client=fake_api, cmc_client=fake_cmc, settings=settings, clock=clock)


@pytest.fixture
def make_entity(db):
    """Insert an entity and return its slug."""

    def _make(slug="strategy", name="Strategy", type="PUBLIC", **fields):
        with db.session_scope() as session:
            EntitiesRepo().create(
                session,
                NewEntity(
                    slug=slug,
                    name=name,
                    type=type,
                    ticker=fields.pop("ticker", None),
                    country_name=fields.pop("country_name", None),
                    external_slug=fields.pop("external_slug", None),
                    fields=fields,
                ),
            )
        return slug

    return _make
