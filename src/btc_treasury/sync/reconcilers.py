"""Per-dataset reconcilers: fetch, count, write and load one dataset family.

A reconciler knows nothing about caching or staleness; ``SyncedDataset``
decides when to call it.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy.orm import Session

from btc_treasury.api.treasury_api_client import DatasetKind, TreasuryApiClient
from btc_treasury.db.aggregate_holdings_repo import AggregateHoldingsRepo
from btc_treasury.db.balance_sheet_repo import BalanceSheetRepo
from btc_treasury.db.entities_repo import EntitiesRepo
from btc_treasury.db.poco.entity import Entity
from btc_treasury.db.price_history_repo import PriceHistoryRepo
from btc_treasury.db.time_series_repo import TimeSeriesRepo
from btc_treasury.sync import rows as row_builders
from btc_treasury.sync import shapes
from btc_treasury.sync.errors import EntityNotFoundError
from btc_treasury.sync.policies import RowPolicy

logger = logging.getLogger(__name__)


def entity_lock_key(slug: str) -> str:
    """Lock shared by entity syncs and admin edits of the same entity."""
    return f"entity_{slug}"


class Reconciler(Protocol):
    policy: RowPolicy

    def count(self, session: Session, scope: Optional[str]) -> int:
        """Local rows backing the dataset; 0 forces a sync."""
        ...

    def upstream_key(self, session: Session, scope: Optional[str]) -> Optional[str]:
        ...

    def fetch(self, upstream_key: Optional[str]) -> Any:
        ...

    def apply(self, session: Session, scope: Optional[str], payload: Any, synced_at: datetime) -> int:
        """Validate ``payload`` and write it; return the number of rows written."""
        ...

    def load(self, session: Session, scope: Optional[str]) -> Any:
        """Canonical rows in their public JSON shape."""
        ...

    def write_lock(self, scope: Optional[str]) -> Optional[str]:
        ...


class PriceHistoryReconciler:
    """Whole-table replace of the Bitcoin price history."""

    def __init__(self, client: TreasuryApiClient, policy: RowPolicy = RowPolicy.SKIP_INVALID_ROWS) -> None:
        self.client = client
        self.policy = policy
        self.repo = PriceHistoryRepo()

    def count(self, session: Session, scope: Optional[str]) -> int:
        return self.repo.count(session)

    def upstream_key(self, session: Session, scope: Optional[str]) -> Optional[str]:
        return None

    def fetch(self, upstream_key: Optional[str]) -> Any:
        return self.client.fetch_dataset(DatasetKind.SPOT_PRICE_SERIES)

    def apply(self, session: Session, scope: Optional[str], payload: Any, synced_at: datetime) -> int:
        rows = row_builders.build_price_rows(payload or [], self.policy)
        if not rows:
            logger.warning("Price history payload had no usable points; keeping existing rows")
            return 0
        self.repo.delete_all(session)
        inserted = self.repo.insert_many(session, rows)
        logger.info("Inserted %d Bitcoin price records", inserted)
        return inserted

    def load(self, session: Session, scope: Optional[str]) -> List[List[Any]]:
        return shapes.price_points(self.repo.list_ascending(session))

    def write_lock(self, scope: Optional[str]) -> Optional[str]:
        return None


class AggregateHoldingsReconciler:
    """Whole-table replace of sector holdings, merged as a union of timestamps."""

    def __init__(self, client: TreasuryApiClient, policy: RowPolicy = RowPolicy.SKIP_INVALID_ROWS) -> None:
        self.client = client
        self.policy = policy
        self.repo = AggregateHoldingsRepo()

    def count(self, session: Session, scope: Optional[str]) -> int:
        return self.repo.count(session)

    def upstream_key(self, session: Session, scope: Optional[str]) -> Optional[str]:
        return None

    def fetch(self, upstream_key: Optional[str]) -> Any:
        return self.client.fetch_dataset(DatasetKind.AGGREGATE_HOLDINGS_SERIES)

    def apply(self, session: Session, scope: Optional[str], payload: Any, synced_at: datetime) -> int:
        rows = row_builders.merge_aggregate_series(payload or [], self.policy)
        if not rows:
            logger.warning("Aggregate payload had no usable points; keeping existing rows")
            return 0
        self.repo.delete_all(session)
        inserted = self.repo.insert_many(session, rows)
        logger.info("Inserted %d aggregate holdings records", inserted)
        return inserted

    def load(self, session: Session, scope: Optional[str]) -> List[List[Any]]:
        return shapes.aggregate_series(self.repo.list_ascending(session), row_builders.SECTOR_FIELDS)

    def write_lock(self, scope: Optional[str]) -> Optional[str]:
        return None


class _EntityScopedReconciler:
    """Shared plumbing for datasets scoped to one entity slug."""

    def __init__(self, client: TreasuryApiClient, policy: RowPolicy) -> None:
        self.client = client
        self.policy = policy
        self.entities = EntitiesRepo()

    def _entity(self, session: Session, slug: Optional[str]) -> Entity:
        entity = self.entities.get_by_slug(session, slug) if slug else None
        if entity is None:
            raise EntityNotFoundError(slug or "")
        return entity

    def upstream_key(self, session: Session, scope: Optional[str]) -> Optional[str]:
        entity = self._entity(session, scope)
        return entity.external_slug or entity.slug

    def fetch(self, upstream_key: Optional[str]) -> Any:
        bundle = self.client.fetch_dataset(DatasetKind.ENTITY_DETAIL_BUNDLE, upstream_key)
        return row_builders.check_entity_bundle(bundle, context=f" for entity {upstream_key}")

    def write_lock(self, scope: Optional[str]) -> Optional[str]:
        return entity_lock_key(scope or "")


class BalanceSheetReconciler(_EntityScopedReconciler):
    """Replace one entity's balance sheet from its upstream bundle; bad rows are skipped."""

    def __init__(self, client: TreasuryApiClient, policy: RowPolicy = RowPolicy.SKIP_INVALID_ROWS) -> None:
        super().__init__(client, policy)
        self.repo = BalanceSheetRepo()

    def count(self, session: Session, scope: Optional[str]) -> int:
        return self.repo.count_for_entity(session, self._entity(session, scope).id)

    def apply(self, session: Session, scope: Optional[str], payload: Any, synced_at: datetime) -> int:
        entity = self._entity(session, scope)
        raw_rows = ((payload or {}).get("balanceSheet") or {}).get("rows") or []
        rows = row_builders.build_balance_sheet_rows(raw_rows, self.policy, context=f" for entity {entity.slug}")
        entity.last_updated = synced_at
        if not rows:
            logger.info("No balance sheet rows upstream for entity %s; keeping existing rows", entity.slug)
            return 0
        self.repo.delete_for_entity(session, entity.id)
        inserted = self.repo.insert_many(session, entity.id, rows)
        logger.info("Updated %d balance sheet records for entity %s", inserted, entity.slug)
        return inserted

    def load(self, session: Session, scope: Optional[str]) -> List[Dict[str, Any]]:
        entity = self._entity(session, scope)
        return shapes.balance_sheet(self.repo.list_for_entity(session, entity.id))


class TimeSeriesReconciler(_EntityScopedReconciler):
    """Replace one entity's named time series from its upstream bundle; bad points are skipped."""

    def __init__(self, client: TreasuryApiClient, policy: RowPolicy = RowPolicy.SKIP_INVALID_ROWS) -> None:
        super().__init__(client, policy)
        self.repo = TimeSeriesRepo()

    def count(self, session: Session, scope: Optional[str]) -> int:
        return self.repo.count_for_entity(session, self._entity(session, scope).id)

    def apply(self, session: Session, scope: Optional[str], payload: Any, synced_at: datetime) -> int:
        entity = self._entity(session, scope)
        timeseries = (payload or {}).get("timeseries") or {}
        rows = row_builders.build_time_series_rows(timeseries, self.policy, context=f" for entity {entity.slug}")
        entity.last_updated = synced_at
        if not rows:
            logger.info("No time series points upstream for entity %s; keeping existing rows", entity.slug)
            return 0
        self.repo.delete_for_entity(session, entity.id)
        inserted = self.repo.insert_many(session, entity.id, rows)
        logger.info("Updated %d timeseries records for entity %s", inserted, entity.slug)
        return inserted

    def load(self, session: Session, scope: Optional[str]) -> List[Dict[str, Any]]:
        entity = self._entity(session, scope)
        return shapes.time_series(self.repo.list_for_entity(session, entity.id))


class EntityDetailReconciler(_EntityScopedReconciler):
    """
    Snapshot merge of an entity bundle.

    Scalar fields are always overwritten. About text, links, balance sheet
    and time series are written only while the entity has none locally, so
    curated admin edits are never clobbered. Any invalid ledger row aborts
    the whole sync.
    """

    def __init__(self, client: TreasuryApiClient, policy: RowPolicy = RowPolicy.ABORT_ON_INVALID_ROW) -> None:
        super().__init__(client, policy)
        self.balance_sheet = BalanceSheetRepo()
        self.time_series = TimeSeriesRepo()

    def count(self, session: Session, scope: Optional[str]) -> int:
        entity = self._entity(session, scope)
        # Missing about text or links both force a sync
        return min(self.entities.about_count(session, entity.id), self.entities.links_count(session, entity.id))

    def apply(self, session: Session, scope: Optional[str], payload: Any, synced_at: datetime) -> int:
        entity = self._entity(session, scope)
        bundle = payload or {}
        about = bundle.get("aboutEntity") or {}
        context = f" for entity {entity.slug}"

        has_about = self.entities.about_count(session, entity.id) > 0
        has_links = self.entities.links_count(session, entity.id) > 0
        has_balance = self.balance_sheet.count_for_entity(session, entity.id) > 0
        has_series = self.time_series.count_for_entity(session, entity.id) > 0

        # Validate before touching anything so an abort leaves no partial write
        balance_rows = []
        if not has_balance:
            raw_rows = (bundle.get("balanceSheet") or {}).get("rows") or []
            balance_rows = row_builders.build_balance_sheet_rows(raw_rows, self.policy, context=context)
        series_rows = []
        if not has_series:
            series_rows = row_builders.build_time_series_rows(bundle.get("timeseries") or {}, self.policy, context=context)

        for name, value in row_builders.snapshot_fields(bundle).items():
            setattr(entity, name, value)
        entity.last_updated = synced_at

        written = 0
        about_rows = row_builders.about_items(about)
        if not has_about and about_rows:
            written += self.entities.replace_about(session, entity.id, about_rows)
        link_rows = row_builders.link_items(about)
        if not has_links and link_rows:
            written += self.entities.replace_links(session, entity.id, link_rows)
        if balance_rows:
            written += self.balance_sheet.insert_many(session, entity.id, balance_rows)
        if series_rows:
            written += self.time_series.insert_many(session, entity.id, series_rows)

        session.flush()
        session.expire(entity, ["about", "links"])
        logger.info("Entity update completed for %s (%d nested rows written)", entity.slug, written)
        return written

    def load(self, session: Session, scope: Optional[str]) -> Dict[str, Any]:
        entity = self._entity(session, scope)
        return shapes.entity(entity, include_details=True)
