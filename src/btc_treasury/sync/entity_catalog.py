"""Entity listings and admin edits.

Listings are plain read-through caches over the ``entities`` table. Admin
edits take the per-entity lock shared with entity syncs so the two writers
never interleave, then drop every cache key derived from the entity.
"""
from __future__ import annotations

import logging
import random
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from btc_treasury.cache.types import CacheStore
from btc_treasury.db.balance_sheet_repo import BalanceSheetRepo
from btc_treasury.db.db_conn import DbConn
from btc_treasury.db.entities_repo import DEFAULT_LIST_TYPES, AboutItem, EntitiesRepo, LinkItem, NewEntity
from btc_treasury.db.poco.entity import ENTITY_TYPES
from btc_treasury.sync import rows as row_builders
from btc_treasury.sync import shapes
from btc_treasury.sync.errors import EntityNotFoundError
from btc_treasury.sync.locks import KeyedLocks
from btc_treasury.sync.policies import RowPolicy
from btc_treasury.sync.reconcilers import entity_lock_key
from btc_treasury.sync.synced_dataset import read_through

logger = logging.getLogger(__name__)

ALL_ENTITIES_KEY = "entities-all-data"
ADMIN_ENTITIES_PREFIX = "admin-entities"


class DuplicateSlugError(ValueError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Entity with slug '{slug}' already exists")
        self.slug = slug


def admin_entities_key(entity_type: Optional[str]) -> str:
    return f"{ADMIN_ENTITIES_PREFIX}_{(entity_type or 'all').upper()}"


class EntityCatalog:
    def __init__(
        self,
        db: DbConn,
        cache: CacheStore,
        locks: KeyedLocks,
        all_entities_ttl_s: int = 300,
        admin_entities_ttl_s: int = 604800,
        on_entity_changed: Optional[Callable[[str], None]] = None,
        shuffle: Callable[[List[Any]], None] = random.shuffle,
    ) -> None:
        self.db = db
        self.cache = cache
        self.locks = locks
        self.all_entities_ttl_s = all_entities_ttl_s
        self.admin_entities_ttl_s = admin_entities_ttl_s
        self.on_entity_changed = on_entity_changed
        self.shuffle = shuffle
        self.entities = EntitiesRepo()
        self.balance_sheet = BalanceSheetRepo()

    # ----- reads -----

    def list_entities(self, types: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Entities of the given types ordered by holdings, uncached."""
        with self.db.session_scope() as session:
            rows = self.entities.list_by_types(session, list(types) if types else list(DEFAULT_LIST_TYPES))
            return [shapes.entity(r) for r in rows]

    def all_entities(self, force: bool = False) -> List[Dict[str, Any]]:
        def load() -> List[Dict[str, Any]]:
            with self.db.session_scope() as session:
                return [shapes.entity(r) for r in self.entities.list_by_types(session)]

        return read_through(self.cache, ALL_ENTITIES_KEY, self.all_entities_ttl_s, load, force=force)

    def similar(self, slug: str, limit: int = 8) -> List[Dict[str, Any]]:
        with self.db.session_scope() as session:
            entity = self.entities.get_by_slug(session, slug)
            if entity is None:
                raise EntityNotFoundError(slug)
            result = [shapes.entity(r) for r in self.entities.list_similar(session, entity, limit=limit)]
        self.shuffle(result)
        return result

    def admin_entities(self, entity_type: Optional[str] = None, force: bool = False) -> List[Dict[str, Any]]:
        types = [entity_type.upper()] if entity_type else None

        def load() -> List[Dict[str, Any]]:
            with self.db.session_scope() as session:
                return [shapes.entity(r) for r in self.entities.list_by_types(session, types)]

        return read_through(
            self.cache,
            admin_entities_key(entity_type),
            self.admin_entities_ttl_s,
            load,
            force=force,
        )

    # ----- writes -----

    def create(self, new_entity: NewEntity) -> Dict[str, Any]:
        """Insert a new entity. Raises ``DuplicateSlugError`` or ``ValueError`` for a bad type."""
        with self.db.session_scope() as session:
            if self.entities.get_by_slug(session, new_entity.slug) is not None:
                raise DuplicateSlugError(new_entity.slug)
            obj = self.entities.create(session, new_entity)
            session.refresh(obj)
            created = shapes.entity(obj)
        logger.info("Created entity %s (%s)", new_entity.slug, created["type"])
        self.invalidate_lists()
        return created

    def edit(
        self,
        slug: str,
        changes: Mapping[str, Any],
        about: Optional[Sequence[AboutItem]] = None,
        links: Optional[Sequence[LinkItem]] = None,
        balance_sheet: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Apply an admin edit under the entity lock.

        Collections passed as lists replace the stored ones wholesale; ``None``
        leaves them alone. Balance-sheet rows with a bad date abort the edit
        with ``RowValidationError`` and nothing is written.
        """
        with self.locks.hold(entity_lock_key(slug)):
            with self.db.session_scope() as session:
                entity = self.entities.get_by_slug(session, slug)
                if entity is None:
                    raise EntityNotFoundError(slug)

                balance_rows = None
                if balance_sheet is not None:
                    balance_rows = row_builders.build_balance_sheet_rows(
                        balance_sheet, RowPolicy.ABORT_ON_INVALID_ROW, context=f" for entity {slug}"
                    )

                new_slug = changes.get("slug") or slug
                if new_slug != slug and self.entities.get_by_slug(session, new_slug) is not None:
                    raise DuplicateSlugError(new_slug)

                self.entities.update_fields(session, entity, changes)
                if about is not None:
                    self.entities.replace_about(session, entity.id, about)
                if links is not None:
                    self.entities.replace_links(session, entity.id, links)
                if balance_rows is not None:
                    self.balance_sheet.delete_for_entity(session, entity.id)
                    self.balance_sheet.insert_many(session, entity.id, balance_rows)

                session.flush()
                session.expire(entity)
                updated = shapes.entity(self.entities.get_by_slug(session, entity.slug), include_details=True)

        logger.info("Admin edit applied to entity %s", slug)
        self.invalidate_entity(slug)
        if updated["slug"] != slug:
            self.invalidate_entity(updated["slug"])
        return updated

    # ----- invalidation -----

    def invalidate_lists(self) -> None:
        self.cache.delete(ALL_ENTITIES_KEY)
        self.cache.delete(admin_entities_key(None))
        for entity_type in ENTITY_TYPES:
            self.cache.delete(admin_entities_key(entity_type))

    def invalidate_entity(self, slug: str) -> None:
        if self.on_entity_changed is not None:
            self.on_entity_changed(slug)
        self.invalidate_lists()
