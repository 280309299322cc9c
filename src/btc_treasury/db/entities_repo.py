from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from btc_treasury.db.poco.entity import ENTITY_TYPES, LINK_TYPES, Entity, EntityAbout, EntityLink

# Scalar columns an admin edit is allowed to touch.
EDITABLE_FIELDS: Sequence[str] = (
    "slug",
    "name",
    "ticker",
    "type",
    "rank",
    "country_name",
    "country_flag",
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

# Types listed when no explicit filter is given.
DEFAULT_LIST_TYPES: Sequence[str] = ("PUBLIC", "PRIVATE", "GOVERNMENT")


@dataclass(frozen=True)
class NewEntity:
    slug: str
    name: str
    type: str = "PUBLIC"
    ticker: Optional[str] = None
    country_name: Optional[str] = None
    country_flag: Optional[str] = None
    external_slug: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AboutItem:
    title: str = ""
    content: str = ""
    headings: List[str] = field(default_factory=list)
    key_points: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class LinkItem:
    text: str = ""
    url: str = ""
    type: str = "UNOFFICIAL"


def _check_type(entity_type: str) -> str:
    value = (entity_type or "").upper()
    if value not in ENTITY_TYPES:
        raise ValueError(f"Invalid entity type '{entity_type}'. Allowed: {ENTITY_TYPES}")
    return value


class EntitiesRepo:
    """Repository for tracked entities and their curated about/link collections."""

    def get_by_slug(self, session: Session, slug: str) -> Optional[Entity]:
        stmt = (
            select(Entity)
            .where(Entity.slug == slug)
            .options(selectinload(Entity.about), selectinload(Entity.links))
        )
        return session.scalars(stmt).first()

    def create(self, session: Session, new_entity: NewEntity) -> Entity:
        obj = Entity(
            slug=new_entity.slug,
            name=new_entity.name,
            type=_check_type(new_entity.type),
            ticker=new_entity.ticker,
            country_name=new_entity.country_name,
            country_flag=new_entity.country_flag,
            external_slug=new_entity.external_slug,
        )
        for key, value in new_entity.fields.items():
            if key in EDITABLE_FIELDS and value is not None:
                setattr(obj, key, value)
        session.add(obj)
        session.flush()  # ensures PK is populated
        return obj

    def update_fields(self, session: Session, entity: Entity, changes: Mapping[str, Any]) -> Entity:
        """Apply non-empty admin changes; unknown keys are ignored."""
        for key, value in changes.items():
            if key not in EDITABLE_FIELDS or value is None or value == "":
                continue
            if key == "type":
                value = _check_type(value)
            setattr(entity, key, value)
        session.flush()
        return entity

    def list_by_types(self, session: Session, types: Optional[Sequence[str]] = None) -> List[Entity]:
        stmt = select(Entity).order_by(Entity.bitcoin_holdings.desc().nulls_last(), Entity.id.asc())
        if types:
            stmt = stmt.where(Entity.type.in_([t.upper() for t in types]))
        return list(session.scalars(stmt).all())

    def list_similar(self, session: Session, entity: Entity, limit: int = 8) -> List[Entity]:
        stmt = (
            select(Entity)
            .where(Entity.type == entity.type, Entity.slug != entity.slug)
            .order_by(Entity.updated_at.desc())
            .limit(limit)
        )
        return list(session.scalars(stmt).all())

    def holdings_by_type(self, session: Session) -> Dict[str, float]:
        stmt = select(Entity.type, func.coalesce(func.sum(Entity.bitcoin_holdings), 0.0)).group_by(Entity.type)
        totals = {t: 0.0 for t in ENTITY_TYPES}
        for entity_type, total in session.execute(stmt).all():
            totals[entity_type] = float(total or 0.0)
        return totals

    def counts_by_type(self, session: Session) -> Dict[str, int]:
        stmt = select(Entity.type, func.count(Entity.id)).group_by(Entity.type)
        counts = {t: 0 for t in ENTITY_TYPES}
        for entity_type, count in session.execute(stmt).all():
            counts[entity_type] = int(count or 0)
        return counts

    def top_countries(self, session: Session, limit: int = 10) -> List[Dict[str, Any]]:
        count_col = func.count(Entity.id).label("count")
        stmt = (
            select(Entity.country_name, count_col)
            .where(Entity.country_name.is_not(None))
            .group_by(Entity.country_name)
            .order_by(count_col.desc(), Entity.country_name.asc())
            .limit(limit)
        )
        return [{"country_name": name, "count": int(count)} for name, count in session.execute(stmt).all()]

    def about_count(self, session: Session, entity_id: int) -> int:
        stmt = select(func.count()).select_from(EntityAbout).where(EntityAbout.entity_id == entity_id)
        return int(session.scalar(stmt) or 0)

    def links_count(self, session: Session, entity_id: int) -> int:
        stmt = select(func.count()).select_from(EntityLink).where(EntityLink.entity_id == entity_id)
        return int(session.scalar(stmt) or 0)

    def replace_about(self, session: Session, entity_id: int, items: Sequence[AboutItem]) -> int:
        session.execute(delete(EntityAbout).where(EntityAbout.entity_id == entity_id))
        for item in items:
            session.add(
                EntityAbout(
                    entity_id=entity_id,
                    title=item.title,
                    content=item.content,
                    headings=list(item.headings),
                    key_points=list(item.key_points),
                )
            )
        session.flush()
        return len(items)

    def replace_links(self, session: Session, entity_id: int, items: Sequence[LinkItem]) -> int:
        session.execute(delete(EntityLink).where(EntityLink.entity_id == entity_id))
        for item in items:
            link_type = item.type if item.type in LINK_TYPES else "UNOFFICIAL"
            session.add(EntityLink(entity_id=entity_id, text=item.text, url=item.url, type=link_type))
        session.flush()
        return len(items)
