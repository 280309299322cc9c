from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import relationship

from btc_treasury.db.base import Base

# Classification tags used by the dashboard and the summary statistics.
ENTITY_TYPES = ("PUBLIC", "PRIVATE", "GOVERNMENT", "DEFI", "EXCHANGE", "ETF")
LINK_TYPES = ("OFFICIAL", "UNOFFICIAL")


class Entity(Base):
    __tablename__ = "entities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Identifier assigned by the upstream treasury API.
    external_id = Column(String(64), nullable=True)
    slug = Column(String(200), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    ticker = Column(String(30), nullable=True)
    type = Column(String(20), nullable=False, server_default="PUBLIC")
    country_name = Column(String(100), nullable=True)
    country_flag = Column(String(20), nullable=True)
    # Slug used on the upstream API when it differs from ours.
    external_slug = Column(String(200), nullable=True)
    rank = Column(String(30), nullable=True)
    holding_since = Column(String(50), nullable=True)

    market_cap = Column(Float, nullable=True)
    enterprise_value = Column(Float, nullable=True)
    share_price = Column(Float, nullable=True)
    bitcoin_holdings = Column(Float, nullable=True)
    btc_per_share = Column(Float, nullable=True)
    cost_basis = Column(Float, nullable=True)
    usd_value = Column(Float, nullable=True)
    ngu = Column(Float, nullable=True)
    m_nav = Column(Float, nullable=True)
    market_cap_percentage = Column(Float, nullable=True)
    supply_percentage = Column(Float, nullable=True)
    profit_loss_percentage = Column(Float, nullable=True)
    avg_cost_per_btc = Column(Float, nullable=True)
    bitcoin_value_in_usd = Column(Float, nullable=True)

    last_updated = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    about = relationship("EntityAbout", back_populates="entity", cascade="all, delete-orphan")
    links = relationship("EntityLink", back_populates="entity", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_entities_type_holdings", "type", "bitcoin_holdings"),
    )


class EntityAbout(Base):
    __tablename__ = "entity_about"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(Integer, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(300), nullable=False, server_default="")
    content = Column(Text, nullable=False, server_default="")
    headings = Column(JSON, nullable=True)
    key_points = Column(JSON, nullable=True)

    entity = relationship("Entity", back_populates="about")


class EntityLink(Base):
    __tablename__ = "entity_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(Integer, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    text = Column(String(300), nullable=False, server_default="")
    url = Column(String(1000), nullable=False, server_default="")
    type = Column(String(20), nullable=False, server_default="UNOFFICIAL")  # OFFICIAL | UNOFFICIAL

    entity = relationship("Entity", back_populates="links")
