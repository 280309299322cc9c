"""init treasury schema

Revision ID: 7c1e9a2b4d60
Revises: 
Create Date: 2026-10-19 09:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "7c1e9a2b4d60"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "entities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("slug", sa.String(length=200), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("ticker", sa.String(length=30), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="PUBLIC"),
        sa.Column("country_name", sa.String(length=100), nullable=True),
        sa.Column("country_flag", sa.String(length=20), nullable=True),
        sa.Column("external_slug", sa.String(length=200), nullable=True),
        sa.Column("rank", sa.String(length=30), nullable=True),
        sa.Column("holding_since", sa.String(length=50), nullable=True),
        sa.Column("market_cap", sa.Float(), nullable=True),
        sa.Column("enterprise_value", sa.Float(), nullable=True),
        sa.Column("share_price", sa.Float(), nullable=True),
        sa.Column("bitcoin_holdings", sa.Float(), nullable=True),
        sa.Column("btc_per_share", sa.Float(), nullable=True),
        sa.Column("cost_basis", sa.Float(), nullable=True),
        sa.Column("usd_value", sa.Float(), nullable=True),
        sa.Column("ngu", sa.Float(), nullable=True),
        sa.Column("m_nav", sa.Float(), nullable=True),
        sa.Column("market_cap_percentage", sa.Float(), nullable=True),
        sa.Column("supply_percentage", sa.Float(), nullable=True),
        sa.Column("profit_loss_percentage", sa.Float(), nullable=True),
        sa.Column("avg_cost_per_btc", sa.Float(), nullable=True),
        sa.Column("bitcoin_value_in_usd", sa.Float(), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("slug", name="uq_entities_slug"),
    )
    op.create_index("ix_entities_type_holdings", "entities", ["type", "bitcoin_holdings"], unique=False)

    op.create_table(
        "entity_about",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False, server_default=""),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("headings", sa.JSON(), nullable=True),
        sa.Column("key_points", sa.JSON(), nullable=True),
    )

    op.create_table(
        "entity_links",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("text", sa.String(length=300), nullable=False, server_default=""),
        sa.Column("url", sa.String(length=1000), nullable=False, server_default=""),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="UNOFFICIAL"),
    )

    op.create_table(
        "balance_sheet_rows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("btc_balance", sa.Float(), nullable=False),
        sa.Column("change", sa.Float(), nullable=False),
        sa.Column("cost_basis", sa.Float(), nullable=False),
        sa.Column("market_price", sa.Float(), nullable=False),
        sa.Column("stock_price", sa.Float(), nullable=False),
    )
    op.create_index("ix_balance_sheet_entity_date", "balance_sheet_rows", ["entity_id", "date"], unique=False)

    op.create_table(
        "entity_time_series",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("timestamp_token", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("entity_id", "type", "date", name="uq_entity_ts_entity_type_date"),
    )
    op.create_index("ix_entity_ts_entity_date", "entity_time_series", ["entity_id", "date"], unique=False)

    op.create_table(
        "aggregate_holdings",
        sa.Column("timestamp", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_private_held", sa.Float(), nullable=False),
        sa.Column("total_public_held", sa.Float(), nullable=False),
        sa.Column("total_government_held", sa.Float(), nullable=False),
        sa.Column("total_defi_held", sa.Float(), nullable=False),
        sa.Column("total_exchange_held", sa.Float(), nullable=False),
        sa.Column("total_fund_held", sa.Float(), nullable=False),
        sa.Column("total_bitcoin_held", sa.Float(), nullable=False),
    )

    op.create_table(
        "bitcoin_price_history",
        sa.Column("timestamp", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
    )

    op.create_table(
        "sync_states",
        sa.Column("dataset_key", sa.String(length=255), primary_key=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rows_written", sa.Integer(), nullable=False),
    )

    op.create_table(
        "data_cache",
        sa.Column("key", sa.String(length=255), primary_key=True),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_data_cache_expires_at", "data_cache", ["expires_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_data_cache_expires_at", table_name="data_cache")
    op.drop_table("data_cache")
    op.drop_table("sync_states")
    op.drop_table("bitcoin_price_history")
    op.drop_table("aggregate_holdings")
    op.drop_index("ix_entity_ts_entity_date", table_name="entity_time_series")
    op.drop_table("entity_time_series")
    op.drop_index("ix_balance_sheet_entity_date", table_name="balance_sheet_rows")
    op.drop_table("balance_sheet_rows")
    op.drop_table("entity_links")
    op.drop_table("entity_about")
    op.drop_index("ix_entities_type_holdings", table_name="entities")
    op.drop_table("entities")
