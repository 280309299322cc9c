from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

# alembic.ini puts src/ on sys.path
from btc_treasury.config import get_database_url, load_env_file
from btc_treasury.db import models  # noqa: F401  # register every table
from btc_treasury.db.base import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def get_url() -> str:
    load_env_file()
    url = get_database_url()
    if not url:
        raise RuntimeError("Database URL not configured. Set DATABASE_URL or DB_* in resources/.env")
    return url


def run_migrations() -> None:
    options = {"target_metadata": Base.metadata, "compare_type": True}
    if context.is_offline_mode():
        context.configure(url=get_url(), literal_binds=True, **options)
        with context.begin_transaction():
            context.run_migrations()
        return

    engine = create_engine(get_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **options)
        with context.begin_transaction():
            context.run_migrations()


run_migrations()
