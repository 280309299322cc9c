"""CLI: check the treasury store and report what has been synced.

Runs a connectivity check, prints the Alembic revision when migrations have
been applied, then lists row counts for the global datasets and the last
successful sync of every dataset key.
"""
from __future__ import annotations

import argparse
from typing import Optional, Sequence

from btc_treasury.config import get_database_url, load_env_file
from btc_treasury.db.aggregate_holdings_repo import AggregateHoldingsRepo
from btc_treasury.db.db_conn import DbConn
from btc_treasury.db.entities_repo import EntitiesRepo
from btc_treasury.db.price_history_repo import PriceHistoryRepo
from btc_treasury.db.sync_states_repo import SyncStatesRepo


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check the treasury database and list sync state")
    parser.add_argument("--db-url", help="Override DATABASE_URL")
    parser.add_argument("--echo", action="store_true", help="Enable SQLAlchemy engine echo")
    parser.add_argument("--create-schema", action="store_true", help="Create missing tables without Alembic (dev only)")
    return parser.parse_args(argv)


def print_status(db: DbConn) -> None:
    with db.session_scope() as session:
        print(f"Price history points: {PriceHistoryRepo().count(session)}")
        print(f"Aggregate holdings points: {AggregateHoldingsRepo().count(session)}")
        counts = EntitiesRepo().counts_by_type(session)
        print(f"Entities: {sum(counts.values())} ({', '.join(f'{t}={n}' for t, n in counts.items())})")

        states = SyncStatesRepo().list_all(session)
        if not states:
            print("No dataset has been synced yet")
        for state in states:
            print(f"  {state.dataset_key}: {state.last_synced_at:%Y-%m-%d %H:%M:%S} ({state.rows_written} rows)")


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_env_file()
    args = parse_args(argv)

    url = args.db_url or get_database_url()
    if not url:
        print("DATABASE_URL not set or incomplete DB_* variables. Check resources/.env.")
        return 2

    db = DbConn(db_url=url, echo=args.echo)
    if not db.test_connection():
        print("Connection test: FAILED")
        return 1
    print("Connection test: OK")

    if args.create_schema:
        db.create_all()
        print("Schema created (missing tables only)")

    rev = db.get_alembic_revision()
    print(f"Alembic revision: {rev or 'none applied'}")

    print_status(db)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
