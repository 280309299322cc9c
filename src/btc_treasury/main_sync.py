"""CLI: Force a sync of one or more treasury datasets from the upstream API.

Runs the same reconcilers the HTTP read paths use, ignoring freshness
windows, then drops the affected cache entries so the next read republishes.
"""
from __future__ import annotations

import argparse
from typing import List, Optional, Sequence

from btc_treasury.config import configure_logging, load_env_file
from btc_treasury.db.db_conn import DbConn
from btc_treasury.db.entities_repo import EntitiesRepo
from btc_treasury.sync.errors import EntityNotFoundError
from btc_treasury.sync.registry import ENTITY_DATASETS, GLOBAL_DATASETS, build_services
from btc_treasury.sync.synced_dataset import SyncOutcome


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Force-sync treasury datasets from upstream into the DB")
    p.add_argument(
        "datasets",
        nargs="*",
        choices=[*GLOBAL_DATASETS, *ENTITY_DATASETS],
        help="Datasets to sync (default: the global price and aggregate series)",
    )
    p.add_argument("--slug", dest="slugs", action="append", default=[], help="Entity slug for per-entity datasets (repeatable)")
    p.add_argument("--all-entities", action="store_true", help="Sync per-entity datasets for every stored entity")
    p.add_argument("--create-schema", action="store_true", help="Create missing tables before syncing (dev only)")
    p.add_argument("--echo", action="store_true", help="Enable SQLAlchemy engine echo")
    return p.parse_args(argv)


def _entity_slugs(db: DbConn, args: argparse.Namespace) -> List[str]:
    if not args.all_entities:
        return list(args.slugs)
    with db.session_scope() as session:
        return [e.slug for e in EntitiesRepo().list_by_types(session)]


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_env_file()
    configure_logging()
    args = parse_args(argv)

    try:
        db = DbConn(echo=args.echo)
    except ValueError as exc:
        print(f"Failed to configure engine: {exc}")
        return 2
    if args.create_schema:
        db.create_all()

    services = build_services(db)
    names = list(args.datasets or GLOBAL_DATASETS)
    entity_names = [n for n in names if n in ENTITY_DATASETS]
    slugs = _entity_slugs(db, args) if entity_names else []
    if entity_names and not slugs:
        print(f"Datasets {entity_names} need --slug or --all-entities")
        return 2

    failures = 0
    for name in names:
        dataset = services.dataset(name)
        scopes = slugs if name in ENTITY_DATASETS else [None]
        for scope in scopes:
            label = dataset.cache_key(scope)
            try:
                outcome = dataset.refresh(scope, force=True)
            except EntityNotFoundError as exc:
                print(f"{label}: {exc}")
                failures += 1
                continue
            dataset.invalidate(scope)
            if name in ENTITY_DATASETS:
                services.invalidate_entity(scope)
            print(f"{label}: {outcome.value}")
            if outcome is SyncOutcome.FAILED:
                failures += 1

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
