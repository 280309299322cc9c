"""Tests for the database status CLI."""
from datetime import datetime, timezone

from btc_treasury import main_db
from btc_treasury.db.sync_states_repo import SyncStatesRepo


def test_main_creates_schema_and_reports_empty_store(capsys):
    assert main_db.main(["--db-url", "sqlite://", "--create-schema"]) == 0

    out = capsys.readouterr().out
    assert "Connection test: OK" in out
    assert "Alembic revision: none applied" in out
    assert "Price history points: 0" in out
    assert "No dataset has been synced yet" in out


def test_status_lists_sync_states_in_key_order(db, make_entity, capsys):
    make_entity("strategy")
    synced_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with db.session_scope() as session:
        SyncStatesRepo().mark_synced(session, "entity-detail_strategy", synced_at, 3)
        SyncStatesRepo().mark_synced(session, "aggregate-balances", synced_at, 10)

    main_db.print_status(db)

    lines = capsys.readouterr().out.splitlines()
    assert lines[2].startswith("Entities: 1 (")
    assert lines[3:] == [
        "  aggregate-balances: 2024-01-01 00:00:00 (10 rows)",
        "  entity-detail_strategy: 2024-01-01 00:00:00 (3 rows)",
    ]
