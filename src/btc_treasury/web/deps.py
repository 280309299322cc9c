"""Shared FastAPI dependencies (DB connection and the service bundle)."""
from __future__ import annotations

import threading
from typing import Optional

from fastapi import Depends, HTTPException

from btc_treasury.config import load_env_file
from btc_treasury.db.db_conn import DbConn
from btc_treasury.sync.registry import TreasuryServices, build_services

# Load environment variables so DbConn can read DB settings.
load_env_file()

_db_conn: Optional[DbConn] = None
_services: Optional[TreasuryServices] = None
_init_lock = threading.Lock()


def get_db_conn() -> DbConn:
    """Provide the process-wide DbConn (lazy init)."""
    global _db_conn

    with _init_lock:
        if _db_conn is None:
            try:
                _db_conn = DbConn()
            except ValueError as exc:
                raise HTTPException(status_code=503, detail=str(exc))
        return _db_conn


def get_services(db: DbConn = Depends(get_db_conn)) -> TreasuryServices:
    """Provide the shared dataset/caching services; built once per process."""
    global _services

    with _init_lock:
        if _services is None:
            _services = build_services(db)
        return _services
