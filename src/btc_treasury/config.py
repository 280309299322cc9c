"""Utility helpers for loading project configuration.

This module is the single source of truth for environment-driven
configuration such as database connection details, upstream endpoints,
freshness windows and cache lifetimes.

Usage:
- Call ``load_env_file()`` once at startup to load ``resources/.env``.
- Use ``get_env`` for simple lookups.
- Use the convenience helpers like ``get_upstream_config`` and
  ``get_database_url`` for normalized access.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def load_env_file(env_path: Optional[Path] = None) -> None:
    """
    Load environment variables from an .env file when it exists.

    Parameters:
        env_path: Optional path to the .env file. Defaults to resources/.env.
    """
    env_file = Path(env_path or "resources/.env")
    if env_file.exists():
        load_dotenv(env_file)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Fetch an environment variable with an optional default."""
    return os.getenv(name, default)


def _get_float(name: str, default: float) -> float:
    raw = get_env(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; LOG_LEVEL decides the threshold."""
    logging.basicConfig(
        level=(level or get_env("LOG_LEVEL", "INFO") or "INFO").upper(),
        format=LOG_FORMAT,
    )


# ----- Database helpers -----

def get_database_url() -> Optional[str]:
    """Return a database URL for PostgreSQL.

    Prefers ``DATABASE_URL`` if present; otherwise constructs a DSN from:
    - DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD
    """
    db_url = get_env("DATABASE_URL")
    if db_url:
        return db_url

    host = get_env("DB_HOST")
    port = get_env("DB_PORT") or "5432"
    name = get_env("DB_NAME")
    user = get_env("DB_USER")
    password = get_env("DB_PASSWORD")

    if not (host and name and user and password):
        return None

    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"


# ----- Upstream helpers -----

@dataclass(frozen=True)
class UpstreamConfig:
    base_url: str
    timeout_s: float
    cmc_base_url: str
    cmc_api_key: Optional[str]


def get_upstream_config() -> UpstreamConfig:
    """Return upstream API settings.

    Keys:
    - TREASURY_API_BASE_URL
    - UPSTREAM_TIMEOUT_SECONDS
    - CMC_BASE_URL
    - CMC_API_KEY
    """
    return UpstreamConfig(
        base_url=get_env("TREASURY_API_BASE_URL", "https://api.droomdroom.online/api/v1") or "",
        timeout_s=_get_float("UPSTREAM_TIMEOUT_SECONDS", 5.0),
        cmc_base_url=get_env("CMC_BASE_URL", "https://pro-api.coinmarketcap.com") or "",
        cmc_api_key=get_env("CMC_API_KEY"),
    )


# ----- Sync / cache helpers -----

@dataclass(frozen=True)
class SyncSettings:
    # Freshness windows decide when durable rows must be re-synced.
    price_freshness_s: float = 5 * 60
    entity_freshness_s: float = 12 * 60 * 60
    # Cache TTLs are independent of the freshness windows.
    price_history_ttl_s: int = 10 * 60
    aggregate_ttl_s: int = 10 * 60
    spot_price_ttl_s: int = 10 * 60
    entity_ttl_s: int = 5 * 60
    summary_ttl_s: int = 5 * 60
    all_entities_ttl_s: int = 5 * 60
    admin_entities_ttl_s: int = 7 * 24 * 60 * 60
    busy_ttl_s: int = 60
    lock_timeout_s: float = 30.0
    fallback_btc_price: float = 100_000.0


def get_sync_settings() -> SyncSettings:
    """Return freshness windows and cache TTLs, overridable from the environment."""
    defaults = SyncSettings()
    return SyncSettings(
        price_freshness_s=_get_float("PRICE_FRESHNESS_SECONDS", defaults.price_freshness_s),
        entity_freshness_s=_get_float("ENTITY_FRESHNESS_SECONDS", defaults.entity_freshness_s),
        price_history_ttl_s=int(_get_float("PRICE_HISTORY_CACHE_TTL_SECONDS", defaults.price_history_ttl_s)),
        aggregate_ttl_s=int(_get_float("AGGREGATE_CACHE_TTL_SECONDS", defaults.aggregate_ttl_s)),
        spot_price_ttl_s=int(_get_float("SPOT_PRICE_CACHE_TTL_SECONDS", defaults.spot_price_ttl_s)),
        entity_ttl_s=int(_get_float("ENTITY_CACHE_TTL_SECONDS", defaults.entity_ttl_s)),
        summary_ttl_s=int(_get_float("SUMMARY_CACHE_TTL_SECONDS", defaults.summary_ttl_s)),
        all_entities_ttl_s=int(_get_float("ALL_ENTITIES_CACHE_TTL_SECONDS", defaults.all_entities_ttl_s)),
        admin_entities_ttl_s=int(_get_float("ADMIN_ENTITIES_CACHE_TTL_SECONDS", defaults.admin_entities_ttl_s)),
        busy_ttl_s=int(_get_float("SYNC_BUSY_TTL_SECONDS", defaults.busy_ttl_s)),
        lock_timeout_s=_get_float("SYNC_LOCK_TIMEOUT_SECONDS", defaults.lock_timeout_s),
        fallback_btc_price=_get_float("FALLBACK_BTC_PRICE", defaults.fallback_btc_price),
    )


def get_cache_backend() -> str:
    """Return the cache backend name: ``memory`` (default) or ``sql``."""
    return (get_env("CACHE_BACKEND", "memory") or "memory").strip().lower()
