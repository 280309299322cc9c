from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from btc_treasury.sync.registry import (
    ENTITY_BALANCE_SHEET,
    ENTITY_DETAIL,
    ENTITY_TIMESERIES,
    TreasuryServices,
)
from btc_treasury.web.deps import get_services
from btc_treasury.web.responses import ok

router = APIRouter(tags=["entities"])


def _require_slug(slug: Optional[str]) -> str:
    if not slug or not slug.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug is required")
    return slug.strip()


@router.get("/entities/companies")
def list_companies(
    type: Optional[List[str]] = Query(default=None),
    services: TreasuryServices = Depends(get_services),
) -> Dict[str, Any]:
    """Entities filtered by type; public, private and government by default."""
    return ok(services.catalog.list_entities(type))


@router.get("/entities/all")
def list_all(force: bool = False, services: TreasuryServices = Depends(get_services)) -> Dict[str, Any]:
    return ok(services.catalog.all_entities(force=force))


@router.get("/entities/similar/{slug}")
def similar_entities(slug: str, services: TreasuryServices = Depends(get_services)) -> Dict[str, Any]:
    """Up to eight other entities of the same type, in random order."""
    return ok(services.catalog.similar(slug))


@router.get("/entity")
def entity_detail(
    slug: Optional[str] = None,
    force: bool = False,
    services: TreasuryServices = Depends(get_services),
) -> Dict[str, Any]:
    return ok(services.dataset(ENTITY_DETAIL).read(_require_slug(slug), force=force))


@router.get("/entity/balance-sheet")
def entity_balance_sheet(
    slug: Optional[str] = None,
    force: bool = False,
    services: TreasuryServices = Depends(get_services),
) -> Dict[str, Any]:
    """Balance sheet rows for one entity, newest first."""
    return ok(services.dataset(ENTITY_BALANCE_SHEET).read(_require_slug(slug), force=force))


@router.get("/entity/timeseries")
def entity_timeseries(
    slug: Optional[str] = None,
    force: bool = False,
    services: TreasuryServices = Depends(get_services),
) -> Dict[str, Any]:
    """Named time series points for one entity, oldest first."""
    return ok(services.dataset(ENTITY_TIMESERIES).read(_require_slug(slug), force=force))
