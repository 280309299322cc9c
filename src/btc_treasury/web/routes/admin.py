from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from btc_treasury.db.entities_repo import AboutItem, LinkItem, NewEntity
from btc_treasury.sync.entity_catalog import DuplicateSlugError
from btc_treasury.sync.locks import LockTimeout
from btc_treasury.sync.registry import TreasuryServices
from btc_treasury.web.deps import get_services
from btc_treasury.web.responses import ok

router = APIRouter(prefix="/admin", tags=["admin"])


class EntityFields(BaseModel):
    ticker: Optional[str] = None
    rank: Optional[str] = None
    country_name: Optional[str] = None
    country_flag: Optional[str] = None
    external_slug: Optional[str] = None
    holding_since: Optional[str] = None
    market_cap: Optional[float] = None
    enterprise_value: Optional[float] = None
    share_price: Optional[float] = None
    bitcoin_holdings: Optional[float] = None
    btc_per_share: Optional[float] = None
    cost_basis: Optional[float] = None
    usd_value: Optional[float] = None
    ngu: Optional[float] = None
    m_nav: Optional[float] = None
    market_cap_percentage: Optional[float] = None
    supply_percentage: Optional[float] = None
    profit_loss_percentage: Optional[float] = None
    avg_cost_per_btc: Optional[float] = None
    bitcoin_value_in_usd: Optional[float] = None


class CreateEntityRequest(EntityFields):
    slug: str
    name: str
    type: str = "PUBLIC"


class AboutPayload(BaseModel):
    title: str = ""
    content: str = ""
    headings: List[str] = []
    key_points: List[str] = []


class LinkPayload(BaseModel):
    text: str = ""
    url: str = ""
    type: str = "UNOFFICIAL"


class EditEntityRequest(EntityFields):
    slug: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    about: Optional[List[AboutPayload]] = None
    links: Optional[List[LinkPayload]] = None
    # Raw upstream-style rows: date, btcBalance, change, costBasis, marketPrice, stockPrice
    balance_sheet: Optional[List[Dict[str, Any]]] = None


@router.get("/entities")
def list_admin_entities(
    type: Optional[str] = None,
    force: bool = False,
    services: TreasuryServices = Depends(get_services),
) -> Dict[str, Any]:
    return ok(services.catalog.admin_entities(type, force=force))


@router.post("/entities", status_code=status.HTTP_201_CREATED)
def create_entity(payload: CreateEntityRequest, services: TreasuryServices = Depends(get_services)) -> Dict[str, Any]:
    """Create an entity; the slug must be unique."""
    fields = payload.model_dump(
        exclude={"slug", "name", "type", "ticker", "country_name", "country_flag", "external_slug"},
        exclude_none=True,
    )
    new_entity = NewEntity(
        slug=payload.slug,
        name=payload.name,
        type=payload.type,
        ticker=payload.ticker,
        country_name=payload.country_name,
        country_flag=payload.country_flag,
        external_slug=payload.external_slug,
        fields=fields,
    )
    try:
        return ok(services.catalog.create(new_entity))
    except DuplicateSlugError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.put("/entities/{slug}")
def edit_entity(
    slug: str,
    payload: EditEntityRequest,
    services: TreasuryServices = Depends(get_services),
) -> Dict[str, Any]:
    """
    Edit scalar fields and optionally replace about text, links or the balance sheet.

    Runs under the same per-entity lock as entity syncs.
    """
    changes = payload.model_dump(exclude={"about", "links", "balance_sheet"}, exclude_none=True)
    about = None
    if payload.about is not None:
        about = [AboutItem(title=a.title, content=a.content, headings=a.headings, key_points=a.key_points) for a in payload.about]
    links = None
    if payload.links is not None:
        links = [LinkItem(text=link.text, url=link.url, type=link.type.upper()) for link in payload.links]

    try:
        updated = services.catalog.edit(slug, changes, about=about, links=links, balance_sheet=payload.balance_sheet)
    except DuplicateSlugError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except LockTimeout as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return ok(updated)
