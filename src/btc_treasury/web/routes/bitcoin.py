from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from btc_treasury.sync.registry import AGGREGATE_BALANCES, PRICE_HISTORY, TreasuryServices
from btc_treasury.web.deps import get_services
from btc_treasury.web.responses import ok

router = APIRouter(tags=["bitcoin"])


@router.get("/bitcoin/historical-price")
def historical_price(force: bool = False, services: TreasuryServices = Depends(get_services)) -> Dict[str, Any]:
    """Daily Bitcoin price history as ``[[epoch_ms, price], ...]`` ascending."""
    return ok(services.dataset(PRICE_HISTORY).read(force=force))


@router.get("/aggregate-balances")
def aggregate_balances(force: bool = False, services: TreasuryServices = Depends(get_services)) -> Dict[str, Any]:
    """Holdings per sector as ``[[sector, [[epoch_ms, value], ...]], ...]``."""
    return ok(services.dataset(AGGREGATE_BALANCES).read(force=force))


@router.get("/bitcoin/price")
def spot_price(force: bool = False, services: TreasuryServices = Depends(get_services)) -> Dict[str, Any]:
    """Latest Bitcoin quote from CoinMarketCap."""
    return ok(services.spot_price.get(force=force))


@router.get("/summary")
def summary(force: bool = False, services: TreasuryServices = Depends(get_services)) -> Dict[str, Any]:
    return ok(services.summary.read(force=force))
