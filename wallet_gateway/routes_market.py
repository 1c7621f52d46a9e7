"""
Health, DexScreener and price routes.
"""
import time
from typing import Optional

from fastapi import APIRouter, Depends, Request

from .errors import BadRequestError
from .services import Services, get_services
from .utils import first_present, now_ms

router = APIRouter()


@router.get("/health")
@router.get("/api/health")
@router.get("/api/ping")
async def health(request: Request):
    return {
        "status": "ok",
        "timestamp": now_ms(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
    }


@router.get("/api/dexscreener/tokens")
async def dexscreener_tokens(mints: str = "", services: Services = Depends(get_services)):
    mint_list = [m.strip() for m in mints.split(",") if m.strip()]
    if not mint_list:
        raise BadRequestError("Missing 'mints' parameter", details="Expected comma-separated token mints")
    return await services.dexscreener.get_tokens(mint_list)


@router.get("/api/dexscreener/search")
async def dexscreener_search(q: str = "", services: Services = Depends(get_services)):
    return await services.dexscreener.search(q)


@router.get("/api/sol/price")
async def sol_price(services: Services = Depends(get_services)):
    return (await services.prices.get_sol_price()).to_dict()


@router.get("/api/token/price")
async def token_price(request: Request, services: Services = Depends(get_services)):
    params = request.query_params
    token = first_present(params.get("token"), params.get("mint"), params.get("symbol"))
    if not token:
        raise BadRequestError("Missing 'token' or 'mint' parameter")
    return (await services.prices.get_token_price(token)).to_dict()


@router.get("/api/exchange-rate")
async def exchange_rate(
    token: Optional[str] = "FIXERCOIN",
    currency: Optional[str] = "PKR",
    services: Services = Depends(get_services)
):
    return await services.prices.get_exchange_rate(token, currency)
