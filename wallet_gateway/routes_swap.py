"""
Swap quote/execute routes and direct Jupiter, Meteora and Pump.fun proxies.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request

from .auth import require_api_key
from .balances import validate_address
from .errors import BadRequestError, NoRouteError
from .routes_wallet import send_signed
from .services import Services, get_services
from .swap_router import QuoteRequest
from .utils import first_present

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _quote_request(values: Dict[str, Any]) -> QuoteRequest:
    return QuoteRequest.from_params(
        first_present(values.get("inputMint"), values.get("input_mint")),
        first_present(values.get("outputMint"), values.get("output_mint")),
        values.get("amount"),
        first_present(values.get("slippageBps"), values.get("slippage_bps"))
    )


@router.get("/swap/quote")
async def swap_quote(request: Request, services: Services = Depends(get_services)):
    return await services.swap_router.get_quote(_quote_request(request.query_params))


@router.post("/swap/execute")
async def swap_execute(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    payload = payload or {}
    return await services.swap_router.execute(
        first_present(payload.get("quoteResponse"), payload.get("quote")),
        first_present(payload.get("userPublicKey"), payload.get("wallet")),
        swap_mode=payload.get("swapMode"),
        wrap_and_unwrap_sol=payload.get("wrapAndUnwrapSol", True) is not False
    )


@router.post("/swap/submit", dependencies=[Depends(require_api_key)])
async def swap_submit(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    return await send_signed(services, payload or {})


@router.get("/jupiter/quote")
async def jupiter_quote(request: Request, services: Services = Depends(get_services)):
    quote_request = _quote_request(request.query_params)
    quote = await services.jupiter.get_quote(
        quote_request.input_mint,
        quote_request.output_mint,
        quote_request.amount,
        quote_request.slippage_bps
    )
    if quote is None:
        raise NoRouteError("No route found", extra=quote_request.to_dict())
    return quote


@router.get("/jupiter/price")
async def jupiter_price(ids: str = "", services: Services = Depends(get_services)):
    mints = [i.strip() for i in ids.split(",") if i.strip()]
    if not mints:
        raise BadRequestError("Missing 'ids' parameter")
    return {"data": await services.jupiter.get_price(mints)}


@router.get("/swap/meteora/quote")
async def meteora_quote(request: Request, services: Services = Depends(get_services)):
    quote_request = _quote_request(request.query_params)
    quote = await services.meteora.get_quote(
        quote_request.input_mint,
        quote_request.output_mint,
        quote_request.amount
    )
    if quote is None:
        raise NoRouteError("No Meteora route found", extra=quote_request.to_dict())
    return quote


@router.post("/swap/meteora/swap")
async def meteora_swap(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    if not payload:
        raise BadRequestError("Missing request body")
    return await services.meteora.build_swap(payload)


async def _pumpfun_quote(values: Dict[str, Any], services: Services) -> Dict[str, Any]:
    quote_request = _quote_request(values)
    quote = await services.pumpfun.get_quote(
        quote_request.input_mint,
        quote_request.output_mint,
        quote_request.amount
    )
    if quote is None:
        raise NoRouteError("No pumpfun route found for this pair", extra=quote_request.to_dict())
    return quote


@router.get("/pumpfun/quote")
async def pumpfun_quote(request: Request, services: Services = Depends(get_services)):
    return await _pumpfun_quote(request.query_params, services)


@router.post("/pumpfun/quote")
async def pumpfun_quote_post(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    return await _pumpfun_quote(payload or {}, services)


async def _pumpfun_trade(operation: str, wallet_field: str, payload: Dict[str, Any], services: Services):
    mint = payload.get("mint")
    amount = payload.get("amount")
    wallet = payload.get(wallet_field)
    if not mint or amount in (None, "") or not wallet:
        raise BadRequestError(f"Missing required fields: mint, amount, {wallet_field}")
    validate_address(wallet)
    try:
        slippage_bps = int(payload.get("slippageBps", 350))
        priority_fee = int(payload.get("priorityFeeLamports", 10000))
    except (TypeError, ValueError):
        raise BadRequestError("slippageBps and priorityFeeLamports must be integers")

    return await services.pumpfun.trade(
        operation,
        mint,
        amount,
        wallet,
        slippage_bps=slippage_bps,
        priority_fee_lamports=priority_fee
    )


@router.post("/pumpfun/buy")
async def pumpfun_buy(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    return await _pumpfun_trade("buy", "buyer", payload or {}, services)


@router.post("/pumpfun/sell")
async def pumpfun_sell(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    return await _pumpfun_trade("sell", "seller", payload or {}, services)


@router.get("/pumpfun/curve")
async def pumpfun_curve(mint: Optional[str] = None, services: Services = Depends(get_services)):
    if not mint:
        raise BadRequestError("Missing 'mint' parameter")
    return await services.pumpfun.get_curve(validate_address(mint))
