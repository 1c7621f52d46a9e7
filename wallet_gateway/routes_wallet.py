"""
Wallet, raw RPC and transaction relay routes.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from .auth import require_api_key
from .errors import BadRequestError
from .services import Services, get_services
from .utils import first_present

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

WALLET_PARAMS = ("publicKey", "wallet", "address", "walletAddress")
SIGNED_TX_FIELDS = ("signedBase64", "signedTx", "tx", "signedTransaction", "serializedTransaction")


def wallet_param(values: Dict[str, Any]) -> Optional[str]:
    return first_present(*(values.get(name) for name in WALLET_PARAMS))


def signed_transaction(payload: Dict[str, Any]) -> str:
    """Signed transaction string from any accepted body field."""
    encoded = first_present(*(payload.get(name) for name in SIGNED_TX_FIELDS))
    if not encoded or not isinstance(encoded, str):
        raise BadRequestError(
            "Missing signed transaction",
            details=f"Provide one of: {', '.join(SIGNED_TX_FIELDS)}"
        )
    return encoded


async def send_signed(services: Services, payload: Dict[str, Any]) -> Dict[str, Any]:
    result = await services.relay.send(
        signed_transaction(payload),
        skip_preflight=bool(payload.get("skipPreflight", False))
    )
    return {
        "success": True,
        "result": result.signature,
        "signature": result.signature,
        "source": result.endpoint,
    }


@router.post("/solana-rpc")
async def solana_rpc(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    if not payload:
        raise BadRequestError("Missing request body")
    return await services.rpc.proxy(payload)


@router.get("/wallet/balance")
async def wallet_balance(request: Request, services: Services = Depends(get_services)):
    return await services.balances.get_sol_balance(wallet_param(request.query_params))


@router.post("/wallet/balance")
async def wallet_balance_post(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    return await services.balances.get_sol_balance(wallet_param(payload or {}))


@router.get("/wallet/all-balances")
async def all_balances(request: Request, services: Services = Depends(get_services)):
    return await services.balances.get_all_balances(wallet_param(request.query_params))


@router.get("/wallet/token-accounts")
async def token_accounts(request: Request, services: Services = Depends(get_services)):
    return await services.balances.get_token_accounts(wallet_param(request.query_params))


@router.get("/wallet/transactions")
async def wallet_transactions(request: Request, services: Services = Depends(get_services)):
    params = request.query_params
    limit = params.get("limit") or "20"
    try:
        limit_value = int(limit)
    except ValueError:
        raise BadRequestError("Invalid limit", details=limit)
    return await services.balances.get_transactions(
        wallet_param(params),
        mint=params.get("mint") or None,
        limit=limit_value
    )


@router.post("/solana-send", dependencies=[Depends(require_api_key)])
async def solana_send(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    return await send_signed(services, payload or {})


@router.post("/solana-simulate", dependencies=[Depends(require_api_key)])
async def solana_simulate(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    simulation = await services.relay.simulate(signed_transaction(payload or {}))
    if simulation["err"]:
        logger.info(f"Simulation failed on {simulation['endpoint']}: {simulation['err']}")
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Transaction simulation failed",
                "simulationError": simulation["err"],
                "logs": simulation["logs"],
                "insufficientLamports": simulation["insufficient_lamports"],
                "source": simulation["endpoint"],
            }
        )
    return {
        "success": True,
        "logs": simulation["logs"],
        "unitsConsumed": simulation["units_consumed"],
        "source": simulation["endpoint"],
    }
