"""
P2P order REST routes backed by the KV order repository.
"""
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, ValidationError

from .errors import BadRequestError
from .models import P2POrderCreate, P2POrderUpdate
from .services import Services, get_services

router = APIRouter(prefix="/api/p2p")

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: Type[ModelT], payload: Optional[Dict[str, Any]]) -> ModelT:
    """Validate a JSON body, turning schema errors into a 400."""
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        raise BadRequestError(
            "Invalid order payload",
            details=e.errors(include_url=False, include_context=False)
        )


@router.get("/orders")
async def list_orders(
    type: Optional[str] = None,
    status: Optional[str] = None,
    token: Optional[str] = None,
    wallet: Optional[str] = None,
    services: Services = Depends(get_services)
):
    orders = await services.orders.list(type=type, status=status, token=token, wallet=wallet)
    return {"orders": [order.to_api() for order in orders], "count": len(orders)}


@router.post("/orders", status_code=201)
async def create_order(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    order = await services.orders.create(parse_payload(P2POrderCreate, payload))
    return {"order": order.to_api()}


@router.get("/orders/{order_id}")
async def get_order(order_id: str, services: Services = Depends(get_services)):
    return {"order": (await services.orders.get(order_id)).to_api()}


@router.put("/orders/{order_id}")
async def update_order(
    order_id: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    services: Services = Depends(get_services)
):
    order = await services.orders.update(order_id, parse_payload(P2POrderUpdate, payload))
    return {"order": order.to_api()}


@router.delete("/orders/{order_id}")
async def delete_order(order_id: str, services: Services = Depends(get_services)):
    await services.orders.delete(order_id)
    return {"ok": True}
