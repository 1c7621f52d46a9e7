"""
P2P order repository on top of a KVStore.

Layout: ``orders:<id>`` holds one order as JSON, ``orders:index`` holds the
JSON list of all order ids.
"""
import asyncio
import json
import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

from .errors import BadRequestError, NotFoundError
from .kv_store import KVStore
from .models import OrderStatus, OrderType, P2POrder, P2POrderCreate, P2POrderUpdate, order_from_legacy

logger = logging.getLogger(__name__)

ORDER_PREFIX = "orders:"
INDEX_KEY = "orders:index"


def order_key(order_id: str) -> str:
    return f"{ORDER_PREFIX}{order_id}"


def is_reserved_id(order_id: str) -> bool:
    return order_key(order_id) == INDEX_KEY


def _matching_statuses(status: OrderStatus) -> Tuple[OrderStatus, ...]:
    # Clients ask for "active" orders and expect new, pending ones too
    if status == OrderStatus.ACTIVE:
        return (OrderStatus.ACTIVE, OrderStatus.PENDING)
    return (status,)


class OrderRepository:
    """CRUD for P2P orders. Writes are serialized within the process."""

    def __init__(self, kv: KVStore):
        self.kv = kv
        self._lock = asyncio.Lock()

    async def _load_index(self) -> List[str]:
        raw = await self.kv.get(INDEX_KEY)
        if not raw:
            return []
        return json.loads(raw)

    async def _save_index(self, ids: List[str]):
        await self.kv.put(INDEX_KEY, json.dumps(ids))

    async def _load(self, order_id: str) -> Optional[P2POrder]:
        raw = await self.kv.get(order_key(order_id))
        if raw is None:
            return None
        try:
            return P2POrder.model_validate_json(raw)
        except ValidationError:
            # Records written by older clients use legacy field names
            return order_from_legacy(json.loads(raw))

    async def _save(self, order: P2POrder):
        await self.kv.put(order_key(order.id), order.model_dump_json())

    async def create(self, payload: P2POrderCreate) -> P2POrder:
        """
        Store a new order.

        Raises:
            BadRequestError: An order with the supplied id already exists
        """
        async with self._lock:
            order = P2POrder.from_create(payload)
            if is_reserved_id(order.id):
                raise BadRequestError(f"Reserved order id: {order.id}")
            if await self.kv.get(order_key(order.id)) is not None:
                raise BadRequestError(f"Order {order.id} already exists")
            await self._save(order)
            ids = await self._load_index()
            ids.append(order.id)
            await self._save_index(ids)

        logger.info(f"Created P2P order {order.id} ({order.type.value} {order.token})")
        return order

    async def get(self, order_id: str) -> P2POrder:
        if is_reserved_id(order_id):
            raise NotFoundError("Order not found", details=order_id)
        order = await self._load(order_id)
        if order is None:
            raise NotFoundError("Order not found", details=order_id)
        return order

    async def list(
        self,
        type: Optional[str] = None,
        status: Optional[str] = None,
        token: Optional[str] = None,
        wallet: Optional[str] = None
    ) -> List[P2POrder]:
        """
        List orders newest first.

        Args:
            type: BUY / SELL (case-insensitive)
            status: Order status (case-insensitive); ACTIVE also matches PENDING
            token: Token symbol
            wallet: Matches the creator, buyer or seller wallet

        Raises:
            BadRequestError: Unknown type or status filter
        """
        try:
            order_type = OrderType(type.upper()) if type else None
            order_status = OrderStatus(status.upper()) if status else None
        except ValueError as e:
            raise BadRequestError("Invalid filter", details=str(e))

        orders = []
        for order_id in await self._load_index():
            try:
                order = await self._load(order_id)
            except ValueError as e:
                logger.error(f"Skipping unreadable order {order_id}: {e}")
                continue
            if order is None:
                logger.warning(f"Order index references missing order {order_id}")
                continue
            if order_type and order.type != order_type:
                continue
            if order_status and order.status not in _matching_statuses(order_status):
                continue
            if token and order.token != token:
                continue
            if wallet and not order.involves(wallet):
                continue
            orders.append(order)

        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    async def update(self, order_id: str, update: P2POrderUpdate) -> P2POrder:
        async with self._lock:
            order = await self.get(order_id)
            try:
                updated = order.apply(update)
            except ValidationError as e:
                raise BadRequestError(
                    "Invalid order update",
                    details=e.errors(include_url=False, include_context=False)
                )
            await self._save(updated)
        logger.info(f"Updated P2P order {order_id}: {sorted(update.changes())}")
        return updated

    async def delete(self, order_id: str):
        async with self._lock:
            if is_reserved_id(order_id) or await self.kv.get(order_key(order_id)) is None:
                raise NotFoundError("Order not found", details=order_id)
            await self.kv.delete(order_key(order_id))
            ids = [i for i in await self._load_index() if i != order_id]
            await self._save_index(ids)
        logger.info(f"Deleted P2P order {order_id}")
