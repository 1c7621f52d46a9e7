"""
Tests for p2p_store.py
"""
import json

import pytest
from pydantic import ValidationError

from wallet_gateway.errors import BadRequestError, NotFoundError
from wallet_gateway.kv_store import MemoryKVStore
from wallet_gateway.models import OrderStatus, P2POrderCreate, P2POrderUpdate
from wallet_gateway.p2p_store import INDEX_KEY, OrderRepository, order_key


def create_payload(wallet, **fields):
    return P2POrderCreate.model_validate({"walletAddress": wallet, "token": "USDC", **fields})


class TestOrderRepository:
    """Tests for OrderRepository class."""

    @pytest.fixture
    def kv(self):
        return MemoryKVStore()

    @pytest.fixture
    def repo(self, kv):
        return OrderRepository(kv)

    @pytest.mark.asyncio
    async def test_create_and_get(self, repo, kv, wallet_address):
        """Test a created order is stored under its key and indexed."""
        order = await repo.create(create_payload(wallet_address, amountPKR=100))

        assert (await repo.get(order.id)).amount_pkr == 100
        assert json.loads(await kv.get(INDEX_KEY)) == [order.id]
        assert await kv.get(order_key(order.id)) is not None

    @pytest.mark.asyncio
    async def test_duplicate_id(self, repo, wallet_address):
        """Test a supplied id that already exists is rejected."""
        await repo.create(create_payload(wallet_address, id="dup"))

        with pytest.raises(BadRequestError):
            await repo.create(create_payload(wallet_address, id="dup"))

    @pytest.mark.asyncio
    async def test_reserved_id(self, repo, wallet_address):
        """Test an id that would clash with the index key is rejected."""
        with pytest.raises(BadRequestError):
            await repo.create(create_payload(wallet_address, id="index"))

    @pytest.mark.asyncio
    async def test_get_missing(self, repo):
        """Test unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            await repo.get("missing")

    @pytest.mark.asyncio
    async def test_list_newest_first_and_filters(self, repo, wallet_address):
        """Test listing order and the type/status/token/wallet filters."""
        first = await repo.create(create_payload(wallet_address, id="a", type="BUY"))
        second = await repo.create(create_payload("other", id="b", type="SELL", token="SOL", sellerWallet=wallet_address))
        completed = await repo.update(first.id, P2POrderUpdate.model_validate({"status": "completed"}))
        # Both orders can share a millisecond; age the first one
        await repo.kv.put(order_key("a"), completed.model_copy(update={"created_at": 1}).model_dump_json())

        assert [o.id for o in await repo.list()] == ["b", "a"]
        assert [o.id for o in await repo.list(type="sell")] == ["b"]
        assert [o.id for o in await repo.list(status="pending")] == ["b"]
        assert [o.id for o in await repo.list(token="USDC")] == ["a"]
        assert [o.id for o in await repo.list(wallet=wallet_address)] == ["b", "a"]
        assert second.seller_wallet == wallet_address

    @pytest.mark.asyncio
    async def test_list_invalid_filter(self, repo):
        """Test unknown filter values are rejected."""
        with pytest.raises(BadRequestError):
            await repo.list(status="lost")

    @pytest.mark.asyncio
    async def test_update(self, repo, wallet_address):
        """Test updates persist and keep the order identity."""
        order = await repo.create(create_payload(wallet_address))

        updated = await repo.update(order.id, P2POrderUpdate.model_validate({"status": "cancelled"}))

        assert updated.status == OrderStatus.CANCELLED
        assert updated.created_at == order.created_at
        assert (await repo.get(order.id)).status == OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_update_missing(self, repo):
        """Test updating an unknown order raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await repo.update("missing", P2POrderUpdate())

    @pytest.mark.asyncio
    async def test_delete(self, repo, kv, wallet_address):
        """Test delete removes the record and its index entry."""
        order = await repo.create(create_payload(wallet_address))

        await repo.delete(order.id)

        assert json.loads(await kv.get(INDEX_KEY)) == []
        with pytest.raises(NotFoundError):
            await repo.get(order.id)
        with pytest.raises(NotFoundError):
            await repo.delete(order.id)

    @pytest.mark.asyncio
    async def test_reads_legacy_records(self, repo, kv, wallet_address):
        """Test records written with legacy field names are readable."""
        await kv.put(order_key("old"), json.dumps({
            "id": "old", "creator_wallet": wallet_address, "token": "USDT", "pkr_amount": 50, "createdAt": 10,
        }))
        await kv.put(INDEX_KEY, json.dumps(["old"]))

        orders = await repo.list()

        assert orders[0].id == "old"
        assert orders[0].wallet_address == wallet_address
        assert orders[0].amount_pkr == 50

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["token", "walletAddress", "type", "status", "amountPKR", "amountTokens"])
    async def test_update_rejects_null_required_field(self, repo, wallet_address, field):
        """Test a null required field never reaches the store."""
        order = await repo.create(create_payload(wallet_address))

        with pytest.raises(ValidationError):
            await repo.update(order.id, P2POrderUpdate.model_validate({field: None}))

        assert (await repo.get(order.id)).token == "USDC"

    @pytest.mark.asyncio
    async def test_update_result_is_validated(self, repo, wallet_address):
        """Test an update that breaks the stored schema is a bad request."""
        order = await repo.create(create_payload(wallet_address))
        update = P2POrderUpdate.model_construct(token=None, _fields_set={"token"})

        with pytest.raises(BadRequestError):
            await repo.update(order.id, update)

        assert (await repo.get(order.id)).token == "USDC"

    @pytest.mark.asyncio
    async def test_list_skips_unreadable_records(self, repo, kv, wallet_address):
        """Test one corrupt record does not break the listing."""
        good = await repo.create(create_payload(wallet_address))
        await kv.put(order_key("broken"), json.dumps({"id": "broken", "token": None}))
        await kv.put(INDEX_KEY, json.dumps([good.id, "broken"]))

        assert [o.id for o in await repo.list()] == [good.id]

    @pytest.mark.asyncio
    async def test_active_filter_includes_pending(self, repo, wallet_address):
        """Test status=active also returns pending orders."""
        await repo.create(create_payload(wallet_address, id="p"))
        await repo.create(create_payload(wallet_address, id="a", status="active"))
        await repo.create(create_payload(wallet_address, id="c", status="completed"))

        assert sorted(o.id for o in await repo.list(status="active")) == ["a", "p"]

    @pytest.mark.asyncio
    async def test_index_id_is_not_an_order(self, repo, kv, wallet_address):
        """Test get, update and delete refuse the index key."""
        order = await repo.create(create_payload(wallet_address))

        with pytest.raises(NotFoundError):
            await repo.get("index")
        with pytest.raises(NotFoundError):
            await repo.update("index", P2POrderUpdate.model_validate({"token": "SOL"}))
        with pytest.raises(NotFoundError):
            await repo.delete("index")

        assert json.loads(await kv.get(INDEX_KEY)) == [order.id]
        assert [o.id for o in await repo.list()] == [order.id]
