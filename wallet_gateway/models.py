"""
Canonical P2P order schema.

Stored and handled internally with snake_case field names only. Legacy
client field names (walletAddress / creator_wallet, amountPKR / pkr_amount,
payment_method / paymentMethodId, ...) are accepted on input through
validation aliases, and ``P2POrder.to_api`` renders camelCase on output.
"""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .utils import first_present, new_id, now_ms


class OrderType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


_STATUS_SYNONYMS = {"CANCELED": "CANCELLED", "OPEN": "ACTIVE"}


def _parse_order_type(value: Any) -> Any:
    if value is None or isinstance(value, OrderType):
        return value
    return str(value).strip().upper()


def _parse_order_status(value: Any) -> Any:
    if value is None or isinstance(value, OrderStatus):
        return value
    status = str(value).strip().upper()
    return _STATUS_SYNONYMS.get(status, status)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


# Canonical field -> accepted input names, canonical name first
FIELD_ALIASES = {
    "id": ("id", "orderId", "order_id"),
    "type": ("type", "orderType", "order_type"),
    "wallet_address": ("wallet_address", "walletAddress", "creator_wallet", "creatorWallet"),
    "token": ("token", "asset"),
    "amount_tokens": ("amount_tokens", "amountTokens", "token_amount", "tokenAmount"),
    "amount_pkr": ("amount_pkr", "amountPKR", "pkr_amount", "amountPkr"),
    "price_pkr_per_quote": ("price_pkr_per_quote", "pricePKRPerQuote", "pricePkrPerQuote"),
    "payment_method_id": ("payment_method_id", "paymentMethodId", "payment_method", "paymentMethod"),
    "status": ("status",),
    "online": ("online",),
    "account_name": ("account_name", "accountName"),
    "account_number": ("account_number", "accountNumber"),
    "buyer_wallet": ("buyer_wallet", "buyerWallet"),
    "seller_wallet": ("seller_wallet", "sellerWallet"),
    "admin_wallet": ("admin_wallet", "adminWallet"),
}

# Fields every stored order must carry a value for
REQUIRED_ORDER_FIELDS = ("type", "wallet_address", "token", "amount_tokens", "amount_pkr", "status")

# Canonical field -> camelCase output name
API_FIELD_NAMES = {
    "id": "id",
    "type": "type",
    "wallet_address": "walletAddress",
    "token": "token",
    "amount_tokens": "amountTokens",
    "amount_pkr": "amountPKR",
    "price_pkr_per_quote": "pricePKRPerQuote",
    "payment_method_id": "paymentMethodId",
    "status": "status",
    "online": "online",
    "account_name": "accountName",
    "account_number": "accountNumber",
    "buyer_wallet": "buyerWallet",
    "seller_wallet": "sellerWallet",
    "admin_wallet": "adminWallet",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


class _OrderInput(BaseModel):
    """Shared input validators for create/update payloads."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    @field_validator("type", mode="before", check_fields=False)
    @classmethod
    def _type(cls, value: Any) -> Any:
        return _parse_order_type(value)

    @field_validator("status", mode="before", check_fields=False)
    @classmethod
    def _status(cls, value: Any) -> Any:
        return _parse_order_status(value)

    @field_validator("price_pkr_per_quote", "payment_method_id", "account_name", "account_number",
                     "buyer_wallet", "seller_wallet", "admin_wallet", mode="before", check_fields=False)
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)


class P2POrderCreate(_OrderInput):
    """Create payload; accepts every legacy field name."""

    id: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["id"]))
    type: OrderType = Field(OrderType.BUY, validation_alias=_alias(*FIELD_ALIASES["type"]))
    wallet_address: str = Field(min_length=1, validation_alias=_alias(*FIELD_ALIASES["wallet_address"]))
    token: str = Field(min_length=1, validation_alias=_alias(*FIELD_ALIASES["token"]))
    amount_tokens: float = Field(0, ge=0, validation_alias=_alias(*FIELD_ALIASES["amount_tokens"]))
    amount_pkr: float = Field(0, ge=0, validation_alias=_alias(*FIELD_ALIASES["amount_pkr"]))
    price_pkr_per_quote: Optional[float] = Field(None, ge=0, validation_alias=_alias(*FIELD_ALIASES["price_pkr_per_quote"]))
    payment_method_id: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["payment_method_id"]))
    status: OrderStatus = Field(OrderStatus.PENDING, validation_alias=_alias(*FIELD_ALIASES["status"]))
    online: Optional[bool] = Field(None, validation_alias=_alias(*FIELD_ALIASES["online"]))
    account_name: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["account_name"]))
    account_number: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["account_number"]))
    buyer_wallet: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["buyer_wallet"]))
    seller_wallet: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["seller_wallet"]))
    admin_wallet: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["admin_wallet"]))

    @field_validator("amount_tokens", "amount_pkr", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Any:
        # Legacy clients send "" for an unset amount
        return 0 if _blank_to_none(value) is None else value


class P2POrderUpdate(_OrderInput):
    """Partial update; only fields present in the payload are applied."""

    type: Optional[OrderType] = Field(None, validation_alias=_alias(*FIELD_ALIASES["type"]))
    wallet_address: Optional[str] = Field(None, min_length=1, validation_alias=_alias(*FIELD_ALIASES["wallet_address"]))
    token: Optional[str] = Field(None, min_length=1, validation_alias=_alias(*FIELD_ALIASES["token"]))
    amount_tokens: Optional[float] = Field(None, ge=0, validation_alias=_alias(*FIELD_ALIASES["amount_tokens"]))
    amount_pkr: Optional[float] = Field(None, ge=0, validation_alias=_alias(*FIELD_ALIASES["amount_pkr"]))
    price_pkr_per_quote: Optional[float] = Field(None, ge=0, validation_alias=_alias(*FIELD_ALIASES["price_pkr_per_quote"]))
    payment_method_id: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["payment_method_id"]))
    status: Optional[OrderStatus] = Field(None, validation_alias=_alias(*FIELD_ALIASES["status"]))
    online: Optional[bool] = Field(None, validation_alias=_alias(*FIELD_ALIASES["online"]))
    account_name: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["account_name"]))
    account_number: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["account_number"]))
    buyer_wallet: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["buyer_wallet"]))
    seller_wallet: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["seller_wallet"]))
    admin_wallet: Optional[str] = Field(None, validation_alias=_alias(*FIELD_ALIASES["admin_wallet"]))

    @field_validator(*REQUIRED_ORDER_FIELDS)
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        # Omit a field to leave it unchanged; null would erase a required value
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class P2POrder(BaseModel):
    """A stored P2P order. Timestamps are epoch milliseconds."""

    model_config = ConfigDict(extra="forbid")

    id: str
    type: OrderType
    wallet_address: str
    token: str
    amount_tokens: float = 0
    amount_pkr: float = 0
    price_pkr_per_quote: Optional[float] = None
    payment_method_id: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    online: Optional[bool] = None
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    buyer_wallet: Optional[str] = None
    seller_wallet: Optional[str] = None
    admin_wallet: Optional[str] = None
    created_at: int
    updated_at: int

    @classmethod
    def from_create(cls, payload: P2POrderCreate, now: Optional[int] = None) -> "P2POrder":
        now = now if now is not None else now_ms()
        fields = payload.model_dump(exclude={"id"})
        return cls(id=payload.id or new_id("order"), created_at=now, updated_at=now, **fields)

    def apply(self, update: P2POrderUpdate, now: Optional[int] = None) -> "P2POrder":
        """
        Return a validated copy with the update applied; id and created_at never change.

        Raises:
            pydantic.ValidationError: The merged order breaks the schema
        """
        changes = update.changes()
        changes["updated_at"] = now if now is not None else now_ms()
        return P2POrder.model_validate({**self.model_dump(), **changes})

    def involves(self, wallet: str) -> bool:
        return wallet in (self.wallet_address, self.buyer_wallet, self.seller_wallet)

    def to_api(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        return {API_FIELD_NAMES[name]: value for name, value in data.items()}


def order_from_legacy(data: Dict[str, Any]) -> P2POrder:
    """
    Convert a record in any historical field naming into a canonical order.

    Raises:
        pydantic.ValidationError: Record lacks a wallet or token, or has bad values
    """
    payload = P2POrderCreate.model_validate(data)
    created_at = first_present(data.get("created_at"), data.get("createdAt"))
    updated_at = first_present(data.get("updated_at"), data.get("updatedAt"))
    now = now_ms()
    created = int(created_at) if created_at is not None else now
    order = P2POrder.from_create(payload, now=created)
    return order.model_copy(update={"updated_at": int(updated_at) if updated_at is not None else created})
