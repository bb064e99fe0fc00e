"""
Typed records and boundary parsers.

Rows coming out of the authoritative store (ORM rows turned into dicts) or
the in-memory demo store are loosely shaped. Everything the services and
views touch goes through the parse_* functions below first, so a missing or
malformed field fails fast with RecordParseError instead of leaking None into
status or price arithmetic.

Records serialize with camelCase aliases (paymentStatus, deliveryType, ...),
matching what the web client already consumes.
"""
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from domain.constants import DB_TO_STATUS, DEFAULT_BRAND, DEFAULT_STORE_RATING, STATUS_TO_DB
from domain.enums import (
    DeliveryType, OrderMode, OrderStatus, PaymentStatus, Role, StoreType,
)
from domain.errors import RecordParseError


class Record(BaseModel):
    """Shared base — construct by Python name or camelCase alias."""
    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        from_attributes=True,
    )


# ── Geography ───────────────────────────────────────────────────────

class GeoPoint(Record):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


# ── Catalog / Inventory ─────────────────────────────────────────────

class BrandOption(Record):
    name: str
    price: float = Field(..., ge=0)


class CatalogProduct(Record):
    id: str
    name: str
    price: float = Field(..., ge=0)
    mrp: Optional[float] = Field(default=None, ge=0)
    emoji: str = "📦"
    category: str = "General"
    description: Optional[str] = None
    brands: list[BrandOption] = Field(default_factory=list)
    is_custom: bool = False


class BrandVariant(Record):
    """Per-brand listing override inside one inventory item."""
    price: float = Field(..., ge=0)
    mrp: Optional[float] = Field(default=None, ge=0)
    stock: int = Field(0, ge=0)
    in_stock: bool = True


class InventoryItem(Record):
    product_id: str
    store_id: str
    name: str
    category: str = "General"
    emoji: str = "📦"
    description: Optional[str] = None
    base_price: float = Field(..., ge=0)
    brands: list[BrandOption] = Field(default_factory=list)
    store_price: float = Field(..., ge=0)
    mrp: Optional[float] = Field(default=None, ge=0)
    in_stock: bool = False
    stock: int = Field(0, ge=0)
    is_active: bool = False
    is_custom: bool = False
    brand_details: dict[str, BrandVariant] = Field(default_factory=dict)


# ── Store / Profile ─────────────────────────────────────────────────

class Store(Record):
    id: str
    name: str
    address: str = ""
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    is_open: bool = True
    type: StoreType = StoreType.GENERAL
    rating: float = DEFAULT_STORE_RATING
    upi_id: Optional[str] = None
    owner_id: Optional[str] = None
    distance: Optional[str] = None
    available_product_ids: list[str] = Field(default_factory=list)


class Profile(Record):
    id: str
    role: Role = Role.CUSTOMER
    full_name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""


# ── Orders ──────────────────────────────────────────────────────────

class LineItem(Record):
    """A cart line frozen into an order. price is the snapshot unit price."""
    product_id: str
    original_product_id: str
    name: str
    brand: str = DEFAULT_BRAND
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    emoji: str = "📦"


class PaymentSplit(Record):
    store_amount: float = Field(..., ge=0)
    store_upi: Optional[str] = None
    handling_fee: Optional[float] = Field(default=None, ge=0)
    admin_upi: Optional[str] = None
    delivery_fee: float = Field(0.0, ge=0)
    driver_upi: Optional[str] = None


class Order(Record):
    id: str
    created_at: datetime
    items: list[LineItem] = Field(..., min_length=1)
    total: float = Field(..., ge=0)
    status: OrderStatus
    payment_status: PaymentStatus
    mode: OrderMode
    delivery_type: DeliveryType = DeliveryType.INSTANT
    scheduled_time: Optional[datetime] = None
    payment_deadline: Optional[datetime] = None
    delivery_address: Optional[str] = None
    store_id: str
    store_name: str = ""
    customer_id: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    store_location: Optional[GeoPoint] = None
    customer_location: Optional[GeoPoint] = None
    splits: Optional[PaymentSplit] = None
    version: int = 1


class ChangeEvent(Record):
    """One row change pushed through the change feed."""
    table: str
    event: str
    row: dict[str, Any]


# ════════════════════════════════════════════════════════════════════
# Parsers: row dict → record
# ════════════════════════════════════════════════════════════════════


def _problems(exc: PydanticValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    ]


def _validate(model: type[Record], data: dict, table: str, identifier: Any, problems: list[str]):
    try:
        record = model.model_validate(data)
    except PydanticValidationError as exc:
        raise RecordParseError(table, _str_or_none(identifier), problems + _problems(exc)) from exc
    if problems:
        raise RecordParseError(table, _str_or_none(identifier), problems)
    return record


def _str_or_none(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _point(lat: Any, lng: Any) -> Optional[dict]:
    if lat is None or lng is None:
        return None
    return {"lat": lat, "lng": lng}


def parse_status(raw: Any) -> Optional[OrderStatus]:
    """Map a storage code ('packing') or display label ('Preparing') to a status."""
    if isinstance(raw, OrderStatus):
        return raw
    if raw is None:
        return None
    text = str(raw)
    status = DB_TO_STATUS.get(text.lower())
    if status is not None:
        return status
    if text == "Pending":
        return OrderStatus.PLACED
    try:
        return OrderStatus(text)
    except ValueError:
        return None


def parse_order_row(row: Mapping[str, Any]) -> Order:
    """Convert an orders row into an Order, failing with RecordParseError."""
    problems: list[str] = []
    status = parse_status(row.get("status"))
    if status is None:
        problems.append(f"status: unknown value {row.get('status')!r}")

    items = row.get("items")
    if not isinstance(items, list):
        problems.append("items: expected a list of line items")
        items = []

    data = {
        "id": row.get("id"),
        "created_at": row.get("created_at"),
        "items": items,
        "total": row.get("total_amount"),
        "status": status or OrderStatus.PLACED,
        "payment_status": row.get("payment_status"),
        "mode": row.get("mode"),
        "delivery_type": row.get("delivery_type") or DeliveryType.INSTANT,
        "scheduled_time": row.get("scheduled_time"),
        "payment_deadline": row.get("payment_deadline"),
        "delivery_address": row.get("delivery_address"),
        "store_id": row.get("store_id"),
        "store_name": row.get("store_name") or "",
        "customer_id": row.get("customer_id"),
        "customer_name": row.get("customer_name"),
        "customer_phone": row.get("customer_phone"),
        "store_location": _point(row.get("store_lat"), row.get("store_lng")),
        "customer_location": _point(row.get("delivery_lat"), row.get("delivery_lng")),
        "splits": row.get("splits"),
        "version": row.get("version") or 1,
    }
    return _validate(Order, data, "orders", row.get("id"), problems)


def order_to_row(order: Order) -> dict[str, Any]:
    """Inverse of parse_order_row — the storage shape of an Order."""
    return {
        "id": order.id,
        "created_at": order.created_at,
        "items": [item.model_dump() for item in order.items],
        "total_amount": order.total,
        "status": STATUS_TO_DB[order.status],
        "payment_status": order.payment_status.value,
        "mode": order.mode.value,
        "delivery_type": order.delivery_type.value,
        "scheduled_time": order.scheduled_time,
        "payment_deadline": order.payment_deadline,
        "delivery_address": order.delivery_address,
        "store_id": order.store_id,
        "store_name": order.store_name,
        "customer_id": order.customer_id,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "store_lat": order.store_location.lat if order.store_location else None,
        "store_lng": order.store_location.lng if order.store_location else None,
        "delivery_lat": order.customer_location.lat if order.customer_location else None,
        "delivery_lng": order.customer_location.lng if order.customer_location else None,
        "splits": order.splits.model_dump() if order.splits else None,
        "version": order.version,
    }


def parse_product_row(row: Mapping[str, Any]) -> CatalogProduct:
    data = {
        "id": row.get("id"),
        "name": row.get("name"),
        "price": row.get("base_price"),
        "mrp": row.get("mrp"),
        "emoji": row.get("image_url") or "📦",
        "category": row.get("category") or "General",
        "description": row.get("description"),
        "brands": row.get("brands") or [],
        "is_custom": bool(row.get("is_custom")),
    }
    return _validate(CatalogProduct, data, "products", row.get("id"), [])


def parse_inventory_row(row: Optional[Mapping[str, Any]], product: CatalogProduct, store_id: str) -> InventoryItem:
    """
    Merge a catalog product with the store's inventory row.

    A product the store never listed (row is None) comes back unlisted:
    not offered, zero stock, priced at the catalog price.
    """
    if row is None:
        return InventoryItem(
            product_id=product.id,
            store_id=store_id,
            name=product.name,
            category=product.category,
            emoji=product.emoji,
            description=product.description,
            base_price=product.price,
            brands=product.brands,
            store_price=product.price,
            mrp=product.mrp if product.mrp is not None else product.price,
            in_stock=False,
            stock=0,
            is_active=False,
            is_custom=product.is_custom,
        )

    problems: list[str] = []
    brand_data = row.get("brand_data") or {}
    if not isinstance(brand_data, Mapping):
        problems.append("brand_data: expected an object keyed by brand name")
        brand_data = {}

    data = {
        "product_id": product.id,
        "store_id": row.get("store_id") or store_id,
        "name": product.name,
        "category": product.category,
        "emoji": product.emoji,
        "description": product.description,
        "base_price": product.price,
        "brands": product.brands,
        "store_price": row.get("price"),
        "mrp": row.get("mrp") if row.get("mrp") is not None else (product.mrp or product.price),
        "in_stock": bool(row.get("in_stock")),
        "stock": row.get("stock") or 0,
        "is_active": row.get("is_active", True),
        "is_custom": product.is_custom,
        "brand_details": dict(brand_data),
    }
    return _validate(InventoryItem, data, "inventory", f"{store_id}/{product.id}", problems)


def inventory_to_row(item: InventoryItem) -> dict[str, Any]:
    return {
        "store_id": item.store_id,
        "product_id": item.product_id,
        "price": item.store_price,
        "mrp": item.mrp,
        "in_stock": item.in_stock,
        "stock": item.stock,
        "is_active": item.is_active,
        "brand_data": {
            name: variant.model_dump() for name, variant in item.brand_details.items()
        },
    }


def parse_store_row(row: Mapping[str, Any], available_product_ids: Optional[list[str]] = None) -> Store:
    data = {
        "id": row.get("id"),
        "name": row.get("name"),
        "address": row.get("address") or "",
        "lat": row.get("lat"),
        "lng": row.get("lng"),
        "is_open": row.get("is_open", True),
        "type": row.get("type") or StoreType.GENERAL,
        "rating": row.get("rating") or DEFAULT_STORE_RATING,
        "upi_id": row.get("upi_id"),
        "owner_id": row.get("owner_id"),
        "available_product_ids": available_product_ids or [],
    }
    return _validate(Store, data, "stores", row.get("id"), [])


def parse_profile_row(row: Mapping[str, Any]) -> Profile:
    data = {
        "id": row.get("id"),
        "role": row.get("role") or Role.CUSTOMER,
        "full_name": row.get("full_name") or "",
        "phone": row.get("phone_number") or "",
        "email": row.get("email") or "",
        "address": row.get("address") or "",
    }
    return _validate(Profile, data, "profiles", row.get("id"), [])
