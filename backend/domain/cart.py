"""
Cart → order line items, pricing snapshot and payment split.

Prices are resolved from the store's listing at checkout and frozen into the
line items; the order total is computed once from those snapshots and never
recomputed.
"""
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from pydantic import Field

from domain.constants import DEFAULT_BRAND
from domain.enums import DeliveryType, OrderMode, OrderStatus, PaymentStatus
from domain.errors import ConflictError, PaymentRequiredError, ValidationError
from domain.records import GeoPoint, InventoryItem, LineItem, Order, PaymentSplit, Record, Store
from utils.timeutil import to_naive_utc


class CartLine(Record):
    """What the customer put in the cart: catalog product, brand, quantity."""
    product_id: str
    store_id: str
    quantity: int = Field(..., ge=1)
    brand: str = DEFAULT_BRAND


def unit_price(item: InventoryItem, brand: str) -> float:
    """Price for one unit of `brand`: the brand override if listed, else the store price."""
    variant = item.brand_details.get(brand)
    if variant is not None:
        if not variant.in_stock:
            raise ValidationError(f"{item.name} ({brand}) is out of stock", field="items")
        return variant.price
    return item.store_price


def build_line_items(
    cart: Iterable[CartLine],
    listings: Mapping[str, InventoryItem],
    store_id: str,
) -> list[LineItem]:
    """
    Validate the cart against the store's listings and snapshot prices.

    Lines for the same product and brand are merged.
    """
    merged: dict[tuple[str, str], LineItem] = {}
    for line in cart:
        if line.store_id != store_id:
            raise ValidationError(
                "Cart contains items from more than one store",
                field="items",
                details={"store_id": store_id, "other_store_id": line.store_id},
            )
        item = listings.get(line.product_id)
        if item is None or not item.is_active or not item.in_stock:
            raise ValidationError(f"Product {line.product_id} is not available at this store", field="items")

        key = (line.product_id, line.brand)
        if key in merged:
            existing = merged[key]
            merged[key] = existing.model_copy(update={"quantity": existing.quantity + line.quantity})
            continue
        merged[key] = LineItem(
            product_id=f"{line.product_id}-{line.brand}",
            original_product_id=line.product_id,
            name=item.name,
            brand=line.brand,
            quantity=line.quantity,
            price=unit_price(item, line.brand),
            emoji=item.emoji,
        )
    return list(merged.values())


def order_total(items: Iterable[LineItem]) -> float:
    return round(sum(item.price * item.quantity for item in items), 2)


def payment_deadline(scheduled_time: Optional[datetime], minutes: int) -> Optional[datetime]:
    """Scheduled orders must be paid `minutes` before the slot."""
    if scheduled_time is None:
        return None
    return scheduled_time - timedelta(minutes=minutes)


def default_split(total: float, store: Store) -> PaymentSplit:
    """Everything to the store, no handling or delivery fee."""
    return PaymentSplit(store_amount=total, store_upi=store.upi_id, delivery_fee=0.0)


def assemble_order(
    *,
    order_id: str,
    created_at: datetime,
    customer_id: str,
    store: Optional[Store],
    cart: list[CartLine],
    listings: Mapping[str, InventoryItem],
    mode: OrderMode,
    delivery_type: DeliveryType = DeliveryType.INSTANT,
    scheduled_time: Optional[datetime] = None,
    delivery_address: Optional[str] = None,
    customer_location: Optional[GeoPoint] = None,
    payment_confirmed: bool,
    splits: Optional[PaymentSplit] = None,
    deadline_minutes: int = 30,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
) -> Order:
    """
    Validate a checkout and build the Placed order it produces.

    Instant orders need a confirmed payment up front; a failed confirmation
    raises PaymentRequiredError and nothing is created. Scheduled orders may
    defer payment until `deadline_minutes` before the slot and start PENDING.
    """
    if not cart:
        raise ValidationError("Cart is empty", field="items")
    if store is None:
        raise ValidationError("Select a store before checking out", field="store_id")

    if mode == OrderMode.DELIVERY and (not delivery_address or customer_location is None):
        raise ValidationError("Delivery orders need an address and a location", field="delivery_address")

    scheduled_time = to_naive_utc(scheduled_time)
    deadline = None
    if delivery_type == DeliveryType.SCHEDULED:
        if scheduled_time is None:
            raise ValidationError("Scheduled orders need a delivery slot", field="scheduled_time")
        if scheduled_time <= created_at:
            raise ValidationError("Delivery slot must be in the future", field="scheduled_time")
        deadline = payment_deadline(scheduled_time, deadline_minutes)
    elif not payment_confirmed:
        raise PaymentRequiredError()

    items = build_line_items(cart, listings, store.id)
    total = order_total(items)
    return Order(
        id=order_id,
        created_at=created_at,
        items=items,
        total=total,
        status=OrderStatus.PLACED,
        payment_status=PaymentStatus.PAID if payment_confirmed else PaymentStatus.PENDING,
        mode=mode,
        delivery_type=delivery_type,
        scheduled_time=scheduled_time if delivery_type == DeliveryType.SCHEDULED else None,
        payment_deadline=deadline,
        delivery_address=delivery_address if mode == OrderMode.DELIVERY else None,
        store_id=store.id,
        store_name=store.name,
        customer_id=customer_id,
        customer_name=customer_name,
        customer_phone=customer_phone,
        store_location=GeoPoint(lat=store.lat, lng=store.lng),
        customer_location=customer_location if mode == OrderMode.DELIVERY else None,
        splits=splits or default_split(total, store),
    )


def confirm_order_payment(order: Order, now: datetime) -> Order:
    """Flip a PENDING order to PAID, unless its payment deadline has passed."""
    if order.payment_status == PaymentStatus.PAID:
        return order
    if order.status != OrderStatus.PLACED:
        raise ConflictError(f"Order {order.id} is {order.status.value}; payment can no longer be taken")
    now = to_naive_utc(now)
    if order.payment_deadline is not None and now > to_naive_utc(order.payment_deadline):
        raise ConflictError(
            f"Payment deadline for order {order.id} has passed",
            details={"payment_deadline": order.payment_deadline.isoformat()},
        )
    return order.model_copy(update={"payment_status": PaymentStatus.PAID, "version": order.version + 1})
