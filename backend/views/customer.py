"""
Customer view — store discovery, cart, checkout and order tracking.
"""
import logging
from datetime import datetime
from typing import Optional

from config import Settings
from domain.cart import CartLine, unit_price
from domain.constants import DEFAULT_BRAND, TABLE_INVENTORY
from domain.enums import DeliveryType, OrderMode
from domain.errors import NotFoundError, ValidationError
from domain.lifecycle import Progress, progress
from domain.records import ChangeEvent, GeoPoint, InventoryItem, Order, PaymentSplit, Profile, Store
from services.backends import DataBackend
from services.change_feed import Subscription
from views.order_tracker import OrderTracker

logger = logging.getLogger(__name__)


class CustomerView:
    def __init__(self, backend: DataBackend, profile: Profile, settings: Settings):
        self.backend = backend
        self.profile = profile
        self.settings = settings
        self.store_id: Optional[str] = None
        self._cart: dict[tuple[str, str], CartLine] = {}
        self.tracker = OrderTracker(backend, "customer", profile.id)
        self.shelf: list[InventoryItem] = []
        self._shelf_subscription: Optional[Subscription] = None

    # ── Discovery ──

    async def nearby_stores(self, lat: float, lng: float, radius_km: Optional[float] = None) -> list[Store]:
        return await self.backend.list_nearby_stores(lat, lng, radius_km or self.settings.nearby_radius_km)

    async def store_shelf(self, store_id: str) -> list[InventoryItem]:
        return await self.backend.list_store_products(store_id)

    async def follow_shelf(self, store_id: str) -> list[InventoryItem]:
        """Load a store's shelf into `shelf` and re-fetch it on every inventory change there."""
        self.unfollow_shelf()

        async def _refetch(event: ChangeEvent) -> None:
            self.shelf = await self.store_shelf(store_id)

        self._shelf_subscription = self.backend.subscribe(TABLE_INVENTORY, "store_id", store_id, _refetch)
        self.shelf = await self.store_shelf(store_id)
        return self.shelf

    def unfollow_shelf(self) -> None:
        if self._shelf_subscription is not None:
            self._shelf_subscription.unsubscribe()
            self._shelf_subscription = None

    # ── Cart ──

    @property
    def cart(self) -> list[CartLine]:
        return list(self._cart.values())

    def add_to_cart(self, store_id: str, product_id: str, quantity: int = 1, brand: str = DEFAULT_BRAND) -> list[CartLine]:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity")
        if self.store_id is not None and self._cart and store_id != self.store_id:
            raise ValidationError(
                "Your cart has items from another store. Clear it to shop here.",
                field="store_id",
                details={"cart_store_id": self.store_id, "store_id": store_id},
            )
        self.store_id = store_id
        key = (product_id, brand)
        existing = self._cart.get(key)
        total_qty = quantity + (existing.quantity if existing else 0)
        self._cart[key] = CartLine(product_id=product_id, store_id=store_id, quantity=total_qty, brand=brand)
        return self.cart

    def remove_from_cart(self, product_id: str, brand: str = DEFAULT_BRAND) -> list[CartLine]:
        self._cart.pop((product_id, brand), None)
        if not self._cart:
            self.store_id = None
        return self.cart

    def clear_cart(self) -> None:
        self._cart.clear()
        self.store_id = None

    async def cart_total(self) -> float:
        """Preview of the total at current shelf prices."""
        if not self._cart:
            return 0.0
        shelf = {item.product_id: item for item in await self.store_shelf(self.store_id)}
        total = 0.0
        for line in self._cart.values():
            item = shelf.get(line.product_id)
            if item is None:
                raise ValidationError(f"Product {line.product_id} is no longer available", field="items")
            total += unit_price(item, line.brand) * line.quantity
        return round(total, 2)

    # ── Checkout ──

    async def checkout(
        self,
        *,
        mode: OrderMode,
        payment_confirmed: bool,
        delivery_type: DeliveryType = DeliveryType.INSTANT,
        scheduled_time: Optional[datetime] = None,
        delivery_address: Optional[str] = None,
        customer_location: Optional[GeoPoint] = None,
        splits: Optional[PaymentSplit] = None,
        cart: Optional[list[CartLine]] = None,
        store_id: Optional[str] = None,
    ) -> Order:
        """
        Place the order. The cart is cleared only once the order exists.

        `cart`/`store_id` override the view's own cart (stateless API calls).
        """
        lines = cart if cart is not None else self.cart
        target_store = store_id or self.store_id or (lines[0].store_id if lines else None)
        order = await self.backend.place_order(
            self.profile.id,
            store_id=target_store,
            cart=lines,
            mode=mode,
            delivery_type=delivery_type,
            scheduled_time=scheduled_time,
            delivery_address=delivery_address or (self.profile.address if mode == OrderMode.DELIVERY else None),
            customer_location=customer_location,
            payment_confirmed=payment_confirmed,
            splits=splits,
        )
        if cart is None:
            self.clear_cart()
        logger.info(f"Checkout by {self.profile.id}: order {order.id} total={order.total}")
        return order

    async def confirm_payment(self, order_id: str) -> Order:
        order = await self.backend.get_order(order_id)
        self._check_owned(order)
        return await self.backend.confirm_payment(order_id)

    # ── Tracking ──

    async def orders(self) -> list[Order]:
        return await self.tracker.refresh()

    async def track(self, order_id: str) -> tuple[Order, Progress]:
        order = await self.backend.get_order(order_id)
        self._check_owned(order)
        return order, progress(order.status, order.mode)

    def _check_owned(self, order: Order) -> None:
        if order.customer_id != self.profile.id:
            raise NotFoundError("Order", order.id)

    async def update_profile(self, **fields) -> Profile:
        self.profile = await self.backend.update_profile(self.profile.id, **fields)
        return self.profile
