"""
Store-owner console — inventory, incoming orders, store profile and location.

Inventory edits are optimistic: the local item changes first, then the write
goes to the backend. If the write fails the local item is put back the way
it was and the error is raised to the caller.

Order status changes are not optimistic. The console sends the write and
only re-fetches once it succeeded; on failure the error is raised and the
displayed status stays what it was.
"""
import logging
from typing import Optional

from config import Settings
from domain.enums import OrderStatus
from domain.errors import DomainError, InvalidTransitionError, NotFoundError
from domain.inventory import apply_listing_update, toggle_in_stock
from domain.lifecycle import is_active, next_owner_step, owner_actions
from domain.records import BrandVariant, InventoryItem, Order, Profile, Store
from services.backends import DataBackend
from services.geolocation import ErrorCallback, PositionFix, PositionSource, PositionWatch, current_fix
from services.location_service import LocationClient
from views.order_tracker import OrderTracker

logger = logging.getLogger(__name__)


class StoreOwnerConsole:
    def __init__(self, backend: DataBackend, profile: Profile, store: Store, settings: Settings):
        self.backend = backend
        self.profile = profile
        self.store = store
        self.settings = settings
        self.inventory: dict[str, InventoryItem] = {}
        self.tracker = OrderTracker(backend, "store", store.id)
        self._pin_watch: Optional[PositionWatch] = None

    @property
    def incoming_orders(self) -> list[Order]:
        return self.tracker.orders

    async def load(self) -> None:
        await self.load_inventory()
        await self.tracker.refresh()

    # ── Inventory ──

    async def load_inventory(self) -> list[InventoryItem]:
        items = await self.backend.get_inventory(self.store.id)
        self.inventory = {item.product_id: item for item in items}
        return items

    async def _item(self, product_id: str) -> InventoryItem:
        if product_id not in self.inventory:
            await self.load_inventory()
        item = self.inventory.get(product_id)
        if item is None:
            raise NotFoundError("Product", product_id)
        return item

    async def _commit_listing(self, prior: InventoryItem, updated: InventoryItem) -> InventoryItem:
        pid = prior.product_id
        self.inventory[pid] = updated
        try:
            saved = await self.backend.save_listing(updated)
        except Exception as e:
            self.inventory[pid] = prior
            logger.error(f"Inventory update for {self.store.id}/{pid} failed, reverted: {e}")
            raise
        self.inventory[pid] = saved
        return saved

    async def update_listing(
        self,
        product_id: str,
        *,
        in_stock: bool,
        price: Optional[float] = None,
        mrp: Optional[float] = None,
        stock: Optional[int] = None,
        brand_details: Optional[dict[str, BrandVariant]] = None,
    ) -> InventoryItem:
        """Set offered flag, price, MRP and stock in one write."""
        prior = await self._item(product_id)
        updated = apply_listing_update(
            prior, in_stock=in_stock, price=price, mrp=mrp, stock=stock, brand_details=brand_details
        )
        return await self._commit_listing(prior, updated)

    async def toggle_in_stock(self, product_id: str) -> InventoryItem:
        prior = await self._item(product_id)
        return await self._commit_listing(prior, toggle_in_stock(prior))

    async def delist(self, product_id: str) -> InventoryItem:
        await self._item(product_id)
        item = await self.backend.delete_listing(self.store.id, product_id)
        self.inventory[product_id] = item
        return item

    async def add_custom_product(self, **fields) -> InventoryItem:
        item = await self.backend.create_custom_item(self.store.id, **fields)
        self.inventory[item.product_id] = item
        return item

    # ── Orders ──

    async def set_status(
        self,
        order_id: str,
        target: Optional[OrderStatus] = None,
        *,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Write a new status for one of this store's orders.

        Without `target` the order takes its next forward step.
        """
        order = await self.backend.get_order(order_id)
        if order.store_id != self.store.id:
            raise NotFoundError("Order", order_id)
        if target is None:
            target = next_owner_step(order.status, order.mode)
            if target is None:
                raise InvalidTransitionError(order.status.value, "next step", "order is already closed")
        try:
            updated = await self.backend.update_order_status(order_id, target, expected_version=expected_version)
        except Exception as e:
            logger.warning(f"Status change {order_id} → {target.value} failed: {e}")
            raise
        await self.tracker.refresh()
        return updated

    async def reject(self, order_id: str, *, expected_version: Optional[int] = None) -> Order:
        return await self.set_status(order_id, OrderStatus.REJECTED, expected_version=expected_version)

    def actions_for(self, order: Order) -> list[dict]:
        return owner_actions(order.status, order.mode, order.payment_status)

    def dashboard(self) -> dict:
        """Pending count and revenue over the loaded orders (rejected/cancelled excluded)."""
        orders = self.tracker.orders
        revenue = sum(
            o.total for o in orders if o.status not in (OrderStatus.REJECTED, OrderStatus.CANCELLED)
        )
        return {
            "totalOrders": len(orders),
            "pendingOrders": sum(1 for o in orders if is_active(o.status)),
            "revenue": round(revenue, 2),
            "listedProducts": sum(1 for item in self.inventory.values() if item.is_active),
        }

    # ── Store profile / location ──

    async def update_store_profile(self, **fields) -> Store:
        self.store = await self.backend.update_store(self.store.id, **fields)
        return self.store

    async def use_current_location(
        self,
        source: PositionSource,
        location: LocationClient,
        timeout: Optional[float] = None,
    ) -> Store:
        """
        Move the store pin to the device's current position.

        Raises GeolocationError when no fix is available. The address is only
        replaced when reverse geocoding finds one.
        """
        fix = await current_fix(source, timeout or self.settings.geolocation_timeout_seconds)
        address = await location.reverse_geocode(fix.lat, fix.lng)
        return await self.update_store_profile(lat=fix.lat, lng=fix.lng, address=address)

    @property
    def following_location(self) -> bool:
        return self._pin_watch is not None and self._pin_watch.active

    async def follow_location(self, source: PositionSource, on_error: Optional[ErrorCallback] = None) -> PositionWatch:
        """
        Keep the store pin on the device's position until stop_following() is called.

        Only lat/lng move; the address is left as it is. A fix that cannot be
        saved is logged and the watch keeps going.
        """
        await self.stop_following()

        async def _move(fix: PositionFix) -> None:
            try:
                await self.update_store_profile(lat=fix.lat, lng=fix.lng)
            except DomainError as e:
                logger.error(f"Live pin update for store {self.store.id} failed: {e.message}")

        self._pin_watch = PositionWatch(
            source, _move, on_error, timeout=self.settings.geolocation_timeout_seconds
        ).start()
        return self._pin_watch

    async def stop_following(self) -> None:
        watch, self._pin_watch = self._pin_watch, None
        if watch is not None:
            await watch.clear()

    async def update_profile(self, **fields) -> Profile:
        self.profile = await self.backend.update_profile(self.profile.id, **fields)
        return self.profile
