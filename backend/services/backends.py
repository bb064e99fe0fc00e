"""
Data backends — the authoritative store (SQL) and the demo account's in-memory store.

Both expose the same async operations and hand back the same parsed records,
so views never know which one they are talking to. Writes are committed
first and then published on the change feed, keyed by the row's columns
(orders by store_id and customer_id, inventory by store_id, stores by id).

    backend = SqlBackend(async_session, feed, settings)
    order = await backend.place_order(customer_id, store_id=..., cart=[...], ...)

The demo account never touches the database: LocalBackend keeps DB-shaped
rows in dicts, parses them with the same functions as the SQL path, and is
pre-seeded with a demo store, its stocked shelf and one delivered-to-be order.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from config import Settings
from domain.cart import CartLine, assemble_order, confirm_order_payment
from domain.catalog import INITIAL_PRODUCTS
from domain.constants import (
    DEMO_STOCK_QUANTITY, DEMO_STOCKED_PRODUCT_IDS, DEMO_STORE_ID, DEMO_STORE_LAT, DEMO_STORE_LNG,
    TABLE_INVENTORY, TABLE_ORDERS, TABLE_STORES,
)
from domain.enums import ChangeEventType, DeliveryType, OrderMode, OrderStatus, Role
from domain.errors import BackendUnavailableError, DomainError, NotFoundError, StoreNotLinkedError, ValidationError
from domain.inventory import apply_listing_update, delist
from domain.lifecycle import apply_transition
from domain.records import (
    BrandVariant, GeoPoint, InventoryItem, Order, PaymentSplit, Profile, Store,
    inventory_to_row, order_to_row, parse_inventory_row, parse_order_row, parse_product_row,
    parse_profile_row, parse_store_row,
)
from services import inventory_service, order_service, profile_service, store_service
from services.change_feed import ChangeCallback, ChangeFeed, Subscription
from utils.timeutil import utcnow
from utils.validators import validate_coordinates

logger = logging.getLogger(__name__)


def new_order_id(prefix: str = "ord") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class DataBackend:
    """Operations shared by SqlBackend and LocalBackend."""

    is_demo = False

    def __init__(self, feed: ChangeFeed, settings: Settings):
        self.feed = feed
        self.settings = settings

    def subscribe(self, table: str, column: str, value: Any, callback: ChangeCallback) -> Subscription:
        return self.feed.subscribe(table, column, value, callback)


# ════════════════════════════════════════════════════════════════════
# SQL (authoritative store)
# ════════════════════════════════════════════════════════════════════


class SqlBackend(DataBackend):
    """Authoritative store: one session and transaction per operation."""

    def __init__(self, session_factory: async_sessionmaker, feed: ChangeFeed, settings: Settings):
        super().__init__(feed, settings)
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        async with self._session_factory() as db:
            try:
                yield db
                await db.commit()
            except DomainError:
                await db.rollback()
                raise
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Database operation failed: {e}")
                raise BackendUnavailableError("Could not reach the order database. Please try again.") from e

    # ── Profiles ──

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        async with self._session() as db:
            return await profile_service.get_profile(db, user_id)

    async def ensure_profile(self, user_id: str, **claims) -> tuple[Profile, bool]:
        async with self._session() as db:
            return await profile_service.ensure_profile(db, profile_id=user_id, **claims)

    async def update_profile(self, user_id: str, **fields) -> Profile:
        async with self._session() as db:
            return await profile_service.update_profile(db, user_id, **fields)

    # ── Stores ──

    async def get_owner_store(self, owner_id: str) -> Store:
        async with self._session() as db:
            return await store_service.get_store_for_owner(db, owner_id)

    async def update_store(self, store_id: str, **fields) -> Store:
        async with self._session() as db:
            store, row = await store_service.update_store(db, store_id, **fields)
        await self.feed.publish(TABLE_STORES, ChangeEventType.UPDATE, row)
        return store

    async def list_nearby_stores(self, lat: float, lng: float, radius_km: float) -> list[Store]:
        async with self._session() as db:
            return await store_service.list_nearby_stores(db, lat, lng, radius_km)

    # ── Inventory ──

    async def list_store_products(self, store_id: str) -> list[InventoryItem]:
        async with self._session() as db:
            return await inventory_service.list_offered(db, store_id)

    async def get_inventory(self, store_id: str) -> list[InventoryItem]:
        async with self._session() as db:
            return await inventory_service.get_store_inventory(db, store_id)

    async def save_listing(self, item: InventoryItem) -> InventoryItem:
        async with self._session() as db:
            row = await inventory_service.save_listing(db, item)
        await self.feed.publish(TABLE_INVENTORY, ChangeEventType.UPDATE, row)
        return item.model_copy(update={"is_active": True})

    async def delete_listing(self, store_id: str, product_id: str) -> InventoryItem:
        async with self._session() as db:
            item = await inventory_service.get_item(db, store_id, product_id)
            await inventory_service.delete_listing(db, store_id, product_id)
        await self.feed.publish(
            TABLE_INVENTORY, ChangeEventType.DELETE, {"store_id": store_id, "product_id": product_id}
        )
        return delist(item)

    async def create_custom_item(self, store_id: str, **fields) -> InventoryItem:
        async with self._session() as db:
            item, row = await inventory_service.create_custom_item(db, store_id=store_id, **fields)
        await self.feed.publish(TABLE_INVENTORY, ChangeEventType.INSERT, row)
        return item

    # ── Orders ──

    async def place_order(
        self,
        customer_id: str,
        *,
        store_id: Optional[str],
        cart: list[CartLine],
        mode: OrderMode,
        delivery_type: DeliveryType = DeliveryType.INSTANT,
        scheduled_time: Optional[datetime] = None,
        delivery_address: Optional[str] = None,
        customer_location: Optional[GeoPoint] = None,
        payment_confirmed: bool,
        splits: Optional[PaymentSplit] = None,
    ) -> Order:
        async with self._session() as db:
            store = await store_service.get_store(db, store_id) if store_id else None
            listings = await inventory_service.get_listings(db, store.id) if store else {}
            profile = await profile_service.get_profile(db, customer_id)
            order = assemble_order(
                order_id=new_order_id(),
                created_at=utcnow(),
                customer_id=customer_id,
                store=store,
                cart=cart,
                listings=listings,
                mode=mode,
                delivery_type=delivery_type,
                scheduled_time=scheduled_time,
                delivery_address=delivery_address,
                customer_location=customer_location,
                payment_confirmed=payment_confirmed,
                splits=splits,
                deadline_minutes=self.settings.payment_deadline_minutes,
                customer_name=profile.full_name if profile else None,
                customer_phone=profile.phone if profile else None,
            )
            row = await order_service.insert_order(db, order)
        await self.feed.publish(TABLE_ORDERS, ChangeEventType.INSERT, row)
        return order

    async def get_order(self, order_id: str) -> Order:
        async with self._session() as db:
            return await order_service.get_order(db, order_id)

    async def list_customer_orders(self, customer_id: str) -> list[Order]:
        async with self._session() as db:
            return await order_service.list_customer_orders(db, customer_id)

    async def list_store_orders(self, store_id: str) -> list[Order]:
        async with self._session() as db:
            return await order_service.list_store_orders(db, store_id)

    async def update_order_status(
        self, order_id: str, target: OrderStatus, *, expected_version: Optional[int] = None
    ) -> Order:
        async with self._session() as db:
            order, row = await order_service.update_order_status(
                db, order_id, target, expected_version=expected_version
            )
        await self.feed.publish(TABLE_ORDERS, ChangeEventType.UPDATE, row)
        return order

    async def confirm_payment(self, order_id: str) -> Order:
        async with self._session() as db:
            order, row = await order_service.confirm_payment(db, order_id)
        await self.feed.publish(TABLE_ORDERS, ChangeEventType.UPDATE, row)
        return order


# ════════════════════════════════════════════════════════════════════
# In-memory (demo account)
# ════════════════════════════════════════════════════════════════════


def _product_row(product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "category": product.category,
        "image_url": product.emoji,
        "description": product.description,
        "base_price": product.price,
        "mrp": product.mrp,
        "brands": [b.model_dump() for b in product.brands],
        "is_custom": product.is_custom,
        "created_by_store_id": None,
    }


class LocalBackend(DataBackend):
    """In-memory stand-in for the demo account, seeded with a demo store and order."""

    is_demo = True

    def __init__(self, settings: Settings, feed: Optional[ChangeFeed] = None):
        super().__init__(feed or ChangeFeed(), settings)
        self._profiles: dict[str, dict] = {}
        self._stores: dict[str, dict] = {}
        self._products: dict[str, dict] = {p.id: _product_row(p) for p in INITIAL_PRODUCTS}
        self._inventory: dict[tuple[str, str], dict] = {}
        self._orders: dict[str, dict] = {}
        self.seed()

    def seed(self) -> None:
        """Reset to the demo fixtures."""
        s = self.settings
        now = utcnow()
        self._profiles = {
            s.demo_user_id: {
                "id": s.demo_user_id,
                "role": Role.STORE_OWNER.value,
                "full_name": "Demo Partner",
                "phone_number": "9999999999",
                "email": "demo@grocesphere.app",
                "address": "MG Road, Bengaluru",
            },
            s.demo_customer_id: {
                "id": s.demo_customer_id,
                "role": Role.CUSTOMER.value,
                "full_name": "Rahul Dravid",
                "phone_number": "9876543210",
                "email": "rahul@example.com",
                "address": "12th Main, Indiranagar",
            },
        }
        self._stores = {
            DEMO_STORE_ID: {
                "id": DEMO_STORE_ID,
                "owner_id": s.demo_user_id,
                "name": "My Demo Store",
                "address": "MG Road, Bengaluru",
                "lat": DEMO_STORE_LAT,
                "lng": DEMO_STORE_LNG,
                "is_open": True,
                "type": "general",
                "rating": 4.5,
                "upi_id": "demo@upi",
            }
        }
        self._products = {p.id: _product_row(p) for p in INITIAL_PRODUCTS}
        self._inventory = {}
        for pid in DEMO_STOCKED_PRODUCT_IDS:
            product = self._products[pid]
            self._inventory[(DEMO_STORE_ID, pid)] = {
                "store_id": DEMO_STORE_ID,
                "product_id": pid,
                "price": product["base_price"],
                "mrp": product["mrp"],
                "in_stock": True,
                "stock": DEMO_STOCK_QUANTITY,
                "brand_data": {},
            }
        self._orders = {
            "demo-ord-1": {
                "id": "demo-ord-1",
                "created_at": now - timedelta(minutes=10),
                "items": [
                    {"product_id": "1-Generic", "original_product_id": "1", "name": "Sona Masoori Rice (1kg)",
                     "brand": "Generic", "quantity": 1, "price": 60, "emoji": "🍚"},
                    {"product_id": "81-Lay's", "original_product_id": "81", "name": "Potato Chips",
                     "brand": "Lay's", "quantity": 3, "price": 20, "emoji": "🥔"},
                ],
                "total_amount": 120,
                "status": "placed",
                "payment_status": "PAID",
                "mode": "DELIVERY",
                "delivery_type": "INSTANT",
                "delivery_address": "12th Main, Indiranagar",
                "store_id": DEMO_STORE_ID,
                "store_name": "My Demo Store",
                "customer_id": s.demo_customer_id,
                "store_lat": DEMO_STORE_LAT,
                "store_lng": DEMO_STORE_LNG,
                "delivery_lat": 12.97,
                "delivery_lng": 77.64,
                "splits": {"store_amount": 120, "store_upi": "demo@upi", "delivery_fee": 0},
                "version": 1,
            }
        }

    def _order(self, row: dict) -> Order:
        contact = self._profiles.get(row.get("customer_id"), {})
        return parse_order_row(
            {**row, "customer_name": contact.get("full_name"), "customer_phone": contact.get("phone_number")}
        )

    def _order_row(self, order_id: str) -> dict:
        row = self._orders.get(order_id)
        if row is None:
            raise NotFoundError("Order", order_id)
        return row

    def _store_row(self, store_id: str) -> dict:
        row = self._stores.get(store_id)
        if row is None:
            raise NotFoundError("Store", store_id)
        return row

    def _catalog_for(self, store_id: str) -> list:
        return [
            parse_product_row(row)
            for row in self._products.values()
            if not row["is_custom"] or row.get("created_by_store_id") == store_id
        ]

    def _listings(self, store_id: str) -> dict[str, InventoryItem]:
        return {
            pid: parse_inventory_row(row, parse_product_row(self._products[pid]), store_id)
            for (sid, pid), row in self._inventory.items()
            if sid == store_id and pid in self._products
        }

    async def _store_order(self, order: Order, event: ChangeEventType) -> dict:
        row = order_to_row(order)
        row.pop("customer_name", None)
        row.pop("customer_phone", None)
        self._orders[order.id] = row
        await self.feed.publish(TABLE_ORDERS, event, dict(row))
        return row

    # ── Profiles ──

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        row = self._profiles.get(user_id)
        return parse_profile_row(row) if row else None

    async def ensure_profile(self, user_id: str, **claims) -> tuple[Profile, bool]:
        if user_id in self._profiles:
            return parse_profile_row(self._profiles[user_id]), False
        role = claims.get("role") or Role.CUSTOMER
        self._profiles[user_id] = {
            "id": user_id,
            "role": role.value if isinstance(role, Role) else role,
            "full_name": claims.get("full_name") or "User",
            "phone_number": claims.get("phone") or "",
            "email": claims.get("email") or "",
            "address": "",
        }
        return parse_profile_row(self._profiles[user_id]), True

    async def update_profile(self, user_id: str, **fields) -> Profile:
        row = self._profiles.get(user_id)
        if row is None:
            raise NotFoundError("Profile", user_id)
        column = {"phone": "phone_number"}
        for key, value in fields.items():
            if value is not None:
                row[column.get(key, key)] = value
        return parse_profile_row(row)

    # ── Stores ──

    async def get_owner_store(self, owner_id: str) -> Store:
        for row in self._stores.values():
            if row.get("owner_id") == owner_id:
                return parse_store_row(row)
        raise StoreNotLinkedError(owner_id)

    async def update_store(self, store_id: str, **fields) -> Store:
        row = self._store_row(store_id)
        if (fields.get("lat") is None) != (fields.get("lng") is None):
            raise ValidationError("Latitude and longitude must be updated together", field="location")
        if fields.get("lat") is not None:
            validate_coordinates(fields["lat"], fields["lng"])
        updated = {**row, **{k: v for k, v in fields.items() if v is not None}}
        store = parse_store_row(updated)
        self._stores[store_id] = updated
        await self.feed.publish(TABLE_STORES, ChangeEventType.UPDATE, dict(updated))
        return store

    async def list_nearby_stores(self, lat: float, lng: float, radius_km: float) -> list[Store]:
        stores = [parse_store_row(row) for row in self._stores.values() if row.get("is_open", True)]
        nearby = store_service.filter_nearby(stores, lat, lng, radius_km)
        return [
            s.model_copy(update={
                "available_product_ids": sorted(
                    pid for pid, item in self._listings(s.id).items() if item.in_stock
                )
            })
            for s in nearby
        ]

    # ── Inventory ──

    async def list_store_products(self, store_id: str) -> list[InventoryItem]:
        return [item for item in self._listings(store_id).values() if item.in_stock]

    async def get_inventory(self, store_id: str) -> list[InventoryItem]:
        self._store_row(store_id)
        return [
            parse_inventory_row(self._inventory.get((store_id, p.id)), p, store_id)
            for p in self._catalog_for(store_id)
        ]

    async def save_listing(self, item: InventoryItem) -> InventoryItem:
        if item.product_id not in self._products:
            raise NotFoundError("Product", item.product_id)
        row = inventory_to_row(item)
        row.pop("is_active", None)
        self._inventory[(item.store_id, item.product_id)] = row
        await self.feed.publish(TABLE_INVENTORY, ChangeEventType.UPDATE, dict(row))
        return item.model_copy(update={"is_active": True})

    async def delete_listing(self, store_id: str, product_id: str) -> InventoryItem:
        if product_id not in self._products:
            raise NotFoundError("Product", product_id)
        row = self._inventory.pop((store_id, product_id), None)
        item = parse_inventory_row(row, parse_product_row(self._products[product_id]), store_id)
        await self.feed.publish(
            TABLE_INVENTORY, ChangeEventType.DELETE, {"store_id": store_id, "product_id": product_id}
        )
        return delist(item)

    async def create_custom_item(
        self,
        store_id: str,
        *,
        name: str,
        category: str,
        price: float,
        mrp: Optional[float] = None,
        stock: int = 0,
        emoji: Optional[str] = None,
        description: Optional[str] = None,
        brand_details: Optional[dict[str, BrandVariant]] = None,
    ) -> InventoryItem:
        product_id = f"custom-{uuid.uuid4().hex[:12]}"
        self._products[product_id] = {
            "id": product_id,
            "name": name,
            "category": category,
            "image_url": emoji or "📦",
            "description": description,
            "base_price": price,
            "mrp": mrp if mrp is not None else price,
            "brands": [{"name": b, "price": v.price} for b, v in (brand_details or {}).items()],
            "is_custom": True,
            "created_by_store_id": store_id,
        }
        item = apply_listing_update(
            parse_inventory_row(None, parse_product_row(self._products[product_id]), store_id),
            in_stock=True,
            price=price,
            mrp=mrp if mrp is not None else price,
            stock=stock,
            brand_details=brand_details or {},
        )
        return await self.save_listing(item)

    # ── Orders ──

    async def place_order(
        self,
        customer_id: str,
        *,
        store_id: Optional[str],
        cart: list[CartLine],
        mode: OrderMode,
        delivery_type: DeliveryType = DeliveryType.INSTANT,
        scheduled_time: Optional[datetime] = None,
        delivery_address: Optional[str] = None,
        customer_location: Optional[GeoPoint] = None,
        payment_confirmed: bool,
        splits: Optional[PaymentSplit] = None,
    ) -> Order:
        store_row = self._stores.get(store_id) if store_id else None
        store = parse_store_row(store_row) if store_row else None
        contact = self._profiles.get(customer_id, {})
        order = assemble_order(
            order_id=new_order_id("demo-ord"),
            created_at=utcnow(),
            customer_id=customer_id,
            store=store,
            cart=cart,
            listings=self._listings(store.id) if store else {},
            mode=mode,
            delivery_type=delivery_type,
            scheduled_time=scheduled_time,
            delivery_address=delivery_address,
            customer_location=customer_location,
            payment_confirmed=payment_confirmed,
            splits=splits,
            deadline_minutes=self.settings.payment_deadline_minutes,
            customer_name=contact.get("full_name"),
            customer_phone=contact.get("phone_number"),
        )
        await self._store_order(order, ChangeEventType.INSERT)
        logger.info(f"Demo order {order.id} placed: total={order.total}")
        return order

    async def get_order(self, order_id: str) -> Order:
        return self._order(self._order_row(order_id))

    async def list_customer_orders(self, customer_id: str) -> list[Order]:
        orders = [self._order(r) for r in self._orders.values() if r.get("customer_id") == customer_id]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def list_store_orders(self, store_id: str) -> list[Order]:
        orders = [self._order(r) for r in self._orders.values() if r.get("store_id") == store_id]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def list_all_orders(self) -> list[Order]:
        return [self._order(r) for r in self._orders.values()]

    async def update_order_status(
        self, order_id: str, target: OrderStatus, *, expected_version: Optional[int] = None
    ) -> Order:
        current = self._order(self._order_row(order_id))
        updated = apply_transition(current, target, expected_version)
        await self._store_order(updated, ChangeEventType.UPDATE)
        return updated

    async def write_simulated(self, order: Order) -> Optional[Order]:
        """
        Store a simulator step (no owner transition checks).

        Skipped, returning None, when the stored order moved on since the
        step was computed from it.
        """
        stored = self._orders.get(order.id)
        if stored is None or stored.get("version") != order.version - 1:
            return None
        await self._store_order(order, ChangeEventType.UPDATE)
        return order

    async def confirm_payment(self, order_id: str) -> Order:
        current = self._order(self._order_row(order_id))
        updated = confirm_order_payment(current, utcnow())
        if updated is not current:
            await self._store_order(updated, ChangeEventType.UPDATE)
        return updated
