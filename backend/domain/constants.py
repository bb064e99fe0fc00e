"""
Domain constants used across services/routers.
"""
from domain.enums import OrderStatus

# Change-feed table names
TABLE_ORDERS = "orders"
TABLE_INVENTORY = "inventory"
TABLE_STORES = "stores"

# Storage codes for order status (authoritative store column values)
STATUS_TO_DB = {
    OrderStatus.PLACED: "placed",
    OrderStatus.ACCEPTED: "accepted",
    OrderStatus.PREPARING: "packing",
    OrderStatus.READY: "ready",
    OrderStatus.ON_THE_WAY: "on_way",
    OrderStatus.DELIVERED: "delivered",
    OrderStatus.PICKED_UP: "picked_up",
    OrderStatus.CANCELLED: "cancelled",
    OrderStatus.REJECTED: "rejected",
}
DB_TO_STATUS = {code: status for status, code in STATUS_TO_DB.items()}
# Rows written before "placed" existed
DB_TO_STATUS["pending"] = OrderStatus.PLACED

# Customer-facing step labels and icons
STEP_LABELS = {
    OrderStatus.PLACED: "Placed",
    OrderStatus.PREPARING: "Packing",
    OrderStatus.ON_THE_WAY: "On Way",
    OrderStatus.READY: "Ready",
    OrderStatus.PICKED_UP: "Picked Up",
    OrderStatus.DELIVERED: "Delivered",
}
STEP_ICONS = {
    OrderStatus.PLACED: "📝",
    OrderStatus.PREPARING: "🥡",
    OrderStatus.ON_THE_WAY: "🛵",
    OrderStatus.READY: "🛍️",
    OrderStatus.DELIVERED: "🏠",
    OrderStatus.PICKED_UP: "🏠",
}
DEFAULT_STEP_ICON = "•"

DEFAULT_BRAND = "Generic"
DEFAULT_STORE_RATING = 4.5

# Demo account fixtures
DEMO_STORE_ID = "demo-store-1"
DEMO_STORE_LAT = 12.9716
DEMO_STORE_LNG = 77.5946
DEMO_STOCKED_PRODUCT_IDS = ("1", "41", "81", "42")
DEMO_STOCK_QUANTITY = 20
