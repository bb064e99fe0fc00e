"""
Domain enums shared by services, views and routers.
"""

from enum import Enum


class OrderStatus(str, Enum):
    PLACED = "Placed"
    ACCEPTED = "Accepted"
    PREPARING = "Preparing"
    READY = "Ready"
    ON_THE_WAY = "On the way"
    DELIVERED = "Delivered"
    PICKED_UP = "Picked Up"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"


class PaymentStatus(str, Enum):
    PAID = "PAID"
    PENDING = "PENDING"


class OrderMode(str, Enum):
    DELIVERY = "DELIVERY"
    PICKUP = "PICKUP"


class DeliveryType(str, Enum):
    INSTANT = "INSTANT"
    SCHEDULED = "SCHEDULED"


class Role(str, Enum):
    CUSTOMER = "customer"
    STORE_OWNER = "store_owner"


class StoreType(str, Enum):
    GENERAL = "general"    # red
    PRODUCE = "produce"    # green
    DAIRY = "dairy"        # blue


class ChangeEventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
