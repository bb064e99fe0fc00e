"""
SQLAlchemy ORM models for the grocery marketplace.

Tables:
    profiles   — users (customer or store owner)
    stores     — one store per owner, with location and payee id
    products   — catalog products (seeded) and owner-defined custom products
    inventory  — per-store listing of a product (price, stock, brand overrides)
    orders     — placed orders with line-item snapshots and payment split
"""
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship

from database import Base
from utils.timeutil import utcnow


class Profile(Base):
    """User profile, created on first login (self-healed if missing)."""
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    role = Column(String(20), nullable=False, default="customer")  # "customer" | "store_owner"
    full_name = Column(String(200), nullable=True)
    phone_number = Column(String(32), nullable=True, index=True)
    email = Column(String(254), nullable=True, index=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    store = relationship("Store", back_populates="owner", uselist=False, lazy="select")


class Store(Base):
    __tablename__ = "stores"

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(64), ForeignKey("profiles.id"), nullable=True, unique=True, index=True)
    name = Column(String(200), nullable=False)
    address = Column(Text, nullable=False, default="")
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    is_open = Column(Boolean, nullable=False, default=True)
    type = Column(String(20), nullable=False, default="general")  # general | produce | dairy
    rating = Column(Float, nullable=False, default=4.5)
    upi_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    owner = relationship("Profile", back_populates="store", lazy="select")


class Product(Base):
    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, default="General")
    image_url = Column(String(500), nullable=True)  # emoji for built-ins
    description = Column(Text, nullable=True)
    base_price = Column(Float, nullable=False, default=0.0)
    mrp = Column(Float, nullable=True)
    brands = Column(JSON, nullable=True)  # [{name, price}]
    is_custom = Column(Boolean, nullable=False, default=False)
    created_by_store_id = Column(String(64), ForeignKey("stores.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class InventoryItem(Base):
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_id = Column(String(64), ForeignKey("stores.id"), nullable=False, index=True)
    product_id = Column(String(64), ForeignKey("products.id"), nullable=False, index=True)
    price = Column(Float, nullable=False)
    mrp = Column(Float, nullable=True)
    in_stock = Column(Boolean, nullable=False, default=True)
    stock = Column(Integer, nullable=False, default=0)
    brand_data = Column(JSON, nullable=True)  # {brand: {price, mrp, stock, in_stock}}
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("store_id", "product_id", name="uq_inventory_store_product"),
    )


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    customer_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    store_id = Column(String(64), ForeignKey("stores.id"), nullable=False, index=True)
    store_name = Column(String(200), nullable=False, default="")
    items = Column(JSON, nullable=False)  # line-item snapshots
    total_amount = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default="placed", index=True)
    payment_status = Column(String(10), nullable=False, default="PAID")
    mode = Column(String(10), nullable=False, default="DELIVERY")
    delivery_type = Column(String(10), nullable=False, default="INSTANT")
    scheduled_time = Column(DateTime, nullable=True)
    payment_deadline = Column(DateTime, nullable=True)
    delivery_address = Column(Text, nullable=True)
    store_lat = Column(Float, nullable=True)
    store_lng = Column(Float, nullable=True)
    delivery_lat = Column(Float, nullable=True)
    delivery_lng = Column(Float, nullable=True)
    splits = Column(JSON, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        # Customer history: filter by customer, newest first
        Index("ix_orders_customer_created", "customer_id", "created_at"),
        # Incoming orders: filter by store, newest first
        Index("ix_orders_store_created", "store_id", "created_at"),
    )


def row_to_dict(row) -> dict:
    """Column values of an ORM row as a plain dict (input to domain.records parsers)."""
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}
