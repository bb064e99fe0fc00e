"""
Pydantic models for request validation.

Responses are the domain records themselves (domain/records.py), wrapped in
the success envelope. Request bodies accept camelCase (the web client) or
snake_case field names.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from domain.cart import CartLine
from domain.enums import DeliveryType, OrderMode, OrderStatus, Role
from domain.records import BrandVariant, GeoPoint, PaymentSplit
from utils.timeutil import to_naive_utc


class ApiModel(BaseModel):
    """Shared base — allows construction by Python name or camelCase alias."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


# ── Auth / Profile ──────────────────────────────────────────────────

class SessionRequest(ApiModel):
    """Identity claims forwarded by the identity provider on first login."""
    email: Optional[str] = Field(default=None, max_length=254)
    full_name: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=32)
    role: Optional[Role] = None


class DemoLoginRequest(ApiModel):
    role: Role = Role.STORE_OWNER


class ProfileUpdateRequest(ApiModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    address: Optional[str] = Field(default=None, max_length=500)
    email: Optional[str] = Field(default=None, max_length=254)
    phone: Optional[str] = Field(default=None, max_length=32)


# ── Checkout / Orders ───────────────────────────────────────────────

class CheckoutRequest(ApiModel):
    store_id: Optional[str] = Field(default=None, max_length=64)
    items: List[CartLine] = Field(default_factory=list)
    mode: OrderMode = OrderMode.DELIVERY
    delivery_type: DeliveryType = DeliveryType.INSTANT
    scheduled_time: Optional[datetime] = None
    delivery_address: Optional[str] = Field(default=None, max_length=500)
    customer_location: Optional[GeoPoint] = None
    payment_confirmed: bool = Field(
        ...,
        description="Whether the payment gateway already confirmed payment for this checkout",
    )
    splits: Optional[PaymentSplit] = None

    @field_validator("scheduled_time")
    @classmethod
    def _naive_utc_slot(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class StatusUpdateRequest(ApiModel):
    """Target status; omitted means 'next step'. expectedVersion enables conflict detection."""
    status: Optional[OrderStatus] = None
    expected_version: Optional[int] = Field(default=None, ge=1)


# ── Inventory / Store ───────────────────────────────────────────────

class ListingUpdateRequest(ApiModel):
    in_stock: bool
    price: Optional[float] = Field(default=None, ge=0)
    mrp: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    brand_details: Optional[dict[str, BrandVariant]] = None


class CustomProductRequest(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field("General", max_length=100)
    price: float = Field(..., ge=0)
    mrp: Optional[float] = Field(default=None, ge=0)
    stock: int = Field(0, ge=0)
    emoji: Optional[str] = Field(default=None, max_length=16)
    description: Optional[str] = Field(default=None, max_length=1000)
    brand_details: Optional[dict[str, BrandVariant]] = None


class StoreProfileUpdateRequest(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    address: Optional[str] = Field(default=None, max_length=500)
    upi_id: Optional[str] = Field(default=None, max_length=100)
    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lng: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    is_open: Optional[bool] = None


# ── Location ────────────────────────────────────────────────────────

class PositionReport(ApiModel):
    """A device fix, or the W3C error code (1, 2, 3) when the device had none."""
    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lng: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    accuracy: float = Field(0.0, ge=0)
    error_code: Optional[int] = Field(default=None, ge=1, le=3)

    @model_validator(mode="after")
    def _fix_or_error(self):
        if self.error_code is None and (self.lat is None or self.lng is None):
            raise ValueError("Provide lat and lng, or an errorCode")
        return self
