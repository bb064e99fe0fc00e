"""
Customer endpoints — store discovery, checkout, order history and tracking.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from deps import require_customer
from domain.lifecycle import progress
from domain.responses import success_response
from models import CheckoutRequest, ProfileUpdateRequest
from utils.validators import validate_identifier, validated_location_query, validated_order_id
from views.session import CustomerSession

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/customer", tags=["customer"])


def _with_progress(order) -> dict:
    return {"order": order, "progress": progress(order.status, order.mode).to_dict()}


@router.get("/stores/nearby")
async def nearby_stores(
    location: tuple[float, float] = Depends(validated_location_query),
    radius_km: Optional[float] = Query(None, alias="radiusKm", gt=0, le=50),
    session: CustomerSession = Depends(require_customer),
):
    lat, lng = location
    stores = await session.view.nearby_stores(lat, lng, radius_km)
    return success_response(data=stores, meta={"count": len(stores)})


@router.get("/stores/{store_id}/products")
async def store_products(store_id: str, session: CustomerSession = Depends(require_customer)):
    validate_identifier(store_id, "store_id")
    items = await session.view.store_shelf(store_id)
    return success_response(data=items, meta={"count": len(items)})


@router.post("/orders", status_code=status.HTTP_201_CREATED)
async def checkout(request: CheckoutRequest, session: CustomerSession = Depends(require_customer)):
    order = await session.view.checkout(
        mode=request.mode,
        payment_confirmed=request.payment_confirmed,
        delivery_type=request.delivery_type,
        scheduled_time=request.scheduled_time,
        delivery_address=request.delivery_address,
        customer_location=request.customer_location,
        splits=request.splits,
        cart=request.items,
        store_id=request.store_id,
    )
    return success_response(data=_with_progress(order))


@router.get("/orders")
async def my_orders(session: CustomerSession = Depends(require_customer)):
    orders = await session.view.orders()
    return success_response(data=[_with_progress(o) for o in orders], meta={"count": len(orders)})


@router.get("/orders/{order_id}")
async def track_order(
    order_id: str = Depends(validated_order_id),
    session: CustomerSession = Depends(require_customer),
):
    order, prog = await session.view.track(order_id)
    return success_response(data={"order": order, "progress": prog.to_dict()})


@router.post("/orders/{order_id}/confirm-payment")
async def confirm_payment(
    order_id: str = Depends(validated_order_id),
    session: CustomerSession = Depends(require_customer),
):
    order = await session.view.confirm_payment(order_id)
    return success_response(data=_with_progress(order))


@router.patch("/profile")
async def update_profile(request: ProfileUpdateRequest, session: CustomerSession = Depends(require_customer)):
    profile = await session.view.update_profile(**request.model_dump())
    return success_response(data=profile)
