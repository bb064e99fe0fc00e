"""
Store-owner endpoints — store profile, inventory and incoming orders.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app_context import AppContext
from deps import get_context, require_store_owner
from domain.responses import success_response
from models import (
    CustomProductRequest, ListingUpdateRequest, ProfileUpdateRequest,
    StatusUpdateRequest, StoreProfileUpdateRequest,
)
from utils.validators import validated_order_id, validated_product_id
from views.session import StoreOwnerSession

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/store", tags=["store"])


def _with_actions(session: StoreOwnerSession, order) -> dict:
    return {
        "order": order,
        "actions": [
            {"label": a["label"], "target": a["target"].value}
            for a in session.console.actions_for(order)
        ],
    }


# ── Store profile ───────────────────────────────────────────────────

@router.get("/me")
async def my_store(session: StoreOwnerSession = Depends(require_store_owner)):
    await session.console.load()
    return success_response(data={"store": session.store, "dashboard": session.console.dashboard()})


@router.patch("/me")
async def update_store(
    request: StoreProfileUpdateRequest,
    session: StoreOwnerSession = Depends(require_store_owner),
):
    store = await session.console.update_store_profile(**request.model_dump())
    return success_response(data=store)


@router.post("/me/location/current")
async def use_current_location(
    timeout: Optional[float] = Query(None, gt=0, le=60),
    session: StoreOwnerSession = Depends(require_store_owner),
    context: AppContext = Depends(get_context),
):
    """Move the store pin to the owner's reported device position."""
    store = await session.console.use_current_location(
        context.position_source_for(session.profile.id),
        context.location,
        timeout,
    )
    return success_response(data=store)


@router.patch("/profile")
async def update_profile(
    request: ProfileUpdateRequest,
    session: StoreOwnerSession = Depends(require_store_owner),
):
    profile = await session.console.update_profile(**request.model_dump())
    return success_response(data=profile)


# ── Inventory ───────────────────────────────────────────────────────

@router.get("/inventory")
async def inventory(session: StoreOwnerSession = Depends(require_store_owner)):
    items = await session.console.load_inventory()
    return success_response(
        data=items,
        meta={"count": len(items), "listed": sum(1 for i in items if i.is_active)},
    )


@router.put("/inventory/{product_id}")
async def update_listing(
    request: ListingUpdateRequest,
    product_id: str = Depends(validated_product_id),
    session: StoreOwnerSession = Depends(require_store_owner),
):
    item = await session.console.update_listing(
        product_id,
        in_stock=request.in_stock,
        price=request.price,
        mrp=request.mrp,
        stock=request.stock,
        brand_details=request.brand_details,
    )
    return success_response(data=item)


@router.post("/inventory/{product_id}/toggle")
async def toggle_listing(
    product_id: str = Depends(validated_product_id),
    session: StoreOwnerSession = Depends(require_store_owner),
):
    item = await session.console.toggle_in_stock(product_id)
    return success_response(data=item)


@router.delete("/inventory/{product_id}")
async def delist(
    product_id: str = Depends(validated_product_id),
    session: StoreOwnerSession = Depends(require_store_owner),
):
    item = await session.console.delist(product_id)
    return success_response(data=item)


@router.post("/inventory/custom", status_code=status.HTTP_201_CREATED)
async def add_custom_product(
    request: CustomProductRequest,
    session: StoreOwnerSession = Depends(require_store_owner),
):
    item = await session.console.add_custom_product(
        **request.model_dump(exclude={"brand_details"}),
        brand_details=request.brand_details,
    )
    return success_response(data=item)


# ── Orders ──────────────────────────────────────────────────────────

@router.get("/orders")
async def incoming_orders(session: StoreOwnerSession = Depends(require_store_owner)):
    orders = await session.console.tracker.refresh()
    return success_response(
        data=[_with_actions(session, o) for o in orders],
        meta={"count": len(orders), **session.console.dashboard()},
    )


@router.post("/orders/{order_id}/status")
async def set_order_status(
    request: StatusUpdateRequest,
    order_id: str = Depends(validated_order_id),
    session: StoreOwnerSession = Depends(require_store_owner),
):
    order = await session.console.set_status(
        order_id, request.status, expected_version=request.expected_version
    )
    return success_response(data=_with_actions(session, order))


@router.post("/orders/{order_id}/reject")
async def reject_order(
    order_id: str = Depends(validated_order_id),
    expected_version: Optional[int] = Query(None, alias="expectedVersion", ge=1),
    session: StoreOwnerSession = Depends(require_store_owner),
):
    order = await session.console.reject(order_id, expected_version=expected_version)
    return success_response(data=_with_actions(session, order))
