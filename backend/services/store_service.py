"""
Store service — owner's store lookup, store profile edits and nearby discovery.
"""
import logging
import math
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Store as StoreRow, row_to_dict
from domain.errors import NotFoundError, StoreNotLinkedError, ValidationError
from domain.records import Store, parse_store_row
from services import inventory_service
from utils.validators import validate_coordinates

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(km: float) -> str:
    return f"{km:.1f} km"


def filter_nearby(stores: list[Store], lat: float, lng: float, radius_km: float) -> list[Store]:
    """Stores within `radius_km`, nearest first, with distance text filled in."""
    ranked = []
    for store in stores:
        km = haversine_km(lat, lng, store.lat, store.lng)
        if km <= radius_km:
            ranked.append((km, store.model_copy(update={"distance": format_distance(km)})))
    ranked.sort(key=lambda pair: pair[0])
    return [store for _, store in ranked]


async def get_store(db: AsyncSession, store_id: str) -> Optional[Store]:
    res = await db.execute(select(StoreRow).where(StoreRow.id == store_id))
    row = res.scalar_one_or_none()
    return parse_store_row(row_to_dict(row)) if row else None


async def get_store_for_owner(db: AsyncSession, owner_id: str) -> Store:
    """The owner's store. Raises StoreNotLinkedError if none is linked."""
    res = await db.execute(select(StoreRow).where(StoreRow.owner_id == owner_id))
    row = res.scalar_one_or_none()
    if not row:
        logger.warning(f"Store owner {owner_id} has no linked store")
        raise StoreNotLinkedError(owner_id)
    return parse_store_row(row_to_dict(row))


async def create_store(
    db: AsyncSession,
    *,
    store_id: str,
    owner_id: Optional[str],
    name: str,
    lat: float,
    lng: float,
    address: str = "",
    upi_id: Optional[str] = None,
    store_type: str = "general",
) -> Store:
    validate_coordinates(lat, lng)
    row = StoreRow(
        id=store_id,
        owner_id=owner_id,
        name=name,
        address=address,
        lat=lat,
        lng=lng,
        upi_id=upi_id,
        type=store_type,
        is_open=True,
    )
    db.add(row)
    await db.flush()
    return parse_store_row(row_to_dict(row))


async def update_store(
    db: AsyncSession,
    store_id: str,
    *,
    name: Optional[str] = None,
    address: Optional[str] = None,
    upi_id: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    is_open: Optional[bool] = None,
) -> tuple[Store, dict]:
    """Update provided fields only. Returns (store, stored row)."""
    res = await db.execute(select(StoreRow).where(StoreRow.id == store_id))
    row = res.scalar_one_or_none()
    if not row:
        raise NotFoundError("Store", store_id)

    if (lat is None) != (lng is None):
        raise ValidationError("Latitude and longitude must be updated together", field="location")
    if lat is not None:
        validate_coordinates(lat, lng)
        row.lat = lat
        row.lng = lng
    if name is not None:
        row.name = name
    if address is not None:
        row.address = address
    if upi_id is not None:
        row.upi_id = upi_id
    if is_open is not None:
        row.is_open = is_open

    await db.flush()
    stored = row_to_dict(row)
    return parse_store_row(stored), stored


async def list_nearby_stores(db: AsyncSession, lat: float, lng: float, radius_km: float) -> list[Store]:
    """Open stores within `radius_km` of (lat, lng), nearest first."""
    validate_coordinates(lat, lng)
    res = await db.execute(select(StoreRow).where(StoreRow.is_open == True))  # noqa: E712
    rows = [row_to_dict(r) for r in res.scalars().all()]
    stores = filter_nearby([parse_store_row(r) for r in rows], lat, lng, radius_km)
    offered = await inventory_service.offered_product_ids(db, [s.id for s in stores])
    return [
        s.model_copy(update={"available_product_ids": offered.get(s.id, [])})
        for s in stores
    ]
