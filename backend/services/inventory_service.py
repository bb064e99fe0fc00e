"""
Inventory service — a store's listings over the shared catalog.

An inventory row exists once the owner lists a product; the merged view
returned by get_store_inventory() also includes every catalog product the
store has not listed yet, so the console can offer it.
"""
import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import InventoryItem as InventoryRow, row_to_dict
from domain.errors import NotFoundError
from domain.inventory import apply_listing_update
from domain.records import BrandVariant, InventoryItem, inventory_to_row, parse_inventory_row
from services import catalog_service

logger = logging.getLogger(__name__)


async def _rows_for_store(db: AsyncSession, store_id: str) -> dict[str, dict]:
    res = await db.execute(select(InventoryRow).where(InventoryRow.store_id == store_id))
    return {row.product_id: row_to_dict(row) for row in res.scalars().all()}


async def get_store_inventory(db: AsyncSession, store_id: str) -> list[InventoryItem]:
    """Catalog (built-in + this store's custom products) merged with the store's listings."""
    products = await catalog_service.list_catalog(db, store_id=store_id)
    rows = await _rows_for_store(db, store_id)
    return [parse_inventory_row(rows.get(p.id), p, store_id) for p in products]


async def get_item(db: AsyncSession, store_id: str, product_id: str) -> InventoryItem:
    products = await catalog_service.get_products(db, [product_id])
    product = products.get(product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    res = await db.execute(
        select(InventoryRow).where(InventoryRow.store_id == store_id, InventoryRow.product_id == product_id)
    )
    row = res.scalar_one_or_none()
    return parse_inventory_row(row_to_dict(row) if row else None, product, store_id)


async def get_listings(db: AsyncSession, store_id: str) -> dict[str, InventoryItem]:
    """Listed items only, keyed by product id (checkout price lookup)."""
    rows = await _rows_for_store(db, store_id)
    products = await catalog_service.get_products(db, list(rows))
    return {
        pid: parse_inventory_row(row, products[pid], store_id)
        for pid, row in rows.items()
        if pid in products
    }


async def list_offered(db: AsyncSession, store_id: str) -> list[InventoryItem]:
    """What a customer can buy at this store right now."""
    listings = await get_listings(db, store_id)
    return [item for item in listings.values() if item.in_stock]


async def offered_product_ids(db: AsyncSession, store_ids: list[str]) -> dict[str, list[str]]:
    if not store_ids:
        return {}
    res = await db.execute(
        select(InventoryRow.store_id, InventoryRow.product_id)
        .where(InventoryRow.store_id.in_(store_ids), InventoryRow.in_stock == True)  # noqa: E712
        .order_by(InventoryRow.product_id)
    )
    ids: dict[str, list[str]] = {sid: [] for sid in store_ids}
    for store_id, product_id in res.all():
        ids[store_id].append(product_id)
    return ids


async def save_listing(db: AsyncSession, item: InventoryItem) -> dict:
    """Upsert the inventory row for `item`. Returns the stored row."""
    values = inventory_to_row(item)
    values.pop("is_active", None)
    res = await db.execute(
        select(InventoryRow).where(
            InventoryRow.store_id == item.store_id,
            InventoryRow.product_id == item.product_id,
        )
    )
    row = res.scalar_one_or_none()
    if row is None:
        row = InventoryRow(**values)
        db.add(row)
    else:
        row.price = values["price"]
        row.mrp = values["mrp"]
        row.in_stock = values["in_stock"]
        row.stock = values["stock"]
        row.brand_data = values["brand_data"]
    await db.flush()
    return row_to_dict(row)


async def delete_listing(db: AsyncSession, store_id: str, product_id: str) -> bool:
    res = await db.execute(
        delete(InventoryRow).where(
            InventoryRow.store_id == store_id,
            InventoryRow.product_id == product_id,
        )
    )
    await db.flush()
    return (res.rowcount or 0) > 0


async def create_custom_item(
    db: AsyncSession,
    *,
    store_id: str,
    name: str,
    category: str,
    price: float,
    mrp: Optional[float] = None,
    stock: int = 0,
    emoji: Optional[str] = None,
    description: Optional[str] = None,
    brand_details: Optional[dict[str, BrandVariant]] = None,
) -> tuple[InventoryItem, dict]:
    """Create a custom product and list it in one go."""
    brands = [
        {"name": name_, "price": variant.price}
        for name_, variant in (brand_details or {}).items()
    ]
    product = await catalog_service.create_custom_product(
        db,
        store_id=store_id,
        name=name,
        category=category,
        price=price,
        mrp=mrp,
        emoji=emoji,
        description=description,
        brands=brands,
    )
    item = apply_listing_update(
        parse_inventory_row(None, product, store_id),
        in_stock=True,
        price=price,
        mrp=mrp if mrp is not None else price,
        stock=stock,
        brand_details=brand_details or {},
    )
    row = await save_listing(db, item)
    return item, row
