"""
Catalog service — built-in products plus owner-defined custom products.
"""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Product, row_to_dict
from domain.catalog import INITIAL_PRODUCTS
from domain.records import CatalogProduct, parse_product_row

logger = logging.getLogger(__name__)


async def seed_catalog(db: AsyncSession) -> int:
    """Insert any built-in product that is missing. Returns how many were added."""
    res = await db.execute(select(Product.id))
    existing = set(res.scalars().all())
    added = 0
    for p in INITIAL_PRODUCTS:
        if p.id in existing:
            continue
        db.add(
            Product(
                id=p.id,
                name=p.name,
                category=p.category,
                image_url=p.emoji,
                description=p.description,
                base_price=p.price,
                mrp=p.mrp,
                brands=[b.model_dump() for b in p.brands],
                is_custom=False,
            )
        )
        added += 1
    await db.flush()
    return added


async def list_catalog(db: AsyncSession, *, store_id: str | None = None) -> list[CatalogProduct]:
    """Built-in products plus the custom products created by `store_id`."""
    query = select(Product).where(Product.is_custom == False)  # noqa: E712
    res = await db.execute(query.order_by(Product.id))
    products = [parse_product_row(row_to_dict(p)) for p in res.scalars().all()]
    if store_id:
        custom = await db.execute(
            select(Product)
            .where(Product.is_custom == True, Product.created_by_store_id == store_id)  # noqa: E712
            .order_by(Product.created_at)
        )
        products = [parse_product_row(row_to_dict(p)) for p in custom.scalars().all()] + products
    return products


async def get_products(db: AsyncSession, product_ids: list[str]) -> dict[str, CatalogProduct]:
    if not product_ids:
        return {}
    res = await db.execute(select(Product).where(Product.id.in_(product_ids)))
    return {p.id: parse_product_row(row_to_dict(p)) for p in res.scalars().all()}


async def create_custom_product(
    db: AsyncSession,
    *,
    store_id: str,
    name: str,
    category: str,
    price: float,
    mrp: float | None = None,
    emoji: str | None = None,
    description: str | None = None,
    brands: list[dict] | None = None,
) -> CatalogProduct:
    product = Product(
        id=f"custom-{uuid.uuid4().hex[:12]}",
        name=name,
        category=category,
        image_url=emoji or "📦",
        description=description,
        base_price=price,
        mrp=mrp if mrp is not None else price,
        brands=brands or [],
        is_custom=True,
        created_by_store_id=store_id,
    )
    db.add(product)
    await db.flush()
    logger.info(f"Custom product {product.id} created for store {store_id}")
    return parse_product_row(row_to_dict(product))
